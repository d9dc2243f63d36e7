"""Environment-driven settings for rowmapper.

``RowMapperSettings`` reads ``ROWMAPPER_*`` environment variables (and a
``.env`` file when present) so that applications can build a
:class:`~rowmapper.database.Database` and configure logging without
hard-coding connection strings.

Examples:
    >>> import os
    >>> os.environ["ROWMAPPER_DATABASE_URL"] = "sqlite:///app.db"
    >>> RowMapperSettings().database_url
    'sqlite:///app.db'

Tags:
    settings, configuration, pydantic, environment, rowmapper
"""

from __future__ import annotations

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class RowMapperSettings(BaseSettings):
    """Settings shared by the connection factory and logging setup.

    Fields
    ──────
    database_url   : Connection URL (``memory``, ``sqlite:///path``, file path,
                     or any SQLAlchemy URL)
    sqlite_timeout : Seconds SQLite waits on a locked database
    log_level      : structlog log level
    json_logs      : Force JSON (True) or console (False) rendering; None = auto
    """

    model_config = SettingsConfigDict(
        env_prefix="ROWMAPPER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    database_url: str = "memory"
    sqlite_timeout: float = Field(default=5.0, gt=0)

    log_level: str = "INFO"
    json_logs: bool | None = None

    @field_validator("log_level")
    @classmethod
    def _upper_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {value}")
        return level


__all__ = [
    "RowMapperSettings",
]
