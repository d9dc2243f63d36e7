"""Connection factory: open DB-API connections from URL strings.

The :class:`~rowmapper.database.Database` executor only needs a DB-API 2.0
connection handle. Applications that already own one pass it in directly;
everything else goes through ``create_connection()``.

Supported URL forms
-------------------
==================  ==========================================  ============
Form                Example                                     Backend
==================  ==========================================  ============
``memory``          ``memory`` or ``:memory:`` or ``None``       SQLite RAM
``sqlite``          ``sqlite:///path/to/file.db``                SQLite file
``(file path)``     ``./data/my.db``                             SQLite file
``mysql``           ``mysql+pymysql://user:pw@host/db``          SQLAlchemy
==================  ==========================================  ============

Any URL that is not SQLite is handed to SQLAlchemy, which resolves the
driver and returns its raw DB-API connection.

Usage
-----
::

    conn, info = create_connection("sqlite:///app.db")
    print(info)
    # ConnectionInfo(backend='sqlite', persistent=True, path='/abs/app.db')
"""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from rowmapper.errors import DatabaseConnectionError
from rowmapper.logging import get_logger

logger = get_logger(__name__)


# ── ConnectionInfo ───────────────────────────────────────────────────────


@dataclass(frozen=True)
class ConnectionInfo:
    """Metadata about a database connection."""

    backend: str
    """Backend identifier: ``"sqlite"``, ``"mysql"``, etc."""

    persistent: bool
    """Whether data survives process exit."""

    url: str
    """The original URL or path used to create the connection."""

    resolved_path: str | None = None
    """For file-based SQLite, the resolved absolute path."""

    def __repr__(self) -> str:
        parts = [f"backend={self.backend!r}", f"persistent={self.persistent}"]
        if self.resolved_path:
            parts.append(f"path={self.resolved_path!r}")
        else:
            parts.append(f"url={self.url!r}")
        return f"ConnectionInfo({', '.join(parts)})"

    @property
    def is_sqlite(self) -> bool:
        return self.backend == "sqlite"


# ── Backends ─────────────────────────────────────────────────────────────


def _connect_sqlite(target: str, timeout: float) -> sqlite3.Connection:
    try:
        # Autocommit mode: transactions are opened explicitly by Database.
        return sqlite3.connect(
            target,
            timeout=timeout,
            isolation_level=None,
            check_same_thread=False,
        )
    except sqlite3.Error as e:
        raise DatabaseConnectionError(
            f"Failed to connect to SQLite: {e}",
            cause=e,
        ) from e


def _create_sqlite_memory(timeout: float) -> tuple[Any, ConnectionInfo]:
    conn = _connect_sqlite(":memory:", timeout)
    return conn, ConnectionInfo(backend="sqlite", persistent=False, url=":memory:")


def _create_sqlite_file(path_str: str, timeout: float) -> tuple[Any, ConnectionInfo]:
    path = Path(path_str)
    path.parent.mkdir(parents=True, exist_ok=True)
    resolved = str(path.resolve())

    conn = _connect_sqlite(resolved, timeout)
    info = ConnectionInfo(
        backend="sqlite",
        persistent=True,
        url=path_str,
        resolved_path=resolved,
    )
    return conn, info


def _create_sqlalchemy(url: str) -> tuple[Any, ConnectionInfo]:
    """Open a raw DB-API connection through a SQLAlchemy engine."""
    from sqlalchemy import create_engine
    from sqlalchemy.exc import SQLAlchemyError
    from sqlalchemy.pool import NullPool

    try:
        engine = create_engine(url, poolclass=NullPool)
        conn = engine.raw_connection()
    except SQLAlchemyError as e:
        raise DatabaseConnectionError(
            f"Failed to connect to {url.split('://', 1)[0]}: {e}",
            cause=e,
        ) from e

    info = ConnectionInfo(backend=engine.dialect.name, persistent=True, url=url)
    return conn, info


# ── URL parsing ──────────────────────────────────────────────────────────


def _parse_url(db: str | None) -> tuple[str, str]:
    """Parse a database URL into (scheme, target).

    Returns
    -------
    tuple[str, str]
        (scheme, target) where scheme is one of
        ``"memory"``, ``"sqlite"``, ``"sqlalchemy"``, ``"file"``.
    """
    if db is None or db in ("", "memory", ":memory:"):
        return "memory", ":memory:"

    if db.startswith("sqlite:///"):
        path = db[len("sqlite:///"):]
        if not path or path == ":memory:":
            return "memory", ":memory:"
        return "sqlite", path

    if db.startswith("sqlite://"):
        path = db[len("sqlite://"):]
        if not path or path == ":memory:":
            return "memory", ":memory:"
        return "sqlite", path

    if "://" in db:
        return "sqlalchemy", db

    # Bare file path, treated as a SQLite file
    return "file", db


# ── Main factory ─────────────────────────────────────────────────────────


def create_connection(
    db: str | None = None,
    *,
    timeout: float = 5.0,
) -> tuple[Any, ConnectionInfo]:
    """Create a database connection from a URL, path, or keyword.

    Parameters
    ----------
    db:
        ``None`` / ``"memory"`` for in-memory SQLite, a file path or
        ``sqlite:///`` URL for file SQLite, any other URL for SQLAlchemy.
    timeout:
        Seconds SQLite waits on a locked database.

    Raises
    ------
    DatabaseConnectionError
        If the backend refuses the connection.
    """
    scheme, target = _parse_url(db)

    if scheme == "memory":
        conn, info = _create_sqlite_memory(timeout)
    elif scheme in ("sqlite", "file"):
        conn, info = _create_sqlite_file(target, timeout)
    else:
        conn, info = _create_sqlalchemy(target)

    logger.debug("connection_opened", backend=info.backend, persistent=info.persistent)
    return conn, info


__all__ = [
    "ConnectionInfo",
    "create_connection",
]
