"""SQL dialect abstraction for statement synthesis.

The :class:`~rowmapper.database.Database` executor builds INSERT, UPDATE and
DELETE statements from data maps. A ``Dialect`` supplies the fragments that
differ between backends: parameter placeholders, identifier quoting, literal
escaping for values that cannot be bound, and the statement that opens a
transaction.

Architecture::

    Database.insert("users", {"id": 1, "name": "one"})
        │
        ▼
    dialect.quote_identifier("users")   → `users`
    dialect.placeholders(2)             → ?, ?
        │
        ▼
    INSERT INTO `users` (`id`, `name`) VALUES (?, ?)

    ┌──────────────┐ ┌──────────────┐
    │ SQLite       │ │ MySQL        │
    │ ?, ?, ?      │ │ %s, %s, %s   │
    │ `ident`      │ │ `ident`      │
    │ BEGIN        │ │ START TRANS. │
    └──────────────┘ └──────────────┘

Examples:
    >>> d = SQLiteDialect()
    >>> d.placeholders(3)
    '?, ?, ?'
    >>> d.quote_identifier("some_id")
    '`some_id`'
    >>> d.quote_literal("it's")
    "'it''s'"

Tags:
    dialect, sql, abstraction, rowmapper
"""

from __future__ import annotations

import datetime
from decimal import Decimal
from typing import Any, Protocol, runtime_checkable

from rowmapper.errors import InvalidArgumentError


@runtime_checkable
class Dialect(Protocol):
    """SQL dialect contract.

    Every method returns a SQL fragment (string) valid for the target
    database.
    """

    @property
    def name(self) -> str:
        """Short identifier, e.g. ``"sqlite"``."""
        ...

    def placeholder(self, index: int) -> str:
        """Placeholder for the *index*-th (0-based) bound parameter."""
        ...

    def placeholders(self, count: int) -> str:
        """Comma-separated placeholder list for *count* parameters."""
        ...

    def quote_identifier(self, identifier: str) -> str:
        """Quote a table or column name."""
        ...

    def quote_literal(self, value: Any) -> str:
        """Render *value* as an escaped SQL literal."""
        ...

    def begin_transaction(self) -> str:
        """Statement that opens a transaction."""
        ...


class _BacktickDialect:
    """Shared behaviour for backends that quote identifiers with backticks."""

    _placeholder = "?"

    def placeholder(self, index: int) -> str:  # noqa: ARG002
        return self._placeholder

    def placeholders(self, count: int) -> str:
        return ", ".join(self._placeholder for _ in range(count))

    def quote_identifier(self, identifier: str) -> str:
        # Dotted names (alias.column) quote each part.
        return ".".join(
            "`" + part.replace("`", "``") + "`" for part in identifier.split(".")
        )

    def quote_literal(self, value: Any) -> str:
        if value is None:
            return "NULL"
        if isinstance(value, bool):
            return "1" if value else "0"
        if isinstance(value, (int, float, Decimal)):
            return str(value)
        if isinstance(value, datetime.datetime):
            value = value.strftime("%Y-%m-%d %H:%M:%S")
        elif isinstance(value, datetime.date):
            value = value.isoformat()
        elif isinstance(value, bytes):
            return "X'" + value.hex() + "'"
        return "'" + str(value).replace("'", "''") + "'"


class SQLiteDialect(_BacktickDialect):
    """SQLite: ``?`` placeholders; backtick identifiers are accepted for MySQL compatibility."""

    @property
    def name(self) -> str:
        return "sqlite"

    def begin_transaction(self) -> str:
        return "BEGIN"


class MySQLDialect(_BacktickDialect):
    """MySQL / MariaDB through a ``format`` paramstyle driver."""

    _placeholder = "%s"

    @property
    def name(self) -> str:
        return "mysql"

    def quote_literal(self, value: Any) -> str:
        if isinstance(value, str):
            value = value.replace("\\", "\\\\")
        return super().quote_literal(value)

    def begin_transaction(self) -> str:
        return "START TRANSACTION"


_DIALECTS: dict[str, type] = {
    "sqlite": SQLiteDialect,
    "mysql": MySQLDialect,
    "mariadb": MySQLDialect,
}


def get_dialect(name: str) -> Dialect:
    """Return a dialect instance for a backend name (``"sqlite"``, ``"mysql"``).

    Raises:
        InvalidArgumentError: If no dialect is registered for *name*.
    """
    try:
        return _DIALECTS[name.lower()]()
    except KeyError:
        raise InvalidArgumentError(
            f"Unknown SQL dialect: {name!r}. Registered: {', '.join(sorted(_DIALECTS))}"
        ) from None


def register_dialect(name: str, dialect_cls: type) -> None:
    """Register a dialect class under *name* (lower-cased)."""
    _DIALECTS[name.lower()] = dialect_cls


__all__ = [
    "Dialect",
    "SQLiteDialect",
    "MySQLDialect",
    "get_dialect",
    "register_dialect",
]
