"""Query and transaction executor over a single DB-API connection.

:class:`Database` is a thin adapter over one DB-API 2.0 connection handle.
It runs parameterized statements, fetches rows as dicts, synthesizes INSERT
and UPDATE statements from ordered data maps, and tracks whether it has an
open transaction so callers can ask for "a transaction, unless one is
already running".

Manifesto:
    The executor translates error types and nothing else. Statements are
    passed through as written; driver failures surface immediately as
    :class:`~rowmapper.errors.QueryError` with the original exception
    chained, and are never retried here.

Architecture::

    ┌────────────────────────────────────────────────────────────────────┐
    │                           Database                                  │
    │                                                                     │
    │   connection: DB-API handle    ← given, or opened lazily from url   │
    │   dialect: Dialect             ← placeholders / identifier quoting  │
    │                                                                     │
    │   exec(sql, params)          → affected rows                        │
    │   fetch_row / fetch_all / fetch_one / fetch_column                  │
    │   insert(table, data)        → affected rows                        │
    │   update(table, data, where_sql, where_params) → affected rows      │
    │   begin_transaction(only_if_none) / commit / roll_back              │
    │   transaction()              → context manager                      │
    └────────────────────────────────────────────────────────────────────┘

Concurrency:
    One Database owns one connection and does not serialize access. Calls
    block until the driver returns.

Examples:
    >>> import sqlite3
    >>> db = Database(sqlite3.connect(":memory:"))
    >>> db.exec("CREATE TABLE t (id INTEGER PRIMARY KEY, name TEXT)")
    -1
    >>> db.insert("t", {"id": 1, "name": "one"})
    1
    >>> db.fetch_row("SELECT * FROM t WHERE id = ?", [1])
    {'id': 1, 'name': 'one'}

Tags:
    database, executor, transaction, dbapi, rowmapper
"""

from __future__ import annotations

import sqlite3
from collections.abc import Callable, Iterator, Mapping, Sequence
from contextlib import contextmanager
from typing import Any

from rowmapper.connection import create_connection
from rowmapper.dialect import Dialect, SQLiteDialect, get_dialect
from rowmapper.errors import (
    InvalidArgumentError,
    NotConnectedError,
    QueryError,
    TransactionError,
)
from rowmapper.logging import get_logger
from rowmapper.settings import RowMapperSettings

logger = get_logger(__name__)


def _driver_errors(connection: Any) -> tuple[type[BaseException], ...]:
    """Exception class the driver raises (DB-API ``Connection.Error`` extension)."""
    error = getattr(connection, "Error", None)
    if isinstance(error, type) and issubclass(error, Exception):
        return (error,)
    return (Exception,)


def _enable_autocommit(connection: Any) -> None:
    """Put the driver in autocommit mode so only explicit BEGIN opens a transaction.

    A pending implicit transaction is committed by the switch.
    """
    if isinstance(connection, sqlite3.Connection):
        if getattr(connection, "autocommit", None) is False:
            connection.commit()
            connection.autocommit = sqlite3.LEGACY_TRANSACTION_CONTROL
        connection.isolation_level = None
        return

    # SQLAlchemy pool proxies expose the driver handle as dbapi_connection
    target = getattr(connection, "dbapi_connection", None) or connection
    autocommit = getattr(target, "autocommit", None)
    if callable(autocommit):
        autocommit(True)
    elif isinstance(autocommit, bool):
        target.autocommit = True


def _bind(params: Sequence[Any] | None) -> list[Any]:
    if params is None:
        return []
    if isinstance(params, (str, bytes, Mapping)):
        raise InvalidArgumentError(
            f"statement parameters must be a sequence, got {type(params).__name__}"
        )
    return [int(value) if isinstance(value, bool) else value for value in params]


def _row_dict(cursor: Any, row: Any) -> dict[str, Any]:
    if isinstance(row, Mapping):
        return dict(row)
    columns = [description[0] for description in cursor.description]
    return dict(zip(columns, row))


class Database:
    """Executor bound to one connection.

    Parameters:
        connection: An open DB-API 2.0 connection. Mutually exclusive with *url*.
            The handle is switched to autocommit mode, so statements outside
            :meth:`begin_transaction` are committed as they run.
        url: Connection URL opened lazily on first use (see
            :func:`~rowmapper.connection.create_connection`).
        dialect: SQL dialect for synthesized statements. Defaults to the
            backend of *url*, or :class:`SQLiteDialect` for a given connection.
        timeout: SQLite lock timeout used when opening *url*.

    Raises:
        InvalidArgumentError: If neither or both of *connection* and *url* are given.
    """

    def __init__(
        self,
        connection: Any = None,
        *,
        url: str | None = None,
        dialect: Dialect | None = None,
        timeout: float = 5.0,
    ):
        if (connection is None) == (url is None):
            raise InvalidArgumentError("Database needs exactly one of connection or url")
        if connection is not None:
            _enable_autocommit(connection)

        self._connection = connection
        self._url = url
        self._timeout = timeout
        self._explicit_dialect = dialect is not None
        self._dialect: Dialect = dialect or SQLiteDialect()
        self._has_active_transaction = False
        self._last_insert_id: Any = None

    @classmethod
    def from_settings(cls, settings: RowMapperSettings | None = None) -> Database:
        """Build a lazily connecting Database from ``ROWMAPPER_*`` settings."""
        settings = settings or RowMapperSettings()
        return cls(url=settings.database_url, timeout=settings.sqlite_timeout)

    @property
    def dialect(self) -> Dialect:
        return self._dialect

    # -- Connection lifecycle ----------------------------------------------

    def connect(self) -> None:
        """Open the connection from the configured URL if it is not open.

        Raises:
            NotConnectedError: If the handle was supplied by the caller and
                has been released.
        """
        if self._connection is not None:
            return
        if self._url is None:
            raise NotConnectedError("Connection was released by disconnect()")

        self._connection, info = create_connection(self._url, timeout=self._timeout)
        _enable_autocommit(self._connection)
        if not self._explicit_dialect:
            self._dialect = get_dialect(info.backend)
        logger.info("database_connected", backend=info.backend)

    def disconnect(self) -> None:
        """Close and release the connection handle."""
        connection, self._connection = self._connection, None
        self._has_active_transaction = False
        if connection is not None:
            connection.close()
            logger.info("database_disconnected")

    def is_connected(self) -> bool:
        return self._connection is not None

    def get_connection(self) -> Any:
        """The live connection handle, or ``None`` after :meth:`disconnect`."""
        return self._connection

    def _require_connection(self) -> Any:
        self.connect()
        return self._connection

    def __enter__(self) -> Database:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.disconnect()

    # -- Statement execution -----------------------------------------------

    def _run(self, sql: str, params: Sequence[Any] | None, consume: Callable[[Any], Any]) -> Any:
        connection = self._require_connection()
        bound = _bind(params)

        cursor = None
        try:
            cursor = connection.cursor()
            cursor.execute(sql, bound)
            result = consume(cursor)
            last_row_id = getattr(cursor, "lastrowid", None)
            if last_row_id:
                self._last_insert_id = last_row_id
        except _driver_errors(connection) as e:
            logger.warning("query_failed", sql=sql, error=str(e))
            raise QueryError(f"Query failed: {e}", sql=sql, params=bound, cause=e) from e
        finally:
            if cursor is not None:
                cursor.close()

        logger.debug("query_executed", sql=sql, params=len(bound))
        return result

    def exec(self, sql: str, params: Sequence[Any] | None = None) -> int:
        """Run a statement and return the number of affected rows.

        Boolean parameters are bound as ``0``/``1``.

        Raises:
            QueryError: If the driver fails to prepare or execute the statement.
        """
        return self._run(sql, params, lambda cursor: cursor.rowcount)

    def fetch_row(self, sql: str, params: Sequence[Any] | None = None) -> dict[str, Any] | None:
        """First result row as a dict, or ``None`` when there are no rows."""

        def consume(cursor: Any) -> dict[str, Any] | None:
            row = cursor.fetchone()
            return None if row is None else _row_dict(cursor, row)

        return self._run(sql, params, consume)

    def fetch_all(self, sql: str, params: Sequence[Any] | None = None) -> list[dict[str, Any]]:
        """Every result row as a dict."""
        return self._run(
            sql,
            params,
            lambda cursor: [_row_dict(cursor, row) for row in cursor.fetchall()],
        )

    def fetch_one(self, sql: str, params: Sequence[Any] | None = None) -> Any:
        """First column of the first row (``COUNT(*)`` and friends), or ``None``."""

        def consume(cursor: Any) -> Any:
            row = cursor.fetchone()
            if row is None:
                return None
            if isinstance(row, Mapping):
                return next(iter(row.values()), None)
            return row[0]

        return self._run(sql, params, consume)

    def fetch_column(self, sql: str, params: Sequence[Any] | None = None) -> list[Any]:
        """First column of every row."""
        return self._run(
            sql,
            params,
            lambda cursor: [
                next(iter(row.values()), None) if isinstance(row, Mapping) else row[0]
                for row in cursor.fetchall()
            ],
        )

    def quote(self, value: Any) -> str:
        """Escape *value* as a SQL literal, for values that cannot be bound.

        Uses the driver's ``quote`` when the connection has one, otherwise
        the dialect's escaping.
        """
        quote = getattr(self._connection, "quote", None)
        if callable(quote):
            return quote(value)
        return self._dialect.quote_literal(value)

    def last_insert_id(self) -> Any:
        """Row id generated by the most recent INSERT on this connection."""
        self._require_connection()
        return self._last_insert_id

    # -- Statement synthesis -----------------------------------------------

    def insert(self, table: str, data: Mapping[str, Any]) -> int:
        """``INSERT INTO `table` (`a`, `b`) VALUES (?, ?)`` from *data*, in map order."""
        if not data:
            raise InvalidArgumentError("insert() needs at least one column")

        quote = self._dialect.quote_identifier
        columns = ", ".join(quote(column) for column in data)
        sql = (
            f"INSERT INTO {quote(table)} ({columns}) "
            f"VALUES ({self._dialect.placeholders(len(data))})"
        )
        return self.exec(sql, list(data.values()))

    def update(
        self,
        table: str,
        data: Mapping[str, Any],
        where_sql: str | None = None,
        where_params: Sequence[Any] | None = None,
    ) -> int:
        """``UPDATE `table` SET `a` = ? ... WHERE <where_sql>``.

        Parameters are the data values followed by *where_params*. Without
        *where_sql* every row is updated.
        """
        if not data:
            raise InvalidArgumentError("update() needs at least one column")

        quote = self._dialect.quote_identifier
        assignments = ", ".join(
            f"{quote(column)} = {self._dialect.placeholder(index)}"
            for index, column in enumerate(data)
        )
        sql = f"UPDATE {quote(table)} SET {assignments}"
        if where_sql:
            sql += f" WHERE {where_sql}"
        return self.exec(sql, [*data.values(), *(where_params or [])])

    def delete(
        self,
        table: str,
        where_sql: str,
        where_params: Sequence[Any] | None = None,
    ) -> int:
        """``DELETE FROM `table` WHERE <where_sql>``."""
        if not where_sql:
            raise InvalidArgumentError("delete() needs a WHERE clause")
        sql = f"DELETE FROM {self._dialect.quote_identifier(table)} WHERE {where_sql}"
        return self.exec(sql, list(where_params or []))

    # -- Transactions ------------------------------------------------------

    def begin_transaction(self, only_if_none: bool = False) -> bool:
        """Start a transaction.

        Returns:
            ``True`` when a transaction was started; ``False`` when
            *only_if_none* is set and one is already active.

        Raises:
            TransactionError: If a transaction is active and *only_if_none*
                is not set. Nested transactions are not supported.
            QueryError: If the driver refuses to start the transaction.
        """
        if self._has_active_transaction:
            if only_if_none:
                return False
            raise TransactionError("A transaction is already active")

        self._run(self._dialect.begin_transaction(), None, lambda cursor: None)
        self._has_active_transaction = True
        logger.debug("transaction_started")
        return True

    def commit(self) -> None:
        """Commit the active transaction.

        Raises:
            QueryError: If the driver fails to commit.
        """
        self._finish("commit")

    def roll_back(self) -> None:
        """Roll back the active transaction.

        Raises:
            QueryError: If the driver fails to roll back.
        """
        self._finish("rollback")

    rollback = roll_back

    def _finish(self, action: str) -> None:
        connection = self._require_connection()
        try:
            getattr(connection, action)()
        except _driver_errors(connection) as e:
            logger.warning("transaction_failed", action=action, error=str(e))
            raise QueryError(f"Transaction {action} failed: {e}", cause=e) from e
        finally:
            self._has_active_transaction = False
        logger.debug("transaction_finished", action=action)

    def has_active_transaction(self) -> bool:
        return self._has_active_transaction

    @contextmanager
    def transaction(self, only_if_none: bool = False) -> Iterator[Database]:
        """Run a block in a transaction: commit on success, roll back on error.

        With *only_if_none*, a block that joins an already active transaction
        leaves committing or rolling back to whoever started it.
        """
        if not self.begin_transaction(only_if_none):
            yield self
            return

        try:
            yield self
        except BaseException:
            self.roll_back()
            raise
        self.commit()


__all__ = [
    "Database",
]
