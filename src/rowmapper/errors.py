"""
Structured error types for rowmapper.

Every error raised by rowmapper extends :class:`RowMapperError` and carries a
category, a retryable flag, structured context, and an optional chained
cause. Callers can tell a broken schema declaration (fatal, fixed at
development time) from a caller mistake (bad property name, wrong argument
count) and from a runtime database failure (the only category worth catching
and retrying).

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────────┐
        │                       RowMapperError                             │
        │  (category, retryable, context, cause)                           │
        ├─────────────────────────────────────────────────────────────────┤
        │                                                                  │
        │  ConfigError           InvalidArgumentError   LogicError         │
        │  (CONFIG)              (ARGUMENT, ValueError) (INTERNAL)         │
        │       │                                                          │
        │  SchemaDefinitionError BadMethodCallError                        │
        │                        (ARGUMENT, AttributeError)                │
        │                             │                                    │
        │                        ArgumentCountError                        │
        │                                                                  │
        │  DatabaseError (DATABASE)                                        │
        │       │                                                          │
        │  QueryError   TransactionError   NotConnectedError               │
        │  DatabaseConnectionError (retryable)                             │
        └─────────────────────────────────────────────────────────────────┘

Examples:
    >>> error = QueryError("syntax error", sql="SELEC 1")
    >>> error.category
    <ErrorCategory.DATABASE: 'DATABASE'>
    >>> error.context.sql
    'SELEC 1'

Tags:
    error-handling, exception-hierarchy, rowmapper
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Standard error categories for classification and routing."""

    CONFIG = "CONFIG"             # Broken schema declaration, bad settings
    ARGUMENT = "ARGUMENT"         # Caller passed an unknown name or bad value
    DATABASE = "DATABASE"         # Driver failures, lost connection
    INTERNAL = "INTERNAL"         # Misuse of an operation in the current state
    UNKNOWN = "UNKNOWN"


@dataclass
class ErrorContext:
    """
    Structured metadata attached to an error.

    Attributes:
        entity: Name of the entity class involved
        table: Table name involved
        property_name: Property name involved
        sql: SQL statement that failed
        metadata: Additional key-value pairs
    """

    entity: str | None = None
    table: str | None = None
    property_name: str | None = None
    sql: str | None = None

    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["entity", "table", "property_name", "sql"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class RowMapperError(Exception):
    """
    Base exception for all rowmapper errors.

    Subclasses set ``default_category`` and ``default_retryable`` so that a
    bare ``raise QueryError("...")`` is already classified.

    Examples:
        >>> error = RowMapperError("Something went wrong")
        >>> error.retryable
        False
        >>> error.with_context(table="users").context.table
        'users'
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> RowMapperError:
        """
        Add context to this error (fluent API).

        Usage:
            raise InvalidArgumentError("Unknown property").with_context(
                entity="User", property_name="nmae"
            )
        """
        for key, value in kwargs.items():
            if hasattr(self.context, key) and key != "metadata":
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# CONFIGURATION ERRORS
# =============================================================================


class ConfigError(RowMapperError):
    """
    Configuration error.

    Never retryable - the declaration or settings must be fixed.
    """

    default_category = ErrorCategory.CONFIG
    default_retryable = False


class SchemaDefinitionError(ConfigError):
    """An entity type declares no table name, no columns, or a bad primary key."""

    def __init__(self, entity: str, message: str):
        self.entity = entity
        super().__init__(
            f"{entity}: {message}",
            context=ErrorContext(entity=entity),
        )


# =============================================================================
# CALLER ERRORS
# =============================================================================


class InvalidArgumentError(RowMapperError, ValueError):
    """Unknown property name, or a value the operation cannot accept."""

    default_category = ErrorCategory.ARGUMENT


class LogicError(RowMapperError):
    """Operation is undefined for this entity (e.g. ``is_new`` on a composite key)."""

    default_category = ErrorCategory.INTERNAL


class BadMethodCallError(RowMapperError, AttributeError):
    """Generic accessor name does not resolve to a declared property."""

    default_category = ErrorCategory.ARGUMENT


class ArgumentCountError(BadMethodCallError):
    """Generic accessor called with the wrong number of arguments."""

    def __init__(self, method: str, given: int, expected: str):
        self.method = method
        self.given = given
        super().__init__(f"{method}() takes {expected} argument(s), {given} given")


# =============================================================================
# DATABASE ERRORS
# =============================================================================


class DatabaseError(RowMapperError):
    """Database query or transaction error."""

    default_category = ErrorCategory.DATABASE
    default_retryable = False


class QueryError(DatabaseError):
    """Statement failed to prepare or execute. Wraps the driver error as ``cause``."""

    def __init__(
        self,
        message: str,
        *,
        sql: str | None = None,
        params: list[Any] | None = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.sql = sql
        self.params = params or []
        if sql is not None:
            self.context.sql = sql


class TransactionError(DatabaseError):
    """Transaction could not be started or finished in the current state."""

    pass


class NotConnectedError(DatabaseError):
    """The connection handle was released and cannot be re-established."""

    pass


class DatabaseConnectionError(DatabaseError):
    """Connection could not be opened. Usually transient."""

    default_retryable = True


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================


def is_retryable(error: Exception) -> bool:
    """Check if an error is retryable."""
    if isinstance(error, RowMapperError):
        return error.retryable

    retryable_types = (
        ConnectionError,
        ConnectionResetError,
        ConnectionRefusedError,
        BrokenPipeError,
    )
    return isinstance(error, retryable_types)


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "RowMapperError",
    "ConfigError",
    "SchemaDefinitionError",
    "InvalidArgumentError",
    "LogicError",
    "BadMethodCallError",
    "ArgumentCountError",
    "DatabaseError",
    "QueryError",
    "TransactionError",
    "NotConnectedError",
    "DatabaseConnectionError",
    "is_retryable",
]
