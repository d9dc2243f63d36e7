"""rowmapper -- schema-declared entities over a single DB-API connection.

Manifesto:
    Record types declare their table, columns and primary key once. The
    library gives every instance typed property access, change tracking and
    validation, and gives the application a small executor for parameterized
    statements and transactions. There is no identity map, no relationship
    loading and no query builder: persistence flows stay in caller code (or
    in the optional :class:`EntityService`).

Architecture::

    Layer 1 -- Errors & ambient
        errors.py       Structured error hierarchy (RowMapperError)
        logging.py      structlog configuration + get_logger
        settings.py     ROWMAPPER_* settings (pydantic-settings)

    Layer 2 -- Schema & entities
        schema.py       Column, Schema, SchemaRegistry, name translation
        validation.py   Constraints, Validator, Translator
        entity.py       Entity base class

    Layer 3 -- Database
        dialect.py      Placeholders + identifier/literal quoting
        connection.py   create_connection(url)
        database.py     Database executor + transactions
        service.py      EntityService load/find/save/delete

Tags:
    rowmapper, data-mapper, entity, database
"""

__version__ = "0.1.0"

from rowmapper.connection import ConnectionInfo, create_connection
from rowmapper.database import Database
from rowmapper.dialect import Dialect, MySQLDialect, SQLiteDialect, get_dialect
from rowmapper.entity import Entity
from rowmapper.errors import (
    ArgumentCountError,
    BadMethodCallError,
    ConfigError,
    DatabaseConnectionError,
    DatabaseError,
    ErrorCategory,
    InvalidArgumentError,
    LogicError,
    NotConnectedError,
    QueryError,
    RowMapperError,
    SchemaDefinitionError,
    TransactionError,
)
from rowmapper.logging import configure_logging, configure_logging_from_settings, get_logger
from rowmapper.schema import Column, ColumnType, Schema, SchemaRegistry, registry
from rowmapper.service import EntityService
from rowmapper.settings import RowMapperSettings
from rowmapper.validation import (
    Constraints,
    DefaultTranslator,
    DefaultValidator,
    Translator,
    Validator,
)

__all__ = [
    "__version__",
    # Entities
    "Entity",
    "Column",
    "ColumnType",
    "Schema",
    "SchemaRegistry",
    "registry",
    # Validation
    "Constraints",
    "Validator",
    "Translator",
    "DefaultValidator",
    "DefaultTranslator",
    # Database
    "Database",
    "EntityService",
    "Dialect",
    "SQLiteDialect",
    "MySQLDialect",
    "get_dialect",
    "ConnectionInfo",
    "create_connection",
    # Errors
    "ErrorCategory",
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
    # Ambient
    "RowMapperSettings",
    "configure_logging",
    "configure_logging_from_settings",
    "get_logger",
]
