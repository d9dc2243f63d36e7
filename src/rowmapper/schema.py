"""Schema declarations and the per-type schema registry.

A concrete entity type declares its schema with three class attributes::

    class User(Entity):
        __tablename__ = "users"
        __columns__ = {
            "userId": {"type": "int"},
            "displayName": {"type": "string", "maxLength": 64, "required": True},
            "lastLogin": Column(ColumnType.DATETIME, default=None),
        }
        __primary_key__ = "userId"

The first time a type is used, :class:`SchemaRegistry` validates the
declaration and resolves it into an immutable :class:`Schema` holding the
camelCase property ↔ snake_case column lookup tables. The result is cached
per type for the life of the process.

Architecture::

    Entity subclass ──► SchemaRegistry.resolve(cls)
                             │  (lock, first use only)
                             ▼
                        Schema(table_name, columns, primary_key,
                               property → field, field → property)

Tags:
    schema, registry, naming, rowmapper
"""

from __future__ import annotations

import copy
import datetime
import re
import threading
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any

from rowmapper.errors import InvalidArgumentError, SchemaDefinitionError
from rowmapper.logging import get_logger
from rowmapper.validation import Constraints

logger = get_logger(__name__)

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def camel_to_snake(name: str) -> str:
    """Translate a property name to its column name (``someOtherId`` → ``some_other_id``)."""
    return _CAMEL_BOUNDARY.sub("_", name).lower()


def snake_to_camel(name: str) -> str:
    """Translate a column name to its property name (``some_other_id`` → ``someOtherId``)."""
    head, *rest = name.split("_")
    return head + "".join(part[:1].upper() + part[1:] for part in rest)


class ColumnType(str, Enum):
    """Value types a column can declare."""

    INT = "int"
    STRING = "string"
    BOOL = "bool"
    FLOAT = "float"
    DATETIME = "datetime"

    def zero_value(self) -> Any:
        """Value an unset, non-nullable column of this type holds."""
        return _ZERO_VALUES[self]


_ZERO_VALUES: dict[ColumnType, Any] = {
    ColumnType.INT: 0,
    ColumnType.STRING: "",
    ColumnType.BOOL: False,
    ColumnType.FLOAT: 0.0,
    ColumnType.DATETIME: None,
}

# Marks a column that declares no default of its own.
_NO_DEFAULT: Any = object()

_DEFINITION_KEYS = {
    "type": "type",
    "default": "default",
    "maxLength": "max_length",
    "max_length": "max_length",
    "required": "required",
    "nonEmpty": "non_empty",
    "non_empty": "non_empty",
}


@dataclass(frozen=True)
class Column:
    """Static definition of one entity property."""

    type: ColumnType
    default: Any = _NO_DEFAULT
    max_length: int | None = None
    required: bool = False
    non_empty: bool = False

    @classmethod
    def from_definition(cls, definition: Column | Mapping[str, Any]) -> Column:
        """Build a column from a ``Column`` or a ``{"type": ..., ...}`` mapping.

        Raises:
            ValueError: On a missing/unknown type or an unknown key.
        """
        if isinstance(definition, Column):
            return definition
        if not isinstance(definition, Mapping):
            raise ValueError(f"column definition must be a mapping, got {type(definition).__name__}")

        kwargs: dict[str, Any] = {}
        for key, value in definition.items():
            if key not in _DEFINITION_KEYS:
                raise ValueError(f"unknown column definition key {key!r}")
            kwargs[_DEFINITION_KEYS[key]] = value

        if "type" not in kwargs:
            raise ValueError("column definition has no 'type'")
        kwargs["type"] = ColumnType(kwargs["type"])
        return cls(**kwargs)

    @property
    def has_default(self) -> bool:
        return self.default is not _NO_DEFAULT

    @property
    def nullable(self) -> bool:
        """True when the declared default is explicitly ``None``."""
        return self.has_default and self.default is None

    def default_value(self) -> Any:
        """A fresh copy of the default, so instances never share mutable defaults."""
        if not self.has_default:
            return self.type.zero_value()
        return copy.deepcopy(self.default)

    @property
    def constraints(self) -> Constraints:
        return Constraints(
            required=self.required,
            max_length=self.max_length,
            non_empty=self.non_empty,
        )

    def coerce(self, value: Any) -> Any:
        """Cast *value* to this column's type.

        ``None`` and ``""`` become ``None`` for nullable columns and the type's
        zero value otherwise. Non-scalar objects are stored as given.

        Raises:
            InvalidArgumentError: If a string cannot be read as the column's
                numeric or datetime type.
        """
        if value is None or (isinstance(value, str) and value == ""):
            return None if self.nullable else self.type.zero_value()

        if self.type is ColumnType.DATETIME:
            return _to_datetime(value)
        if not isinstance(value, (str, int, float, bool)):
            return value

        try:
            if self.type is ColumnType.INT:
                if isinstance(value, str):
                    value = value.strip()
                    return int(value) if value.lstrip("+-").isdigit() else int(float(value))
                return int(value)
            if self.type is ColumnType.FLOAT:
                return float(value)
        except (ValueError, OverflowError):
            raise InvalidArgumentError(
                f"{value!r} is not a valid {self.type.value} value"
            ) from None

        if self.type is ColumnType.BOOL:
            if isinstance(value, str):
                return value.strip().lower() not in ("0", "false")
            return bool(value)

        if isinstance(value, bool):
            return "1" if value else ""
        return str(value)


def _to_datetime(value: Any) -> Any:
    if isinstance(value, datetime.datetime):
        return value
    if isinstance(value, datetime.date):
        return datetime.datetime(value.year, value.month, value.day)
    if isinstance(value, str):
        try:
            return datetime.datetime.fromisoformat(value.strip())
        except ValueError:
            raise InvalidArgumentError(f"{value!r} is not a valid datetime value") from None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return datetime.datetime.fromtimestamp(value)
    return value


@dataclass(frozen=True)
class Schema:
    """Resolved, immutable schema of one entity type."""

    entity_name: str
    table_name: str
    columns: Mapping[str, Column]
    primary_key: tuple[str, ...]
    _field_by_property: Mapping[str, str] = field(repr=False)
    _property_by_field: Mapping[str, str] = field(repr=False)

    @property
    def is_composite(self) -> bool:
        return len(self.primary_key) > 1

    def property_names(self) -> list[str]:
        return list(self.columns)

    def field_names(self) -> list[str]:
        return list(self._property_by_field)

    def has_property(self, name: str) -> bool:
        return name in self.columns

    def column(self, name: str) -> Column:
        """Definition of property *name*.

        Raises:
            InvalidArgumentError: If *name* is not a declared property.
        """
        try:
            return self.columns[name]
        except KeyError:
            raise self._unknown_property(name) from None

    def field_name_for(self, property_name: str) -> str:
        try:
            return self._field_by_property[property_name]
        except KeyError:
            raise self._unknown_property(property_name) from None

    def property_name_for(self, field_name: str) -> str:
        try:
            return self._property_by_field[field_name]
        except KeyError:
            raise InvalidArgumentError(
                f"{self.entity_name} has no column {field_name!r}"
            ).with_context(entity=self.entity_name, table=self.table_name) from None

    def find_property(self, field_name: str) -> str | None:
        """Property for *field_name*, or ``None`` for columns the entity does not declare."""
        return self._property_by_field.get(field_name)

    def column_definitions(self) -> Mapping[str, Column]:
        return self.columns

    def primary_key_descriptor(self) -> str | list[str]:
        """The primary key as declared: one property name or an ordered list."""
        if self.is_composite:
            return list(self.primary_key)
        return self.primary_key[0]

    def _unknown_property(self, name: str) -> InvalidArgumentError:
        return InvalidArgumentError(
            f"{self.entity_name} has no property {name!r}"
        ).with_context(entity=self.entity_name, property_name=name)


class SchemaRegistry:
    """Process-wide cache of resolved schemas keyed by entity type.

    Resolution runs at most once per type; concurrent first uses wait on a
    single lock.
    """

    def __init__(self) -> None:
        self._schemas: dict[type, Schema] = {}
        self._lock = threading.Lock()

    def resolve(self, entity_cls: type) -> Schema:
        """Return the schema of *entity_cls*, validating it on first use.

        Raises:
            SchemaDefinitionError: If the declaration is missing or invalid.
        """
        schema = self._schemas.get(entity_cls)
        if schema is not None:
            return schema

        with self._lock:
            schema = self._schemas.get(entity_cls)
            if schema is None:
                schema = _build_schema(entity_cls)
                self._schemas[entity_cls] = schema
                logger.debug(
                    "schema_resolved",
                    entity=schema.entity_name,
                    table=schema.table_name,
                    columns=len(schema.columns),
                )
        return schema

    def is_resolved(self, entity_cls: type) -> bool:
        return entity_cls in self._schemas

    def clear(self) -> None:
        with self._lock:
            self._schemas.clear()


def _build_schema(entity_cls: type) -> Schema:
    name = entity_cls.__name__

    table_name = getattr(entity_cls, "__tablename__", None)
    if not isinstance(table_name, str) or not table_name:
        raise SchemaDefinitionError(name, "__tablename__ must be a non-empty string")

    declared = getattr(entity_cls, "__columns__", None)
    if not isinstance(declared, Mapping) or not declared:
        raise SchemaDefinitionError(name, "__columns__ must be a non-empty mapping")

    columns: dict[str, Column] = {}
    field_by_property: dict[str, str] = {}
    property_by_field: dict[str, str] = {}
    for property_name, definition in declared.items():
        if not isinstance(property_name, str) or not property_name.isidentifier():
            raise SchemaDefinitionError(name, f"invalid property name {property_name!r}")
        if hasattr(entity_cls, property_name):
            raise SchemaDefinitionError(
                name, f"property {property_name!r} shadows an Entity attribute"
            )
        field_name = camel_to_snake(property_name)
        if snake_to_camel(field_name) != property_name:
            raise SchemaDefinitionError(
                name,
                f"property {property_name!r} does not round-trip through column name {field_name!r}",
            )
        if field_name in property_by_field:
            raise SchemaDefinitionError(name, f"duplicate column name {field_name!r}")
        try:
            columns[property_name] = Column.from_definition(definition)
        except ValueError as e:
            raise SchemaDefinitionError(name, f"property {property_name!r}: {e}") from e
        field_by_property[property_name] = field_name
        property_by_field[field_name] = property_name

    descriptor = getattr(entity_cls, "__primary_key__", None)
    if isinstance(descriptor, str):
        primary_key: tuple[str, ...] = (descriptor,)
    elif isinstance(descriptor, (list, tuple)) and all(isinstance(p, str) for p in descriptor):
        primary_key = tuple(descriptor)
    else:
        raise SchemaDefinitionError(
            name, "__primary_key__ must be a property name or a list of property names"
        )
    if not primary_key or len(set(primary_key)) != len(primary_key):
        raise SchemaDefinitionError(name, "__primary_key__ must name distinct properties")
    for part in primary_key:
        if part not in columns:
            raise SchemaDefinitionError(name, f"primary key {part!r} is not a declared property")

    return Schema(
        entity_name=name,
        table_name=table_name,
        columns=MappingProxyType(columns),
        primary_key=primary_key,
        _field_by_property=MappingProxyType(field_by_property),
        _property_by_field=MappingProxyType(property_by_field),
    )


registry = SchemaRegistry()


__all__ = [
    "Column",
    "ColumnType",
    "Schema",
    "SchemaRegistry",
    "registry",
    "camel_to_snake",
    "snake_to_camel",
]
