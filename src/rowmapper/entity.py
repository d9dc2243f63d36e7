"""
Entity base class: schema-driven property access and change tracking.

A concrete record type subclasses :class:`Entity` and declares its schema
(see :mod:`rowmapper.schema`). In return every instance gets typed property
access, a modified-set that drives partial updates, primary-key handling for
single and composite keys, row ↔ property translation, validation, merging,
and serialization that only ever carries schema state.

Manifesto:
    The entity is a plain in-memory object. It never talks to the database
    itself; the executor and the caller's persistence flow do. Everything the
    flow needs (what changed, which columns to write, whether to insert or
    update or delete) is answered by the entity.

    - **Schema-owned state:** values, modified-set and persistence flags live
      in one private state object; that object is all that serializes
    - **Event-based tracking:** setting a property marks it modified, even
      when the value did not change, unless tracking is suppressed
    - **Fail fast:** undeclared names raise instead of being stored

Architecture:
    ::

        ┌────────────────────────────────────────────────────────────────┐
        │                          Entity                                 │
        ├────────────────────────────────────────────────────────────────┤
        │  schema()  ──► SchemaRegistry (one resolution per type)         │
        │                                                                 │
        │  _state: _EntityState        (serialized)                       │
        │    values    {property: value}   every declared column          │
        │    modified  {property: None}    ordered set                    │
        │    force_insert_on_save / delete_on_save / deleted              │
        │                                                                 │
        │  any other attribute         (never serialized)                 │
        └────────────────────────────────────────────────────────────────┘

        Construction:
          User()                    defaults only, new
          User(5) / Pair([5, 2])    primary key set, not new
          User({"user_id": 5, ...}) row loaded, nothing modified

Examples:
    >>> class User(Entity):
    ...     __tablename__ = "users"
    ...     __columns__ = {
    ...         "userId": {"type": "int"},
    ...         "displayName": {"type": "string", "maxLength": 5, "required": True},
    ...     }
    ...     __primary_key__ = "userId"
    >>> user = User({"user_id": 7, "display_name": "ann"})
    >>> user.displayName
    'ann'
    >>> user.setDisplayName("bob")
    >>> user.modified_data()
    {'displayName': 'bob'}
    >>> user.validate_and_set_data({"displayName": "too long"})
    {'displayName': ['Please use no more than 5 characters.']}

Tags:
    entity, data-mapper, change-tracking, rowmapper
"""

from __future__ import annotations

import copy
import datetime
import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from functools import partial
from typing import Any, ClassVar

from rowmapper.errors import (
    ArgumentCountError,
    BadMethodCallError,
    InvalidArgumentError,
    LogicError,
)
from rowmapper.logging import get_logger
from rowmapper.schema import Column, Schema, registry
from rowmapper.validation import DefaultTranslator, DefaultValidator, Translator, Validator

logger = get_logger(__name__)

_ACCESSOR = re.compile(r"^(get|set)([A-Z]\w*)$")

ROW_DATETIME_FORMAT = "%Y-%m-%d %H:%M:%S"


@dataclass
class _EntityState:
    """Everything about an entity that belongs to its schema."""

    values: dict[str, Any]
    modified: dict[str, None] = field(default_factory=dict)
    force_insert_on_save: bool = False
    delete_on_save: bool = False
    deleted: bool = False


class Entity:
    """Base class for schema-declared record types.

    Parameters:
        primary_or_row: ``None`` for a new entity, a scalar (single key) or a
            sequence (composite key) primary-key value for an existing row,
            or a mapping of column names to values to load a raw row.

    Raises:
        SchemaDefinitionError: If the subclass declaration is incomplete.
    """

    __tablename__: ClassVar[str]
    __columns__: ClassVar[Mapping[str, Any]]
    __primary_key__: ClassVar[str | Sequence[str]]

    _state: _EntityState

    def __init__(self, primary_or_row: Any = None):
        schema = self.schema()
        object.__setattr__(
            self,
            "_state",
            _EntityState(
                values={name: column.default_value() for name, column in schema.columns.items()}
            ),
        )

        if primary_or_row is None:
            return
        if isinstance(primary_or_row, Mapping):
            self.load_from_row(primary_or_row)
        else:
            self.set_primary_value(primary_or_row, track_modification=False)

    # -- Schema accessors ----------------------------------------------------

    @classmethod
    def schema(cls) -> Schema:
        """The resolved schema of this type (validated on first call)."""
        return registry.resolve(cls)

    @classmethod
    def table_name(cls) -> str:
        return cls.schema().table_name

    @classmethod
    def column_definitions(cls) -> Mapping[str, Column]:
        return cls.schema().columns

    @classmethod
    def primary_key_descriptor(cls) -> str | list[str]:
        return cls.schema().primary_key_descriptor()

    @classmethod
    def field_name_for(cls, property_name: str) -> str:
        """Column name of *property_name* (``someOtherId`` → ``some_other_id``)."""
        return cls.schema().field_name_for(property_name)

    @classmethod
    def property_name_for(cls, field_name: str) -> str:
        """Property name of column *field_name* (``some_other_id`` → ``someOtherId``)."""
        return cls.schema().property_name_for(field_name)

    @classmethod
    def property_names(cls) -> list[str]:
        return cls.schema().property_names()

    @classmethod
    def field_names(cls) -> list[str]:
        return cls.schema().field_names()

    @classmethod
    def get_max_length(cls, name: str) -> int | None:
        return cls.schema().column(name).max_length

    @classmethod
    def is_required(cls, name: str) -> bool:
        return cls.schema().column(name).required

    @classmethod
    def is_non_empty(cls, name: str) -> bool:
        return cls.schema().column(name).non_empty

    # -- Property access -----------------------------------------------------

    def get(self, name: str) -> Any:
        """Current value of property *name*.

        Raises:
            InvalidArgumentError: If *name* is not declared.
        """
        self.schema().column(name)
        return self._state.values[name]

    def set(self, name: str, value: Any, track_modification: bool = True) -> None:
        """Coerce *value* to the column type and store it.

        Raises:
            InvalidArgumentError: If *name* is not declared or *value* cannot
                be read as the column's type.
        """
        column = self.schema().column(name)
        try:
            coerced = column.coerce(value)
        except InvalidArgumentError as e:
            raise e.with_context(entity=type(self).__name__, property_name=name)

        self._state.values[name] = coerced
        if track_modification:
            self._state.modified.setdefault(name, None)

    def dispatch(self, method: str, *args: Any) -> Any:
        """Run a ``get<Name>()`` / ``set<Name>(value[, track_modification])`` call by name.

        Raises:
            BadMethodCallError: If *method* is not an accessor of a declared property.
            ArgumentCountError: If a getter gets arguments, or a setter gets
                no value or more than one value.
        """
        property_name = self._accessor_property(method)
        if property_name is None:
            raise BadMethodCallError(
                f"Call to undefined method {type(self).__name__}.{method}()"
            ).with_context(entity=type(self).__name__)

        if method.startswith("get"):
            if args:
                raise ArgumentCountError(method, len(args), "0")
            return self.get(property_name)

        if not args or len(args) > 2 or (len(args) == 2 and not isinstance(args[1], bool)):
            raise ArgumentCountError(method, len(args), "1 value and an optional tracking flag")
        self.set(property_name, *args)
        return None

    def _accessor_property(self, method: str) -> str | None:
        match = _ACCESSOR.match(method)
        if match is None:
            return None
        suffix = match.group(2)
        property_name = suffix[0].lower() + suffix[1:]
        if not self.schema().has_property(property_name):
            return None
        return property_name

    def __getattr__(self, name: str) -> Any:
        # Only reached when normal lookup fails.
        if name.startswith("_"):
            raise AttributeError(name)

        schema = self.schema()
        if schema.has_property(name):
            return self._state.values[name]
        if self._accessor_property(name) is not None:
            return partial(self.dispatch, name)
        if _ACCESSOR.match(name):
            raise BadMethodCallError(
                f"Call to undefined method {type(self).__name__}.{name}()"
            ).with_context(entity=type(self).__name__)
        raise AttributeError(f"{type(self).__name__!r} object has no attribute {name!r}")

    def __setattr__(self, name: str, value: Any) -> None:
        if not name.startswith("_") and self.schema().has_property(name):
            self.set(name, value)
        else:
            object.__setattr__(self, name, value)

    # -- Primary key ---------------------------------------------------------

    def get_primary_value(self) -> Any:
        """Scalar key value, or a list of part values for composite keys."""
        schema = self.schema()
        if schema.is_composite:
            return [self._state.values[part] for part in schema.primary_key]
        return self._state.values[schema.primary_key[0]]

    def set_primary_value(self, value: Any, track_modification: bool = True) -> None:
        """Assign the primary key.

        Raises:
            InvalidArgumentError: If a composite key does not get a sequence of
                matching length, or a single key gets a sequence.
        """
        schema = self.schema()
        is_sequence = isinstance(value, Sequence) and not isinstance(value, (str, bytes))

        if schema.is_composite:
            if not is_sequence or len(value) != len(schema.primary_key):
                raise InvalidArgumentError(
                    f"{type(self).__name__} primary key needs {len(schema.primary_key)} values, "
                    f"got {value!r}"
                ).with_context(entity=type(self).__name__)
            for part, part_value in zip(schema.primary_key, value):
                self.set(part, part_value, track_modification)
            return

        if is_sequence:
            raise InvalidArgumentError(
                f"{type(self).__name__} has a single primary key, got {value!r}"
            ).with_context(entity=type(self).__name__)
        self.set(schema.primary_key[0], value, track_modification)

    def is_new(self) -> bool:
        """True while the single primary key is empty (``0``, ``""``, ``None``).

        Raises:
            LogicError: For composite keys, where "new" cannot be inferred.
        """
        schema = self.schema()
        if schema.is_composite:
            raise LogicError(
                f"{type(self).__name__} has a composite primary key; is_new() is undefined"
            ).with_context(entity=type(self).__name__)
        return not self._state.values[schema.primary_key[0]]

    def get_primary_property_key(self) -> str | list[str]:
        return self.schema().primary_key_descriptor()

    def get_primary_field_key(self) -> str | list[str]:
        """Column name of the key, or the ordered column names of a composite key."""
        schema = self.schema()
        fields = [schema.field_name_for(part) for part in schema.primary_key]
        return fields if schema.is_composite else fields[0]

    # -- Change tracking -----------------------------------------------------

    def is_modified(self, name: str) -> bool:
        self.schema().column(name)
        return name in self._state.modified

    def has_modified(self) -> bool:
        return bool(self._state.modified)

    def modified_data(self) -> dict[str, Any]:
        """Modified properties and their values, in order of first modification."""
        return {name: self._state.values[name] for name in self._state.modified}

    def clear_modified(self, name: str) -> None:
        self.schema().column(name)
        self._state.modified.pop(name, None)

    def clear_all_modified(self) -> None:
        self._state.modified.clear()

    # -- Bulk data -----------------------------------------------------------

    def data(self) -> dict[str, Any]:
        """Every declared property and its value, in declaration order."""
        return dict(self._state.values)

    def data_without_primary(self) -> dict[str, Any]:
        primary_key = self.schema().primary_key
        return {
            name: value
            for name, value in self._state.values.items()
            if name not in primary_key
        }

    def default_data(self) -> dict[str, Any]:
        return {name: column.default_value() for name, column in self.schema().columns.items()}

    def set_data(self, data: Mapping[str, Any]) -> None:
        """Set several properties, tracking each as modified.

        All names are checked before any value is applied.

        Raises:
            InvalidArgumentError: If any name is not declared.
        """
        schema = self.schema()
        for name in data:
            schema.column(name)
        for name, value in data.items():
            self.set(name, value)

    def load_from_row(self, row: Mapping[str, Any]) -> None:
        """Apply a raw row keyed by column names, without marking anything modified.

        Columns the entity does not declare are ignored; declared columns
        missing from *row* keep their current values.
        """
        schema = self.schema()
        for field_name, value in row.items():
            property_name = schema.find_property(field_name)
            if property_name is not None:
                self.set(property_name, value, track_modification=False)

    # -- Row output ----------------------------------------------------------

    def row_data(self) -> dict[str, Any]:
        """Every column keyed by column name, ready to bind as statement parameters."""
        return self._to_row(self._state.values)

    def row_data_without_primary(self) -> dict[str, Any]:
        return self._to_row(self.data_without_primary())

    def modified_row_data(self) -> dict[str, Any]:
        return self._to_row(self.modified_data())

    def _to_row(self, data: Mapping[str, Any]) -> dict[str, Any]:
        schema = self.schema()
        row = {}
        for name, value in data.items():
            if isinstance(value, datetime.datetime):
                value = value.strftime(ROW_DATETIME_FORMAT)
            row[schema.field_name_for(name)] = value
        return row

    # -- Persistence intent --------------------------------------------------

    def should_insert_on_save(self) -> bool:
        """New entities and forced inserts are inserted; composite keys only when forced."""
        if self._state.force_insert_on_save:
            return True
        if self.schema().is_composite:
            return False
        return self.is_new()

    def should_force_insert_on_save(self) -> bool:
        return self._state.force_insert_on_save

    def set_force_insert_on_save(self, force: bool) -> None:
        self._state.force_insert_on_save = bool(force)

    def should_delete_on_save(self) -> bool:
        return self._state.delete_on_save

    def set_delete_on_save(self, delete: bool) -> None:
        self._state.delete_on_save = bool(delete)

    def is_deleted(self) -> bool:
        return self._state.deleted

    def set_deleted(self, deleted: bool) -> None:
        self._state.deleted = bool(deleted)

    # -- Validation ----------------------------------------------------------

    @classmethod
    def get_validator(cls) -> Validator:
        """Validator used when ``validate_and_set_data`` gets none. Override per type."""
        return DefaultValidator()

    def validate_and_set_data(
        self,
        data: Mapping[str, Any],
        translator: Translator | None = None,
        validator: Validator | None = None,
    ) -> dict[str, list[str]]:
        """Validate candidate values and apply the ones that pass.

        Returns:
            Error messages per failed property; empty when everything applied.

        Raises:
            InvalidArgumentError: If a name is not declared.
        """
        schema = self.schema()
        validator = validator or self.get_validator()

        errors: dict[str, list[str]] = {}
        valid: dict[str, Any] = {}
        for name, value in data.items():
            column = schema.column(name)
            messages = validator.validate(value, column.constraints, translator)
            if not messages:
                try:
                    column.coerce(value)
                except InvalidArgumentError:
                    messages = [self._type_message(column, translator)]
            if messages:
                errors[name] = messages
            else:
                valid[name] = value

        self.set_data(valid)
        if errors:
            logger.debug(
                "entity_validation_failed",
                entity=type(self).__name__,
                properties=list(errors),
            )
        return errors

    @staticmethod
    def _type_message(column: Column, translator: Translator | None) -> str:
        return (translator or DefaultTranslator()).trans("invalid_type", type=column.type.value)

    # -- Merge ---------------------------------------------------------------

    def merge_with(self, other: Entity) -> None:
        """Copy *other*'s values into this entity; local modifications win.

        A copied property is marked modified here when it was modified in
        *other*, so a freshly loaded row merges in clean.

        Raises:
            InvalidArgumentError: If *other* is not an instance of this type.
        """
        if not isinstance(other, type(self)):
            raise InvalidArgumentError(
                f"cannot merge {type(other).__name__} into {type(self).__name__}"
            ).with_context(entity=type(self).__name__)

        for name, value in other._state.values.items():
            if name in self._state.modified:
                continue
            self.set(name, copy.deepcopy(value), track_modification=name in other._state.modified)

    # -- Serialization -------------------------------------------------------

    def serialize(self) -> dict[str, Any]:
        """Schema state only: values, modified-set and flags."""
        state = self._state
        return {
            "values": copy.deepcopy(state.values),
            "modified": list(state.modified),
            "force_insert_on_save": state.force_insert_on_save,
            "delete_on_save": state.delete_on_save,
            "deleted": state.deleted,
        }

    @classmethod
    def unserialize(cls, state: Mapping[str, Any]) -> Entity:
        entity = cls.__new__(cls)
        entity.__setstate__(state)
        return entity

    def __getstate__(self) -> dict[str, Any]:
        return self.serialize()

    def __setstate__(self, state: Mapping[str, Any]) -> None:
        schema = self.schema()
        values = {name: column.default_value() for name, column in schema.columns.items()}
        for name, value in state.get("values", {}).items():
            if schema.has_property(name):
                values[name] = value
        object.__setattr__(
            self,
            "_state",
            _EntityState(
                values=values,
                modified={name: None for name in state.get("modified", ()) if name in values},
                force_insert_on_save=bool(state.get("force_insert_on_save", False)),
                delete_on_save=bool(state.get("delete_on_save", False)),
                deleted=bool(state.get("deleted", False)),
            ),
        )

    # -- Column name helpers -------------------------------------------------

    @classmethod
    def prefixed_field_names(cls, alias: str) -> list[str]:
        """``["t.some_id", ...]`` for use in a select list."""
        return [f"{alias}.{field_name}" for field_name in cls.field_names()]

    @classmethod
    def aliased_field_names(cls, alias: str) -> list[str]:
        """``["t.some_id AS t_some_id", ...]`` to keep joined result columns apart."""
        return [
            f"{alias}.{field_name} AS {alias}_{field_name}"
            for field_name in cls.field_names()
        ]

    @staticmethod
    def strip_row_prefix(row: Mapping[str, Any], alias: str) -> dict[str, Any]:
        """Keep the ``<alias>_`` columns of a joined row, with the prefix removed."""
        prefix = f"{alias}_"
        return {
            key[len(prefix):]: value
            for key, value in row.items()
            if key.startswith(prefix)
        }

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.get_primary_value()!r})"


__all__ = [
    "Entity",
    "ROW_DATETIME_FORMAT",
]
