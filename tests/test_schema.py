"""Tests for ``rowmapper.schema``: column definitions and the schema registry."""

from __future__ import annotations

import datetime
import threading

import pytest

from rowmapper import Entity
from rowmapper.errors import InvalidArgumentError, SchemaDefinitionError
from rowmapper.schema import (
    Column,
    ColumnType,
    SchemaRegistry,
    camel_to_snake,
    registry,
    snake_to_camel,
)


class TestNameTranslation:
    @pytest.mark.parametrize(
        "prop, field",
        [
            ("someId", "some_id"),
            ("someOtherId", "some_other_id"),
            ("name", "name"),
            ("a", "a"),
        ],
    )
    def test_both_directions(self, prop, field):
        assert camel_to_snake(prop) == field
        assert snake_to_camel(field) == prop

    def test_round_trip_for_every_declared_property(self, sample_entity_cls):
        for prop in sample_entity_cls.property_names():
            field = sample_entity_cls.field_name_for(prop)
            assert sample_entity_cls.property_name_for(field) == prop
        for field in sample_entity_cls.field_names():
            prop = sample_entity_cls.property_name_for(field)
            assert sample_entity_cls.field_name_for(prop) == field

    def test_unknown_property_raises(self, sample_entity_cls):
        with pytest.raises(InvalidArgumentError):
            sample_entity_cls.field_name_for("nope")

    def test_unknown_field_raises(self, sample_entity_cls):
        with pytest.raises(InvalidArgumentError):
            sample_entity_cls.property_name_for("nope_nope")


class TestColumnDefinition:
    def test_from_mapping(self):
        column = Column.from_definition({"type": "string", "maxLength": 5, "required": True})
        assert column.type is ColumnType.STRING
        assert column.max_length == 5
        assert column.required is True
        assert column.has_default is False

    def test_snake_case_keys_accepted(self):
        column = Column.from_definition({"type": "float", "non_empty": True, "max_length": 3})
        assert column.non_empty is True
        assert column.max_length == 3

    def test_column_instance_passes_through(self):
        column = Column(ColumnType.INT, default=7)
        assert Column.from_definition(column) is column

    def test_unknown_key_rejected(self):
        with pytest.raises(ValueError, match="unknown"):
            Column.from_definition({"type": "int", "length": 3})

    def test_missing_type_rejected(self):
        with pytest.raises(ValueError, match="type"):
            Column.from_definition({"default": 3})

    def test_bad_type_rejected(self):
        with pytest.raises(ValueError):
            Column.from_definition({"type": "decimal"})

    def test_default_value_is_fresh_copy(self):
        column = Column(ColumnType.STRING, default=["a"])
        first = column.default_value()
        first.append("b")
        assert column.default_value() == ["a"]

    def test_zero_values(self):
        assert Column(ColumnType.INT).default_value() == 0
        assert Column(ColumnType.STRING).default_value() == ""
        assert Column(ColumnType.BOOL).default_value() is False
        assert Column(ColumnType.FLOAT).default_value() == 0.0
        assert Column(ColumnType.DATETIME).default_value() is None

    def test_constraints(self):
        column = Column(ColumnType.STRING, max_length=5, required=True, non_empty=True)
        constraints = column.constraints
        assert constraints.max_length == 5
        assert constraints.required is True
        assert constraints.non_empty is True


class TestColumnCoerce:
    def test_int(self):
        column = Column(ColumnType.INT)
        assert column.coerce("12") == 12
        assert column.coerce(" 12 ") == 12
        assert column.coerce("12.7") == 12
        assert column.coerce(3.9) == 3
        assert column.coerce(True) == 1

    def test_int_rejects_garbage(self):
        with pytest.raises(InvalidArgumentError):
            Column(ColumnType.INT).coerce("abc")

    @pytest.mark.parametrize("value", ["1e400", float("inf"), float("-inf")])
    def test_int_rejects_out_of_range(self, value):
        with pytest.raises(InvalidArgumentError):
            Column(ColumnType.INT).coerce(value)

    def test_float(self):
        column = Column(ColumnType.FLOAT)
        assert column.coerce("1.5") == 1.5
        assert column.coerce(2) == 2.0
        assert isinstance(column.coerce(2), float)

    def test_nullable_float_collapses_to_none(self):
        column = Column(ColumnType.FLOAT, default=None)
        assert column.nullable is True
        assert column.coerce(None) is None
        assert column.coerce("") is None

    def test_non_nullable_float_collapses_to_zero(self):
        column = Column(ColumnType.FLOAT, default=1.0)
        assert column.nullable is False
        assert column.coerce(None) == 0.0
        assert column.coerce("") == 0.0

    def test_bool(self):
        column = Column(ColumnType.BOOL)
        assert column.coerce(1) is True
        assert column.coerce(0) is False
        assert column.coerce("0") is False
        assert column.coerce("false") is False
        assert column.coerce("yes") is True

    def test_string(self):
        column = Column(ColumnType.STRING)
        assert column.coerce(12) == "12"
        assert column.coerce(True) == "1"
        assert column.coerce(False) == ""
        assert column.coerce(None) == ""

    def test_datetime(self):
        column = Column(ColumnType.DATETIME, default=None)
        assert column.coerce("2024-01-02 03:04:05") == datetime.datetime(2024, 1, 2, 3, 4, 5)
        assert column.coerce(datetime.date(2024, 1, 2)) == datetime.datetime(2024, 1, 2)
        assert column.coerce(None) is None

    def test_datetime_rejects_garbage(self):
        with pytest.raises(InvalidArgumentError):
            Column(ColumnType.DATETIME).coerce("not a date")

    def test_non_scalar_stored_as_given(self):
        value = {"a": 1}
        assert Column(ColumnType.STRING).coerce(value) is value


class TestSchemaResolution:
    def test_accessors(self, sample_entity_cls):
        assert sample_entity_cls.table_name() == "someTable"
        assert sample_entity_cls.primary_key_descriptor() == "someId"
        assert list(sample_entity_cls.column_definitions()) == [
            "someId",
            "someName",
            "someField",
            "someFloat",
            "someOtherFloat",
        ]

    def test_composite_descriptor(self, multi_key_entity_cls):
        assert multi_key_entity_cls.primary_key_descriptor() == ["someId", "someOtherId"]
        assert multi_key_entity_cls.schema().is_composite is True

    def test_cached_per_type(self, sample_entity_cls):
        assert sample_entity_cls.schema() is sample_entity_cls.schema()
        assert registry.is_resolved(sample_entity_cls)

    def test_columns_are_read_only(self, sample_entity_cls):
        with pytest.raises(TypeError):
            sample_entity_cls.schema().columns["x"] = Column(ColumnType.INT)

    def test_metadata_helpers(self, sample_entity_cls):
        assert sample_entity_cls.get_max_length("someName") == 5
        assert sample_entity_cls.is_required("someName") is True
        assert sample_entity_cls.is_non_empty("someOtherFloat") is True
        assert sample_entity_cls.get_max_length("someId") is None

    def test_concurrent_first_use_resolves_once(self):
        class Racy(Entity):
            __tablename__ = "racy"
            __columns__ = {"racyId": {"type": "int"}}
            __primary_key__ = "racyId"

        local = SchemaRegistry()
        results = []
        threads = [
            threading.Thread(target=lambda: results.append(local.resolve(Racy)))
            for _ in range(8)
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(results) == 8
        assert all(schema is results[0] for schema in results)

    def test_clear(self):
        class Cleared(Entity):
            __tablename__ = "cleared"
            __columns__ = {"clearedId": {"type": "int"}}
            __primary_key__ = "clearedId"

        local = SchemaRegistry()
        local.resolve(Cleared)
        local.clear()
        assert not local.is_resolved(Cleared)


class TestSchemaDefinitionErrors:
    def test_incomplete_entity_raises_on_first_use(self):
        class Incomplete(Entity):
            pass

        with pytest.raises(SchemaDefinitionError):
            Incomplete()

    def test_missing_table_name(self):
        class NoTable(Entity):
            __columns__ = {"someId": {"type": "int"}}
            __primary_key__ = "someId"

        with pytest.raises(SchemaDefinitionError, match="__tablename__"):
            NoTable.schema()

    def test_empty_columns(self):
        class NoColumns(Entity):
            __tablename__ = "t"
            __columns__ = {}
            __primary_key__ = "someId"

        with pytest.raises(SchemaDefinitionError, match="__columns__"):
            NoColumns.schema()

    def test_missing_primary_key(self):
        class NoKey(Entity):
            __tablename__ = "t"
            __columns__ = {"someId": {"type": "int"}}

        with pytest.raises(SchemaDefinitionError, match="__primary_key__"):
            NoKey.schema()

    def test_primary_key_must_be_declared(self):
        class BadKey(Entity):
            __tablename__ = "t"
            __columns__ = {"someId": {"type": "int"}}
            __primary_key__ = "otherId"

        with pytest.raises(SchemaDefinitionError, match="otherId"):
            BadKey.schema()

    def test_property_must_round_trip(self):
        class NotCamel(Entity):
            __tablename__ = "t"
            __columns__ = {"some_id": {"type": "int"}}
            __primary_key__ = "some_id"

        with pytest.raises(SchemaDefinitionError, match="round-trip"):
            NotCamel.schema()

    def test_bad_column_definition(self):
        class BadColumn(Entity):
            __tablename__ = "t"
            __columns__ = {"someId": {"type": "int", "bogus": 1}}
            __primary_key__ = "someId"

        with pytest.raises(SchemaDefinitionError, match="someId"):
            BadColumn.schema()

    @pytest.mark.parametrize("prop", ["data", "get", "set", "schema"])
    def test_property_shadowing_entity_member(self, prop):
        Shadowing = type(
            "Shadowing",
            (Entity,),
            {
                "__tablename__": "t",
                "__columns__": {"someId": {"type": "int"}, prop: {"type": "string"}},
                "__primary_key__": "someId",
            },
        )

        with pytest.raises(SchemaDefinitionError, match=f"'{prop}' shadows"):
            Shadowing.schema()

    def test_is_config_category(self):
        class Incomplete(Entity):
            pass

        with pytest.raises(SchemaDefinitionError) as exc_info:
            Incomplete.schema()
        assert exc_info.value.category.value == "CONFIG"
        assert exc_info.value.context.entity == "Incomplete"
