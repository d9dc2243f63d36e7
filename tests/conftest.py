"""
Shared pytest fixtures for rowmapper tests.

This module provides:
- Sample entity types (single key, composite key, two-column)
- An in-memory sqlite3 Database with the sample tables created
- A mock DB-API connection for asserting driver calls

Usage:
    Fixtures are auto-discovered by pytest; request them as arguments.

    def test_something(sample_entity_cls, db):
        ...
"""

import sqlite3
from unittest.mock import MagicMock

import pytest

from rowmapper import Database, Entity


# =============================================================================
# Sample entity types
# =============================================================================


class SampleEntity(Entity):
    __tablename__ = "someTable"
    __columns__ = {
        "someId": {"type": "int"},
        "someName": {"type": "string", "default": "test", "maxLength": 5, "required": True},
        "someField": {"type": "bool"},
        "someFloat": {"type": "float", "default": None},
        "someOtherFloat": {"type": "float", "nonEmpty": True, "default": 1.0},
    }
    __primary_key__ = "someId"

    def __init__(self, primary_or_row=None):
        super().__init__(primary_or_row)
        self.private_info = "private info"


class MultiKeyEntity(Entity):
    __tablename__ = "someMultiTable"
    __columns__ = {
        "someId": {"type": "int"},
        "someOtherId": {"type": "int"},
        "someField": {"type": "bool"},
    }
    __primary_key__ = ["someId", "someOtherId"]


class NamedEntity(Entity):
    __tablename__ = "named"
    __columns__ = {
        "someId": {"type": "int"},
        "someName": {"type": "string"},
    }
    __primary_key__ = "someId"


SCHEMA_SQL = """
CREATE TABLE someTable (
    some_id INTEGER PRIMARY KEY AUTOINCREMENT,
    some_name TEXT NOT NULL,
    some_field INTEGER NOT NULL DEFAULT 0,
    some_float REAL,
    some_other_float REAL NOT NULL
);
CREATE TABLE someMultiTable (
    some_id INTEGER NOT NULL,
    some_other_id INTEGER NOT NULL,
    some_field INTEGER NOT NULL DEFAULT 0,
    PRIMARY KEY (some_id, some_other_id)
);
"""


# =============================================================================
# Entity fixtures
# =============================================================================


@pytest.fixture
def sample_entity_cls() -> type[SampleEntity]:
    return SampleEntity


@pytest.fixture
def multi_key_entity_cls() -> type[MultiKeyEntity]:
    return MultiKeyEntity


@pytest.fixture
def named_entity_cls() -> type[NamedEntity]:
    return NamedEntity


# =============================================================================
# Database fixtures
# =============================================================================


@pytest.fixture
def sqlite_conn():
    """Autocommit in-memory sqlite3 connection with the sample tables."""
    conn = sqlite3.connect(":memory:", isolation_level=None)
    conn.executescript(SCHEMA_SQL)
    yield conn
    conn.close()


@pytest.fixture
def db(sqlite_conn) -> Database:
    return Database(sqlite_conn)


@pytest.fixture
def mock_conn() -> MagicMock:
    """DB-API connection double: a cursor that reports one affected row."""
    conn = MagicMock(spec=["cursor", "commit", "rollback", "close", "Error"])
    conn.Error = sqlite3.Error
    cursor = conn.cursor.return_value
    cursor.rowcount = 1
    cursor.lastrowid = None
    return conn
