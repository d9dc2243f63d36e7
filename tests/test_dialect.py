"""Tests for ``rowmapper.dialect``: placeholders and quoting."""

from __future__ import annotations

import datetime

import pytest

from rowmapper.dialect import (
    Dialect,
    MySQLDialect,
    SQLiteDialect,
    get_dialect,
    register_dialect,
)
from rowmapper.errors import InvalidArgumentError


class TestSQLiteDialect:
    def setup_method(self):
        self.dialect = SQLiteDialect()

    def test_protocol(self):
        assert isinstance(self.dialect, Dialect)
        assert self.dialect.name == "sqlite"

    def test_placeholders(self):
        assert self.dialect.placeholder(0) == "?"
        assert self.dialect.placeholders(3) == "?, ?, ?"

    def test_quote_identifier(self):
        assert self.dialect.quote_identifier("some_id") == "`some_id`"
        assert self.dialect.quote_identifier("t.some_id") == "`t`.`some_id`"
        assert self.dialect.quote_identifier("we`ird") == "`we``ird`"

    @pytest.mark.parametrize(
        "value, expected",
        [
            (None, "NULL"),
            (True, "1"),
            (False, "0"),
            (12, "12"),
            (1.5, "1.5"),
            ("it's", "'it''s'"),
            (b"\x01\xff", "X'01ff'"),
            (datetime.datetime(2024, 1, 2, 3, 4, 5), "'2024-01-02 03:04:05'"),
            (datetime.date(2024, 1, 2), "'2024-01-02'"),
        ],
    )
    def test_quote_literal(self, value, expected):
        assert self.dialect.quote_literal(value) == expected

    def test_begin(self):
        assert self.dialect.begin_transaction() == "BEGIN"


class TestMySQLDialect:
    def test_placeholders(self):
        assert MySQLDialect().placeholders(2) == "%s, %s"

    def test_escapes_backslashes(self):
        assert MySQLDialect().quote_literal("a\\b'c") == "'a\\\\b''c'"

    def test_begin(self):
        assert MySQLDialect().begin_transaction() == "START TRANSACTION"


class TestRegistry:
    def test_lookup(self):
        assert isinstance(get_dialect("sqlite"), SQLiteDialect)
        assert isinstance(get_dialect("MySQL"), MySQLDialect)
        assert isinstance(get_dialect("mariadb"), MySQLDialect)

    def test_unknown(self):
        with pytest.raises(InvalidArgumentError, match="oracle"):
            get_dialect("oracle")

    def test_register(self):
        class CustomDialect(SQLiteDialect):
            @property
            def name(self) -> str:
                return "custom"

        register_dialect("Custom", CustomDialect)
        assert get_dialect("custom").name == "custom"
