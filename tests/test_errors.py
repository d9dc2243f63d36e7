"""Tests for ``rowmapper.errors``."""

from __future__ import annotations

import pytest

from rowmapper.errors import (
    ArgumentCountError,
    BadMethodCallError,
    ConfigError,
    DatabaseConnectionError,
    ErrorCategory,
    ErrorContext,
    InvalidArgumentError,
    LogicError,
    NotConnectedError,
    QueryError,
    RowMapperError,
    SchemaDefinitionError,
    TransactionError,
    is_retryable,
)


class TestErrorContext:
    def test_to_dict_excludes_none(self):
        ctx = ErrorContext(entity="User", metadata={"extra": 1})
        assert ctx.to_dict() == {"entity": "User", "extra": 1}


class TestRowMapperError:
    def test_defaults(self):
        error = RowMapperError("boom")
        assert error.message == "boom"
        assert error.category is ErrorCategory.INTERNAL
        assert error.retryable is False
        assert error.cause is None

    def test_with_context(self):
        error = RowMapperError("boom").with_context(table="users", request="abc")
        assert error.context.table == "users"
        assert error.context.metadata == {"request": "abc"}

    def test_cause_is_chained(self):
        cause = RuntimeError("driver")
        error = RowMapperError("boom", cause=cause)
        assert error.__cause__ is cause

    def test_to_dict(self):
        error = QueryError("failed", sql="SELECT 1", cause=ValueError("x"))
        assert error.to_dict() == {
            "error_type": "QueryError",
            "message": "failed",
            "category": "DATABASE",
            "retryable": False,
            "context": {"sql": "SELECT 1"},
            "cause": "x",
        }

    def test_repr(self):
        assert repr(LogicError("nope")) == "LogicError('nope', category=INTERNAL)"


class TestHierarchy:
    def test_schema_definition_error(self):
        error = SchemaDefinitionError("User", "no table")
        assert isinstance(error, ConfigError)
        assert str(error) == "User: no table"
        assert error.context.entity == "User"
        assert error.category is ErrorCategory.CONFIG

    def test_invalid_argument_is_value_error(self):
        with pytest.raises(ValueError):
            raise InvalidArgumentError("bad")

    def test_bad_method_call_is_attribute_error(self):
        assert issubclass(BadMethodCallError, AttributeError)
        assert issubclass(ArgumentCountError, BadMethodCallError)

    def test_argument_count_message(self):
        error = ArgumentCountError("getName", 2, "0")
        assert str(error) == "getName() takes 0 argument(s), 2 given"
        assert error.given == 2

    def test_query_error_params(self):
        error = QueryError("failed", sql="SELECT ?", params=[1])
        assert error.sql == "SELECT ?"
        assert error.params == [1]
        assert error.context.sql == "SELECT ?"

    def test_database_categories(self):
        for cls in (QueryError, TransactionError, NotConnectedError, DatabaseConnectionError):
            assert cls("x").category is ErrorCategory.DATABASE


class TestIsRetryable:
    def test_rowmapper_errors(self):
        assert is_retryable(DatabaseConnectionError("down")) is True
        assert is_retryable(QueryError("syntax")) is False

    def test_builtin_errors(self):
        assert is_retryable(ConnectionResetError()) is True
        assert is_retryable(ValueError()) is False
