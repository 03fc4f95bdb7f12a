"""Tests for query guards, error wrapping and the transaction state machine."""

import pytest

from dbgateway.db.commands import StructuredCommand
from dbgateway.db.guards import TransactionState, validate_parameters, validate_query, wrap_error
from dbgateway.exceptions import (
    DatabaseError,
    NotConnectedError,
    QueryValidationError,
    TransactionStateError,
)


class TestValidateQuery:

    @pytest.mark.parametrize("query", [None, "", "   \n\t", 42, ["SELECT 1"]])
    def test_rejects_empty_or_non_string(self, query):
        with pytest.raises(QueryValidationError, match="Query must be a non-empty string"):
            validate_query(query)

    @pytest.mark.parametrize("query", [
        "SELECT 1; DROP TABLE users",
        "select 1;drop   table users",
        "SELECT 1;\n\tDELETE FROM users",
        "SELECT 1; truncate table users",
        "UPDATE t SET a = 1; ALTER TABLE t ADD b INT",
        "SELECT 1; Drop Database prod",
    ])
    def test_rejects_chained_destructive_statements(self, query):
        with pytest.raises(QueryValidationError, match="Potentially dangerous query detected"):
            validate_query(query)

    @pytest.mark.parametrize("query", [
        "DROP TABLE users",
        "DELETE FROM users WHERE id = 1",
        "SELECT * FROM users; SELECT 2",
        "HGETALL user:1",
    ])
    def test_accepts_single_statements(self, query):
        validate_query(query)

    def test_structured_command_passes(self):
        command = StructuredCommand.parse({'collection': 'users', 'operation': 'find'})
        validate_query(command)


class TestValidateParameters:

    @pytest.mark.parametrize("parameters", [None, [], [1, "a"], (1, 2)])
    def test_accepts_none_and_sequences(self, parameters):
        validate_parameters(parameters)

    @pytest.mark.parametrize("parameters", [{"a": 1}, "abc", 5])
    def test_rejects_other_containers(self, parameters):
        with pytest.raises(QueryValidationError, match="Parameters must be an array"):
            validate_parameters(parameters)


class TestWrapError:

    def test_gateway_errors_pass_through(self):
        original = NotConnectedError("Database not connected")
        assert wrap_error("PostgreSQL", original) is original

    def test_foreign_errors_are_prefixed_and_chained(self):
        original = RuntimeError("relation \"users\" does not exist")
        wrapped = wrap_error("PostgreSQL", original, "postgresql")

        assert isinstance(wrapped, DatabaseError)
        assert wrapped.message == 'PostgreSQL error: relation "users" does not exist'
        assert wrapped.database_type == "postgresql"
        assert wrapped.__cause__ is original


class TestTransactionState:

    def test_begin_then_end(self):
        state = TransactionState("sqlite")
        assert not state.active

        state.begin()
        assert state.active

        state.end()
        assert not state.active

    def test_begin_twice_raises(self):
        state = TransactionState("sqlite")
        state.begin()
        with pytest.raises(TransactionStateError, match="Transaction already in progress"):
            state.begin()

    def test_require_active_when_idle_raises(self):
        state = TransactionState("redis")
        with pytest.raises(TransactionStateError, match="No transaction in progress") as exc_info:
            state.require_active()
        assert exc_info.value.database_type == "redis"
