"""Tests for positional placeholder rewriting."""

import pytest

from dbgateway.db.binding import bind_parameters
from dbgateway.exceptions import QueryValidationError


def test_question_marks_bind_in_order():
    sql, binds = bind_parameters("SELECT * FROM users WHERE id = ? AND name = ?", [7, "ann"])

    assert sql == "SELECT * FROM users WHERE id = :p1 AND name = :p2"
    assert binds == {"p1": 7, "p2": "ann"}


def test_dollar_placeholders_may_repeat():
    sql, binds = bind_parameters("SELECT $1::int + $1, $2", [3, "x"])

    assert sql == "SELECT :p1 ::int + :p1, :p2"
    assert binds == {"p1": 3, "p2": "x"}


def test_mssql_named_params_are_zero_based():
    sql, binds = bind_parameters("SELECT * FROM t WHERE a = @param0 AND b = @param1", ["a", "b"])

    assert sql == "SELECT * FROM t WHERE a = :p1 AND b = :p2"
    assert binds == {"p1": "a", "p2": "b"}


def test_placeholders_inside_literals_and_comments_are_ignored():
    query = "SELECT '?', \"col?\" -- is it ?\nFROM t /* ? */ WHERE a = ?"
    sql, binds = bind_parameters(query, [1])

    assert sql.endswith("WHERE a = :p1")
    assert "'?'" in sql
    assert binds == {"p1": 1}


def test_colon_words_are_escaped():
    sql, binds = bind_parameters("SELECT ':name', created_at::date FROM t", None)

    assert "'\\:name'" in sql
    assert "::date" in sql
    assert binds == {}


def test_no_parameters_and_no_placeholders():
    assert bind_parameters("SELECT 1") == ("SELECT 1", {})


def test_too_few_parameters():
    with pytest.raises(QueryValidationError, match="has no matching parameter"):
        bind_parameters("SELECT ?, ?", [1])


def test_unused_parameters():
    with pytest.raises(QueryValidationError, match="Query uses 1 parameter\\(s\\) but 2 were supplied"):
        bind_parameters("SELECT ?", [1, 2])


def test_mixed_numbered_styles_are_rejected():
    with pytest.raises(QueryValidationError, match="mixes placeholder styles"):
        bind_parameters("SELECT $1, @param1", [1, 2])


def test_question_mark_is_an_operator_without_parameters():
    query = "SELECT id FROM docs WHERE data ? 'tags'"

    assert bind_parameters(query) == (query, {})


def test_question_mark_is_an_operator_next_to_dollar_placeholders():
    sql, binds = bind_parameters("SELECT id FROM docs WHERE data ? $1 AND owner = $2", ["tags", 9])

    assert sql == "SELECT id FROM docs WHERE data ? :p1 AND owner = :p2"
    assert binds == {"p1": "tags", "p2": 9}


def test_jsonb_any_and_all_operators_are_never_placeholders():
    sql, binds = bind_parameters("SELECT * FROM docs WHERE data ?| array[?] OR data ?& array['a']", ["b"])

    assert sql == "SELECT * FROM docs WHERE data ?| array[:p1] OR data ?& array['a']"
    assert binds == {"p1": "b"}


def test_concatenation_after_placeholder_still_binds():
    sql, binds = bind_parameters("SELECT ?||'x'", ["a"])

    assert sql == "SELECT :p1||'x'"
    assert binds == {"p1": "a"}
