"""Unit tests for engines.sql.filters (bind markers, typed filters, LIKE, raw identifiers)."""

from datetime import date, datetime

import pytest

from shunlib.core.errors import RenderError, TypeMismatchError, UnboundParameterError
from shunlib.core.param_type import SqlValue, ValueKind
from shunlib.engines.sql import SQLTemplateEngine
from shunlib.engines.sql.filters import (
    SQL_FILTERS,
    BindCollector,
    SqlSafe,
    optional,
    sql_raw,
)


@pytest.fixture
def engine() -> SQLTemplateEngine:
    return SQLTemplateEngine()


class TestBindCollector:
    def test_markers_resolve_in_text_order(self):
        c = BindCollector()
        a = c.add(SqlValue(ValueKind.INTEGER, 1))
        b = c.add(SqlValue(ValueKind.INTEGER, 2))
        sql, binds = c.resolve(f"x = {b} AND y = {a}")
        assert sql == "x = ? AND y = ?"
        assert [v.value for v in binds] == [2, 1]

    def test_discarded_markers_are_dropped(self):
        c = BindCollector()
        c.add(SqlValue(ValueKind.TEXT, "lost"))
        kept = c.add(SqlValue(ValueKind.TEXT, "kept"))
        sql, binds = c.resolve(f"y = {kept}")
        assert sql == "y = ?"
        assert binds == (SqlValue(ValueKind.TEXT, "kept"),)

    def test_marker_is_safe(self):
        assert isinstance(BindCollector().add(SqlValue(ValueKind.NULL, None)), SqlSafe)


class TestFinalize:
    def test_values_become_markers(self, engine):
        stmt = engine.render("SELECT {{ a }}, {{ b }}, {{ c }}", {"a": 1, "b": "x", "c": None})
        assert stmt.sql == "SELECT ?, ?, ?"
        assert stmt.parameters == (1, "x", None)

    def test_injection_is_just_a_value(self, engine):
        payload = "'; DROP TABLE users; --"
        stmt = engine.render("SELECT * FROM users WHERE name = {{ name }}", {"name": payload})
        assert "DROP" not in stmt.sql
        assert stmt.parameters == (payload,)

    def test_bool_binds_as_integer(self, engine):
        assert engine.render("WHERE active = {{ flag }}", {"flag": True}).parameters == (1,)

    def test_sequence_output_is_rejected(self, engine):
        tpl = "{% if ids %}WHERE id = {{ ids }}{% endif %}"
        with pytest.raises(TypeMismatchError):
            engine.render(tpl, {"ids": [1, 2]})

    def test_attribute_of_loop_item(self, engine):
        stmt = engine.render(
            "VALUES {% for n in names %}({{ n }}){% if not loop.last %}, {% endif %}{% endfor %}",
            {"names": ["a", "b"]},
        )
        assert stmt.sql == "VALUES (?), (?)"
        assert stmt.parameters == ("a", "b")


class TestCapturedFragments:
    def test_set_block_reuse(self, engine):
        stmt = engine.render("{% set cond %}id = {{ x }}{% endset %}SELECT * FROM t WHERE {{ cond }}", {"x": 5})
        assert stmt.sql == "SELECT * FROM t WHERE id = ?"
        assert stmt.parameters == (5,)

    def test_set_block_used_twice(self, engine):
        stmt = engine.render("{% set c %}a = {{ x }}{% endset %}SELECT {{ c }} OR {{ c }}", {"x": 1})
        assert stmt.sql == "SELECT a = ? OR a = ?"
        assert stmt.parameters == (1, 1)

    def test_macro(self, engine):
        tpl = (
            "{% macro eq(col, v) %}{{ col | sql_raw }} = {{ v }}{% endmacro %}"
            "SELECT * FROM t WHERE {{ eq('id', x) }} AND {{ eq('name', n) }}"
        )
        stmt = engine.render(tpl, {"x": 5, "n": "bob"})
        assert stmt.sql == "SELECT * FROM t WHERE id = ? AND name = ?"
        assert stmt.parameters == (5, "bob")

    def test_caller_block(self, engine):
        tpl = (
            "{% macro wrap() %}({{ caller() }}){% endmacro %}"
            "SELECT * FROM t WHERE {% call wrap() %}a = {{ a }} OR b = {{ b }}{% endcall %}"
        )
        stmt = engine.render(tpl, {"a": 1, "b": 2})
        assert stmt.sql == "SELECT * FROM t WHERE (a = ? OR b = ?)"
        assert stmt.parameters == (1, 2)

    def test_safe_parameter_is_still_a_value(self, engine):
        stmt = engine.render("SELECT * FROM t WHERE id = {{ a }}", {"a": SqlSafe("1 OR 1=1")})
        assert stmt.sql == "SELECT * FROM t WHERE id = ?"
        assert stmt.parameters == ("1 OR 1=1",)
        assert type(stmt.parameters[0]) is str

    def test_marker_text_in_parameter_is_a_value(self, engine):
        forged = "\x000\x00 OR 1=1"
        stmt = engine.render("SELECT {{ a }}", {"a": forged})
        assert stmt.sql == "SELECT ?"
        assert stmt.parameters == (forged,)

    def test_concatenation_is_a_value(self, engine):
        stmt = engine.render("SELECT {{ 'id = ' ~ (x | sql_int) }}", {"x": 5})
        assert stmt.sql == "SELECT ?"
        assert len(stmt.parameters) == 1

    def test_safe_is_identifier_only(self, engine):
        assert engine.render("SELECT * FROM {{ t | safe }}", {"t": "users"}).sql == "SELECT * FROM users"
        with pytest.raises(RenderError):
            engine.render("SELECT * FROM {{ t | safe }}", {"t": "users; DROP TABLE users"})


class TestTypedFilters:
    def test_sql_int(self, engine):
        stmt = engine.render("WHERE id = {{ id | sql_int }}", {"id": "5"})
        assert stmt.sql == "WHERE id = ?"
        assert stmt.binds == (SqlValue(ValueKind.INTEGER, 5),)

    def test_sql_int_invalid(self, engine):
        with pytest.raises(TypeMismatchError):
            engine.render("WHERE id = {{ id | sql_int }}", {"id": "x"})

    def test_sql_float(self, engine):
        assert engine.render("{{ v | sql_float }}", {"v": "2.5"}).parameters == (2.5,)

    def test_sql_string(self, engine):
        assert engine.render("{{ v | sql_string }}", {"v": 12}).parameters == ("12",)

    def test_sql_bool(self, engine):
        assert engine.render("{{ v | sql_bool }}", {"v": "yes"}).parameters == (1,)

    def test_sql_date(self, engine):
        stmt = engine.render("{{ v | sql_date }}", {"v": datetime(2024, 1, 2, 10, 0)})
        assert stmt.parameters == ("2024-01-02",)

    def test_sql_datetime(self, engine):
        stmt = engine.render("{{ v | sql_datetime }}", {"v": date(2024, 1, 2)})
        assert stmt.parameters == ("2024-01-02 00:00:00",)

    def test_json(self, engine):
        assert engine.render("{{ v | json }}", {"v": [1, 2]}).parameters == ("[1, 2]",)

    def test_none_binds_null(self, engine):
        assert engine.render("{{ v | sql_int }}", {"v": None}).parameters == (None,)


class TestInList:
    def test_expands(self, engine):
        stmt = engine.render("WHERE id IN {{ ids | in_list }}", {"ids": [1, 2, 3]})
        assert stmt.sql == "WHERE id IN (?, ?, ?)"
        assert stmt.parameters == (1, 2, 3)

    def test_empty_matches_nothing(self, engine):
        stmt = engine.render("WHERE id IN {{ ids | in_list }}", {"ids": []})
        assert stmt.sql == "WHERE id IN (SELECT 1 WHERE 1=0)"
        assert stmt.binds == ()

    def test_null_matches_nothing(self, engine):
        stmt = engine.render("WHERE id IN {{ ids | in_list }}", {"ids": None})
        assert stmt.binds == ()

    def test_scalar_rejected(self, engine):
        with pytest.raises(TypeMismatchError):
            engine.render("WHERE id IN {{ ids | in_list }}", {"ids": 5})


class TestLike:
    @pytest.mark.parametrize(
        ("name", "value", "pattern"),
        [
            ("sql_like", "abc", "abc"),
            ("sql_like_start", "abc", "abc%"),
            ("sql_like_end", "abc", "%abc"),
            ("sql_like_contains", "50%_off", "%50\\%\\_off%"),
        ],
    )
    def test_patterns(self, engine, name, value, pattern):
        stmt = engine.render(f"WHERE n LIKE {{{{ v | {name} }}}}", {"v": value})
        assert stmt.sql == "WHERE n LIKE ? ESCAPE '\\'"
        assert stmt.parameters == (pattern,)

    def test_backslash_escaped(self, engine):
        stmt = engine.render("{{ v | sql_like }}", {"v": "a\\b"})
        assert stmt.parameters == ("a\\\\b",)

    def test_none(self, engine):
        stmt = engine.render("WHERE n LIKE {{ v | sql_like_contains }}", {"v": None})
        assert stmt.sql == "WHERE n LIKE ?"
        assert stmt.parameters == (None,)


class TestSqlRaw:
    def test_identifier(self, engine):
        stmt = engine.render("SELECT * FROM {{ tbl | sql_raw }} WHERE id = {{ id }}", {"tbl": "main.users", "id": 1})
        assert stmt.sql == "SELECT * FROM main.users WHERE id = ?"
        assert stmt.parameters == (1,)

    @pytest.mark.parametrize("bad", ["users; DROP TABLE x", "1abc", "a b", "users--"])
    def test_rejects_non_identifiers(self, bad):
        with pytest.raises(RenderError):
            sql_raw(bad)

    def test_render_error_through_engine(self, engine):
        with pytest.raises(RenderError):
            engine.render("SELECT * FROM {{ tbl | sql_raw }}", {"tbl": "x y"})


class TestOptional:
    def test_missing_is_null(self, engine):
        stmt = engine.render("WHERE a = {{ a | optional }}", {})
        assert stmt.parameters == (None,)

    def test_present(self, engine):
        assert engine.render("{{ a | optional }}", {"a": 3}).parameters == (3,)

    def test_default(self, engine):
        assert engine.render("LIMIT {{ n | default(10) }}", {}).parameters == (10,)

    def test_default_then_typed_filter(self, engine):
        stmt = engine.render("LIMIT {{ n | default(10) | sql_int }}", {})
        assert stmt.sql == "LIMIT ?"
        assert stmt.parameters == (10,)

    def test_optional_then_in_list(self, engine):
        stmt = engine.render("SELECT * FROM t WHERE id IN {{ ids | optional | in_list }}", {})
        assert stmt.sql == "SELECT * FROM t WHERE id IN (SELECT 1 WHERE 1=0)"
        assert stmt.parameters == ()

    def test_plain_function(self):
        assert optional("x") == "x"


def test_missing_guarded_value_raises_unbound(engine):
    with pytest.raises(UnboundParameterError) as exc:
        engine.render("{% if flag %}{{ missing }}{% endif %}", {"flag": True})
    assert exc.value.parameter == "missing"


def test_filters_registered():
    assert {"sql_int", "in_list", "sql_like_contains", "json", "sql_raw", "optional"} <= set(SQL_FILTERS)
