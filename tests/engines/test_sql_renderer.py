"""Unit tests for engines.sql.renderer."""

from unittest.mock import patch

import pytest

from shunlib.core.errors import RenderError, UnboundParameterError
from shunlib.engines.sql import SQLTemplateEngine, bind, render
from shunlib.engines.sql.renderer import RenderedStatement


@pytest.fixture
def engine() -> SQLTemplateEngine:
    return SQLTemplateEngine()


class TestRender:
    def test_single_placeholder(self, engine):
        t = engine.compile("SELECT * FROM users WHERE id = {{ id }}")
        stmt = render(bind(t, {"id": 42}))
        assert isinstance(stmt, RenderedStatement)
        assert stmt.sql == "SELECT * FROM users WHERE id = ?"
        assert stmt.parameters == (42,)
        assert stmt.template == t.name

    def test_same_parameter_twice(self, engine):
        stmt = engine.render("SELECT {{ a }} + {{ a }}", {"a": 2})
        assert stmt.sql == "SELECT ? + ?"
        assert stmt.parameters == (2, 2)

    def test_output_is_stripped(self, engine):
        stmt = engine.render("\n  SELECT {{ a }}\n", {"a": 1})
        assert stmt.sql == "SELECT ?"

    def test_marker_count_matches_binds(self, engine):
        t = (
            "SELECT * FROM t WHERE a IN {{ xs | in_list }}"
            "{% if b %} AND b = {{ b }}{% endif %} AND c LIKE {{ c | sql_like_start }}"
        )
        stmt = engine.render(t, {"xs": [1, 2, 3], "b": "x", "c": "p"})
        assert stmt.sql.count("?") == len(stmt.binds) == 5

    def test_discarded_block_drops_its_binds(self, engine):
        t = "{% set unused %}{{ a }}{% endset %}SELECT {{ b }}"
        stmt = engine.render(t, {"a": 1, "b": 2})
        assert stmt.sql == "SELECT ?"
        assert stmt.parameters == (2,)

    def test_deterministic(self, engine):
        t = engine.compile("SELECT {{ a }}{% for x in xs %}, {{ x }}{% endfor %}")
        bound = bind(t, {"a": 1, "xs": [2, 3]})
        assert render(bound) == render(bound)


class TestRenderErrors:
    def test_loop_over_scalar(self, engine):
        t = engine.compile("{% for x in xs %}{{ x }}{% endfor %}", name="loop")
        with pytest.raises(RenderError) as exc:
            render(bind(t, {"xs": 5}))
        assert exc.value.template == "loop"

    def test_guarded_missing_value(self, engine):
        t = engine.compile("SELECT 1{% if on %} WHERE x = {{ x.y }}{% endif %}", name="q")
        with pytest.raises(UnboundParameterError) as exc:
            render(bind(t, {"on": True}))
        assert exc.value.parameter == "x"
        assert exc.value.template == "q"

    def test_runtime_error_in_expression(self, engine):
        with pytest.raises(RenderError):
            engine.render("SELECT {{ (a / b) | sql_int }}", {"a": 1, "b": 0})

    def test_template_type_error_wrapped(self, engine):
        t = engine.compile("SELECT {{ a }}", name="boom")
        bound = bind(t, {"a": 1})
        with patch.object(t.jinja_template, "render", side_effect=TypeError("bad")):
            with pytest.raises(RenderError) as exc:
                render(bound)
        assert exc.value.template == "boom"
        assert isinstance(exc.value.__cause__, TypeError)

    def test_filter_needs_renderer(self, engine):
        t = engine.compile("SELECT {{ a }}")
        with pytest.raises(RenderError):
            t.jinja_template.render(a=1)
