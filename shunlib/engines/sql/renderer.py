"""
Template renderer: BoundContext -> RenderedStatement (SQL text + ordered binds).
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any

import jinja2

from shunlib.core.errors import (
    RenderError,
    ShunlibError,
    TemplateSyntaxError,
    UnboundParameterError,
)
from shunlib.core.param_type import SqlValue, ValueKind
from shunlib.engines.sql.binder import BoundContext
from shunlib.engines.sql.filters import BINDS_KEY, BindCollector

_log = logging.getLogger(__name__)

_UNDEFINED_NAME_RE = re.compile(r"^'([^']+)' is undefined")

BIND_MARKER = "?"


@dataclass(frozen=True)
class RenderedStatement:
    """Final SQL with positional markers and the values to bind, in order."""

    sql: str
    binds: tuple[SqlValue, ...]
    template: str | None = None

    @property
    def parameters(self) -> tuple[Any, ...]:
        """Native driver values for ``cursor.execute(sql, parameters)``."""
        return tuple(b.to_sql() for b in self.binds)


def _check_loop_sources(bound: BoundContext) -> None:
    for name in sorted(bound.template.analysis.loop_sources):
        value = bound.values.get(name)
        if value is not None and value.kind != ValueKind.SEQUENCE:
            raise RenderError(
                f"Cannot repeat over parameter '{name}': expected a sequence, "
                f"got {value.kind.value}",
                template=bound.template.name,
            )


def render(bound: BoundContext) -> RenderedStatement:
    """
    Render a bound template.

    Every value reaches the SQL as a ``?`` marker; binds are ordered exactly
    as their markers appear in the final text.
    """
    template = bound.template
    _check_loop_sources(bound)

    collector = BindCollector()
    ctx = bound.context()
    ctx[BINDS_KEY] = collector
    try:
        text = template.jinja_template.render(ctx)
    except ShunlibError as e:
        if e.template is None:
            e.template = template.name
        raise
    except jinja2.UndefinedError as e:
        m = _UNDEFINED_NAME_RE.match(str(e.message or ""))
        name = m.group(1) if m else None
        raise UnboundParameterError(
            f"SQL template variable not found: {e}. Available params: {sorted(bound.values)}.",
            parameter=name,
            template=template.name,
        ) from e
    except jinja2.TemplateSyntaxError as e:
        # raised lazily for partials pulled in by {% include %}
        raise TemplateSyntaxError(
            f"SQL template syntax error: {e.message}",
            template=e.name or template.name,
            lineno=e.lineno,
        ) from e
    except (jinja2.TemplateError, TypeError, ValueError, ArithmeticError) as e:
        _log.warning("SQL template render failed: %s", e)
        raise RenderError(
            f"SQL template render error: {e}. Params: {sorted(bound.values)}.",
            template=template.name,
        ) from e

    sql, binds = collector.resolve(text, BIND_MARKER)
    return RenderedStatement(sql=sql.strip(), binds=binds, template=template.name)
