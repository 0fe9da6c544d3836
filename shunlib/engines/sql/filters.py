"""
Custom Jinja2 filters and the finalize hook for the SQL template engine.

Nothing a template outputs is interpolated into SQL. ``sql_finalize`` and the
filters hand each value to the render's ``BindCollector`` and emit an opaque
marker in its place; the renderer later turns markers into ``?`` in the order
they appear in the final text.

All filters return ``SqlSafe`` so ``sql_finalize`` knows the output is
already a marker (or a vetted identifier) and passes it through. Captured
template output (macros, ``caller()``, ``{% set %}`` blocks) is joined by
``sql_concat`` into ``SqlSafe`` as well. A parameter is never ``SqlSafe``:
``sql_value`` reduces every string to a plain ``str``, so a value that merely
looks like a marker is still bound.
"""

import re
from collections.abc import Iterable
from typing import Any

from jinja2 import Undefined, pass_context
from jinja2.runtime import Context

from shunlib.core.errors import RenderError, TypeMismatchError, UnboundParameterError
from shunlib.core.param_type import (
    SqlValue,
    ValueKind,
    coerce,
    coerce_json,
    coerce_text,
    sql_value,
)

# Context key under which the renderer stores the collector for one render call
BINDS_KEY = "__sql_binds__"

# NUL never appears in SQL text, so markers cannot collide with template data
_MARK = "\x00"
_MARKER_RE = re.compile(_MARK + r"(\d+)" + _MARK)

_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)*$")

_EMPTY_IN_LIST = "(SELECT 1 WHERE 1=0)"
_LIKE_ESCAPE = " ESCAPE '\\'"


class SqlSafe(str):
    """String subclass marking output that must not be turned into a bind."""


def sql_concat(parts: Iterable[str]) -> SqlSafe:
    """``Environment.concat`` for SQL templates: captured output is SQL text."""
    return SqlSafe("".join(parts))


class BindCollector:
    """Collects bind values for one render call."""

    def __init__(self) -> None:
        self._values: list[SqlValue] = []

    def add(self, value: SqlValue) -> SqlSafe:
        idx = len(self._values)
        self._values.append(value)
        return SqlSafe(f"{_MARK}{idx}{_MARK}")

    def resolve(self, text: str, marker: str = "?") -> tuple[str, tuple[SqlValue, ...]]:
        """Replace markers in *text* with *marker*; return SQL and ordered binds.

        Values collected for output that never reached the final text (e.g. a
        captured block that was discarded) are dropped.
        """
        binds: list[SqlValue] = []

        def _sub(m: re.Match[str]) -> str:
            binds.append(self._values[int(m.group(1))])
            return marker

        sql = _MARKER_RE.sub(_sub, text)
        return sql, tuple(binds)


def _collector(context: Context) -> BindCollector:
    c = context.get(BINDS_KEY)
    if not isinstance(c, BindCollector):
        raise RenderError("SQL templates must be rendered through shunlib's renderer")
    return c


def _check_defined(value: Any) -> None:
    if isinstance(value, Undefined):
        name = getattr(value, "_undefined_name", None)
        raise UnboundParameterError(
            f"Parameter '{name}' is referenced but not provided", parameter=name
        )


def _bind_scalar(context: Context, value: SqlValue) -> SqlSafe:
    if value.kind == ValueKind.SEQUENCE:
        raise TypeMismatchError(
            "A sequence was used where a scalar is required; use a loop or | in_list"
        )
    return _collector(context).add(value)


# ---------------------------------------------------------------------------
# Filters
# ---------------------------------------------------------------------------


def optional(value: Any) -> Any:
    """Mark a placeholder optional: missing -> NULL instead of an error."""
    if isinstance(value, Undefined):
        return None
    return value


def _typed_filter(kind: ValueKind):
    @pass_context
    def _filter(context: Context, value: Any) -> SqlSafe:
        _check_defined(value)
        return _bind_scalar(context, coerce(value, kind))

    _filter.__name__ = f"sql_{kind.value}"
    return _filter


sql_int = _typed_filter(ValueKind.INTEGER)
sql_float = _typed_filter(ValueKind.REAL)
sql_bool = _typed_filter(ValueKind.BOOLEAN)
sql_date = _typed_filter(ValueKind.DATE)
sql_datetime = _typed_filter(ValueKind.DATETIME)


@pass_context
def sql_string(context: Context, value: Any) -> SqlSafe:
    _check_defined(value)
    return _bind_scalar(context, coerce_text(value))


@pass_context
def sql_json(context: Context, value: Any) -> SqlSafe:
    """Serialize to JSON text and bind it."""
    _check_defined(value)
    return _bind_scalar(context, coerce_json(value))


@pass_context
def in_list(context: Context, value: Any) -> SqlSafe:
    """
    Turn a sequence into an IN list of binds: (?, ?, ?).
    Empty or NULL -> (SELECT 1 WHERE 1=0), which matches nothing.
    """
    _check_defined(value)
    v = sql_value(value)
    if v.kind == ValueKind.NULL:
        return SqlSafe(_EMPTY_IN_LIST)
    if v.kind != ValueKind.SEQUENCE:
        raise TypeMismatchError(
            f"in_list expects a sequence, got {v.kind.value}"
        )
    if not v.value:
        return SqlSafe(_EMPTY_IN_LIST)
    collector = _collector(context)
    return SqlSafe("(" + ", ".join(collector.add(item) for item in v.value) + ")")


def _escape_like(s: str) -> str:
    """Escape % and _ for use in LIKE patterns."""
    return s.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _like_filter(template: str):
    @pass_context
    def _filter(context: Context, value: Any) -> SqlSafe:
        _check_defined(value)
        if value is None:
            return _bind_scalar(context, sql_value(None))
        pattern = template.format(_escape_like(str(value)))
        marker = _bind_scalar(context, SqlValue(ValueKind.TEXT, pattern))
        return SqlSafe(marker + _LIKE_ESCAPE)

    return _filter


sql_like = _like_filter("{}")
sql_like_start = _like_filter("{}%")
sql_like_end = _like_filter("%{}")
sql_like_contains = _like_filter("%{}%")


def sql_raw(value: Any) -> SqlSafe:
    """Emit a trusted identifier (table/column name) directly into the SQL.

    Only plain or dotted identifiers are accepted; anything else is refused,
    so this filter can never carry a value or an expression.

    Template usage: ``{{ table_name | sql_raw }}``
    """
    _check_defined(value)
    s = str(value)
    if not _IDENTIFIER_RE.match(s):
        raise RenderError(f"sql_raw only accepts identifiers, got {s!r}")
    return SqlSafe(s)


# ---------------------------------------------------------------------------
# Finalize callback – every {{ }} without an explicit filter becomes a bind
# ---------------------------------------------------------------------------


@pass_context
def sql_finalize(context: Context, value: Any) -> str:
    """Jinja2 ``finalize`` callback.

    * ``SqlSafe`` -> pass through (filter output or a captured fragment).
    * ``Undefined`` -> UnboundParameterError.
    * sequence -> TypeMismatchError.
    * everything else -> bind marker.
    """
    if isinstance(value, SqlSafe):
        return str(value)
    _check_defined(value)
    return _bind_scalar(context, sql_value(value))


# Filter names that make a missing placeholder acceptable
OPTIONAL_FILTERS = frozenset({"optional", "default", "d"})

# Filters that require a sequence argument
SEQUENCE_FILTERS = frozenset({"in_list"})

# Collection of all filters to register in Jinja2 Environment
SQL_FILTERS: dict[str, Any] = {
    "optional": optional,
    "sql_string": sql_string,
    "sql_int": sql_int,
    "sql_float": sql_float,
    "sql_bool": sql_bool,
    "sql_date": sql_date,
    "sql_datetime": sql_datetime,
    "in_list": in_list,
    "sql_like": sql_like,
    "sql_like_start": sql_like_start,
    "sql_like_end": sql_like_end,
    "sql_like_contains": sql_like_contains,
    "json": sql_json,
    "sql_raw": sql_raw,
    "safe": sql_raw,
}
