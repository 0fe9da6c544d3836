"""
Parameter binder: validate a parameter record against a compiled template.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

from shunlib.core.errors import BindError, TypeMismatchError, UnboundParameterError
from shunlib.core.naming import NameMapping
from shunlib.core.param_type import SqlValue, ValueKind, sql_value

if TYPE_CHECKING:
    from shunlib.engines.sql.template_engine import Template

_log = logging.getLogger(__name__)


@dataclass(frozen=True)
class BoundContext:
    template: Template
    values: Mapping[str, SqlValue]

    def context(self) -> dict[str, Any]:
        """Variables for the Jinja2 render call."""
        return {name: v.to_python() for name, v in self.values.items()}


def _convert_keys(
    params: Mapping[str, Any], naming: NameMapping | None, template: str
) -> dict[str, Any]:
    out: dict[str, Any] = {}
    origin: dict[str, str] = {}
    for key, value in params.items():
        if not isinstance(key, str):
            raise BindError(
                f"Parameter names must be strings, got {type(key).__name__}",
                template=template,
            )
        name = naming.to_sql(key) if naming is not None else key
        if name in out:
            raise BindError(
                f"Parameters '{origin[name]}' and '{key}' both map to '{name}'",
                parameter=name,
                template=template,
            )
        out[name] = value
        origin[name] = key
    return out


def bind(
    template: Template,
    params: Mapping[str, Any],
    naming: NameMapping | None = None,
) -> BoundContext:
    """
    Bind *params* to *template*.

    - naming: converts each top-level key from the record style to the
      placeholder style before matching.

    Raises UnboundParameterError for unconditional placeholders without a
    value and TypeMismatchError for values that cannot be used the way the
    template uses them.
    """
    if not isinstance(params, Mapping):
        raise BindError(
            f"Parameters must be a mapping, got {type(params).__name__}",
            template=template.name,
        )
    raw = _convert_keys(params, naming, template.name)

    values: dict[str, SqlValue] = {}
    for name, value in raw.items():
        try:
            values[name] = sql_value(value, name=name)
        except TypeMismatchError as e:
            e.parameter = e.parameter or name
            e.template = template.name
            raise

    analysis = template.analysis
    missing = sorted(analysis.required - values.keys())
    if missing:
        raise UnboundParameterError(
            f"Parameter '{missing[0]}' is referenced but not provided "
            f"(available: {sorted(values)})",
            parameter=missing[0],
            template=template.name,
        )

    for name in sorted(analysis.scalar_outputs & values.keys()):
        if values[name].kind == ValueKind.SEQUENCE:
            raise TypeMismatchError(
                f"Parameter '{name}' is a sequence but is used as a single value",
                parameter=name,
                template=template.name,
            )
    for name in sorted(analysis.sequence_args & values.keys()):
        if values[name].kind not in (ValueKind.SEQUENCE, ValueKind.NULL):
            raise TypeMismatchError(
                f"Parameter '{name}' must be a sequence, got {values[name].kind.value}",
                parameter=name,
                template=template.name,
            )

    unused = values.keys() - analysis.parameters
    if unused:
        _log.debug("Template %s ignores parameters: %s", template.name, sorted(unused))
    return BoundContext(template=template, values=MappingProxyType(values))
