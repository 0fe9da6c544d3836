"""
Row mapper: turn result rows into caller-defined records.

Supported record types: pydantic models, dataclasses and TypedDicts (``dict``
returns the row as a plain dict). Fields resolve to columns by exact name or
alias first, then by the naming-converted column name. Value coercion is
delegated to pydantic.
"""

from __future__ import annotations

import dataclasses
import functools
import logging
from collections.abc import Sequence
from typing import Any, Generic, NamedTuple, TypeVar, get_type_hints

from pydantic import BaseModel, TypeAdapter, ValidationError
from typing_extensions import is_typeddict

from shunlib.core.errors import (
    AmbiguousColumnError,
    MappingError,
    MissingColumnError,
    TypeCoercionError,
)
from shunlib.core.naming import NameMapping

_log = logging.getLogger(__name__)

T = TypeVar("T")


class _FieldSpec(NamedTuple):
    key: str  # key used when validating (alias if the model declares one)
    names: tuple[str, ...]  # names a column may carry to match this field
    required: bool


def _record_fields(record_type: type) -> list[_FieldSpec]:
    if isinstance(record_type, type) and issubclass(record_type, BaseModel):
        specs = []
        for name, info in record_type.model_fields.items():
            alias = info.alias if isinstance(info.alias, str) else None
            names = (name, alias) if alias and alias != name else (name,)
            specs.append(_FieldSpec(alias or name, names, info.is_required()))
        return specs
    if dataclasses.is_dataclass(record_type):
        specs = []
        for f in dataclasses.fields(record_type):
            if not f.init:
                continue
            required = (
                f.default is dataclasses.MISSING
                and f.default_factory is dataclasses.MISSING
            )
            specs.append(_FieldSpec(f.name, (f.name,), required))
        return specs
    if is_typeddict(record_type):
        required_keys = getattr(record_type, "__required_keys__", frozenset())
        return [
            _FieldSpec(name, (name,), name in required_keys)
            for name in get_type_hints(record_type)
        ]
    raise MappingError(
        f"Unsupported record type {getattr(record_type, '__name__', record_type)!r}: "
        "expected a pydantic model, dataclass or TypedDict"
    )


@functools.lru_cache(maxsize=None)
def _adapter(record_type: type) -> TypeAdapter[Any]:
    return TypeAdapter(record_type)


def _resolve(
    spec: _FieldSpec, columns: Sequence[str], naming: NameMapping | None
) -> int | None:
    exact = [i for i, c in enumerate(columns) if c in spec.names]
    if len(exact) == 1:
        return exact[0]
    if len(exact) > 1:
        raise AmbiguousColumnError(
            f"Columns {[columns[i] for i in exact]} all match field '{spec.names[0]}'",
            field=spec.names[0],
            column=columns[exact[0]],
        )
    if naming is None:
        return None
    converted = [i for i, c in enumerate(columns) if naming.to_record(c) in spec.names]
    if len(converted) > 1:
        raise AmbiguousColumnError(
            f"Columns {[columns[i] for i in converted]} all convert to field "
            f"'{spec.names[0]}'",
            field=spec.names[0],
            column=columns[converted[0]],
        )
    return converted[0] if converted else None


class RowMapper(Generic[T]):
    """Maps rows with a fixed column layout onto *record_type*.

    The column plan is resolved once, at construction; missing and ambiguous
    columns are reported here, before any row is read.
    """

    def __init__(
        self,
        record_type: type[T],
        columns: Sequence[str],
        naming: NameMapping | None = None,
    ) -> None:
        self.record_type = record_type
        self.columns = tuple(columns)
        self.naming = naming
        self._as_dict = record_type is dict
        self._plan: list[tuple[str, int]] = []
        if self._as_dict:
            return
        for spec in _record_fields(record_type):
            idx = _resolve(spec, self.columns, naming)
            if idx is None:
                if spec.required:
                    raise MissingColumnError(
                        f"No column for required field '{spec.names[0]}' "
                        f"(columns: {list(self.columns)})",
                        field=spec.names[0],
                    )
                continue
            self._plan.append((spec.key, idx))

    def map(self, values: Sequence[Any]) -> T:
        """Map one row's values (in column order) to a record."""
        if self._as_dict:
            return dict(zip(self.columns, values, strict=True))  # type: ignore[return-value]
        data = {key: values[idx] for key, idx in self._plan}
        try:
            return _adapter(self.record_type).validate_python(data)
        except ValidationError as e:
            raise self._coercion_error(e, data) from e

    def _coercion_error(self, e: ValidationError, data: dict[str, Any]) -> TypeCoercionError:
        err = e.errors()[0]
        loc = err.get("loc") or ()
        key = loc[0] if loc else None
        column = next((self.columns[i] for k, i in self._plan if k == key), None)
        _log.debug("Cannot coerce column %s: %s", column, err.get("msg"))
        return TypeCoercionError(
            f"Cannot coerce column '{column}' into field '{key}': {err.get('msg')}",
            field=str(key) if key is not None else None,
            column=column,
            value=data.get(key) if isinstance(key, str) else None,
        )


def map_row(row: Any, record_type: type[T], naming: NameMapping | None = None) -> T:
    """Map a single ``ResultRow`` onto *record_type*."""
    return RowMapper(record_type, row.columns, naming).map(row.values)
