"""
Serialization boundary: records <-> parameter mappings <-> JSON.

Records are pydantic models, dataclasses or plain mappings (TypedDicts);
conversion goes through pydantic ``TypeAdapter`` so values keep their Python
types (dates, Decimal, UUID, enums) until the binder classifies them.
"""

import dataclasses
import functools
from collections.abc import Iterable, Mapping
from typing import Any, TypeVar

from pydantic import BaseModel, TypeAdapter, ValidationError

from shunlib.core.errors import BindError, MappingError

T = TypeVar("T")


@functools.lru_cache(maxsize=None)
def _adapter(tp: Any) -> TypeAdapter[Any]:
    return TypeAdapter(tp)


def _is_record(value: Any) -> bool:
    if isinstance(value, (BaseModel, Mapping)):
        return True
    return dataclasses.is_dataclass(value) and not isinstance(value, type)


def _record_items(record: Any) -> dict[str, Any]:
    if isinstance(record, Mapping):
        return dict(record)
    if isinstance(record, BaseModel) or dataclasses.is_dataclass(record):
        return _adapter(type(record)).dump_python(record, mode="python")
    raise BindError(
        f"Cannot turn {type(record).__name__} into parameters: "
        "expected a mapping, pydantic model or dataclass"
    )


def _flatten(record: Any, exclude_none: bool, prefix: str, out: dict[str, Any]) -> None:
    for key, value in _record_items(record).items():
        if not isinstance(key, str):
            raise BindError(f"Parameter names must be strings, got {type(key).__name__}")
        if _is_record(value):
            # nested records contribute their fields as if declared inline
            _flatten(value, exclude_none, prefix, out)
            continue
        if value is None and exclude_none:
            continue
        name = f"{prefix}{key}"
        if name in out:
            raise BindError(f"Parameter '{name}' is defined twice", parameter=name)
        out[name] = value


def record_to_params(
    record: Any, exclude_none: bool = False, prefix: str = ""
) -> dict[str, Any]:
    """
    Flatten *record* into a parameter mapping.

    - exclude_none: drop fields whose value is None, so ``{% if name is
      defined %}`` only sees the fields that were set.
    - prefix: prepended to every key, e.g. ``"q_"`` to keep filter parameters
      apart from the values an UPDATE writes.

    Nested records are flattened into the same mapping. Raises BindError when
    two fields end up with the same name.
    """
    out: dict[str, Any] = {}
    _flatten(record, exclude_none, prefix, out)
    return out


def params_from_json(
    text: str | bytes, record_type: type | None = None, *, exclude_none: bool = False
) -> dict[str, Any]:
    """Parse a JSON object into parameters, validated as *record_type* if given."""
    tp = record_type if record_type is not None else dict[str, Any]
    try:
        parsed = _adapter(tp).validate_json(text)
    except ValidationError as e:
        raise BindError(f"Invalid JSON parameters: {e.errors()[0].get('msg')}") from e
    return record_to_params(parsed, exclude_none=exclude_none)


def records_to_json(records: Iterable[Any], record_type: type | None = None) -> str:
    """Serialize mapped records to a JSON array."""
    tp = list[record_type] if record_type is not None else list[Any]
    return _adapter(tp).dump_json(list(records)).decode()


def records_from_json(text: str | bytes, record_type: type[T]) -> list[T]:
    """Parse a JSON array into records of *record_type*."""
    try:
        return _adapter(list[record_type]).validate_json(text)
    except ValidationError as e:
        err = e.errors()[0]
        loc = err.get("loc") or ()
        field = str(loc[-1]) if len(loc) > 1 else None
        raise MappingError(
            f"Invalid {getattr(record_type, '__name__', record_type)} JSON: {err.get('msg')}",
            field=field,
        ) from e
