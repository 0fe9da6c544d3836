"""
Typed parameter values and coercion.

Every value that reaches the database goes through ``sql_value`` and becomes a
``SqlValue``: a closed tagged union of the kinds SQLite can store natively
plus SEQUENCE (only usable for repetition and ``in_list``). Coercers force a
value into a specific kind for the explicit type filters.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import Any, Callable
from uuid import UUID

from shunlib.core.errors import TypeMismatchError


class ValueKind(str, Enum):
    """Kinds of bindable values."""

    NULL = "null"
    BOOLEAN = "boolean"
    INTEGER = "integer"
    REAL = "real"
    TEXT = "text"
    BLOB = "blob"
    DATE = "date"
    TIME = "time"
    DATETIME = "datetime"
    SEQUENCE = "sequence"


@dataclass(frozen=True)
class SqlValue:
    kind: ValueKind
    value: Any

    def to_python(self) -> Any:
        """Plain Python value, as seen by template expressions."""
        if self.kind == ValueKind.SEQUENCE:
            return [item.to_python() for item in self.value]
        return self.value

    def to_sql(self) -> Any:
        """Native SQLite value for this bind."""
        kind = self.kind
        if kind == ValueKind.NULL:
            return None
        if kind == ValueKind.BOOLEAN:
            return 1 if self.value else 0
        if kind in (ValueKind.INTEGER, ValueKind.REAL, ValueKind.TEXT, ValueKind.BLOB):
            return self.value
        if kind == ValueKind.DATE or kind == ValueKind.TIME:
            return self.value.isoformat()
        if kind == ValueKind.DATETIME:
            return self.value.isoformat(sep=" ")
        if kind == ValueKind.SEQUENCE:
            raise TypeMismatchError(
                "A sequence cannot be bound as a single value; use a loop or | in_list"
            )
        raise TypeMismatchError(f"Unknown value kind: {kind}")


NULL = SqlValue(ValueKind.NULL, None)


def sql_value(value: Any, *, name: str | None = None) -> SqlValue:
    """Classify a Python value into a ``SqlValue``.

    Raises TypeMismatchError for values that have no lossless SQL
    representation (mappings, arbitrary objects, nested sequences).
    """
    if isinstance(value, SqlValue):
        return value
    if value is None:
        return NULL
    if isinstance(value, Enum):
        return sql_value(value.value, name=name)
    # bool before int: bool is an int subclass
    if isinstance(value, bool):
        return SqlValue(ValueKind.BOOLEAN, value)
    if isinstance(value, int):
        return SqlValue(ValueKind.INTEGER, value)
    if isinstance(value, float):
        return SqlValue(ValueKind.REAL, value)
    if isinstance(value, str):
        # plain str: a SqlSafe parameter must not pass through as SQL text
        return SqlValue(ValueKind.TEXT, str(value))
    if isinstance(value, (Decimal, UUID)):
        return SqlValue(ValueKind.TEXT, str(value))
    if isinstance(value, (bytes, bytearray, memoryview)):
        return SqlValue(ValueKind.BLOB, bytes(value))
    # datetime before date: datetime is a date subclass
    if isinstance(value, datetime):
        return SqlValue(ValueKind.DATETIME, value)
    if isinstance(value, date):
        return SqlValue(ValueKind.DATE, value)
    if isinstance(value, time):
        return SqlValue(ValueKind.TIME, value)
    if isinstance(value, (list, tuple)):
        items = []
        for item in value:
            v = sql_value(item, name=name)
            if v.kind == ValueKind.SEQUENCE:
                raise TypeMismatchError(
                    "Nested sequences are not supported", parameter=name
                )
            items.append(v)
        return SqlValue(ValueKind.SEQUENCE, tuple(items))
    raise TypeMismatchError(
        f"Unsupported parameter type: {type(value).__name__}", parameter=name
    )


def coerce_text(value: Any) -> SqlValue:
    if value is None:
        return NULL
    if isinstance(value, (list, tuple, dict)):
        raise TypeMismatchError(f"Expected text, got {type(value).__name__}")
    if isinstance(value, Enum):
        value = value.value
    return SqlValue(ValueKind.TEXT, str(value))


def coerce_real(value: Any) -> SqlValue:
    if value is None:
        return NULL
    if isinstance(value, (int, float, Decimal)) and not isinstance(value, bool):
        return SqlValue(ValueKind.REAL, float(value))
    s = str(value).strip()
    try:
        x = float(s)
    except ValueError as e:
        raise TypeMismatchError(f"Invalid number: {s!r}") from e
    return SqlValue(ValueKind.REAL, x)


def coerce_integer(value: Any) -> SqlValue:
    if value is None:
        return NULL
    if isinstance(value, bool):
        raise TypeMismatchError("Boolean not allowed for integer")
    if isinstance(value, int):
        return SqlValue(ValueKind.INTEGER, value)
    if isinstance(value, float):
        if not value.is_integer():
            raise TypeMismatchError(f"Expected integer, got float: {value}")
        return SqlValue(ValueKind.INTEGER, int(value))
    s = str(value).strip()
    if not s:
        raise TypeMismatchError("Value is empty")
    try:
        return SqlValue(ValueKind.INTEGER, int(s))
    except ValueError:
        pass
    try:
        x = float(s)
    except ValueError as e:
        raise TypeMismatchError(f"Invalid integer: {s!r}") from e
    if not x.is_integer():
        raise TypeMismatchError(f"Expected integer, got: {s!r}")
    return SqlValue(ValueKind.INTEGER, int(x))


def coerce_boolean(value: Any) -> SqlValue:
    if value is None:
        return NULL
    if isinstance(value, bool):
        return SqlValue(ValueKind.BOOLEAN, value)
    if isinstance(value, int):
        if value in (0, 1):
            return SqlValue(ValueKind.BOOLEAN, bool(value))
        raise TypeMismatchError(f"Expected boolean, got integer: {value}")
    s = str(value).strip().lower()
    if s in ("true", "1", "yes"):
        return SqlValue(ValueKind.BOOLEAN, True)
    if s in ("false", "0", "no"):
        return SqlValue(ValueKind.BOOLEAN, False)
    raise TypeMismatchError(f"Expected boolean (true/false, 1/0, yes/no), got: {value!r}")


def coerce_date(value: Any) -> SqlValue:
    if value is None:
        return NULL
    if isinstance(value, datetime):
        return SqlValue(ValueKind.DATE, value.date())
    if isinstance(value, date):
        return SqlValue(ValueKind.DATE, value)
    if isinstance(value, str):
        try:
            return SqlValue(ValueKind.DATE, date.fromisoformat(value.strip()[:10]))
        except ValueError as e:
            raise TypeMismatchError(f"Invalid date: {value!r}") from e
    raise TypeMismatchError(f"Expected date, got {type(value).__name__}")


def coerce_datetime(value: Any) -> SqlValue:
    if value is None:
        return NULL
    if isinstance(value, datetime):
        return SqlValue(ValueKind.DATETIME, value)
    if isinstance(value, date):
        return SqlValue(ValueKind.DATETIME, datetime.combine(value, datetime.min.time()))
    if isinstance(value, str):
        try:
            return SqlValue(ValueKind.DATETIME, datetime.fromisoformat(value.strip()))
        except ValueError as e:
            raise TypeMismatchError(f"Invalid datetime: {value!r}") from e
    raise TypeMismatchError(f"Expected datetime, got {type(value).__name__}")


def coerce_json(value: Any) -> SqlValue:
    if value is None:
        return NULL
    try:
        s = json.dumps(value, default=str)
    except (TypeError, ValueError) as e:
        raise TypeMismatchError(f"Value is not JSON serializable: {e}") from e
    return SqlValue(ValueKind.TEXT, s)


COERCERS: dict[ValueKind, Callable[[Any], SqlValue]] = {
    ValueKind.TEXT: coerce_text,
    ValueKind.REAL: coerce_real,
    ValueKind.INTEGER: coerce_integer,
    ValueKind.BOOLEAN: coerce_boolean,
    ValueKind.DATE: coerce_date,
    ValueKind.DATETIME: coerce_datetime,
}


def coerce(value: Any, kind: ValueKind) -> SqlValue:
    """Coerce *value* into *kind*; raises TypeMismatchError on failure."""
    fn = COERCERS.get(kind)
    if fn is None:
        raise TypeMismatchError(f"No coercion to {kind.value}")
    return fn(value)
