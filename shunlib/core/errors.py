"""
Error taxonomy for dynamic SQL: compile, bind, render, execute, map.

Every error carries a human readable ``message`` and, where known, the name of
the template it came from. Layers add context on the way up and chain the
originating exception with ``raise ... from``.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ShunlibError(Exception):
    """Base class for all errors raised by shunlib."""

    def __init__(self, message: str, *, template: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.template = template

    def __str__(self) -> str:
        if self.template:
            return f"{self.message} (template {self.template!r})"
        return self.message


class TemplateSyntaxError(ShunlibError):
    """Malformed template source, detected at compile time."""

    def __init__(
        self,
        message: str,
        *,
        template: str | None = None,
        lineno: int | None = None,
    ) -> None:
        super().__init__(message, template=template)
        self.lineno = lineno

    def __str__(self) -> str:
        s = super().__str__()
        if self.lineno is not None:
            return f"{s}, line {self.lineno}"
        return s


class BindError(ShunlibError):
    """Parameter record cannot be bound to a template."""

    def __init__(
        self,
        message: str,
        *,
        parameter: str | None = None,
        template: str | None = None,
    ) -> None:
        super().__init__(message, template=template)
        self.parameter = parameter


class UnboundParameterError(BindError):
    """A referenced placeholder has no value and is not marked optional."""


class TypeMismatchError(BindError):
    """A value's type is incompatible with the way the template uses it."""


class RenderError(ShunlibError):
    """Control-block evaluation failed while rendering."""


class ExecutionErrorKind(str, Enum):
    """Subkind of an execution failure; only TRANSIENT is worth retrying."""

    CONSTRAINT_VIOLATION = "constraint_violation"
    SYNTAX = "syntax"
    TRANSIENT = "transient"
    IO = "io"
    PROGRAMMING = "programming"
    OTHER = "other"


class ExecutionError(ShunlibError):
    """Wraps an error reported by the database engine."""

    def __init__(
        self,
        message: str,
        *,
        kind: ExecutionErrorKind = ExecutionErrorKind.OTHER,
        code: int | None = None,
        name: str | None = None,
        sql: str | None = None,
        template: str | None = None,
    ) -> None:
        super().__init__(message, template=template)
        self.kind = kind
        self.code = code
        self.name = name
        self.sql = sql

    @property
    def is_transient(self) -> bool:
        return self.kind is ExecutionErrorKind.TRANSIENT

    def __str__(self) -> str:
        s = super().__str__()
        return f"[{self.kind.value}] {s}"


class MappingError(ShunlibError):
    """A result row cannot be mapped onto a record type."""

    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        column: str | None = None,
        value: Any = None,
        template: str | None = None,
    ) -> None:
        super().__init__(message, template=template)
        self.field = field
        self.column = column
        self.value = value


class MissingColumnError(MappingError):
    """A required record field has no matching column."""


class AmbiguousColumnError(MappingError):
    """More than one column resolves to the same record field."""


class TypeCoercionError(MappingError):
    """A column value cannot be coerced into the field's declared type."""
