"""
Execution results: rows, forward-only row cursors and affected-row counts.
"""

from __future__ import annotations

import sqlite3
from collections.abc import Iterator, Sequence
from typing import Any, NamedTuple, TypeVar, overload

from shunlib.core.db import wrap_db_error
from shunlib.core.errors import ExecutionError
from shunlib.core.naming import NameMapping
from shunlib.engines.sql.mapper import RowMapper

T = TypeVar("T")


class ResultRow:
    """One result row: ordered (column name, value) pairs."""

    __slots__ = ("columns", "values")

    def __init__(self, columns: Sequence[str], values: Sequence[Any]) -> None:
        self.columns = tuple(columns)
        self.values = tuple(values)

    def __getitem__(self, key: int | str) -> Any:
        if isinstance(key, str):
            try:
                return self.values[self.columns.index(key)]
            except ValueError:
                raise KeyError(key) from None
        return self.values[key]

    def __len__(self) -> int:
        return len(self.values)

    def __iter__(self) -> Iterator[tuple[str, Any]]:
        return iter(zip(self.columns, self.values))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ResultRow):
            return NotImplemented
        return self.columns == other.columns and self.values == other.values

    def __repr__(self) -> str:
        pairs = ", ".join(f"{c}={v!r}" for c, v in self)
        return f"ResultRow({pairs})"

    def get(self, column: str, default: Any = None) -> Any:
        try:
            return self[column]
        except KeyError:
            return default

    def as_dict(self) -> dict[str, Any]:
        return dict(zip(self.columns, self.values))


class AffectedCount(NamedTuple):
    """Result of a statement that returns no rows."""

    rowcount: int
    lastrowid: int | None = None


class RowCursor:
    """Forward-only, single-pass cursor of ``ResultRow``. Not thread-safe."""

    def __init__(self, cursor: sqlite3.Cursor, *, sql: str | None = None) -> None:
        self._cursor = cursor
        self._sql = sql
        self.columns: tuple[str, ...] = tuple(d[0] for d in cursor.description or ())

    def _wrap(self, e: sqlite3.Error) -> ExecutionError:
        return wrap_db_error(e, sql=self._sql)

    def _row(self, values: Sequence[Any]) -> ResultRow:
        return ResultRow(self.columns, values)

    def fetchone(self) -> ResultRow | None:
        """Fetch the next row, or None when exhausted."""
        try:
            values = self._cursor.fetchone()
        except sqlite3.Error as e:
            raise self._wrap(e) from e
        return None if values is None else self._row(values)

    def fetchmany(self, size: int | None = None) -> list[ResultRow]:
        try:
            rows = self._cursor.fetchmany(size if size is not None else self._cursor.arraysize)
        except sqlite3.Error as e:
            raise self._wrap(e) from e
        return [self._row(v) for v in rows]

    def fetchall(self) -> list[ResultRow]:
        """Fetch all remaining rows."""
        try:
            rows = self._cursor.fetchall()
        except sqlite3.Error as e:
            raise self._wrap(e) from e
        return [self._row(v) for v in rows]

    def __iter__(self) -> Iterator[ResultRow]:
        while True:
            row = self.fetchone()
            if row is None:
                return
            yield row

    @overload
    def map(self, record_type: type[T], naming: NameMapping | None = None) -> Iterator[T]: ...
    @overload
    def map(self, record_type: None = None, naming: NameMapping | None = None) -> Iterator[dict[str, Any]]: ...
    def map(self, record_type=None, naming=None):
        """Iterate remaining rows as records of *record_type* (dicts if None).

        The column plan is checked before the first row is read.
        """
        mapper = RowMapper(record_type or dict, self.columns, naming)
        return (mapper.map(row.values) for row in self)

    def close(self) -> None:
        self._cursor.close()

    def __enter__(self) -> RowCursor:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()


ExecutionResult = RowCursor | AffectedCount
