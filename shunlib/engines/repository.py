"""
Repository: named SQL templates bound to one SQLite connection.

Registered templates double as partials, so one template can pull another in
with ``{% include "NAME" %}`` (e.g. a shared WHERE clause used by both a
SELECT and an UPDATE).

query(template, params, record_type) -> list of records
execute(template, params) -> affected row count
"""

import logging
import sqlite3
from collections.abc import Generator, Iterable, Iterator, Mapping
from contextlib import AbstractContextManager
from typing import Any, NamedTuple, TypeVar

from shunlib.core.db import transaction
from shunlib.core.errors import ExecutionError, ExecutionErrorKind, MappingError
from shunlib.core.naming import NameMapping
from shunlib.core.serialization import record_to_params
from shunlib.engines.sql import (
    AffectedCount,
    RenderedStatement,
    RowCursor,
    SQLTemplateEngine,
    Template,
    execute,
    execute_script,
)

_log = logging.getLogger(__name__)

T = TypeVar("T")


class SqlTemplate(NamedTuple):
    """A named SQL template source."""

    name: str
    sql: str


TemplateRef = str | SqlTemplate | Template


class Repository:
    """
    Runs named templates against *conn*.

    - templates: ``SqlTemplate`` (or ``(name, sql)`` pairs) to register.
    - naming: converts parameter keys (record style -> SQL style) and result
      columns (SQL style -> record style) for every call.

    The repository never opens a transaction on its own; group statements
    with ``with repo.transaction():``.
    """

    def __init__(
        self,
        conn: sqlite3.Connection,
        templates: Iterable[SqlTemplate | tuple[str, str]] = (),
        *,
        naming: NameMapping | None = None,
    ) -> None:
        self.conn = conn
        self.naming = naming
        sources: dict[str, str] = {}
        for item in templates:
            name, sql = item
            if name in sources and sources[name] != sql:
                raise ValueError(f"Template '{name}' is registered twice")
            sources[name] = sql
        self._sources = sources
        self.engine = SQLTemplateEngine(partials=sources)
        for name, sql in sources.items():
            # compile eagerly so syntax errors surface at construction
            self.engine.compile(sql, name)
        _log.debug("Repository registered templates: %s", sorted(sources))

    @property
    def templates(self) -> list[str]:
        return sorted(self._sources)

    def _template(self, template: TemplateRef) -> Template:
        if isinstance(template, Template):
            return template
        if isinstance(template, SqlTemplate):
            return self.engine.compile(template.sql, template.name)
        if not isinstance(template, str):
            raise TypeError(f"Unsupported template: {type(template).__name__}")
        source = self._sources.get(template)
        if source is not None:
            return self.engine.compile(source, template)
        return self.engine.compile(template)

    def _params(self, params: Any) -> Mapping[str, Any]:
        if params is None:
            return {}
        if isinstance(params, Mapping):
            return params
        return record_to_params(params)

    def render(self, template: TemplateRef, params: Any = None) -> RenderedStatement:
        """Render *template* with *params* (a mapping or a record)."""
        return self.engine.render(self._template(template), self._params(params), self.naming)

    def _run(
        self, template: TemplateRef, params: Any
    ) -> tuple[RenderedStatement, RowCursor | AffectedCount]:
        statement = self.render(template, params)
        return statement, execute(self.conn, statement)

    def _cursor(self, template: TemplateRef, params: Any) -> tuple[RenderedStatement, RowCursor]:
        statement, result = self._run(template, params)
        if isinstance(result, AffectedCount):
            raise ExecutionError(
                "Statement does not return rows; use execute()",
                kind=ExecutionErrorKind.PROGRAMMING,
                sql=statement.sql,
                template=statement.template,
            )
        return statement, result

    def query(
        self, template: TemplateRef, params: Any = None, record_type: type[T] | None = None
    ) -> list[T]:
        """Run a row-returning template; rows become *record_type* (dicts if None)."""
        return list(self.iter_query(template, params, record_type))

    def query_one(
        self, template: TemplateRef, params: Any = None, record_type: type[T] | None = None
    ) -> T | None:
        """First mapped row, or None when the query returns no rows."""
        it = self.iter_query(template, params, record_type)
        try:
            return next(it, None)
        finally:
            it.close()

    def iter_query(
        self, template: TemplateRef, params: Any = None, record_type: type[T] | None = None
    ) -> Generator[T, None, None]:
        """Like query() but yields records lazily; the cursor closes when exhausted."""
        statement, cursor = self._cursor(template, params)
        name = statement.template
        try:
            mapped = cursor.map(record_type, self.naming)
        except MappingError as e:
            cursor.close()
            if e.template is None:
                e.template = name
            raise
        return self._iterate(cursor, mapped, name)

    def _iterate(
        self, cursor: RowCursor, mapped: Iterator[Any], template: str | None
    ) -> Generator[Any, None, None]:
        try:
            yield from mapped
        except MappingError as e:
            if e.template is None:
                e.template = template
            raise
        finally:
            cursor.close()

    def execute(self, template: TemplateRef, params: Any = None) -> int:
        """Run a mutating template and return the affected row count.

        For statements that return rows (``... RETURNING``) the count is the
        number of rows returned.
        """
        _, result = self._run(template, params)
        if isinstance(result, RowCursor):
            with result:
                return len(result.fetchall())
        return result.rowcount

    def run_script(self, script: str) -> list[Any]:
        """Run a multi-statement script without parameters, e.g. schema DDL."""
        return execute_script(self.conn, script)

    def transaction(self) -> AbstractContextManager[sqlite3.Connection]:
        return transaction(self.conn)
