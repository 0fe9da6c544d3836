"""
Execute rendered SQL against an embedded SQLite connection.

- execute(): one RenderedStatement -> RowCursor (statement returns rows) or
  AffectedCount (DML/DDL).
- execute_script(): several ';'-separated statements without parameters,
  e.g. schema DDL, run one by one in the caller's transaction scope.

Neither function begins or commits a transaction; see core.db.transaction.
"""

import logging
import sqlite3
from typing import Any

from shunlib.core.config import settings
from shunlib.core.db import wrap_db_error
from shunlib.core.errors import ExecutionErrorKind
from shunlib.engines.sql.renderer import RenderedStatement
from shunlib.engines.sql.results import AffectedCount, ResultRow, RowCursor

_log = logging.getLogger(__name__)


def split_statements(sql: str) -> list[str]:
    """Split SQL into statements on ``;`` while respecting quoted strings.

    Handles single-quoted (``'...'``), double-quoted (``"..."``) and
    bracket-quoted (``[...]``) identifiers/literals as well as ``--`` and
    ``/* */`` comments, so that semicolons inside them are not treated as
    statement terminators. A semicolon only ends a statement when
    ``sqlite3.complete_statement`` agrees, which keeps trigger bodies whole.
    """
    stmts: list[str] = []
    current: list[str] = []
    i = 0
    length = len(sql)

    while i < length:
        ch = sql[i]

        if ch in ("'", '"', "["):
            close = "]" if ch == "[" else ch
            current.append(ch)
            i += 1
            while i < length:
                c = sql[i]
                current.append(c)
                if c == close:
                    if close != "]" and i + 1 < length and sql[i + 1] == close:
                        current.append(sql[i + 1])
                        i += 2
                        continue
                    i += 1
                    break
                i += 1
            continue

        if ch == "-" and i + 1 < length and sql[i + 1] == "-":
            end = sql.find("\n", i)
            if end == -1:
                current.append(sql[i:])
                i = length
            else:
                current.append(sql[i : end + 1])
                i = end + 1
            continue

        if ch == "/" and i + 1 < length and sql[i + 1] == "*":
            end = sql.find("*/", i + 2)
            if end == -1:
                current.append(sql[i:])
                i = length
            else:
                current.append(sql[i : end + 2])
                i = end + 2
            continue

        if ch == ";" and not sqlite3.complete_statement("".join(current) + ";"):
            # a ";" inside CREATE TRIGGER ... BEGIN ... END belongs to the body
            current.append(ch)
            i += 1
            continue

        if ch == ";":
            stmt = "".join(current).strip()
            if stmt:
                stmts.append(stmt)
            current = []
            i += 1
            continue

        current.append(ch)
        i += 1

    tail = "".join(current).strip()
    if tail:
        stmts.append(tail)
    return stmts


def _run(
    conn: sqlite3.Connection,
    sql: str,
    params: tuple[Any, ...],
    template: str | None = None,
) -> RowCursor | AffectedCount:
    cur = conn.cursor()
    try:
        cur.execute(sql, params)
    except (sqlite3.Error, sqlite3.Warning) as e:
        cur.close()
        err = wrap_db_error(e, sql=sql, template=template)
        if err.kind in (ExecutionErrorKind.CONSTRAINT_VIOLATION, ExecutionErrorKind.TRANSIENT):
            _log.warning("SQL execution failed (%s): %s", err.kind.value, e)
        else:
            _log.error("SQL execution failed: %s. SQL: %s", e, sql, exc_info=True)
        raise err from e

    if cur.description is not None:
        return RowCursor(cur, sql=sql)
    rowcount = cur.rowcount if cur.rowcount is not None and cur.rowcount >= 0 else 0
    result = AffectedCount(rowcount=rowcount, lastrowid=cur.lastrowid)
    cur.close()
    return result


def execute(
    conn: sqlite3.Connection, statement: RenderedStatement
) -> RowCursor | AffectedCount:
    """
    Run a rendered statement: bind its values positionally, in order.

    Returns a RowCursor when the statement produces rows (SELECT, WITH,
    RETURNING, PRAGMA ...), otherwise an AffectedCount.
    Raises ExecutionError wrapping the driver error.
    """
    params = statement.parameters
    if settings.SQL_LOG_BIND_VALUES:
        _log.debug("Executing SQL: %s with %r", statement.sql, params)
    else:
        _log.debug("Executing SQL: %s (%d binds)", statement.sql, len(params))
    return _run(conn, statement.sql, params, statement.template)


def execute_script(
    conn: sqlite3.Connection, script: str
) -> list[list[ResultRow] | int]:
    """
    Run every statement of *script* in order.

    Returns one result per statement: the rows for statements that return
    rows, the affected row count otherwise.
    """
    results: list[list[ResultRow] | int] = []
    for stmt in split_statements(script):
        _log.debug("Executing script statement: %s", stmt)
        res = _run(conn, stmt, ())
        if isinstance(res, RowCursor):
            with res:
                results.append(res.fetchall())
        else:
            results.append(res.rowcount)
    return results
