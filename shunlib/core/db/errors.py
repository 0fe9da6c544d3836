"""
Classify sqlite3 errors into ExecutionError subkinds.

Uses the extended result code when the driver exposes it (Python 3.11+) and
falls back to the error message otherwise.
"""

import re
import sqlite3

from shunlib.core.errors import ExecutionError, ExecutionErrorKind

# Primary result codes (extended code & 0xFF), see sqlite.org/rescode.html
_SQLITE_BUSY = 5
_SQLITE_LOCKED = 6
_SQLITE_IO_CODES = {10, 11, 13, 14, 26}  # IOERR, CORRUPT, FULL, CANTOPEN, NOTADB
_SQLITE_CONSTRAINT = 19

_SYNTAX_RE = re.compile(r"syntax error|no such (table|column|function)|incomplete input|unrecognized token")
_TRANSIENT_RE = re.compile(r"database( table)? is locked|database is busy")
_IO_RE = re.compile(r"disk I/O error|unable to open database|database or disk is full|malformed|not a database")


def classify_db_error(e: sqlite3.Error | sqlite3.Warning) -> ExecutionErrorKind:
    """Map a sqlite3 error onto an ExecutionErrorKind."""
    code = getattr(e, "sqlite_errorcode", None)
    primary = code & 0xFF if isinstance(code, int) else None
    msg = str(e)

    if isinstance(e, sqlite3.IntegrityError) or primary == _SQLITE_CONSTRAINT:
        return ExecutionErrorKind.CONSTRAINT_VIOLATION
    if primary in (_SQLITE_BUSY, _SQLITE_LOCKED) or _TRANSIENT_RE.search(msg):
        return ExecutionErrorKind.TRANSIENT
    if primary in _SQLITE_IO_CODES or _IO_RE.search(msg):
        return ExecutionErrorKind.IO
    if isinstance(e, sqlite3.OperationalError) and _SYNTAX_RE.search(msg):
        return ExecutionErrorKind.SYNTAX
    # Python < 3.12 reports multiple statements as sqlite3.Warning
    if isinstance(e, (sqlite3.ProgrammingError, sqlite3.Warning)):
        return ExecutionErrorKind.PROGRAMMING
    return ExecutionErrorKind.OTHER


def wrap_db_error(
    e: sqlite3.Error | sqlite3.Warning, *, sql: str | None = None, template: str | None = None
) -> ExecutionError:
    """Build the ExecutionError for *e*; callers ``raise ... from e``."""
    kind = classify_db_error(e)
    return ExecutionError(
        f"SQL execution failed: {e}",
        kind=kind,
        code=getattr(e, "sqlite_errorcode", None),
        name=getattr(e, "sqlite_errorname", None),
        sql=sql,
        template=template,
    )
