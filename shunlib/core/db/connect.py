"""
Embedded database connection helpers (SQLite via the stdlib DB-API driver).

connect() opens a connection in autocommit mode so that transaction scope is
always explicit: callers wrap one or more statements in ``transaction(conn)``.
"""

import logging
import os
import sqlite3
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from shunlib.core.config import settings

from .errors import wrap_db_error

_log = logging.getLogger(__name__)


def connect(
    database: str | os.PathLike[str] | None = None,
    *,
    timeout: float | None = None,
    foreign_keys: bool | None = None,
) -> sqlite3.Connection:
    """
    Open a SQLite connection.

    - database: file path or ":memory:"; defaults to settings.DATABASE_PATH.
    - timeout: seconds to wait on a locked database; defaults to settings.DB_BUSY_TIMEOUT.
    - foreign_keys: enforce FOREIGN KEY constraints; defaults to settings.DB_FOREIGN_KEYS.
    """
    db = database if database is not None else settings.DATABASE_PATH
    busy = timeout if timeout is not None else settings.DB_BUSY_TIMEOUT
    fks = settings.DB_FOREIGN_KEYS if foreign_keys is None else foreign_keys

    conn = sqlite3.connect(db, timeout=busy, isolation_level=None)
    if fks:
        conn.execute("PRAGMA foreign_keys = ON")
    _log.debug("Opened sqlite connection to %s", db)
    return conn


@contextmanager
def transaction(conn: sqlite3.Connection) -> Iterator[sqlite3.Connection]:
    """
    Scope a transaction around the block: commit on success, roll back on error.

    Nested use (connection already inside a transaction) runs the block in a
    SAVEPOINT so an inner failure only undoes the inner work.
    """
    if conn.in_transaction:
        sp = f"sp_{uuid.uuid4().hex}"
        conn.execute(f"SAVEPOINT {sp}")
        try:
            yield conn
        except BaseException:
            conn.execute(f"ROLLBACK TO SAVEPOINT {sp}")
            conn.execute(f"RELEASE SAVEPOINT {sp}")
            raise
        conn.execute(f"RELEASE SAVEPOINT {sp}")
        return

    try:
        conn.execute("BEGIN")
    except sqlite3.Error as e:
        raise wrap_db_error(e, sql="BEGIN") from e
    try:
        yield conn
    except BaseException:
        _log.debug("Rolling back transaction")
        conn.rollback()
        raise
    try:
        conn.commit()
    except sqlite3.Error as e:
        _log.warning("Commit failed, rolling back: %s", e)
        # a failed COMMIT (e.g. deferred constraint) leaves the transaction open
        try:
            conn.rollback()
        except sqlite3.Error as rb:
            _log.error("Rollback after failed commit also failed: %s", rb)
        raise wrap_db_error(e, sql="COMMIT") from e


def cursor_to_dicts(cursor: Any) -> list[dict[str, Any]]:
    """Convert cursor result to list of dicts."""
    desc = cursor.description
    if not desc:
        return []
    names = [d[0] for d in desc]
    return [dict(zip(names, row, strict=True)) for row in cursor.fetchall()]
