from collections.abc import Iterator
import sqlite3

import pytest

from shunlib.core.db import connect
from shunlib.engines.sql import reset_template_cache


@pytest.fixture(autouse=True)
def _clean_template_cache() -> Iterator[None]:
    reset_template_cache()
    yield
    reset_template_cache()


@pytest.fixture
def conn() -> Iterator[sqlite3.Connection]:
    c = connect(":memory:")
    try:
        yield c
    finally:
        c.close()


@pytest.fixture
def users(conn: sqlite3.Connection) -> sqlite3.Connection:
    conn.executescript(
        """
        CREATE TABLE users (
            id INTEGER PRIMARY KEY,
            name TEXT NOT NULL,
            email TEXT UNIQUE,
            created_at TEXT
        );
        INSERT INTO users (id, name, email, created_at) VALUES
            (1, 'alice', 'alice@example.com', '2024-01-02 03:04:05'),
            (2, 'bob', 'bob@example.com', '2024-02-03 04:05:06'),
            (42, 'carol', NULL, NULL);
        """
    )
    return conn
