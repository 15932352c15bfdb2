"""
Shared fixtures: an in-memory SQLite engine with a small schema.

SQLite accepts backtick-quoted identifiers and uses the qmark paramstyle,
so the compiled MySQL-flavoured SQL runs on it unchanged.
"""

import pytest

from lightkit import config
from lightkit.db import connections
from lightkit.db.facade import DB
from lightkit.services.query_builder import QueryBuilder

SCHEMA = (
    """
    CREATE TABLE users (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL,
        email TEXT,
        age INTEGER,
        status TEXT,
        deleted_at TEXT
    )
    """,
    """
    CREATE TABLE orders (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id INTEGER NOT NULL,
        total INTEGER NOT NULL
    )
    """,
)

USERS = (
    ("Alice", "alice@example.com", 30, "active", None),
    ("Bob", "bob@example.com", 22, "active", None),
    ("Carol", "carol@example.com", 41, "banned", "2024-01-01"),
)

ORDERS = ((1, 10), (1, 15), (2, 5), (3, 40))


@pytest.fixture
def engine():
    eng = connections.make({"driver": "sqlite"})
    with eng.begin() as conn:
        for ddl in SCHEMA:
            conn.exec_driver_sql(ddl)
        for name, email, age, status, deleted_at in USERS:
            conn.exec_driver_sql(
                "INSERT INTO users (name, email, age, status, deleted_at) VALUES (?, ?, ?, ?, ?)",
                (name, email, age, status, deleted_at),
            )
        for user_id, total in ORDERS:
            conn.exec_driver_sql("INSERT INTO orders (user_id, total) VALUES (?, ?)", (user_id, total))
    yield eng
    eng.dispose()


@pytest.fixture
def qb(engine):
    return QueryBuilder(engine)


@pytest.fixture(autouse=True)
def reset_globals():
    """The facade and the bootstrap are process-wide; start every test clean."""
    config.reset()
    yield
    config.reset()
    DB.reset()
