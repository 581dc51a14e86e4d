"""Test session configuration.

Loads the project `.env` once per session and provides an in-memory sqlite
river database for end-to-end cycles. sqlite accepts double-quoted
identifiers and binds with ``?``, which the connection declares through its
``placeholder`` attribute.
"""

from __future__ import annotations

import sqlite3
from datetime import datetime

import pytest
from dotenv import load_dotenv

sqlite3.register_adapter(datetime, lambda value: value.isoformat(" "))


class QmarkConnection(sqlite3.Connection):
    placeholder = "?"


RIVER_DDL = """
create table "{name}" (
    "_index" text,
    "_type" text,
    "_id" text,
    "source_operation" text,
    "source_timestamp" text,
    "title" text,
    "author.name" text
)
"""

ACK_DDL = """
create table "{name}_ack" (
    "_index" text,
    "_type" text,
    "_id" text,
    "target_timestamp" text,
    "target_operation" text,
    "target_failed" integer,
    "target_message" text
)
"""


@pytest.fixture(scope="session", autouse=True)
def _load_dotenv_for_tests() -> None:
    # Load once per test session; no error if .env is absent.
    load_dotenv()


@pytest.fixture
def river_db():
    conn = sqlite3.connect(":memory:", factory=QmarkConnection, isolation_level=None)
    conn.execute(RIVER_DDL.format(name="books"))
    conn.execute(ACK_DDL.format(name="books"))
    try:
        yield conn
    finally:
        conn.close()
