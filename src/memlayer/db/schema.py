"""Database schema initialization."""

from __future__ import annotations

import sqlite3

CURRENT_VERSION = 1

# Returned as the corpus snapshot token when a user has no memories.
EMPTY_SNAPSHOT = "1970-01-01"


def initialize(conn: sqlite3.Connection) -> None:
    """Initialize the database schema via the migration runner (idempotent)."""
    from memlayer.db.migrations import run_migrations

    run_migrations(conn)
