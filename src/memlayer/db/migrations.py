"""Forward-only migration runner for the memory store schema."""

from __future__ import annotations

import sqlite3

# schema_version is the bootstrap table, created before migrations run.
_CREATE_SCHEMA_VERSION = """
CREATE TABLE IF NOT EXISTS schema_version (
    version     INTEGER NOT NULL,
    applied_at  DATETIME NOT NULL DEFAULT (datetime('now'))
)
"""

_V1_SQL = """
CREATE TABLE IF NOT EXISTS memories (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id         TEXT NOT NULL,
    url             TEXT,
    canonical_url   TEXT,
    title           TEXT,
    content         TEXT DEFAULT NULL,
    summary         TEXT,
    embedding       BLOB DEFAULT NULL,
    created_at      TEXT NOT NULL,
    source_type     TEXT DEFAULT NULL
);

CREATE UNIQUE INDEX IF NOT EXISTS idx_memories_user_canonical_url
    ON memories (user_id, canonical_url);

CREATE INDEX IF NOT EXISTS idx_memories_created_at ON memories (created_at DESC);

CREATE INDEX IF NOT EXISTS idx_memories_user_id ON memories (user_id);

CREATE TABLE IF NOT EXISTS recent_searches (
    user_id             TEXT NOT NULL,
    normalized_query    TEXT NOT NULL,
    original_query      TEXT NOT NULL,
    response_json       TEXT NOT NULL,
    top_similarity      REAL NOT NULL,
    used_ai             INTEGER NOT NULL,
    memory_snapshot_at  TEXT NOT NULL,
    created_at          TEXT NOT NULL,
    PRIMARY KEY (user_id, normalized_query)
);

CREATE INDEX IF NOT EXISTS idx_recent_searches_user
    ON recent_searches (user_id, created_at DESC);
"""

# Append-only. Each entry: (version: int, sql: str).
# executescript() issues an implicit COMMIT before running.
MIGRATIONS: list[tuple[int, str]] = [
    (1, _V1_SQL),
]


def run_migrations(conn: sqlite3.Connection) -> None:
    """Apply all pending migrations in ascending version order.

    Idempotent: safe to call on a database at any version.
    """
    conn.execute(_CREATE_SCHEMA_VERSION)
    conn.commit()

    row = conn.execute("SELECT MAX(version) FROM schema_version").fetchone()
    current = row[0] if row[0] is not None else 0

    for version, sql in MIGRATIONS:
        if version > current:
            conn.executescript(sql)
            conn.execute(
                "INSERT INTO schema_version (version) VALUES (?)", (version,)
            )
            conn.commit()
