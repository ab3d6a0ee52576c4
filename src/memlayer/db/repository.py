"""Repository pattern for all memlayer database operations.

Single interface for: memories (the stored corpus) and recent_searches (the
query cache). The (user_id, canonical_url) unique index is the only
serialisation point for memory writes; the cache table is upserted
last-write-wins.
"""

from __future__ import annotations

import sqlite3
import threading
from datetime import datetime, timedelta, timezone

from memlayer.db.models import CacheEntry, Memory
from memlayer.db.schema import EMPTY_SNAPSHOT

_MEMORY_COLUMNS = (
    "id, user_id, url, canonical_url, title, content, summary, embedding, created_at, source_type"
)


def utcnow_iso() -> str:
    """Current UTC time in the fixed-width ISO format used for created_at columns."""
    return datetime.now(timezone.utc).isoformat(timespec="microseconds")


def _normalize_ts(value: str) -> str:
    """Re-render an ISO timestamp in the fixed-width UTC format so text ordering holds."""
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc).isoformat(timespec="microseconds")


class Repository:
    """Data access layer for memories and cached searches.

    Wraps an open sqlite3.Connection. The connection is owned by the caller
    and must be closed after use.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        """Initialise with an open database connection.

        Args:
            conn: An open sqlite3.Connection with sqlite-vec loaded and schema
                initialised (see memlayer.db.schema.initialize).
        """
        self._conn = conn
        self._write_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Memories
    # ------------------------------------------------------------------

    def add_memory(self, memory: Memory) -> Memory | None:
        """Insert *memory* unless its (user_id, canonical_url) already exists.

        ``created_at`` is forced strictly past the user's current snapshot so
        that every insert advances the snapshot token.

        Returns:
            The stored Memory (with ``id`` and ``created_at`` set), or None if
            a memory with the same canonical URL was already stored.

        Raises:
            ValueError: If ``canonical_url`` is empty.
        """
        if not memory.canonical_url:
            raise ValueError("canonical_url is required to store a memory")

        with self._write_lock:
            created_at = _normalize_ts(memory.created_at) if memory.created_at else utcnow_iso()
            latest = self.memory_snapshot(memory.user_id)
            if latest != EMPTY_SNAPSHOT and created_at <= latest:
                bumped = datetime.fromisoformat(latest) + timedelta(microseconds=1)
                created_at = bumped.isoformat(timespec="microseconds")

            cur = self._conn.execute(
                """
                INSERT INTO memories
                    (user_id, url, canonical_url, title, content, summary,
                     embedding, created_at, source_type)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(user_id, canonical_url) DO NOTHING
                """,
                (
                    memory.user_id,
                    memory.url,
                    memory.canonical_url,
                    memory.title,
                    memory.content,
                    memory.summary,
                    memory.embedding,
                    created_at,
                    memory.source_type,
                ),
            )
            self._conn.commit()

        if cur.rowcount == 0:
            return None
        memory.id = cur.lastrowid
        memory.created_at = created_at
        return memory

    def get_memory(self, memory_id: int) -> Memory | None:
        """Return a memory by id, or None if not found."""
        row = self._conn.execute(
            f"SELECT {_MEMORY_COLUMNS} FROM memories WHERE id = ?", (memory_id,)
        ).fetchone()
        return _row_to_memory(row) if row else None

    def find_by_canonical_url(self, user_id: str, canonical_url: str) -> Memory | None:
        """Return the user's memory for *canonical_url*, or None."""
        row = self._conn.execute(
            f"SELECT {_MEMORY_COLUMNS} FROM memories WHERE user_id = ? AND canonical_url = ? LIMIT 1",
            (user_id, canonical_url),
        ).fetchone()
        return _row_to_memory(row) if row else None

    def list_memories(self, user_id: str, limit: int | None = None) -> list[Memory]:
        """Return the user's memories, newest first."""
        sql = f"SELECT {_MEMORY_COLUMNS} FROM memories WHERE user_id = ? ORDER BY created_at DESC"
        params: tuple = (user_id,)
        if limit is not None:
            sql += " LIMIT ?"
            params = (user_id, limit)
        return [_row_to_memory(r) for r in self._conn.execute(sql, params).fetchall()]

    def iter_embedded_memories(self, user_id: str) -> list[Memory]:
        """Fresh snapshot read of every memory of *user_id* that has an embedding."""
        rows = self._conn.execute(
            f"SELECT {_MEMORY_COLUMNS} FROM memories WHERE user_id = ? AND embedding IS NOT NULL",
            (user_id,),
        ).fetchall()
        return [_row_to_memory(r) for r in rows]

    def delete_memory(self, memory_id: int) -> bool:
        """Delete a memory by id. Returns True if a row was removed."""
        with self._write_lock:
            cur = self._conn.execute("DELETE FROM memories WHERE id = ?", (memory_id,))
            self._conn.commit()
        return cur.rowcount > 0

    def memory_snapshot(self, user_id: str) -> str:
        """Corpus snapshot token: MAX(created_at) of the user's memories.

        Returns EMPTY_SNAPSHOT when the user has no memories.
        """
        row = self._conn.execute(
            "SELECT MAX(created_at) FROM memories WHERE user_id = ?", (user_id,)
        ).fetchone()
        return row[0] if row[0] is not None else EMPTY_SNAPSHOT

    # ------------------------------------------------------------------
    # Corpus statistics
    # ------------------------------------------------------------------

    def count_memories(self, user_id: str) -> int:
        return self._conn.execute(
            "SELECT COUNT(*) FROM memories WHERE user_id = ?", (user_id,)
        ).fetchone()[0]

    def count_memories_by_source(self, user_id: str) -> dict[str, int]:
        rows = self._conn.execute(
            """
            SELECT COALESCE(source_type, 'unknown') AS source, COUNT(*) AS n
            FROM memories WHERE user_id = ?
            GROUP BY source ORDER BY source
            """,
            (user_id,),
        ).fetchall()
        return {r["source"]: r["n"] for r in rows}

    def embedding_dimensions(self, user_id: str) -> list[int]:
        """Distinct embedding lengths stored for *user_id* (via sqlite-vec)."""
        rows = self._conn.execute(
            """
            SELECT DISTINCT vec_length(embedding) AS dims
            FROM memories WHERE user_id = ? AND embedding IS NOT NULL
            ORDER BY dims
            """,
            (user_id,),
        ).fetchall()
        return [r["dims"] for r in rows]

    # ------------------------------------------------------------------
    # Query cache (recent_searches)
    # ------------------------------------------------------------------

    def get_cache_entry(self, user_id: str, normalized_query: str) -> CacheEntry | None:
        """Return the cached row for (user_id, normalized_query), or None."""
        row = self._conn.execute(
            """
            SELECT user_id, normalized_query, original_query, response_json,
                   top_similarity, used_ai, memory_snapshot_at, created_at
            FROM recent_searches
            WHERE user_id = ? AND normalized_query = ?
            LIMIT 1
            """,
            (user_id, normalized_query),
        ).fetchone()
        return _row_to_cache_entry(row) if row else None

    def upsert_cache_entry(self, entry: CacheEntry) -> None:
        """Insert or replace the cache row for (user_id, normalized_query).

        Last write wins; ``created_at`` is reset so the row moves to the top
        of the recent-searches list.
        """
        entry.created_at = utcnow_iso()
        with self._write_lock:
            self._conn.execute(
                """
                INSERT OR REPLACE INTO recent_searches (
                    user_id, normalized_query, original_query, response_json,
                    top_similarity, used_ai, memory_snapshot_at, created_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    entry.user_id,
                    entry.normalized_query,
                    entry.original_query,
                    entry.response_json,
                    entry.top_similarity,
                    1 if entry.used_ai else 0,
                    entry.memory_snapshot_at,
                    entry.created_at,
                ),
            )
            self._conn.commit()

    def list_recent_searches(self, user_id: str, limit: int = 5) -> list[dict[str, str]]:
        """Return [{query, date}, ...] for the user's newest cached searches."""
        rows = self._conn.execute(
            """
            SELECT original_query AS query, created_at AS date
            FROM recent_searches
            WHERE user_id = ?
            ORDER BY created_at DESC
            LIMIT ?
            """,
            (user_id, limit),
        ).fetchall()
        return [{"query": r["query"], "date": r["date"]} for r in rows]

    def count_cached_searches(self, user_id: str) -> int:
        return self._conn.execute(
            "SELECT COUNT(*) FROM recent_searches WHERE user_id = ?", (user_id,)
        ).fetchone()[0]


# ------------------------------------------------------------------
# Row → model helpers
# ------------------------------------------------------------------

def _row_to_memory(row: sqlite3.Row) -> Memory:
    return Memory(
        id=row["id"],
        user_id=row["user_id"],
        url=row["url"],
        canonical_url=row["canonical_url"],
        title=row["title"] or "",
        content=row["content"] or "",
        summary=row["summary"] or "",
        embedding=row["embedding"],
        created_at=row["created_at"],
        source_type=row["source_type"],
    )


def _row_to_cache_entry(row: sqlite3.Row) -> CacheEntry:
    return CacheEntry(
        user_id=row["user_id"],
        normalized_query=row["normalized_query"],
        original_query=row["original_query"],
        response_json=row["response_json"],
        top_similarity=row["top_similarity"],
        used_ai=bool(row["used_ai"]),
        memory_snapshot_at=row["memory_snapshot_at"],
        created_at=row["created_at"],
    )
