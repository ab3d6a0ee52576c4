"""Shared pytest fixtures."""

from __future__ import annotations

from collections.abc import Sequence

import pytest

from memlayer.db.connection import Database
from memlayer.db.repository import Repository
from memlayer.db.schema import initialize
from memlayer.ingest.base import HistoryEntry


class StubCapabilities:
    """Deterministic AICapabilities for tests.

    ``ranked``  — URLs returned by rank_top_urls (None = echo the candidates).
    ``vectors`` — text → embedding overrides; anything else gets ``default_vector``.
    """

    def __init__(self) -> None:
        self.ranked: list[str] | None = None
        self.rank_error: Exception | None = None
        self.vectors: dict[str, list[float]] = {}
        self.default_vector: list[float] = [1.0, 0.0, 0.0, 0.0]
        self.summarize_calls: list[str] = []
        self.embed_calls: list[str] = []
        self.rank_calls: list[list[HistoryEntry]] = []

    def summarize(self, text: str) -> str:
        self.summarize_calls.append(text)
        return f"summary of {text[:40]}"

    def embed(self, text: str) -> list[float]:
        self.embed_calls.append(text)
        return self.vectors.get(text, self.default_vector)

    def rank_top_urls(self, candidates: Sequence[HistoryEntry], target: int) -> list[str]:
        self.rank_calls.append(list(candidates))
        if self.rank_error is not None:
            raise self.rank_error
        if self.ranked is not None:
            return list(self.ranked)
        return [c.url for c in candidates][:target]


@pytest.fixture
def tmp_db(tmp_path):
    """File-based DB in tmp_path with schema initialized, closed after test."""
    db = Database(tmp_path / "memory-layer.db")
    conn = db.connect()
    initialize(conn)
    yield conn
    conn.close()


@pytest.fixture
def repo(tmp_db):
    return Repository(tmp_db)


@pytest.fixture
def stub_caps():
    return StubCapabilities()
