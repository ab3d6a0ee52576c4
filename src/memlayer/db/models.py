"""Domain models for the memlayer database layer."""

from __future__ import annotations

from dataclasses import asdict, dataclass


@dataclass
class Memory:
    """One persisted page. Unique per (user_id, canonical_url).

    ``embedding`` is the raw little-endian float32 blob as stored; use
    :attr:`vector` for a zero-copy float view.
    """

    user_id: str
    url: str
    canonical_url: str
    title: str = ""
    content: str = ""
    summary: str = ""
    embedding: bytes | None = None
    created_at: str | None = None
    source_type: str | None = None
    id: int | None = None  # set after insert; None for unsaved memories

    @property
    def vector(self) -> memoryview | None:
        if self.embedding is None:
            return None
        return memoryview(self.embedding).cast("f")

    def to_dict(self) -> dict:
        """Serialisable form without the embedding blob."""
        data = asdict(self)
        data.pop("embedding")
        return data


@dataclass
class CacheEntry:
    """A cached search response keyed by (user_id, normalized_query)."""

    user_id: str
    normalized_query: str
    original_query: str
    response_json: str
    top_similarity: float
    used_ai: bool
    memory_snapshot_at: str
    created_at: str | None = None


@dataclass
class RankedMemory:
    """A search hit: the memory without its embedding plus its scores."""

    id: int | None
    url: str
    canonical_url: str
    title: str
    summary: str
    content: str | None
    created_at: str | None
    source_type: str | None
    similarity: float
    recency_score: float
    final_score: float

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "url": self.url,
            "canonicalUrl": self.canonical_url,
            "title": self.title,
            "summary": self.summary,
            "content": self.content,
            "createdAt": self.created_at,
            "sourceType": self.source_type,
            "similarity": self.similarity,
            "recencyScore": self.recency_score,
            "finalScore": self.final_score,
        }
