"""Vector ranker: cosine similarity blended with exponential recency decay.

  final = similarity * similarity_weight + exp(-age_days / decay_days) * recency_weight

One linear sweep over the user's corpus. Stored embeddings are read through
zero-copy float32 views; nothing is copied per item beyond the dot product.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Sequence
from datetime import datetime, timezone

from memlayer.config import SearchCfg
from memlayer.db.models import Memory, RankedMemory

_SECONDS_PER_DAY = 86_400.0


def _norm(vector: Sequence[float]) -> float:
    return math.sqrt(math.fsum(x * x for x in vector))


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine of the angle between *a* and *b*; 0.0 when either norm is 0.

    Raises:
        ValueError: If the vectors differ in length.
    """
    if len(a) != len(b):
        raise ValueError(f"dimension mismatch: {len(a)} != {len(b)}")
    return _cosine(a, _norm(a), b)


def _cosine(query: Sequence[float], query_norm: float, other: Sequence[float]) -> float:
    other_norm = _norm(other)
    if query_norm == 0.0 or other_norm == 0.0:
        return 0.0
    dot = math.fsum(x * y for x, y in zip(query, other))
    # Rounding can push |cos| a hair past 1.
    return max(-1.0, min(1.0, dot / (query_norm * other_norm)))


def recency_score(created_at: str | None, decay_days: float, now: datetime) -> float:
    """exp(-age_days / decay_days); items with no timestamp score 0."""
    if not created_at:
        return 0.0
    created = datetime.fromisoformat(created_at)
    if created.tzinfo is None:
        created = created.replace(tzinfo=timezone.utc)
    age_days = max(0.0, (now - created).total_seconds() / _SECONDS_PER_DAY)
    return math.exp(-age_days / decay_days)


def rank(
    query_embedding: Sequence[float],
    corpus: Iterable[Memory],
    config: SearchCfg | None = None,
    now: datetime | None = None,
) -> list[RankedMemory]:
    """Score *corpus* against *query_embedding* and return the top ``config.top_k``.

    Items without an embedding, with a different dimensionality, or below
    ``config.min_similarity`` are skipped. Ties keep corpus iteration order.
    """
    cfg = config or SearchCfg()
    now = now or datetime.now(timezone.utc)
    query_norm = _norm(query_embedding)
    dims = len(query_embedding)

    scored: list[RankedMemory] = []
    for memory in corpus:
        vector = memory.vector
        if vector is None or len(vector) != dims:
            continue
        similarity = _cosine(query_embedding, query_norm, vector)
        if similarity < cfg.min_similarity:
            continue
        recency = recency_score(memory.created_at, cfg.recency_decay_days, now)
        scored.append(
            RankedMemory(
                id=memory.id,
                url=memory.url,
                canonical_url=memory.canonical_url,
                title=memory.title,
                summary=memory.summary,
                content=memory.content,
                created_at=memory.created_at,
                source_type=memory.source_type,
                similarity=similarity,
                recency_score=recency,
                final_score=similarity * cfg.similarity_weight + recency * cfg.recency_weight,
            )
        )

    scored.sort(key=lambda r: r.final_score, reverse=True)
    return scored[: cfg.top_k]
