"""Query cache qualified by the corpus snapshot token.

A cached response is served only while the user's snapshot token (the
newest ``created_at`` in their corpus) is unchanged. Any insert advances the
token, so every older cache row for that user misses on its next lookup;
there is no explicit eviction.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Any

from memlayer.ai.capabilities import AICapabilities
from memlayer.config import SearchCfg
from memlayer.db.models import CacheEntry
from memlayer.db.repository import Repository
from memlayer.errors import InvalidRequest
from memlayer.search.ranker import rank

logger = logging.getLogger(__name__)

FOUND_ANSWER = "Here's what I found in your saved articles"
EMPTY_ANSWER = "I couldn't find anything related in your saved articles."

_WHITESPACE_RE = re.compile(r"\s+")


def normalize_query(query: str) -> str:
    """Trim, lower-case and collapse internal whitespace."""
    return _WHITESPACE_RE.sub(" ", query.strip().lower())


@dataclass
class SearchOutcome:
    """A search response plus where it came from.

    ``response_json`` is the exact stored text; on a cache hit it is
    returned byte for byte.
    """

    response_json: str
    cache_hit: bool

    @property
    def response(self) -> dict[str, Any]:
        return json.loads(self.response_json)


class QueryCache:
    """Semantic search with snapshot-qualified response caching.

    Args:
        repo:         Open Repository instance.
        capabilities: Embedding capability for the query text.
        config:       Ranking settings.
    """

    def __init__(
        self,
        repo: Repository,
        capabilities: AICapabilities,
        config: SearchCfg | None = None,
    ) -> None:
        self._repo = repo
        self._capabilities = capabilities
        self._config = config or SearchCfg()

    def search(self, user_id: str, query: str) -> SearchOutcome:
        """Answer *query* for *user_id*, from cache when the corpus is unchanged.

        Raises:
            InvalidRequest: If the query is blank.
        """
        normalized = normalize_query(query)
        if not normalized:
            raise InvalidRequest("Query cannot be empty")

        snapshot = self._repo.memory_snapshot(user_id)
        cached = self._repo.get_cache_entry(user_id, normalized)
        if cached is not None and cached.memory_snapshot_at == snapshot:
            logger.debug("Cache hit for %r (snapshot %s)", normalized, snapshot)
            return SearchOutcome(response_json=cached.response_json, cache_hit=True)

        logger.debug("Cache miss for %r (snapshot %s)", normalized, snapshot)
        query_embedding = self._capabilities.embed(query.strip())
        sources = rank(query_embedding, self._repo.iter_embedded_memories(user_id), self._config)
        answer = FOUND_ANSWER if sources else EMPTY_ANSWER
        response_json = json.dumps(
            {"answer": answer, "sources": [s.to_dict() for s in sources]}
        )

        self._repo.upsert_cache_entry(
            CacheEntry(
                user_id=user_id,
                normalized_query=normalized,
                original_query=query.strip(),
                response_json=response_json,
                top_similarity=sources[0].similarity if sources else 0.0,
                used_ai=answer != FOUND_ANSWER,
                memory_snapshot_at=snapshot,
            )
        )
        return SearchOutcome(response_json=response_json, cache_hit=False)
