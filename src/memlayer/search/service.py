"""Query interface consumed by UI layers.

Every call returns an envelope: ``{"success": True, "data": ...}`` or
``{"success": False, "error": message}``.
"""

from __future__ import annotations

import logging
from typing import Any

from memlayer.ai.capabilities import AICapabilities
from memlayer.config import SearchCfg
from memlayer.db.repository import Repository
from memlayer.errors import MemlayerError
from memlayer.search.cache import QueryCache

logger = logging.getLogger(__name__)


def _ok(data: Any) -> dict[str, Any]:
    return {"success": True, "data": data}


def _fail(message: str) -> dict[str, Any]:
    return {"success": False, "error": message}


class QueryService:
    """Semantic search, recent searches and corpus statistics for one store.

    *capabilities* is only needed for :meth:`semantic_search`.
    """

    def __init__(
        self,
        repo: Repository,
        capabilities: AICapabilities | None = None,
        config: SearchCfg | None = None,
    ) -> None:
        self._repo = repo
        self._config = config or SearchCfg()
        self._cache = (
            QueryCache(repo, capabilities, self._config) if capabilities is not None else None
        )

    def semantic_search(self, user_id: str, query: str) -> dict[str, Any]:
        if self._cache is None:
            return _fail("Semantic search needs an embedding capability")
        try:
            outcome = self._cache.search(user_id, query)
        except MemlayerError as exc:
            return _fail(str(exc))
        except Exception as exc:
            logger.exception("Semantic search failed")
            return _fail(f"Search failed: {exc}")
        return _ok(outcome.response)

    def get_recent_searches(self, user_id: str) -> dict[str, Any]:
        """Newest-first distinct cached queries, at most ``recent_limit``."""
        try:
            rows = self._repo.list_recent_searches(user_id, self._config.recent_limit)
        except Exception as exc:
            logger.exception("Listing recent searches failed")
            return _fail(f"Failed to load recent searches: {exc}")
        return _ok(rows)

    def get_stats(self, user_id: str) -> dict[str, Any]:
        try:
            snapshot = self._repo.memory_snapshot(user_id)
            total = self._repo.count_memories(user_id)
            data = {
                "totalMemories": total,
                "memoriesBySource": self._repo.count_memories_by_source(user_id),
                "cachedSearches": self._repo.count_cached_searches(user_id),
                "lastMemoryAt": snapshot if total else None,
                "embeddingDimensions": self._repo.embedding_dimensions(user_id),
            }
        except Exception as exc:
            logger.exception("Loading stats failed")
            return _fail(f"Failed to load stats: {exc}")
        return _ok(data)
