"""Curation boundary — hands filtered candidates to the external ranker."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from memlayer.ai.capabilities import AICapabilities
from memlayer.config import CurationCfg
from memlayer.errors import CurationUnavailable
from memlayer.ingest.base import HistoryEntry
from memlayer.ingest.canonical import dedupe_key

logger = logging.getLogger(__name__)


class Curator:
    """Reduce a large candidate set to a small ordered URL subset.

    At most ``config.max_candidates`` entries are sent. The ranker's reply is
    mapped back onto the submitted candidates by the loose dedup key, so the
    returned URLs are always ones the history actually contains; unknown or
    repeated URLs are dropped and the list is capped at ``config.target_size``.

    There is no fallback: if the capability fails, :class:`CurationUnavailable`
    is raised and the ingestion run ends.
    """

    def __init__(self, capabilities: AICapabilities, config: CurationCfg | None = None) -> None:
        self._capabilities = capabilities
        self._config = config or CurationCfg()

    def candidates(self, entries: Sequence[HistoryEntry]) -> list[HistoryEntry]:
        """The capped slice of *entries* that will be submitted."""
        return list(entries[: self._config.max_candidates])

    def curate(self, entries: Sequence[HistoryEntry]) -> list[str]:
        submitted = self.candidates(entries)
        if not submitted:
            return []

        try:
            ranked = self._capabilities.rank_top_urls(submitted, self._config.target_size)
        except Exception as exc:
            logger.error("URL ranking failed: %s", exc)
            raise CurationUnavailable("Failed to fetch URL data") from exc

        by_key = {dedupe_key(e.url): e.url for e in submitted}
        selected: list[str] = []
        seen: set[str] = set()
        for url in ranked:
            key = dedupe_key(url)
            if key in seen or key not in by_key:
                continue
            seen.add(key)
            selected.append(by_key[key])
            if len(selected) >= self._config.target_size:
                break
        return selected
