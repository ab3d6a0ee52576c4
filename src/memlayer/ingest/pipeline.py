"""Ingestion orchestrator — browsing history to stored memories.

Stages, in order:
1. filtering   connectivity pre-flight, blocklist, loose dedup
2. curation    external ranker picks a small high-value subset
3. fetching    bounded pool retrieves and extracts each curated URL
4. saving      memory writer summarises, embeds and persists
5. complete    (or error)

:meth:`HistoryIngestor.run` is a lazy generator of :class:`ProgressEvent`;
callers drain it to completion. Run-level failures yield one ``error`` event
and then raise.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator, Sequence
from dataclasses import dataclass, field
from typing import Any

from memlayer.ai.capabilities import AICapabilities
from memlayer.config import MemlayerConfig
from memlayer.db.repository import Repository
from memlayer.errors import (
    ExtractionFailure,
    FetchTimeout,
    NetworkFailure,
    NoConnectivity,
    PersistenceFailure,
)
from memlayer.ingest.base import (
    Article,
    FetchResult,
    HistoryEntry,
    IngestionResult,
    ProcessedEntry,
    ProcessingStats,
)
from memlayer.ingest.blocklist import BlocklistFilter
from memlayer.ingest.canonical import canonicalize, dedupe_key
from memlayer.ingest.capture import time_ago
from memlayer.ingest.curation import Curator
from memlayer.ingest.dedupe import dedupe
from memlayer.ingest.fetch_pool import FetchFn, FetchPool, fetch_single
from memlayer.ingest.memory_writer import MemoryWriter
from memlayer.ingest.web import ArticleFetcher, check_connectivity

logger = logging.getLogger(__name__)

_FETCH_FAILED = (
    "Failed to fetch content from URL. The page might be inaccessible or contain "
    "insufficient content."
)


@dataclass
class ProgressEvent:
    """One progress update. ``result`` is set only on the ``complete`` event."""

    stage: str
    message: str
    progress: float
    current_url: str | None = None
    stats: dict[str, int] = field(default_factory=dict)
    result: IngestionResult | None = None


class HistoryIngestor:
    """Run the history ingestion pipeline against one store.

    Args:
        repo:               Open Repository instance.
        capabilities:       Summarise / embed / rank capability.
        config:             Loaded configuration.
        fetch:              Per-URL fetch callable; defaults to :class:`ArticleFetcher`.
        connectivity_check: Pre-flight callable; defaults to :func:`check_connectivity`.
    """

    def __init__(
        self,
        repo: Repository,
        capabilities: AICapabilities,
        config: MemlayerConfig | None = None,
        fetch: FetchFn | None = None,
        connectivity_check: Callable[[], bool] | None = None,
    ) -> None:
        self._config = config or MemlayerConfig()
        self._repo = repo
        self._fetch = fetch or ArticleFetcher(self._config.fetch).fetch
        self._connectivity_check = connectivity_check or (
            lambda: check_connectivity(self._config.fetch)
        )
        self._blocklist = BlocklistFilter.from_config(self._config.blocklist)
        self._curator = Curator(capabilities, self._config.curation)
        self._writer = MemoryWriter(repo, capabilities, self._config.writer)

    @property
    def writer(self) -> MemoryWriter:
        return self._writer

    def run(self, user_id: str, entries: Sequence[HistoryEntry]) -> Iterator[ProgressEvent]:
        stats = ProcessingStats(total_input=len(entries))

        def event(stage: str, message: str, progress: float, **kwargs: Any) -> ProgressEvent:
            return ProgressEvent(stage, message, progress, stats=stats.to_dict(), **kwargs)

        def finish(processed: list[ProcessedEntry], message: str, saved: int = 0) -> ProgressEvent:
            result = IngestionResult(
                success=True,
                processed=processed,
                stats=stats,
                message=message,
                saved_count=saved,
            )
            return event("complete", message, 100, result=result)

        try:
            yield event("filtering", "Starting browser history processing...", 10)

            yield event("filtering", "Checking internet connection...", 15)
            if not self._connectivity_check():
                raise NoConnectivity(
                    "No internet connection. Please check your network and try again."
                )

            yield event("filtering", "Applying filters...", 20)
            filtered = self._blocklist.apply(entries)
            stats.after_blocklist = len(filtered)
            if not filtered:
                yield finish([], "No processable browsing history found.")
                return

            # Loose key only; full canonicalisation happens at persistence.
            candidates = self._curator.candidates(dedupe(filtered))
            stats.sent_to_curation = len(candidates)

            yield event(
                "curation", f"Analyzing {len(candidates)} URLs for quality content...", 30
            )
            selected = self._curator.curate(candidates)
            stats.curated_count = len(selected)
            if not selected:
                yield finish([], "No quality content found in browsing history.")
                return
            yield event("curation", f"Selected {len(selected)} high-quality URLs", 40)

            yield event("fetching", f"Fetching content from {len(selected)} URLs...", 50)
            by_key = {dedupe_key(e.url): e for e in candidates}
            results: list[FetchResult] = []
            for progress in FetchPool(self._fetch, self._config.fetch.concurrency).run(selected):
                results.append(progress.result)
                if progress.result.success:
                    stats.successfully_fetched += 1
                yield event(
                    "fetching",
                    f"Fetched {progress.completed}/{progress.total} URLs",
                    50 + 45 * progress.completed / progress.total,
                    current_url=progress.result.url,
                )

            processed = [
                _to_processed(result.url, result.content, by_key.get(dedupe_key(result.url)))
                for result in sorted(results, key=lambda r: r.index)
                if result.success and result.content is not None
            ]
            stats.final_count = len(processed)
            if not processed:
                yield finish([], "Could not extract content from selected URLs.")
                return

            yield event("saving", f"Saving {len(processed)} articles to memory...", 95)
            saved = self._writer.write_batch(user_id, processed)

            yield finish(
                processed,
                f"Successfully processed {len(processed)} articles from your browsing history.",
                saved=len(saved),
            )
        except Exception as exc:
            logger.error("History ingestion failed: %s", exc)
            yield event("error", str(exc) or type(exc).__name__, 0)
            raise

    def add_url(self, user_id: str, url: str) -> dict[str, Any]:
        """Fetch and store a single URL the user asked to keep.

        Never raises for per-URL problems; returns ``{"success", "message"}``
        or ``{"success": False, "error"}``.
        """
        if self._blocklist.is_blocked(url):
            return {
                "success": False,
                "error": "This URL is blocked (social media, login pages, "
                "and documentation sites are filtered out).",
            }

        canonical_url = canonicalize(url)
        existing = self._repo.find_by_canonical_url(user_id, canonical_url)
        if existing is not None:
            return {"success": False, "error": f"You saved this {time_ago(existing.created_at)}."}

        try:
            article = fetch_single(self._fetch, url, self._config.fetch.single_url_timeout)
        except FetchTimeout as exc:
            return {"success": False, "error": str(exc)}
        except (NetworkFailure, ExtractionFailure) as exc:
            logger.debug("Single URL fetch failed for %s: %s", url, exc)
            return {"success": False, "error": _FETCH_FAILED}
        except Exception:
            logger.exception("Unexpected error fetching %s", url)
            return {"success": False, "error": _FETCH_FAILED}

        try:
            memory = self._writer.save(
                user_id,
                url,
                article.title or url,
                article.content,
                "manual",
                canonical_url=canonical_url,
            )
        except PersistenceFailure as exc:
            logger.exception("Failed to store %s", url)
            return {"success": False, "error": f"Failed to save memory: {exc}"}

        if memory is None:
            return {"success": False, "error": "You saved this just now."}
        return {"success": True, "message": f"Saved '{memory.title}' to your memories."}


def ingest_history(
    ingestor: HistoryIngestor,
    user_id: str,
    entries: Sequence[HistoryEntry],
    on_progress: Callable[[ProgressEvent], None] | None = None,
) -> IngestionResult:
    """Drain :meth:`HistoryIngestor.run` and return its terminal result."""
    result: IngestionResult | None = None
    for event in ingestor.run(user_id, entries):
        if on_progress is not None:
            on_progress(event)
        if event.result is not None:
            result = event.result
    if result is None:
        raise RuntimeError("ingestion finished without a terminal result")
    return result


def _to_processed(url: str, article: Article, entry: HistoryEntry | None) -> ProcessedEntry:
    return ProcessedEntry(
        url=url,
        title=(entry.title if entry and entry.title else article.title),
        content=article.content,
        content_length=len(article.content),
        word_count=article.word_count,
        visit_count=entry.visit_count if entry else 0,
        visit_time=entry.visit_time if entry else None,
    )
