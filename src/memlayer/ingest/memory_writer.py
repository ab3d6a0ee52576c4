"""Memory store writer — clean, summarise, embed and persist fetched pages.

For each page:
1. Collapse whitespace and cut trailing boilerplate (copyright, newsletter,
   social and paywall prompts) from its first occurrence onward.
2. Truncate to ``max_processing_length`` characters.
3. Summarise the truncated text via the external capability.
4. Embed the *summary* (not the raw content).
5. Insert one row; the (user_id, canonical_url) unique index turns a
   duplicate into a no-op.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable

import sqlite_vec

from memlayer.ai.capabilities import AICapabilities
from memlayer.config import WriterCfg
from memlayer.db.models import Memory
from memlayer.db.repository import Repository
from memlayer.errors import PersistenceFailure
from memlayer.ingest.base import ProcessedEntry
from memlayer.ingest.canonical import canonicalize

logger = logging.getLogger(__name__)

_WHITESPACE_RE = re.compile(r"\s+")
_BOILERPLATE_RES: tuple[re.Pattern[str], ...] = (
    re.compile(r"Copyright.*$", re.IGNORECASE),
    re.compile(r"All rights reserved.*$", re.IGNORECASE),
    re.compile(r"subscribe to our newsletter.*", re.IGNORECASE),
    re.compile(r"follow us on.*$", re.IGNORECASE),
    re.compile(r"sign up to read more.*", re.IGNORECASE),
)


def clean_content(text: str) -> str:
    """Collapse whitespace and strip trailing boilerplate."""
    cleaned = _WHITESPACE_RE.sub(" ", text)
    for pattern in _BOILERPLATE_RES:
        cleaned = pattern.sub("", cleaned, count=1)
    return cleaned.strip()


def trim_for_processing(text: str, max_len: int = 20_000) -> str:
    return text if len(text) <= max_len else text[:max_len]


class MemoryWriter:
    """Persist pages as memories through *repo*.

    Args:
        repo:         Open Repository instance.
        capabilities: Summarisation / embedding capability.
        config:       Writer limits.
    """

    def __init__(
        self,
        repo: Repository,
        capabilities: AICapabilities,
        config: WriterCfg | None = None,
    ) -> None:
        self._repo = repo
        self._capabilities = capabilities
        self._config = config or WriterCfg()

    def save(
        self,
        user_id: str,
        url: str,
        title: str,
        content: str,
        source_type: str,
        canonical_url: str | None = None,
    ) -> Memory | None:
        """Summarise, embed and store one page.

        Returns the stored Memory, or None if the canonical URL was already
        stored for *user_id*.

        Raises:
            PersistenceFailure: If summarisation, embedding or the insert fails.
        """
        canonical = canonical_url or canonicalize(url)
        if self._repo.find_by_canonical_url(user_id, canonical) is not None:
            logger.debug("Already stored, skipping: %s", canonical)
            return None

        try:
            trimmed = trim_for_processing(
                clean_content(content), self._config.max_processing_length
            )
            summary = self._capabilities.summarize(trimmed)
            embedding = self._capabilities.embed(summary)
            stored = self._repo.add_memory(
                Memory(
                    user_id=user_id,
                    url=url,
                    canonical_url=canonical,
                    title=title,
                    content=content,
                    summary=summary,
                    embedding=sqlite_vec.serialize_float32(embedding) if embedding else None,
                    source_type=source_type,
                )
            )
        except Exception as exc:
            raise PersistenceFailure(f"Failed to save {url}: {exc}") from exc

        if stored is None:
            logger.debug("Duplicate insert ignored: %s", canonical)
        return stored

    def write_batch(
        self,
        user_id: str,
        entries: Iterable[ProcessedEntry],
        source_type: str = "browser-history",
    ) -> list[Memory]:
        """Save each entry in turn. Per-item failures are logged and skipped."""
        saved: list[Memory] = []
        for entry in entries:
            try:
                memory = self.save(user_id, entry.url, entry.title, entry.content, source_type)
            except PersistenceFailure:
                logger.exception("Failed saving %s", entry.url)
                continue
            if memory is not None:
                saved.append(memory)
        return saved
