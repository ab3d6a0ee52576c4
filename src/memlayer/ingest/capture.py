"""Capture requests from the browser agent — the IPC request handler.

Each request carries a page the user chose to save (its URL plus either the
raw HTML or pre-extracted text). The handler answers with one response
sharing the request's ``id``.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from memlayer.db.repository import Repository
from memlayer.errors import ExtractionFailure, InvalidRequest
from memlayer.ingest.canonical import canonicalize
from memlayer.ingest.memory_writer import MemoryWriter
from memlayer.ingest.web import extract_article

logger = logging.getLogger(__name__)

_EXCERPT_CHARS = 300
_WHITESPACE_RE = re.compile(r"\s+")

_MINUTE = 60.0
_HOUR = 60 * _MINUTE
_DAY = 24 * _HOUR
_WEEK = 7 * _DAY
_MONTH = 30 * _DAY


def _single_line(text: str) -> str:
    """Collapse all whitespace runs, newlines included, to single spaces."""
    return _WHITESPACE_RE.sub(" ", text).strip()


def time_ago(then: str | datetime, now: datetime | None = None) -> str:
    """Render the age of *then* as "just now", "N minutes ago", ... "N months ago"."""
    if isinstance(then, str):
        then = datetime.fromisoformat(then)
    if then.tzinfo is None:
        then = then.replace(tzinfo=timezone.utc)
    now = now or datetime.now(timezone.utc)
    diff = max(0.0, (now - then).total_seconds())

    if diff < _MINUTE:
        return "just now"
    if diff < _HOUR:
        return f"{int(diff // _MINUTE)} minutes ago"
    if diff < _DAY:
        return f"{int(diff // _HOUR)} hours ago"
    if diff < _WEEK:
        return f"{int(diff // _DAY)} days ago"
    if diff < _MONTH:
        return f"{int(diff // _WEEK)} weeks ago"
    return f"{int(diff // _MONTH)} months ago"


@dataclass
class CaptureRequest:
    """Incoming page capture. Only ``id`` is required."""

    id: str
    url: str | None = None
    title: str | None = None
    text: str | None = None
    html: str | None = None
    word_count: int | None = None
    selected_only: bool = False

    @classmethod
    def from_dict(cls, data: Any) -> CaptureRequest:
        """Validate a decoded JSON object.

        Raises:
            InvalidRequest: If *data* is not an object with a string ``id``.
        """
        if not isinstance(data, dict) or not isinstance(data.get("id"), str):
            raise InvalidRequest("request must be an object with a string 'id'")
        word_count = data.get("wordCount")
        return cls(
            id=data["id"],
            url=data.get("url") if isinstance(data.get("url"), str) else None,
            title=data.get("title") if isinstance(data.get("title"), str) else None,
            text=data.get("text") if isinstance(data.get("text"), str) else None,
            html=data.get("html") if isinstance(data.get("html"), str) else None,
            word_count=word_count if isinstance(word_count, int) else None,
            selected_only=bool(data.get("selectedOnly", False)),
        )


class CaptureProcessor:
    """Turn capture requests into stored memories.

    Args:
        repo:    Open Repository instance.
        writer:  Memory writer used to persist the page.
        user_id: Profile the captured pages are stored under.
    """

    def __init__(self, repo: Repository, writer: MemoryWriter, user_id: str) -> None:
        self._repo = repo
        self._writer = writer
        self._user_id = user_id

    def handle(self, request: CaptureRequest) -> dict[str, Any]:
        """Process *request* and return its response object.

        Persistence errors propagate; the IPC layer answers them with
        ``internal_error``.
        """
        canonical_url = canonicalize(request.url) if request.url else None

        if canonical_url and not request.selected_only:
            existing = self._repo.find_by_canonical_url(self._user_id, canonical_url)
            if existing is not None:
                return {
                    "id": request.id,
                    "ok": False,
                    "reason": f"You saved this {time_ago(existing.created_at)}.",
                    "processed": {"savedId": str(existing.id)},
                }

        title = request.title or ""
        content = request.text or ""
        word_count = request.word_count or 0
        byline: str | None = None
        excerpt: str | None = None
        reading_time: int | None = None

        if request.html:
            try:
                article = extract_article(request.html)
            except ExtractionFailure:
                logger.debug("No article extracted from captured HTML for %s", request.url)
            else:
                title = article.title or title
                content = article.content or content
                byline = article.byline
                excerpt = article.excerpt or None
                word_count = article.word_count or word_count
                reading_time = article.reading_time

        if not excerpt:
            excerpt = content[:_EXCERPT_CHARS]

        processed: dict[str, Any] = {
            "url": request.url,
            "canonicalUrl": canonical_url,
            "title": title,
            "content": _single_line(content),
            "wordCount": word_count,
            "excerpt": _single_line(excerpt),
            "savedId": "",
        }
        if byline:
            processed["byline"] = byline
        if reading_time is not None:
            processed["readingTime"] = reading_time

        if request.url and content.strip():
            memory = self._writer.save(
                self._user_id,
                request.url,
                title,
                content,
                "web",
                canonical_url=canonical_url,
            )
            if memory is not None:
                processed["savedId"] = str(memory.id)

        return {"id": request.id, "ok": True, "processed": processed}
