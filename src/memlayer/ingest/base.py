"""Value types shared by the ingestion stages."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any


@dataclass(frozen=True)
class HistoryEntry:
    """One browsing-history row as supplied by the external history source."""

    url: str
    title: str = ""
    visit_count: int = 0
    visit_time: datetime | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> HistoryEntry:
        """Build from a JSON object using either camelCase or snake_case keys.

        ``visitTime`` may be an ISO string or epoch milliseconds.
        """
        raw_time = data.get("visitTime", data.get("visit_time"))
        return cls(
            url=str(data["url"]),
            title=str(data.get("title") or ""),
            visit_count=int(data.get("visitCount", data.get("visit_count", 0)) or 0),
            visit_time=_parse_visit_time(raw_time),
        )


def _parse_visit_time(value: Any) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    text = str(value)
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return datetime.fromisoformat(text)


@dataclass
class Article:
    """Readable representation of a fetched page."""

    title: str
    content: str
    word_count: int
    excerpt: str = ""
    byline: str | None = None

    @property
    def reading_time(self) -> int:
        """Minutes at 200 words per minute, rounded up."""
        return -(-self.word_count // 200)


@dataclass
class FetchResult:
    """Outcome of one fetch task; ``index`` is the submission position."""

    index: int
    url: str
    success: bool
    content: Article | None = None
    title: str | None = None
    error: str | None = None


@dataclass
class ProcessedEntry:
    """A successfully fetched history entry, ready for the memory writer."""

    url: str
    title: str
    content: str
    content_length: int
    word_count: int
    visit_count: int
    visit_time: datetime | None = None


@dataclass
class ProcessingStats:
    """Counters for one ingestion run. Only ever increase during the run."""

    total_input: int = 0
    after_blocklist: int = 0
    sent_to_curation: int = 0
    curated_count: int = 0
    successfully_fetched: int = 0
    final_count: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "totalInput": self.total_input,
            "afterBlocklist": self.after_blocklist,
            "sentToCuration": self.sent_to_curation,
            "curatedCount": self.curated_count,
            "successfullyFetched": self.successfully_fetched,
            "finalCount": self.final_count,
        }


@dataclass
class IngestionResult:
    """Terminal outcome of a successful ingestion run."""

    success: bool
    processed: list[ProcessedEntry] = field(default_factory=list)
    stats: ProcessingStats = field(default_factory=ProcessingStats)
    message: str = ""
    saved_count: int = 0
