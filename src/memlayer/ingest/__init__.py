"""Memlayer ingest pipeline — history filtering, curation, fetching, memory writer."""

from memlayer.ingest.base import Article, FetchResult, HistoryEntry, ProcessingStats
from memlayer.ingest.blocklist import BlocklistFilter
from memlayer.ingest.canonical import canonicalize, dedupe_key
from memlayer.ingest.dedupe import dedupe

__all__ = [
    "Article",
    "BlocklistFilter",
    "FetchResult",
    "HistoryEntry",
    "ProcessingStats",
    "canonicalize",
    "dedupe",
    "dedupe_key",
]
