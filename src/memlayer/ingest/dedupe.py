"""History deduplication by the loose URL key."""

from __future__ import annotations

from collections.abc import Iterable

from memlayer.ingest.base import HistoryEntry
from memlayer.ingest.canonical import dedupe_key


def dedupe(entries: Iterable[HistoryEntry]) -> list[HistoryEntry]:
    """Collapse entries sharing a :func:`dedupe_key`, keeping the most visited.

    Ties keep the first-seen entry. Output follows the first occurrence of
    each group. Grouping deliberately uses the loose key rather than
    :func:`~memlayer.ingest.canonical.canonicalize`; see that module.
    """
    best: dict[str, HistoryEntry] = {}
    for entry in entries:
        key = dedupe_key(entry.url)
        current = best.get(key)
        if current is None or entry.visit_count > current.visit_count:
            best[key] = entry
    return list(best.values())
