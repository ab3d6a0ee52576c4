"""Tests for the blocklist filter."""

from __future__ import annotations

import pytest

from memlayer.config import BlocklistCfg
from memlayer.ingest.base import HistoryEntry
from memlayer.ingest.blocklist import BlocklistFilter


def _entries(*urls: str) -> list[HistoryEntry]:
    return [HistoryEntry(url=u, title=u) for u in urls]


@pytest.mark.parametrize(
    "url",
    [
        "https://www.youtube.com/watch?v=abc",
        "https://TWITTER.com/someone",
        "https://mail.google.com/mail/u/0",
        "https://github.com/org/repo",
    ],
)
def test_blocked_domains(url):
    assert BlocklistFilter().is_blocked(url)


@pytest.mark.parametrize(
    "url",
    [
        "https://example.com/login",
        "https://example.com/api/v1/items",
        "https://example.com/graphql",
        "https://example.com/docs/intro",
        "https://example.com/report.PDF",
        "https://example.com/photo.jpg",
        "http://localhost:3000/page",
        "http://192.168.1.10/admin",
        "file:///home/me/notes.html",
        "https://example.com/page?redirect=/home",
        "https://project.readthedocs.io/en/latest",
    ],
)
def test_blocked_patterns(url):
    assert BlocklistFilter().is_blocked(url)


@pytest.mark.parametrize(
    "url",
    [
        "https://example.com/article-a",
        "https://blog.example.org/2024/05/some-essay",
        "https://news.site/story?id=42",
    ],
)
def test_admitted(url):
    assert not BlocklistFilter().is_blocked(url)


def test_apply_preserves_order_and_identity():
    entries = _entries(
        "https://example.com/one",
        "https://www.youtube.com/watch?v=1",
        "https://example.com/two",
        "https://example.com/login",
        "https://example.com/three",
    )
    kept = BlocklistFilter().apply(entries)
    assert kept == [entries[0], entries[2], entries[4]]
    assert kept[0] is entries[0]


def test_from_config_adds_extras():
    flt = BlocklistFilter.from_config(
        BlocklistCfg(extra_domains=["intranet.corp"], extra_patterns=[r"/private/"])
    )
    assert flt.is_blocked("https://wiki.intranet.corp/page")
    assert flt.is_blocked("https://example.com/private/notes")
    assert flt.is_blocked("https://youtube.com/watch")
    assert not flt.is_blocked("https://example.com/public/notes")


def test_custom_tables_replace_defaults():
    flt = BlocklistFilter(domains=["only.com"], patterns=[])
    assert flt.is_blocked("https://ONLY.com/x")
    assert not flt.is_blocked("https://youtube.com/watch")
