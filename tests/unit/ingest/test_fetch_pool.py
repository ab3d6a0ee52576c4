"""Tests for the bounded fetch pool and the single-URL timed fetch."""

from __future__ import annotations

import threading
import time

import pytest

from memlayer.errors import FetchTimeout, NetworkFailure
from memlayer.ingest.base import Article
from memlayer.ingest.fetch_pool import FetchPool, fetch_single


def _article(url: str) -> Article:
    return Article(title=f"title {url}", content=f"content of {url}", word_count=3)


class _ConcurrencyProbe:
    """Fetch callable recording the peak number of simultaneous calls."""

    def __init__(self, delay: float = 0.02, fail: set[str] | None = None) -> None:
        self.delay = delay
        self.fail = fail or set()
        self.active = 0
        self.peak = 0
        self._lock = threading.Lock()

    def __call__(self, url: str) -> Article:
        with self._lock:
            self.active += 1
            self.peak = max(self.peak, self.active)
        try:
            time.sleep(self.delay)
            if url in self.fail:
                raise NetworkFailure(f"boom {url}")
            return _article(url)
        finally:
            with self._lock:
                self.active -= 1


def _urls(n: int) -> list[str]:
    return [f"https://example.com/{i}" for i in range(n)]


# ------------------------------------------------------------------
# FetchPool.run
# ------------------------------------------------------------------


def test_never_exceeds_concurrency_cap():
    probe = _ConcurrencyProbe()
    list(FetchPool(probe, concurrency=3).run(_urls(12)))
    assert 1 <= probe.peak <= 3


def test_exactly_one_result_per_url():
    events = list(FetchPool(_ConcurrencyProbe(), concurrency=4).run(_urls(9)))
    assert len(events) == 9
    assert sorted(e.result.index for e in events) == list(range(9))


def test_progress_strictly_increasing_and_reaches_total_once():
    events = list(FetchPool(_ConcurrencyProbe(), concurrency=2).run(_urls(5)))
    completed = [e.completed for e in events]
    assert completed == [1, 2, 3, 4, 5]
    assert all(e.total == 5 for e in events)


def test_failure_is_isolated():
    urls = _urls(5)
    probe = _ConcurrencyProbe(fail={urls[2]})
    results = FetchPool(probe, concurrency=2).fetch_all(urls)

    assert len(results) == 5
    assert [r.success for r in results] == [True, True, False, True, True]
    assert "boom" in results[2].error
    assert results[2].content is None
    assert results[0].title == f"title {urls[0]}"


def test_unexpected_exception_is_isolated():
    def fetch(url: str) -> Article:
        if url.endswith("/1"):
            raise RuntimeError("parser crashed")
        return _article(url)

    results = FetchPool(fetch, concurrency=2).fetch_all(_urls(3))
    assert [r.success for r in results] == [True, False, True]


def test_fetch_all_results_in_submission_order():
    delays = {"https://example.com/0": 0.05, "https://example.com/1": 0.0}

    def fetch(url: str) -> Article:
        time.sleep(delays.get(url, 0.01))
        return _article(url)

    results = FetchPool(fetch, concurrency=3).fetch_all(_urls(3))
    assert [r.index for r in results] == [0, 1, 2]
    assert [r.url for r in results] == _urls(3)


def test_fetch_all_reports_progress():
    calls: list[tuple[int, int]] = []
    FetchPool(_ConcurrencyProbe(delay=0), concurrency=2).fetch_all(
        _urls(3), on_progress=lambda c, t: calls.append((c, t))
    )
    assert calls == [(1, 3), (2, 3), (3, 3)]


def test_empty_url_list():
    assert list(FetchPool(_ConcurrencyProbe()).run([])) == []


def test_invalid_concurrency():
    with pytest.raises(ValueError):
        FetchPool(_ConcurrencyProbe(), concurrency=0)


# ------------------------------------------------------------------
# fetch_single
# ------------------------------------------------------------------


def test_fetch_single_returns_article():
    article = fetch_single(_article, "https://example.com/x", timeout=1.0)
    assert article.title == "title https://example.com/x"


def test_fetch_single_times_out():
    release = threading.Event()

    def slow(url: str) -> Article:
        release.wait(2.0)
        return _article(url)

    started = time.monotonic()
    with pytest.raises(FetchTimeout, match="took too long"):
        fetch_single(slow, "https://example.com/slow", timeout=0.05)
    assert time.monotonic() - started < 1.0
    release.set()


def test_fetch_single_propagates_fetch_error():
    def broken(url: str) -> Article:
        raise NetworkFailure("dns failed")

    with pytest.raises(NetworkFailure, match="dns failed"):
        fetch_single(broken, "https://example.com/x", timeout=1.0)
