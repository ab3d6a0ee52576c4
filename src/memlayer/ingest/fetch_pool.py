"""Bounded fetch pool — concurrent retrieval with per-task isolation.

A fixed-size thread pool runs at most ``concurrency`` fetch tasks at once.
The dispatcher keeps a cursor over the URL list: whenever a task settles it
records the result, reports progress and immediately starts the next URL.
Every submitted URL yields exactly one :class:`FetchResult`, success or not;
the pool never aborts because one task failed.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator, Sequence
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from concurrent.futures import TimeoutError as FuturesTimeoutError
from dataclasses import dataclass

from memlayer.errors import FetchTimeout
from memlayer.ingest.base import Article, FetchResult

logger = logging.getLogger(__name__)

FetchFn = Callable[[str], Article]


@dataclass(frozen=True)
class FetchProgress:
    """One settled task: ``completed`` of ``total`` results are now known."""

    completed: int
    total: int
    result: FetchResult


def _run_task(fetch: FetchFn, index: int, url: str) -> FetchResult:
    """Run one fetch; any error becomes a failed result for this URL only."""
    try:
        article = fetch(url)
    except Exception as exc:
        logger.debug("Fetch failed for %s: %s", url, exc)
        return FetchResult(index=index, url=url, success=False, error=str(exc) or type(exc).__name__)
    return FetchResult(index=index, url=url, success=True, content=article, title=article.title)


class FetchPool:
    """Fetch many URLs with fixed maximum concurrency.

    Args:
        fetch: Callable returning an :class:`Article` or raising on failure.
        concurrency: Maximum number of simultaneously active tasks.
    """

    def __init__(self, fetch: FetchFn, concurrency: int = 5) -> None:
        if concurrency < 1:
            raise ValueError("concurrency must be >= 1")
        self._fetch = fetch
        self._concurrency = concurrency

    def run(self, urls: Sequence[str]) -> Iterator[FetchProgress]:
        """Yield one :class:`FetchProgress` per URL as tasks settle.

        ``completed`` increases by one per event and the last event has
        ``completed == total``. Results may arrive out of submission order;
        ``result.index`` is the URL's position in *urls*. The executor is
        joined before the iterator finishes.
        """
        total = len(urls)
        if total == 0:
            return

        cursor = 0
        completed = 0
        active: set[Future[FetchResult]] = set()

        with ThreadPoolExecutor(
            max_workers=self._concurrency, thread_name_prefix="memlayer-fetch"
        ) as executor:

            def dispatch() -> None:
                nonlocal cursor
                while len(active) < self._concurrency and cursor < total:
                    active.add(executor.submit(_run_task, self._fetch, cursor, urls[cursor]))
                    cursor += 1

            dispatch()
            while active:
                done, _ = wait(active, return_when=FIRST_COMPLETED)
                for future in done:
                    active.remove(future)
                    result = future.result()
                    completed += 1
                    yield FetchProgress(completed=completed, total=total, result=result)
                    dispatch()

    def fetch_all(
        self,
        urls: Sequence[str],
        on_progress: Callable[[int, int], None] | None = None,
    ) -> list[FetchResult]:
        """Run every URL to completion and return results in submission order."""
        results: list[FetchResult | None] = [None] * len(urls)
        for event in self.run(urls):
            results[event.result.index] = event.result
            if on_progress is not None:
                on_progress(event.completed, event.total)
        return [r for r in results if r is not None]


def fetch_single(fetch: FetchFn, url: str, timeout: float = 30.0) -> Article:
    """Fetch one URL under a hard wall-clock *timeout*.

    On timeout the in-flight task is abandoned (its thread is left to finish
    on its own) and :class:`FetchTimeout` is raised. Fetch errors propagate
    unchanged.
    """
    executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="memlayer-fetch-single")
    future = executor.submit(fetch, url)
    try:
        return future.result(timeout=timeout)
    except FuturesTimeoutError as exc:
        future.cancel()
        raise FetchTimeout("Request timeout - the page took too long to load") from exc
    finally:
        executor.shutdown(wait=False)
