"""
Fan-out/join over a fetch capability.

All K fetches are started before any is awaited (asyncio.gather), so a
batch costs roughly the slowest single fetch, not the sum. Results come
back in target order regardless of completion order.

Only FetchError is recovered here. Anything else is a bug and propagates.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Sequence

from ..errors import FetchError
from ..types import Batch, FetchResult, Quote

logger = logging.getLogger(__name__)

Fetcher = Callable[[str], Awaitable[Any]]


async def _capture(fetch: Fetcher, target: str) -> FetchResult:
    try:
        return FetchResult(value=await fetch(target))
    except FetchError as e:
        return FetchResult(error=e)


async def fan_out(fetch: Fetcher, targets: Sequence[str]) -> list[FetchResult]:
    """
    Run fetch(target) for every target concurrently; one result per target, same order.

    If one fetch raises something other than FetchError, the remaining
    fetches are cancelled and awaited before the error propagates.
    """
    tasks = [asyncio.ensure_future(_capture(fetch, t)) for t in targets]
    try:
        return list(await asyncio.gather(*tasks))
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


async def fetch_all(fetch: Fetcher, targets: Sequence[str]) -> Batch:
    """
    All-or-nothing watchlist fetch.

    Every fetch runs to completion. If any failed, the batch is a failure
    carrying the first failure in target order; otherwise it holds one
    Quote per target in target order.
    """
    results = await fan_out(fetch, targets)

    quotes: list[Quote] = []
    for target, result in zip(targets, results):
        if not result.ok:
            failed = sum(1 for r in results if not r.ok)
            logger.warning("Batch of %d failed (%d errors), first %s: %s",
                           len(targets), failed, target, result.error)
            return Batch.failure(result.error)
        quotes.append(Quote(target, result.value))
    return Batch.success(quotes)


async def fetch_one(fetch: Fetcher, target: str) -> FetchResult:
    """Single-target fetch: the value, or the FetchError that prevented it."""
    result = await _capture(fetch, target)
    if not result.ok:
        logger.warning("Fetch %s failed: %s", target, result.error)
    return result


class Aggregator:
    """
    Stateless binding of the aggregation policies to a Kraken client.

    Watchlist prices use the all-or-nothing batch; the order book uses a
    single-target fetch.
    """

    __slots__ = ('client',)

    def __init__(self, client: Any) -> None:
        self.client = client

    async def fetch_prices(self, symbols: Sequence[str]) -> Batch:
        return await fetch_all(self.client.fetch_price, symbols)

    async def fetch_book(self, pair: str) -> FetchResult:
        return await fetch_one(self.client.fetch_depth, pair)
