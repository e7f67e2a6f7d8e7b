from __future__ import annotations

import asyncio
import time

import pytest

from krader.engine.aggregator import Aggregator, fan_out, fetch_all, fetch_one
from krader.errors import MissingFieldError, TransportError
from krader.types import BookSnapshot, Quote


class _FakeFetcher:
    """Per-target delay plus either a value or an exception to raise."""

    def __init__(self, outcomes: dict[str, tuple[float, object]]) -> None:
        self._outcomes = outcomes
        self.started: list[str] = []
        self.finished: list[str] = []

    async def __call__(self, target: str) -> float:
        self.started.append(target)
        delay, outcome = self._outcomes[target]
        await asyncio.sleep(delay)
        self.finished.append(target)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


@pytest.mark.asyncio
async def test_fetch_all_success_keeps_target_order_not_completion_order():
    fetch = _FakeFetcher({"A": (0.03, 10.0), "B": (0.0, 20.0), "C": (0.01, 30.0)})

    batch = await fetch_all(fetch, ["A", "B", "C"])

    assert fetch.finished == ["B", "C", "A"]
    assert batch.ok
    assert batch.quotes == [Quote("A", 10.0), Quote("B", 20.0), Quote("C", 30.0)]


@pytest.mark.asyncio
async def test_fetch_all_runs_fetches_concurrently():
    fetch = _FakeFetcher({t: (0.1, 1.0) for t in ("A", "B", "C", "D")})

    start = time.perf_counter()
    await fetch_all(fetch, ["A", "B", "C", "D"])
    elapsed = time.perf_counter() - start

    # Sequential would take ~0.4s
    assert elapsed < 0.3
    assert fetch.started == ["A", "B", "C", "D"]


@pytest.mark.asyncio
async def test_fetch_all_one_failure_fails_the_whole_batch():
    err = TransportError("B down")
    fetch = _FakeFetcher({"A": (0.0, 10.0), "B": (0.0, err)})

    batch = await fetch_all(fetch, ["A", "B"])

    assert not batch.ok
    assert batch.error is err
    assert batch.quotes == []


@pytest.mark.asyncio
async def test_fetch_all_reports_first_failure_in_target_order():
    first = MissingFieldError()
    second = TransportError("later in list, finished first")
    fetch = _FakeFetcher({"A": (0.0, 1.0), "B": (0.05, first), "C": (0.0, second)})

    batch = await fetch_all(fetch, ["A", "B", "C"])

    assert batch.error is first
    # Every fetch still ran to completion
    assert sorted(fetch.finished) == ["A", "B", "C"]


@pytest.mark.asyncio
async def test_fetch_all_empty_targets_is_empty_success():
    batch = await fetch_all(_FakeFetcher({}), [])
    assert batch.ok and batch.quotes == []


@pytest.mark.asyncio
async def test_unexpected_exception_propagates():
    fetch = _FakeFetcher({"A": (0.0, KeyError("bug"))})
    with pytest.raises(KeyError):
        await fetch_all(fetch, ["A"])


@pytest.mark.asyncio
async def test_unexpected_exception_cancels_sibling_fetches():
    fetch = _FakeFetcher({"A": (0.0, KeyError("bug")), "B": (0.05, 2.0)})

    with pytest.raises(KeyError):
        await fetch_all(fetch, ["A", "B"])
    await asyncio.sleep(0.08)

    assert fetch.started == ["A", "B"]
    assert "B" not in fetch.finished


@pytest.mark.asyncio
async def test_fan_out_returns_one_result_per_target():
    fetch = _FakeFetcher({"A": (0.0, 1.0), "B": (0.0, TransportError("x"))})
    results = await fan_out(fetch, ["A", "B"])
    assert [r.ok for r in results] == [True, False]
    assert results[0].value == 1.0


@pytest.mark.asyncio
async def test_fetch_one_wraps_value_or_error():
    ok = await fetch_one(_FakeFetcher({"P": (0.0, 5.0)}), "P")
    assert ok.ok and ok.value == 5.0

    err = TransportError("nope")
    failed = await fetch_one(_FakeFetcher({"P": (0.0, err)}), "P")
    assert not failed.ok and failed.error is err


class _FakeClient:
    async def fetch_price(self, symbol: str) -> float:
        return {"A": 1.0, "B": 2.0}[symbol]

    async def fetch_depth(self, pair: str) -> BookSnapshot:
        return BookSnapshot(pair, [], [])


@pytest.mark.asyncio
async def test_aggregator_binds_policies_to_client():
    aggregator = Aggregator(_FakeClient())

    batch = await aggregator.fetch_prices(["B", "A"])
    book = await aggregator.fetch_book("P")

    assert batch.quotes == [Quote("B", 2.0), Quote("A", 1.0)]
    assert book.value == BookSnapshot("P", [], [])
