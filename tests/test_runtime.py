from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone

import pytest

from krader.config import Settings
from krader.engine.aggregator import Aggregator
from krader.engine.runtime import Runtime, build_scheduler
from krader.engine.state import AppState, FetchPrices, RefreshRequested
from krader.errors import NumericParseError
from krader.types import BookLevel, BookSnapshot

T0 = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)
SETTINGS = Settings(symbols=("A", "B"), pair="P")


class _FakeClient:
    def __init__(self, prices: dict[str, object], book: BookSnapshot | Exception | None = None) -> None:
        self.prices = prices
        self.book = book if book is not None else BookSnapshot("P", [], [])
        self.price_calls: list[str] = []

    async def fetch_price(self, symbol: str) -> float:
        self.price_calls.append(symbol)
        await asyncio.sleep(0)
        outcome = self.prices[symbol]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    async def fetch_depth(self, pair: str) -> BookSnapshot:
        await asyncio.sleep(0)
        if isinstance(self.book, Exception):
            raise self.book
        return self.book


class _GatedClient(_FakeClient):
    """Each price call waits on its own gate, so tests control completion order."""

    def __init__(self) -> None:
        super().__init__({})
        self.gates: list[asyncio.Event] = []

    async def fetch_price(self, symbol: str) -> float:
        gate = asyncio.Event()
        self.gates.append(gate)
        value = float(len(self.gates))
        await gate.wait()
        return value


def _runtime(client: _FakeClient) -> Runtime:
    state = AppState(SETTINGS, clock=lambda: T0)
    return Runtime(state, Aggregator(client))


@pytest.mark.asyncio
async def test_refresh_fetches_and_applies_both_streams():
    book = BookSnapshot("P", [BookLevel(100.5, 2.0)], [BookLevel(101.0, 1.0)])
    runtime = _runtime(_FakeClient({"A": 10.0, "B": 20.0}, book))

    runtime.dispatch(RefreshRequested())
    await runtime.drain()

    items = runtime.state.watch.items
    assert [(i.symbol, i.price, i.last_update, i.error) for i in items] == [
        ("A", 10.0, T0, None),
        ("B", 20.0, T0, None),
    ]
    assert runtime.state.book.bids == [BookLevel(100.5, 2.0)]
    assert runtime.pending == 0


@pytest.mark.asyncio
async def test_one_failed_symbol_marks_all_items_and_keeps_prices():
    client = _FakeClient({"A": 10.0, "B": 20.0})
    runtime = _runtime(client)
    runtime.dispatch(FetchPrices())
    await runtime.drain()

    client.prices["B"] = NumericParseError("oops")
    runtime.dispatch(FetchPrices())
    await runtime.drain()

    items = runtime.state.watch.items
    assert [i.price for i in items] == [10.0, 20.0]
    assert {i.error for i in items} == {str(NumericParseError("oops"))}


@pytest.mark.asyncio
async def test_listeners_see_every_dispatch():
    runtime = _runtime(_FakeClient({"A": 1.0, "B": 2.0}))
    seen: list[int] = []
    runtime.subscribe(lambda state: seen.append(state.price_cycles.applied))

    runtime.dispatch(FetchPrices())
    await runtime.drain()

    # Once for the trigger, once for the result
    assert seen == [0, 1]


@pytest.mark.asyncio
async def test_failing_listener_is_logged_and_does_not_block_others(caplog):
    runtime = _runtime(_FakeClient({"A": 1.0, "B": 2.0}))
    seen: list[int] = []

    def broken(state: AppState) -> None:
        raise RuntimeError("listener blew up")

    runtime.subscribe(broken)
    runtime.subscribe(lambda state: seen.append(state.price_cycles.applied))

    with caplog.at_level(logging.ERROR, logger="krader.engine.runtime"):
        runtime.dispatch(FetchPrices())
        await runtime.drain()

    assert seen == [0, 1]
    assert [i.price for i in runtime.state.watch.items] == [1.0, 2.0]
    assert "failed on PricesFetched" in caplog.text
    assert not any(r.getMessage().startswith("Effect") for r in caplog.records)


@pytest.mark.asyncio
async def test_overlapping_cycles_apply_newest_and_drop_late_result():
    client = _GatedClient()
    runtime = Runtime(AppState(Settings(symbols=("A",), pair="P")), Aggregator(client))

    runtime.dispatch(FetchPrices())
    runtime.dispatch(FetchPrices())
    await asyncio.sleep(0.01)
    assert len(client.gates) == 2

    # Cycle 2 completes first, then the slow cycle 1
    client.gates[1].set()
    await asyncio.sleep(0.01)
    client.gates[0].set()
    await runtime.drain()

    assert runtime.state.watch.items[0].price == 2.0
    assert runtime.state.price_cycles.applied == 2


@pytest.mark.asyncio
async def test_unexpected_effect_error_is_logged_not_raised(caplog):
    runtime = _runtime(_FakeClient({"A": RuntimeError("bug"), "B": 1.0}))

    with caplog.at_level(logging.ERROR, logger="krader.engine.runtime"):
        runtime.dispatch(FetchPrices())
        await runtime.drain()

    assert "failed" in caplog.text
    assert runtime.state.watch.items[0].price is None


@pytest.mark.asyncio
async def test_start_and_stop_with_scheduler():
    client = _FakeClient({"A": 1.0, "B": 2.0})
    settings = Settings(symbols=("A", "B"), pair="P", price_interval=0.01, book_interval=0.01,
                        clock_interval=0.01)
    state, effects = AppState.initial(settings)
    runtime = Runtime(state, Aggregator(client), build_scheduler(settings))

    runtime.start(effects)
    await asyncio.sleep(0.05)
    await runtime.stop()

    assert len(client.price_calls) >= 4
    assert runtime.state.watch.items[0].price == 1.0
    assert runtime.pending == 0
    assert not runtime.scheduler.running
