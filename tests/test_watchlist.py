from __future__ import annotations

from datetime import datetime, timezone

from krader.datafeed.watchlist import WatchItem, WatchState
from krader.errors import MissingFieldError, TransportError
from krader.types import Batch, Quote

T0 = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)
T1 = datetime(2024, 5, 1, 12, 0, 5, tzinfo=timezone.utc)


class _Clock:
    def __init__(self, *stamps: datetime) -> None:
        self._stamps = list(stamps)

    def __call__(self) -> datetime:
        return self._stamps.pop(0)


def test_new_watchlist_items_start_empty():
    state = WatchState(["A", "B"])
    assert state.items == [WatchItem("A"), WatchItem("B")]
    assert state.symbols == ["A", "B"]


def test_successful_batch_sets_price_and_timestamp_together():
    state = WatchState(["A", "B"], clock=_Clock(T0))

    state.apply(Batch.success([Quote("A", 10.0), Quote("B", 20.0)]))

    assert state.items == [WatchItem("A", 10.0, T0), WatchItem("B", 20.0, T0)]
    for item in state.items:
        assert item.error is None
        assert item.price is not None and item.last_update is not None


def test_successful_batch_replaces_item_set():
    state = WatchState(["A", "B", "C"], clock=_Clock(T0))
    state.items[2].error = "stale"

    state.apply(Batch.success([Quote("B", 2.0), Quote("A", 1.0)]))

    assert state.symbols == ["B", "A"]


def test_failed_batch_broadcasts_error_and_keeps_prices():
    state = WatchState(["A", "B"], clock=_Clock(T0))
    state.apply(Batch.success([Quote("A", 10.0), Quote("B", 20.0)]))

    state.apply(Batch.failure(MissingFieldError()))

    assert [i.error for i in state.items] == ["Price field missing in response"] * 2
    assert [(i.price, i.last_update) for i in state.items] == [(10.0, T0), (20.0, T0)]


def test_failed_batch_before_any_success_leaves_prices_empty():
    state = WatchState(["A"])
    state.apply(Batch.failure(TransportError("timeout")))
    assert state.items == [WatchItem("A", None, None, "HTTP request failed: timeout")]


def test_success_after_failure_clears_error():
    state = WatchState(["A"], clock=_Clock(T0, T1))
    state.apply(Batch.success([Quote("A", 1.0)]))
    state.apply(Batch.failure(TransportError("timeout")))

    state.apply(Batch.success([Quote("A", 2.0)]))

    assert state.items == [WatchItem("A", 2.0, T1)]
