"""
Application state and the update function.

All mutation goes through update(state, message): it runs synchronously,
changes the owned AppState, and returns the effects (network fetches) the
runtime should start. Fetch results come back as messages tagged with the
cycle that requested them; a result older than one already applied is
dropped so a slow early fetch cannot overwrite newer data.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, NamedTuple, Union

from ..config import Settings
from ..datafeed.orderbook import OrderBookState
from ..datafeed.watchlist import WatchState, utc_now
from ..types import Batch, FetchResult, ScrollOffset
from ..ui.table_model import BOOK_COLUMNS, WATCH_COLUMNS, TableViewModel

logger = logging.getLogger(__name__)

WATCH_TABLE = "watch"
BOOK_TABLE = "book"


# --- messages --------------------------------------------------------------

class FetchPrices(NamedTuple):
    """Scheduler tick for the watchlist."""


class FetchBook(NamedTuple):
    """Scheduler tick for the order book."""


class RefreshRequested(NamedTuple):
    """Manual refresh; same as a price tick plus a book tick."""


class ClockTick(NamedTuple):
    now: datetime


class PricesFetched(NamedTuple):
    cycle: int
    batch: Batch


class BookFetched(NamedTuple):
    cycle: int
    result: FetchResult


class ScrollChanged(NamedTuple):
    table: str
    offset: ScrollOffset


class ResizeBegin(NamedTuple):
    table: str
    index: int
    delta: float


class ResizeCommit(NamedTuple):
    table: str


Message = Union[
    FetchPrices, FetchBook, RefreshRequested, ClockTick, PricesFetched,
    BookFetched, ScrollChanged, ResizeBegin, ResizeCommit,
]


# --- effects ---------------------------------------------------------------

class FetchPricesEffect(NamedTuple):
    cycle: int
    symbols: tuple[str, ...]


class FetchBookEffect(NamedTuple):
    cycle: int
    pair: str


Effect = Union[FetchPricesEffect, FetchBookEffect]


class CycleCounter:
    """
    Monotonic cycle numbering for one fetch stream.

    issued: last cycle handed out to a fetch
    applied: newest cycle whose result reached the state
    """

    __slots__ = ('issued', 'applied')

    def __init__(self) -> None:
        self.issued = 0
        self.applied = 0

    def issue(self) -> int:
        self.issued += 1
        return self.issued

    def accept(self, cycle: int) -> bool:
        """Record `cycle` as applied unless a newer one already was."""
        if cycle <= self.applied:
            return False
        self.applied = cycle
        return True


class AppState:
    """Everything the UI renders, owned by the runtime."""

    def __init__(self, settings: Settings, clock: Callable[[], datetime] = utc_now) -> None:
        self.settings = settings
        self.watch = WatchState(settings.symbols, clock=clock)
        self.book = OrderBookState(settings.pair)
        self.watch_table = TableViewModel(WATCH_COLUMNS, lambda: self.watch.items, settings.placeholder)
        self.book_table = TableViewModel(BOOK_COLUMNS, self.book.rows, settings.placeholder)
        self.clock: datetime = clock()
        self.price_cycles = CycleCounter()
        self.book_cycles = CycleCounter()

    @classmethod
    def initial(cls, settings: Settings, clock: Callable[[], datetime] = utc_now) -> tuple["AppState", list[Effect]]:
        """Fresh state plus the launch fetches (prices and book)."""
        state = cls(settings, clock)
        return state, update(state, RefreshRequested())

    def table(self, name: str) -> TableViewModel:
        if name == WATCH_TABLE:
            return self.watch_table
        if name == BOOK_TABLE:
            return self.book_table
        raise KeyError(f"unknown table {name!r}")


def _issue_prices(state: AppState) -> FetchPricesEffect:
    # Watchlist targets are the configured symbols; a successful batch
    # replaces items wholesale, so the item set cannot drift from them.
    return FetchPricesEffect(state.price_cycles.issue(), tuple(state.settings.symbols))


def _issue_book(state: AppState) -> FetchBookEffect:
    return FetchBookEffect(state.book_cycles.issue(), state.settings.pair)


def update(state: AppState, message: Message) -> list[Effect]:
    """Apply one message to `state`. Returns the effects to run next."""
    if isinstance(message, FetchPrices):
        return [_issue_prices(state)]

    if isinstance(message, FetchBook):
        return [_issue_book(state)]

    if isinstance(message, RefreshRequested):
        return [_issue_prices(state), _issue_book(state)]

    if isinstance(message, PricesFetched):
        if state.price_cycles.accept(message.cycle):
            state.watch.apply(message.batch)
        else:
            logger.info("Discarding stale price batch (cycle %d, applied %d)",
                        message.cycle, state.price_cycles.applied)
        return []

    if isinstance(message, BookFetched):
        if state.book_cycles.accept(message.cycle):
            state.book.apply(message.result)
        else:
            logger.info("Discarding stale book result (cycle %d, applied %d)",
                        message.cycle, state.book_cycles.applied)
        return []

    if isinstance(message, ClockTick):
        state.clock = message.now
        return []

    if isinstance(message, ScrollChanged):
        state.table(message.table).scroll(message.offset)
        return []

    if isinstance(message, ResizeBegin):
        state.table(message.table).begin_resize(message.index, message.delta)
        return []

    if isinstance(message, ResizeCommit):
        state.table(message.table).commit_resize()
        return []

    raise TypeError(f"unhandled message {message!r}")
