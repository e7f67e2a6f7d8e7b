"""
Order book state for the tracked pair.

Policy:
1. Successful fetch replaces pair, bids and asks wholesale
2. Failed fetch only records last_error; the stale book stays visible
3. Levels are kept in feed order (bids descending, asks ascending);
   nothing here re-sorts them
4. Raw levels are parsed leniently: one malformed level is dropped,
   it never fails the whole refresh
"""

from __future__ import annotations

import math
from itertools import zip_longest
from typing import Any, Iterable

from ..types import BookLevel, BookRow, BookSnapshot, FetchResult


def _finite(literal: Any) -> float | None:
    try:
        value = float(literal)
    except (TypeError, ValueError):
        return None
    return value if math.isfinite(value) else None


def parse_levels(raw: Iterable[Any]) -> list[BookLevel]:
    """
    Parse raw feed levels [price_str, size_str, ...] into BookLevels.

    Entries that are not a 2+ element list/tuple, or whose price or size
    is not a finite number, are skipped. Input order is preserved.
    """
    levels: list[BookLevel] = []
    for entry in raw:
        if not isinstance(entry, (list, tuple)) or len(entry) < 2:
            continue
        price = _finite(entry[0])
        size = _finite(entry[1])
        if price is None or size is None:
            continue
        levels.append(BookLevel(price, size))
    return levels


class OrderBookState:
    """
    Bids/asks of one pair plus the last fetch error.

    Thread-safety: NOT thread-safe. Mutated only from the runtime's
    dispatch on the event loop.
    """

    __slots__ = ('pair', 'bids', 'asks', 'last_error')

    def __init__(self, pair: str) -> None:
        self.pair = pair
        self.bids: list[BookLevel] = []
        self.asks: list[BookLevel] = []
        self.last_error: str | None = None

    def apply(self, result: FetchResult) -> None:
        """Apply one depth fetch outcome (value is a BookSnapshot on success)."""
        if result.ok:
            snapshot: BookSnapshot = result.value
            self.pair = snapshot.pair
            self.bids = list(snapshot.bids)
            self.asks = list(snapshot.asks)
            self.last_error = None
        else:
            self.last_error = str(result.error)

    @property
    def best_bid(self) -> BookLevel | None:
        """First bid level as ordered by the feed."""
        return self.bids[0] if self.bids else None

    @property
    def best_ask(self) -> BookLevel | None:
        """First ask level as ordered by the feed."""
        return self.asks[0] if self.asks else None

    @property
    def spread(self) -> float | None:
        bb, ba = self.best_bid, self.best_ask
        if bb is None or ba is None:
            return None
        return ba.price - bb.price

    def rows(self) -> list[BookRow]:
        """Pair bids and asks by depth index for tabular display."""
        return [BookRow(bid, ask) for bid, ask in zip_longest(self.bids, self.asks)]
