"""
Data types for Krader.

Notes:
- NamedTuple for immutable values handed between feed, engine and UI
- Mutable state (watchlist, order book, column layout) lives in the
  owning classes, never in these tuples
"""

from __future__ import annotations

from typing import Any, NamedTuple

from .errors import FetchError


class BookLevel(NamedTuple):
    """Single depth level as received from the feed."""
    price: float
    size: float


class BookSnapshot(NamedTuple):
    """
    Parsed result of one depth fetch.

    Sides keep the feed's order: bids descending, asks ascending.
    """
    pair: str
    bids: list[BookLevel]
    asks: list[BookLevel]


class BookRow(NamedTuple):
    """The i-th bid beside the i-th ask. Either side may be exhausted."""
    bid: BookLevel | None
    ask: BookLevel | None


class ScrollOffset(NamedTuple):
    """Absolute 2D pane offset."""
    x: float = 0.0
    y: float = 0.0


class Quote(NamedTuple):
    """(symbol, last price) pair produced by a successful ticker fetch."""
    symbol: str
    price: float


class FetchResult(NamedTuple):
    """
    Outcome of a single-target fetch: exactly one of value / error is set.
    """
    value: Any = None
    error: FetchError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class Batch(NamedTuple):
    """
    Outcome of an all-or-nothing watchlist fetch.

    On success `quotes` follows the order of the requested targets; on
    failure `quotes` is empty and `error` holds the representative failure.
    """
    quotes: list[Quote]
    error: FetchError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, quotes: list[Quote]) -> "Batch":
        return cls(quotes=list(quotes))

    @classmethod
    def failure(cls, error: FetchError) -> "Batch":
        return cls(quotes=[], error=error)
