"""
Watchlist state: symbol -> last price, last successful update, last error.

Stale-but-visible: a failed batch never clears a known price, it only
annotates every item with the failure message.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, Iterable

from ..types import Batch

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class WatchItem:
    """One watched symbol. price and last_update are always set together."""

    __slots__ = ('symbol', 'price', 'last_update', 'error')

    def __init__(
        self,
        symbol: str,
        price: float | None = None,
        last_update: datetime | None = None,
        error: str | None = None,
    ) -> None:
        self.symbol = symbol
        self.price = price
        self.last_update = last_update
        self.error = error

    def __repr__(self) -> str:
        return (
            f"WatchItem(symbol={self.symbol!r}, price={self.price!r}, "
            f"last_update={self.last_update!r}, error={self.error!r})"
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, WatchItem):
            return NotImplemented
        return (
            self.symbol == other.symbol
            and self.price == other.price
            and self.last_update == other.last_update
            and self.error == other.error
        )


class WatchState:
    """
    Ordered watchlist.

    `apply` is the only mutator; it is synchronous so one batch is always
    applied in full before the next one.
    """

    __slots__ = ('items', '_clock')

    def __init__(self, symbols: Iterable[str], clock: Callable[[], datetime] = utc_now) -> None:
        self.items: list[WatchItem] = [WatchItem(symbol) for symbol in symbols]
        self._clock = clock

    @property
    def symbols(self) -> list[str]:
        return [item.symbol for item in self.items]

    def apply(self, batch: Batch) -> None:
        """
        Apply an all-or-nothing batch.

        Success replaces the whole item set with fresh items stamped with
        the same "now"; items not in the batch are dropped (full replace,
        not merge). Failure broadcasts the message to every item.
        """
        if batch.ok:
            now = self._clock()
            self.items = [WatchItem(q.symbol, q.price, now) for q in batch.quotes]
            return

        message = str(batch.error)
        logger.warning("Price batch failed, marking %d items: %s", len(self.items), message)
        for item in self.items:
            item.error = message
