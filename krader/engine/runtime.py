"""
Single-writer runtime around the update function.

dispatch() is the one entry point that mutates AppState. It is plain
synchronous code, so on a single event loop no two updates interleave.
Effects returned by update() run as asyncio tasks; each one performs its
fetch through the Aggregator and dispatches exactly one result message.
In-flight fetches are never cancelled by a newer trigger.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Iterable

from .aggregator import Aggregator
from .scheduler import Scheduler
from .state import (
    AppState,
    BookFetched,
    ClockTick,
    Effect,
    FetchBook,
    FetchBookEffect,
    FetchPrices,
    FetchPricesEffect,
    Message,
    PricesFetched,
    update,
)
from ..config import Settings
from ..datafeed.watchlist import utc_now

logger = logging.getLogger(__name__)

Listener = Callable[[AppState], None]


def build_scheduler(settings: Settings) -> Scheduler:
    """Independent price, order book and clock triggers."""
    scheduler = Scheduler()
    scheduler.every("prices", settings.price_interval, FetchPrices)
    scheduler.every("book", settings.book_interval, FetchBook)
    scheduler.every("clock", settings.clock_interval, lambda: ClockTick(utc_now()))
    return scheduler


class Runtime:
    """
    Owns the AppState and serializes every mutation through dispatch().

    Usage:
        state, effects = AppState.initial(settings)
        runtime = Runtime(state, Aggregator(client), build_scheduler(settings))
        runtime.subscribe(on_change)
        runtime.start(effects)
        ...
        await runtime.stop()
    """

    def __init__(self, state: AppState, aggregator: Aggregator, scheduler: Scheduler | None = None) -> None:
        self.state = state
        self.aggregator = aggregator
        self.scheduler = scheduler
        self._listeners: list[Listener] = []
        self._tasks: set[asyncio.Task] = set()

    def subscribe(self, listener: Listener) -> None:
        """Call `listener(state)` after every dispatch."""
        self._listeners.append(listener)

    def dispatch(self, message: Message) -> None:
        effects = update(self.state, message)
        self.run_effects(effects)
        for listener in self._listeners:
            try:
                listener(self.state)
            except Exception:
                logger.exception("Listener %r failed on %s", listener, type(message).__name__)

    def run_effects(self, effects: Iterable[Effect]) -> None:
        for effect in effects:
            task = asyncio.create_task(self._run_effect(effect))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

    async def _run_effect(self, effect: Effect) -> None:
        try:
            if isinstance(effect, FetchPricesEffect):
                batch = await self.aggregator.fetch_prices(effect.symbols)
                self.dispatch(PricesFetched(effect.cycle, batch))
            elif isinstance(effect, FetchBookEffect):
                result = await self.aggregator.fetch_book(effect.pair)
                self.dispatch(BookFetched(effect.cycle, result))
            else:
                raise TypeError(f"unhandled effect {effect!r}")
        except asyncio.CancelledError:
            raise
        except Exception:
            # Fetch failures arrive as values; anything raised here is a bug
            logger.exception("Effect %r failed", effect)

    @property
    def pending(self) -> int:
        """Number of effect tasks still running."""
        return len(self._tasks)

    def start(self, initial_effects: Iterable[Effect] = ()) -> None:
        """Start the scheduler (if any) and the launch fetches. Needs a running loop."""
        if self.scheduler is not None:
            self.scheduler.start(self.dispatch)
        self.run_effects(initial_effects)

    async def drain(self) -> None:
        """Wait until no effect task is running, including ones spawned meanwhile."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def stop(self) -> None:
        """Stop triggering and cancel in-flight fetches."""
        if self.scheduler is not None:
            await self.scheduler.stop()
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()
