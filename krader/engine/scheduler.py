"""
Periodic re-fetch triggers.

Each registered trigger runs as its own asyncio task, so a slow consumer
of one trigger never delays another. A tick is delivered whether or not
the previous cycle it started has finished; overlapping cycles are
sorted out by the cycle counters in engine.state.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, NamedTuple

logger = logging.getLogger(__name__)

Dispatch = Callable[[Any], None]


class Trigger(NamedTuple):
    name: str
    interval: float
    make_message: Callable[[], Any]


class Scheduler:
    """
    Fixed-period trigger source.

    Usage:
        scheduler = Scheduler()
        scheduler.every("prices", 5.0, FetchPrices)
        scheduler.start(runtime.dispatch)
        ...
        await scheduler.stop()
    """

    def __init__(self) -> None:
        self.triggers: list[Trigger] = []
        self._tasks: list[asyncio.Task] = []

    def every(self, name: str, interval: float, make_message: Callable[[], Any]) -> None:
        """Register a trigger firing make_message() every `interval` seconds."""
        if interval <= 0:
            raise ValueError(f"interval for {name!r} must be positive, got {interval}")
        self.triggers.append(Trigger(name, interval, make_message))

    @property
    def running(self) -> bool:
        return any(not t.done() for t in self._tasks)

    def start(self, dispatch: Dispatch) -> None:
        """Start one task per trigger on the running loop."""
        if self.running:
            raise RuntimeError("scheduler already started")
        self._tasks = [
            asyncio.create_task(self._run_trigger(trigger, dispatch), name=f"trigger-{trigger.name}")
            for trigger in self.triggers
        ]
        logger.info("Scheduler started: %s",
                    ", ".join(f"{t.name}@{t.interval:g}s" for t in self.triggers))

    async def _run_trigger(self, trigger: Trigger, dispatch: Dispatch) -> None:
        while True:
            await asyncio.sleep(trigger.interval)
            try:
                dispatch(trigger.make_message())
            except Exception:
                logger.exception("Trigger %s dispatch failed", trigger.name)

    async def stop(self) -> None:
        """Cancel all trigger tasks and wait for them to finish."""
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
