"""Cancellable interval timer running on the event loop."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional, Set

logger = logging.getLogger(__name__)

TickCallback = Callable[[], Awaitable[Any]]


class PeriodicTimer:
    """
    Fire *callback* every *interval_seconds* until cancelled.

    Each tick runs as its own task so a slow callback never delays the next
    tick; overlapping ticks are the callback's concern. Cancelling stops
    future ticks only, ticks already running complete normally.
    """

    def __init__(self, name: str, interval_seconds: float, callback: TickCallback):
        self.name = name
        self.interval_seconds = interval_seconds
        self._callback = callback
        self._shutdown_event = asyncio.Event()
        self._loop_task: Optional[asyncio.Task] = None
        self._tick_tasks: Set[asyncio.Task] = set()

    @property
    def is_active(self) -> bool:
        return self._loop_task is not None

    def start(self) -> bool:
        """Start ticking; returns False if the timer was already active."""
        if self._loop_task is not None:
            return False
        self._shutdown_event.clear()
        self._loop_task = asyncio.get_running_loop().create_task(self._run())
        logger.debug("Started %s timer (interval: %ss)", self.name, self.interval_seconds)
        return True

    def cancel(self) -> bool:
        """Stop ticking; returns False if the timer was not active."""
        if self._loop_task is None:
            return False
        self._shutdown_event.set()
        self._loop_task.cancel()
        self._loop_task = None
        logger.debug("Cancelled %s timer", self.name)
        return True

    async def _run(self) -> None:
        while not self._shutdown_event.is_set():
            try:
                await asyncio.wait_for(self._shutdown_event.wait(), timeout=self.interval_seconds)
                break
            except asyncio.TimeoutError:
                self._fire()

    def _fire(self) -> None:
        task = asyncio.get_running_loop().create_task(self._tick())
        self._tick_tasks.add(task)
        task.add_done_callback(self._tick_tasks.discard)

    async def _tick(self) -> None:
        try:
            await self._callback()
        except asyncio.CancelledError:
            raise
        except Exception:  # policy_guard: allow-silent-handler
            logger.exception("Error in %s timer callback", self.name)


__all__ = ["PeriodicTimer", "TickCallback"]
