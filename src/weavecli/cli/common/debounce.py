"""Trailing-edge debounce for navigation-triggered fetches."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable

logger = logging.getLogger(__name__)


class Debouncer:
    """
    Coalesce rapid calls into one delayed call.

    Each ``trigger`` cancels the pending call, if any, and schedules a new
    one ``delay`` seconds later. The returned future always resolves: with
    the callback's return value when it ran, or with None when it was
    superseded, cancelled, or raised (the error is logged).
    """

    def __init__(self, delay: float):
        self.delay = delay
        self._handle: asyncio.TimerHandle | None = None
        self._pending: asyncio.Future | None = None

    @property
    def pending(self) -> bool:
        return self._pending is not None and not self._pending.done()

    def trigger(
        self, func: Callable[..., Awaitable[Any]], *args: Any
    ) -> asyncio.Future:
        loop = asyncio.get_running_loop()
        self.cancel()
        future = loop.create_future()
        self._pending = future
        self._handle = loop.call_later(self.delay, self._fire, func, args, future)
        return future

    def cancel(self) -> None:
        """Drop the pending call and resolve its future with None."""
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        if self._pending is not None and not self._pending.done():
            self._pending.set_result(None)
        self._pending = None

    def _fire(self, func, args, future: asyncio.Future) -> None:
        self._handle = None
        if self._pending is future:
            self._pending = None
        task = asyncio.ensure_future(func(*args))

        def _done(t: asyncio.Task) -> None:
            if future.done():
                return
            if t.cancelled():
                future.set_result(None)
            elif t.exception() is not None:
                logger.error("Debounced call failed", exc_info=t.exception())
                future.set_result(None)
            else:
                future.set_result(t.result())

        task.add_done_callback(_done)
