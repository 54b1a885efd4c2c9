"""Debounced, single-flight dispatch of pending writes."""
from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

_LOGGER = logging.getLogger(__name__)


class Debouncer:
    """Coalesce rapid schedule() calls and run the callback once per window.

    Only one callback runs at a time. A schedule() that lands while a
    callback is running waits for it to finish and then for a fresh window
    before running again; only the newest schedule survives.
    """

    def __init__(self, delay: float, callback: Callable[[], Awaitable[None]], *, name: str = ""):
        self.delay = delay
        self._callback = callback
        self._name = name
        self._waiter: asyncio.Task | None = None
        self._inflight: asyncio.Event | None = None
        # Sequence number to invalidate older runners that weren't canceled in time
        self._seq: int = 0

    @property
    def pending(self) -> bool:
        """A dispatch is armed but has not started yet."""
        return self._waiter is not None and not self._waiter.done()

    @property
    def running(self) -> bool:
        return self._inflight is not None

    @property
    def busy(self) -> bool:
        return self.pending or self.running

    def schedule(self) -> None:
        self._seq += 1
        my_seq = self._seq
        if self._waiter and not self._waiter.done():
            self._waiter.cancel()
        self._waiter = asyncio.create_task(self._runner(my_seq))

    async def _runner(self, my_seq: int) -> None:
        try:
            await asyncio.sleep(self.delay)
            while self._inflight is not None:
                await self._inflight.wait()
                await asyncio.sleep(self.delay)
        except asyncio.CancelledError:
            return
        # If a newer schedule has occurred, skip
        if my_seq != self._seq:
            return

        self._waiter = None
        done = asyncio.Event()
        self._inflight = done
        try:
            await self._callback()
        except Exception:
            _LOGGER.exception("%s: debounced dispatch failed", self._name)
        finally:
            self._inflight = None
            done.set()

    async def wait_idle(self) -> None:
        """Wait until nothing is armed or running."""
        while self.busy:
            if self._waiter is not None and not self._waiter.done():
                await asyncio.wait({self._waiter})
            elif self._inflight is not None:
                await self._inflight.wait()
            else:
                await asyncio.sleep(0)

    async def cancel(self) -> None:
        waiter, self._waiter = self._waiter, None
        self._seq += 1
        if waiter and not waiter.done():
            waiter.cancel()
            try:
                await waiter
            except asyncio.CancelledError:
                pass
