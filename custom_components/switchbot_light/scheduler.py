"""Fixed-interval and one-shot refresh triggers for an accessory."""
from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Awaitable, Callable

_LOGGER = logging.getLogger(__name__)


class RefreshScheduler:
    """Tick every ``interval`` seconds; a tick while busy is dropped, not queued."""

    def __init__(
        self,
        interval: float,
        refresh: Callable[[], Awaitable[object]],
        is_busy: Callable[[], bool],
        *,
        name: str = "",
    ):
        self.interval = interval
        self._refresh = refresh
        self._is_busy = is_busy
        self._name = name
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._loop())

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

    async def tick(self) -> bool:
        """Run one tick; returns False when it was skipped."""
        if self._is_busy():
            _LOGGER.debug("%s: update in progress, skipping scheduled refresh", self._name)
            return False
        try:
            await self._refresh()
        except asyncio.CancelledError:
            raise
        except Exception:
            _LOGGER.exception("%s: scheduled refresh failed", self._name)
        return True

    async def _loop(self) -> None:
        try:
            while True:
                await asyncio.sleep(self.interval)
                await self.tick()
        except asyncio.CancelledError:
            return


class OneShotRefresh:
    """Refresh once, ``delay`` seconds from now, at the first idle tick.

    Re-arming replaces any refresh still waiting.
    """

    def __init__(
        self,
        delay: float,
        refresh: Callable[[], Awaitable[object]],
        is_busy: Callable[[], bool],
        *,
        name: str = "",
    ):
        self.delay = delay
        self._refresh = refresh
        self._is_busy = is_busy
        self._name = name
        self._task: asyncio.Task | None = None

    @property
    def armed(self) -> bool:
        return self._task is not None and not self._task.done()

    def arm(self) -> None:
        if self.armed:
            self._task.cancel()
        self._task = asyncio.create_task(self._run())

    async def cancel(self) -> None:
        task, self._task = self._task, None
        if task and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

    async def _run(self) -> None:
        try:
            await asyncio.sleep(self.delay)
            while self._is_busy():
                await asyncio.sleep(self.delay)
        except asyncio.CancelledError:
            return
        _LOGGER.debug("%s: post-update refresh", self._name)
        try:
            await self._refresh()
        except Exception:
            _LOGGER.exception("%s: post-update refresh failed", self._name)
