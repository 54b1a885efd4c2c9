import asyncio
from unittest.mock import AsyncMock

from custom_components.switchbot_light.scheduler import OneShotRefresh, RefreshScheduler


async def test_tick_is_skipped_while_busy():
    refresh = AsyncMock()
    scheduler = RefreshScheduler(60, refresh, lambda: True)

    assert await scheduler.tick() is False
    refresh.assert_not_awaited()


async def test_tick_refreshes_when_idle():
    refresh = AsyncMock()
    scheduler = RefreshScheduler(60, refresh, lambda: False)

    assert await scheduler.tick() is True
    refresh.assert_awaited_once()


async def test_tick_swallows_refresh_errors():
    scheduler = RefreshScheduler(60, AsyncMock(side_effect=RuntimeError("boom")), lambda: False)
    assert await scheduler.tick() is True


async def test_loop_ticks_periodically():
    refresh = AsyncMock()
    scheduler = RefreshScheduler(0.01, refresh, lambda: False)

    scheduler.start()
    assert scheduler.running
    await asyncio.sleep(0.06)
    await scheduler.stop()

    assert refresh.await_count >= 2
    assert not scheduler.running


async def test_one_shot_fires_once_after_delay():
    refresh = AsyncMock()
    one_shot = OneShotRefresh(0.01, refresh, lambda: False)

    one_shot.arm()
    one_shot.arm()
    assert one_shot.armed
    await asyncio.sleep(0.05)

    refresh.assert_awaited_once()
    assert not one_shot.armed


async def test_one_shot_waits_for_idle():
    busy = True
    refresh = AsyncMock()
    one_shot = OneShotRefresh(0.01, refresh, lambda: busy)

    one_shot.arm()
    await asyncio.sleep(0.04)
    refresh.assert_not_awaited()

    busy = False
    await asyncio.sleep(0.04)
    refresh.assert_awaited_once()


async def test_one_shot_cancel():
    refresh = AsyncMock()
    one_shot = OneShotRefresh(0.01, refresh, lambda: False)

    one_shot.arm()
    await one_shot.cancel()
    await asyncio.sleep(0.03)

    refresh.assert_not_awaited()
