import asyncio
from unittest.mock import AsyncMock

from custom_components.switchbot_light.coalescer import Debouncer


async def test_burst_collapses_into_one_dispatch():
    callback = AsyncMock()
    debouncer = Debouncer(0.02, callback, name="test")

    for _ in range(5):
        debouncer.schedule()
        await asyncio.sleep(0.001)

    assert debouncer.pending
    await debouncer.wait_idle()
    assert callback.await_count == 1
    assert not debouncer.busy


async def test_only_one_dispatch_in_flight():
    active = 0
    peak = 0
    calls = 0
    started = asyncio.Event()

    async def _slow():
        nonlocal active, peak, calls
        active += 1
        calls += 1
        peak = max(peak, active)
        started.set()
        await asyncio.sleep(0.05)
        active -= 1

    debouncer = Debouncer(0.01, _slow)
    debouncer.schedule()
    await started.wait()
    assert debouncer.running

    debouncer.schedule()
    await debouncer.wait_idle()

    assert calls == 2
    assert peak == 1


async def test_failing_callback_does_not_break_the_pipeline():
    callback = AsyncMock(side_effect=[RuntimeError("boom"), None])
    debouncer = Debouncer(0.01, callback)

    debouncer.schedule()
    await debouncer.wait_idle()
    debouncer.schedule()
    await debouncer.wait_idle()

    assert callback.await_count == 2


async def test_cancel_drops_pending_dispatch():
    callback = AsyncMock()
    debouncer = Debouncer(0.05, callback)

    debouncer.schedule()
    await debouncer.cancel()
    await asyncio.sleep(0.08)

    callback.assert_not_awaited()
    assert not debouncer.busy
