"""Unit tests for dvakeeper.keepalive.

Time is fast-forwarded with a fake clock: the loop sleeps for a tiny real
interval while the clock jumps one full keepalive period per check.
"""
import asyncio

import pytest

from dvakeeper.keepalive import KeepaliveLoop, State, simulate_activity
from tests.helpers import FakePage

PERIOD = 120.0  # simulated seconds per tick


class FakeClock:
    """Advances by ``step`` on every read after the first."""

    def __init__(self, step: float) -> None:
        self.step = step
        self.now = 0.0
        self.reads = 0

    def __call__(self) -> float:
        if self.reads:
            self.now += self.step
        self.reads += 1
        return self.now


def _loop(tick, duration: float, cancel=None, step: float = PERIOD) -> KeepaliveLoop:
    return KeepaliveLoop(
        tick=tick,
        interval=0.001,
        duration=duration,
        cancel=cancel,
        clock=FakeClock(step),
    )


@pytest.mark.asyncio
async def test_stops_after_duration_cap():
    ticks = []

    async def tick():
        ticks.append(1)

    loop = _loop(tick, duration=8 * 60 * 60)
    state = await asyncio.wait_for(loop.run(), timeout=5)

    assert state is State.STOPPED
    assert loop.state is State.STOPPED
    # 8h at 2-minute ticks: 240 ticks, the last one exactly at the cap.
    assert len(ticks) == 240
    assert loop.ticks == 240


@pytest.mark.parametrize("duration", [0.0, 60.0, 119.0, 120.0, 121.0, 1000.0])
@pytest.mark.asyncio
async def test_never_more_than_one_tick_past_cap(duration):
    ticks = []
    clock = FakeClock(PERIOD)

    async def tick():
        ticks.append(clock.now)

    loop = KeepaliveLoop(tick=tick, interval=0.001, duration=duration, clock=clock)
    await asyncio.wait_for(loop.run(), timeout=5)

    assert all(t <= duration for t in ticks)
    assert len(ticks) == int(duration // PERIOD)
    assert len([t for t in ticks if t > duration]) <= 1


@pytest.mark.asyncio
async def test_tick_errors_do_not_stop_loop():
    calls = []

    async def flaky():
        calls.append(1)
        if len(calls) % 2:
            raise RuntimeError("Target page, context or browser has been closed")

    loop = _loop(flaky, duration=600)
    state = await asyncio.wait_for(loop.run(), timeout=5)

    assert state is State.STOPPED
    assert len(calls) == 5
    assert loop.failures == 3
    assert loop.ticks == 2


@pytest.mark.asyncio
async def test_cancel_event_stops_loop():
    cancel = asyncio.Event()
    ticks = []

    async def tick():
        ticks.append(1)
        if len(ticks) == 3:
            cancel.set()

    loop = KeepaliveLoop(tick=tick, interval=0.001, duration=10_000, cancel=cancel)
    state = await asyncio.wait_for(loop.run(), timeout=5)

    assert state is State.STOPPED
    assert len(ticks) == 3


@pytest.mark.asyncio
async def test_already_cancelled_never_ticks():
    cancel = asyncio.Event()
    cancel.set()
    ticks = []

    async def tick():
        ticks.append(1)

    loop = _loop(tick, duration=10_000, cancel=cancel)
    assert await loop.run() is State.STOPPED
    assert ticks == []


def test_initial_state_is_stopped():
    async def tick():
        pass

    loop = KeepaliveLoop(tick=tick, interval=1, duration=1)
    assert loop.state is State.STOPPED
    assert loop.elapsed == 0.0


@pytest.mark.asyncio
async def test_simulate_activity_scrolls_page():
    page = FakePage()
    await simulate_activity(page, scroll_back_delay=1.5)
    assert page.scrolls == [1500]
