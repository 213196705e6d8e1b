"""Keep an activated session alive by simulating user activity.

Every ``interval`` seconds a tick scrolls the page down and back up. Once
``duration`` seconds have elapsed since activation the loop stops. Tick
errors are logged and never stop the loop; only the time cap or the
shared cancellation event do.
"""
from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime
from enum import Enum
from typing import Awaitable, Callable

from playwright.async_api import Page

log = logging.getLogger(__name__)

_SCROLL_JS = """
(delayMs) => {
    window.scrollTo(0, 500);
    setTimeout(() => window.scrollTo(0, 0), delayMs);
}
"""


class State(Enum):
    ACTIVE = "active"
    STOPPED = "stopped"


async def simulate_activity(page: Page, scroll_back_delay: float = 1.0) -> None:
    """Scroll down, then back to the top after *scroll_back_delay* seconds."""
    await page.evaluate(_SCROLL_JS, int(scroll_back_delay * 1000))
    log.info("Activity simulated at %s", datetime.now().strftime("%H:%M:%S"))


class KeepaliveLoop:
    """Run ``tick`` periodically until the duration cap or cancellation."""

    def __init__(
        self,
        tick: Callable[[], Awaitable[None]],
        interval: float,
        duration: float,
        cancel: asyncio.Event | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._tick = tick
        self._interval = interval
        self._duration = duration
        self._cancel = cancel if cancel is not None else asyncio.Event()
        self._clock = clock
        self._started_at: float | None = None
        self.state = State.STOPPED
        self.ticks = 0
        self.failures = 0

    @property
    def elapsed(self) -> float:
        if self._started_at is None:
            return 0.0
        return self._clock() - self._started_at

    async def run(self) -> State:
        """Tick until the cap elapses or the cancel event is set."""
        self._started_at = self._clock()
        self.state = State.ACTIVE
        log.info("Keepalive active (every %ss, up to %ss)", self._interval, self._duration)

        while self.state is State.ACTIVE:
            if await self._wait_cancelled(self._interval):
                log.info("Keepalive cancelled after %d tick(s)", self.ticks)
                self.state = State.STOPPED
                break
            if self.elapsed > self._duration:
                log.info("Keepalive finished: %ss cap reached", self._duration)
                self.state = State.STOPPED
                break
            await self._run_tick()

        return self.state

    async def _wait_cancelled(self, seconds: float) -> bool:
        """Sleep for *seconds*; return True if cancelled meanwhile."""
        if self._cancel.is_set():
            return True
        try:
            await asyncio.wait_for(self._cancel.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return False
        return True

    async def _run_tick(self) -> None:
        try:
            await self._tick()
            self.ticks += 1
        except Exception as exc:
            self.failures += 1
            log.error("Activity simulation failed: %s", exc)
