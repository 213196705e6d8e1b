"""Bootstrap and keep alive one account's browser session.

Sequence: navigate, verify the URL (re-navigating once if needed), inject
credentials, reload, verify again, click the start control, then hand the
page to the keepalive loop. Every failure is contained here: it is logged,
a debug capture is taken and this account's browser is closed. Nothing
propagates to the other sessions.
"""
from __future__ import annotations

import asyncio
from enum import Enum
from typing import Awaitable, Callable, TypeVar

import structlog

from dvakeeper.accounts import Account
from dvakeeper.browser import BrowserSession
from dvakeeper.config import Config
from dvakeeper.injector import inject_credentials
from dvakeeper.keepalive import KeepaliveLoop, simulate_activity
from dvakeeper.locator import ElementLocator

log = structlog.get_logger(__name__)

T = TypeVar("T")


class SessionOutcome(Enum):
    EXPIRED = "expired"  # keepalive ran to its duration cap
    START_FAILED = "start_failed"  # activation control never clicked
    ERROR = "error"
    CANCELLED = "cancelled"


class _Cancelled(Exception):
    pass


class AccountSession:
    """Run the full bootstrap + keepalive workflow for a single account."""

    def __init__(
        self,
        cfg: Config,
        account: Account,
        proxy: str | None = None,
        cancel: asyncio.Event | None = None,
        browser_factory: Callable[[Config, str | None], BrowserSession] = BrowserSession,
        locator: ElementLocator | None = None,
    ) -> None:
        self.cfg = cfg
        self.account = account
        self.proxy = proxy
        self.cancel = cancel if cancel is not None else asyncio.Event()
        self._browser_factory = browser_factory
        self.locator = locator or ElementLocator(
            cfg.keywords,
            settle_timeout=cfg.locator_settle,
            poll_interval=cfg.poll_interval,
        )
        self.log = log.bind(account=account.address, proxy=proxy or "none")

    async def run(self) -> SessionOutcome:
        self.log.info("starting session")
        browser = self._browser_factory(self.cfg, self.proxy)
        try:
            await self._until_cancelled(browser.start())
            if not await self._until_cancelled(self._bootstrap(browser)):
                self.log.error("failed to start")
                await browser.capture_debug(f"bot-failure-{self.account.address}")
                return SessionOutcome.START_FAILED

            self.log.info("start control clicked, keeping session alive")
            return await self._keep_alive(browser)
        except _Cancelled:
            self.log.info("interrupted, closing browser")
            return SessionOutcome.CANCELLED
        except Exception as exc:
            self.log.error("session error", error=repr(exc))
            if browser.is_open:
                await browser.capture_debug(f"bot-error-{self.account.address}")
            return SessionOutcome.ERROR
        finally:
            await browser.stop()

    async def _bootstrap(self, browser: BrowserSession) -> bool:
        self.log.info("navigating", url=self.cfg.target_url)
        await browser.goto(self.cfg.target_url)
        await self._ensure_correct_page(browser)

        await inject_credentials(browser.page, self.account)
        await browser.reload()
        await self._ensure_correct_page(browser)

        return await self.locator.activate(browser)

    async def _ensure_correct_page(self, browser: BrowserSession) -> bool:
        """Check the URL; navigate back to the target once if it drifted."""
        marker = self.cfg.path_marker
        if await browser.wait_for_url(marker, timeout=self.cfg.navigation_settle):
            self.log.info("correct page loaded", url=browser.url)
            return True

        self.log.warning("wrong page, redirecting", url=browser.url)
        await browser.goto(self.cfg.target_url)
        if await browser.wait_for_url(marker, timeout=self.cfg.navigation_settle):
            return True
        self.log.warning("still off target after redirect", url=browser.url)
        return False

    async def _keep_alive(self, browser: BrowserSession) -> SessionOutcome:
        loop = KeepaliveLoop(
            tick=lambda: simulate_activity(browser.page, self.cfg.scroll_back_delay),
            interval=self.cfg.activity_interval,
            duration=self.cfg.session_duration,
            cancel=self.cancel,
        )
        await loop.run()

        if self.cancel.is_set():
            raise _Cancelled()

        if self.cfg.close_on_expiry:
            self.log.info("session duration reached, closing browser", ticks=loop.ticks)
        else:
            self.log.info("session duration reached, leaving browser idle", ticks=loop.ticks)
            await self.cancel.wait()
        return SessionOutcome.EXPIRED

    async def _until_cancelled(self, coro: Awaitable[T]) -> T:
        """Await *coro*, aborting it with _Cancelled if the cancel event fires."""
        task = asyncio.ensure_future(coro)
        waiter = asyncio.ensure_future(self.cancel.wait())
        try:
            await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            waiter.cancel()
        if task.done():
            return task.result()
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        raise _Cancelled()
