"""Isolated browser session for one account, plus debug capture.

Usage:

    async with BrowserSession(cfg, proxy="http://10.0.0.1:3128") as browser:
        await browser.goto(cfg.target_url)
        await browser.screenshot("landing.png")
        await browser.capture_debug("landing")

Each session owns its own Chromium process, so sessions never share
cookies or local storage.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import re
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Awaitable, Callable, Union

from playwright.async_api import (
    Browser,
    BrowserContext,
    Page,
    Playwright,
    async_playwright,
)

from dvakeeper.accounts import proxy_settings
from dvakeeper.config import Config

log = logging.getLogger(__name__)

Predicate = Callable[[], Union[bool, Awaitable[bool]]]

_UNSAFE_FILENAME = re.compile(r"[^A-Za-z0-9_.-]+")


def debug_timestamp(now: datetime | None = None) -> str:
    """ISO-8601 UTC timestamp safe for file names (``:`` and ``.`` replaced)."""
    if now is None:
        now = datetime.now(timezone.utc)
    stamp = now.astimezone(timezone.utc).isoformat(timespec="milliseconds")
    stamp = stamp.replace("+00:00", "Z")
    return stamp.replace(":", "-").replace(".", "-")


def debug_basename(description: str, now: datetime | None = None) -> str:
    safe = _UNSAFE_FILENAME.sub("_", description).strip("_") or "capture"
    return f"debug-{safe}-{debug_timestamp(now)}"


async def poll_until(
    predicate: Predicate,
    timeout: float,
    interval: float = 0.5,
    clock: Callable[[], float] = time.monotonic,
) -> bool:
    """Re-evaluate *predicate* until it is truthy or *timeout* seconds pass.

    The predicate may be a plain or an async callable. It is always
    evaluated at least once. Returns the final result.
    """
    deadline = clock() + timeout
    while True:
        result = predicate()
        if inspect.isawaitable(result):
            result = await result
        if result:
            return True
        remaining = deadline - clock()
        if remaining <= 0:
            return False
        await asyncio.sleep(min(interval, remaining))


class BrowserSession:
    """One Chromium instance, one context and one page."""

    def __init__(self, cfg: Config, proxy: str | None = None) -> None:
        self.cfg = cfg
        self.proxy = proxy
        self.debug_dir = cfg.debug_path

        self._pw: Playwright | None = None
        self._browser: Browser | None = None
        self._context: BrowserContext | None = None
        self._page: Page | None = None

    # -- Lifecycle -------------------------------------------------------------

    async def start(self) -> BrowserSession:
        """Launch Chromium, optionally bound to the session's proxy."""
        args = ["--no-sandbox"]
        launch_kwargs: dict = {"headless": self.cfg.headless}
        if self.proxy:
            args.append("--disable-setuid-sandbox")
            launch_kwargs["proxy"] = proxy_settings(self.proxy)
        launch_kwargs["args"] = args

        self._pw = await async_playwright().start()
        self._browser = await self._pw.chromium.launch(**launch_kwargs)
        self._context = await self._browser.new_context(
            viewport={"width": self.cfg.viewport[0], "height": self.cfg.viewport[1]},
            user_agent=self.cfg.user_agent,
        )
        self._page = await self._context.new_page()
        log.debug("Browser started (proxy=%s)", self.proxy or "none")
        return self

    async def stop(self) -> None:
        """Close the browser. Safe to call more than once."""
        browser, pw = self._browser, self._pw
        self._page = None
        self._context = None
        self._browser = None
        self._pw = None

        if browser:
            try:
                await browser.close()
            except Exception as exc:
                log.warning("Failed to close browser: %s", exc)
        if pw:
            await pw.stop()

    @property
    def is_open(self) -> bool:
        return self._browser is not None

    async def __aenter__(self) -> BrowserSession:
        return await self.start()

    async def __aexit__(self, *args: object) -> None:
        await self.stop()

    @property
    def page(self) -> Page:
        """Direct access to the Playwright page."""
        if self._page is None:
            raise RuntimeError("BrowserSession not started")
        return self._page

    @property
    def url(self) -> str:
        return self.page.url

    # -- Navigation ------------------------------------------------------------

    async def goto(self, url: str) -> None:
        """Navigate to *url*; timeouts propagate to the caller."""
        await self.page.goto(url, timeout=self.cfg.page_timeout_ms)

    async def reload(self) -> None:
        await self.page.reload(wait_until="load", timeout=self.cfg.page_timeout_ms)

    async def wait_for_url(self, marker: str, timeout: float) -> bool:
        """Poll until the current URL contains *marker*."""
        return await poll_until(
            lambda: marker in self.page.url,
            timeout=timeout,
            interval=self.cfg.poll_interval,
        )

    # -- Capture ---------------------------------------------------------------

    async def screenshot(self, name: str) -> Path:
        """Save a viewport screenshot under the debug directory."""
        path = self.debug_dir / name
        path.parent.mkdir(parents=True, exist_ok=True)
        await self.page.screenshot(path=str(path))
        log.info("Screenshot saved: %s", path)
        return path

    async def capture_debug(self, description: str) -> tuple[Path | None, Path | None]:
        """Save a timestamped screenshot and HTML dump of the current page.

        Each half is attempted independently; a failed capture is logged
        and reported as None so it never masks the error being debugged.
        """
        try:
            self.debug_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            log.error("Cannot create debug directory %s: %s", self.debug_dir, exc)
            return None, None

        base = debug_basename(description)
        png: Path | None = self.debug_dir / f"{base}.png"
        html: Path | None = self.debug_dir / f"{base}.html"

        try:
            await self.page.screenshot(path=str(png))
            log.info("Debug screenshot saved: %s", png)
        except Exception as exc:
            log.error("Debug screenshot failed: %s", exc)
            png = None

        try:
            content = await self.page.content()
            html.write_text(content, encoding="utf-8", errors="replace")
            log.info("Debug HTML saved: %s", html)
        except Exception as exc:
            log.error("Debug HTML dump failed: %s", exc)
            html = None

        return png, html
