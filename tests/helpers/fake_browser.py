"""FakeBrowserSession: BrowserSession driving a FakePage instead of Chromium."""
from __future__ import annotations

from dvakeeper.browser import BrowserSession
from dvakeeper.config import Config
from tests.helpers.fake_page import FakePage


class FakeBrowserSession(BrowserSession):
    def __init__(self, cfg: Config, proxy: str | None = None, page: FakePage | None = None) -> None:
        super().__init__(cfg, proxy)
        self.fake_page = page or FakePage()
        self.start_calls = 0
        self.stop_calls = 0
        self.debug_captures: list[str] = []

    async def start(self) -> BrowserSession:
        self.start_calls += 1
        self._browser = object()  # type: ignore[assignment]
        self._page = self.fake_page  # type: ignore[assignment]
        return self

    async def stop(self) -> None:
        self.stop_calls += 1
        self._browser = None
        self._page = None

    async def capture_debug(self, description: str):
        self.debug_captures.append(description)
        return await super().capture_debug(description)
