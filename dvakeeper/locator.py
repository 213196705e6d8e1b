"""Find and click the application's activation ("start") control.

The control is rendered client-side with no stable selector, so it is
located heuristically:

- Candidates: buttons, role="button" divs and anchors, and any div whose
  class name contains "button", in document order.
- Visible: display != none, visibility != hidden, opacity != 0 and a
  non-null offsetParent.
- Match: trimmed lowercase text contains one of the keywords.

The page script only reports candidate descriptors; selection happens in
Python so the heuristic can be tested without a browser. The click script
re-checks visibility and text at the chosen index and refuses to click if
the DOM changed underneath.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Sequence

from playwright.async_api import Page

from dvakeeper.browser import BrowserSession, poll_until

log = logging.getLogger(__name__)

CANDIDATE_SELECTOR = (
    'button, div[role="button"], a[role="button"], div[class*="button"]'
)

SCREENSHOT_NAME = "screenshot_debug.png"

_SCAN_JS = """
(selector) => Array.from(document.querySelectorAll(selector)).map((el) => {
    const style = window.getComputedStyle(el);
    return {
        text: el.innerText || "",
        display: style.display,
        visibility: style.visibility,
        opacity: style.opacity,
        hasOffsetParent: el.offsetParent !== null,
    };
})
"""

_CLICK_JS = """
({selector, index, text}) => {
    const el = document.querySelectorAll(selector)[index];
    if (!el) return false;
    const style = window.getComputedStyle(el);
    const visible = style.display !== "none" &&
                    style.visibility !== "hidden" &&
                    style.opacity !== "0" &&
                    el.offsetParent !== null;
    if (!visible || (el.innerText || "").trim() !== text) return false;
    el.click();
    return true;
}
"""


@dataclass(frozen=True)
class Candidate:
    text: str
    display: str = "block"
    visibility: str = "visible"
    opacity: str = "1"
    has_offset_parent: bool = True

    @classmethod
    def from_js(cls, raw: dict) -> Candidate:
        return cls(
            text=raw.get("text") or "",
            display=raw.get("display") or "",
            visibility=raw.get("visibility") or "",
            opacity=str(raw.get("opacity", "")),
            has_offset_parent=bool(raw.get("hasOffsetParent")),
        )

    @property
    def is_visible(self) -> bool:
        return (
            self.display != "none"
            and self.visibility != "hidden"
            and self.opacity != "0"
            and self.has_offset_parent
        )

    def matches(self, keywords: Iterable[str]) -> bool:
        text = self.text.strip().lower()
        return any(kw in text for kw in keywords)


@dataclass(frozen=True)
class ControlRef:
    """Position of the matched element within the candidate list."""

    index: int
    text: str


def pick_control(
    candidates: Sequence[Candidate], keywords: Iterable[str]
) -> ControlRef | None:
    """Return the first visible keyword match in document order."""
    keywords = tuple(keywords)
    for i, cand in enumerate(candidates):
        if cand.is_visible and cand.matches(keywords):
            return ControlRef(index=i, text=cand.text.strip())
    return None


class ElementLocator:
    """Locate and click the activation control on a page."""

    def __init__(
        self,
        keywords: Iterable[str],
        settle_timeout: float = 8.0,
        poll_interval: float = 0.5,
    ) -> None:
        self.keywords = tuple(k.lower() for k in keywords)
        self.settle_timeout = settle_timeout
        self.poll_interval = poll_interval

    async def find_activation_control(self, page: Page) -> ControlRef | None:
        raw = await page.evaluate(_SCAN_JS, CANDIDATE_SELECTOR)
        candidates = [Candidate.from_js(r) for r in raw or []]
        ref = pick_control(candidates, self.keywords)
        log.debug(
            "Scanned %d candidate(s), match=%s",
            len(candidates), ref.text if ref else None,
        )
        return ref

    async def click(self, page: Page, ref: ControlRef) -> bool:
        return bool(
            await page.evaluate(
                _CLICK_JS,
                {"selector": CANDIDATE_SELECTOR, "index": ref.index, "text": ref.text},
            )
        )

    async def activate(self, session: BrowserSession) -> bool:
        """Wait for the control to render, then click it.

        A screenshot is saved either way. On a miss or a page-script error,
        one debug capture is taken and False is returned.
        """
        log.info("Looking for the start control...")
        page = session.page
        found: list[ControlRef] = []

        async def _control_present() -> bool:
            ref = await self.find_activation_control(page)
            if ref is not None:
                found.append(ref)
            return ref is not None

        try:
            await poll_until(
                _control_present,
                timeout=self.settle_timeout,
                interval=self.poll_interval,
            )
            await session.screenshot(SCREENSHOT_NAME)

            if found and await self.click(page, found[-1]):
                log.info("Start control %r found and clicked", found[-1].text)
                return True
        except Exception as exc:
            log.error("Error while looking for the start control: %s", exc)
            await session.capture_debug("start-button-error")
            return False

        log.warning("Start control not found; check %s", SCREENSHOT_NAME)
        await session.capture_debug("start-button-missing")
        return False
