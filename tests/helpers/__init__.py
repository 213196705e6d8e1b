"""Test helpers for dvakeeper."""
from tests.helpers.fake_browser import FakeBrowserSession
from tests.helpers.fake_page import FakePage, hidden, visible

__all__ = ["FakeBrowserSession", "FakePage", "hidden", "visible"]
