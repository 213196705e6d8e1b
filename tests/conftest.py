"""Shared test fixtures for dvakeeper.

No real browser is ever launched: sessions run against FakeBrowserSession
and FakePage, or Playwright itself is patched with mocks.
"""
from __future__ import annotations

from pathlib import Path

import pytest

from dvakeeper.accounts import Account
from dvakeeper.config import Config
from tests.helpers import FakeBrowserSession, FakePage


@pytest.fixture
def test_config(tmp_path: Path) -> Config:
    """Isolated Config with short timings and a tmp debug directory."""
    return Config(
        base_dir=tmp_path,
        debug_dir="debug",
        activity_interval=0.01,
        session_duration=0.05,
        page_timeout=1.0,
        navigation_settle=0.05,
        locator_settle=0.05,
        scroll_back_delay=0.0,
        poll_interval=0.01,
    )


@pytest.fixture
def account() -> Account:
    return Account(
        address="0xabc123",
        bearer="bearer-token",
        llm_token="llm-token",
        task_token="task-token",
        invite_code="INVITE",
    )


@pytest.fixture
def fake_page() -> FakePage:
    return FakePage()


@pytest.fixture
def fake_browser(test_config: Config, fake_page: FakePage) -> FakeBrowserSession:
    return FakeBrowserSession(test_config, page=fake_page)
