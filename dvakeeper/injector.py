"""Inject an account's credentials into the page's localStorage.

The host application reads its login state from localStorage on load, so
callers must reload the page after injection for it to take effect.
"""
from __future__ import annotations

import logging

from playwright.async_api import Page

from dvakeeper.accounts import Account

log = logging.getLogger(__name__)

_SET_ITEMS_JS = """
(entries) => {
    for (const [key, value] of entries) {
        localStorage.setItem(key, value);
    }
}
"""


def storage_entries(account: Account) -> dict[str, str]:
    """Return the eight localStorage pairs the application expects."""
    address = account.address
    return {
        address: account.bearer,
        "AGG_USER_IS_LOGIN": "1",
        "Gata_Chat_GotIt": "1",
        "aggr_current_address": address,
        f"aggr_llm_token_{address}": account.llm_token,
        f"aggr_task_token_{address}": account.task_token,
        f"invite_code_{address}": account.invite_code,
        "wagmi.recentConnectorId": '"metaMask"',
    }


async def inject_credentials(page: Page, account: Account) -> None:
    """Write the account's entries into localStorage (no reload)."""
    entries = storage_entries(account)
    # Pairs, not an object: JS objects reorder integer-like keys.
    await page.evaluate(_SET_ITEMS_JS, list(entries.items()))
    log.info("localStorage configured for %s", account.address)
