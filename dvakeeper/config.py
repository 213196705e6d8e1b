"""Load and provide dvakeeper configuration from dvakeeper.toml."""
from __future__ import annotations

import tomllib
from dataclasses import dataclass, field
from pathlib import Path

CONFIG_FILENAME = "dvakeeper.toml"

DEFAULT_URL = "https://app.gata.xyz/dataAgent"
DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
DEFAULT_KEYWORDS = ("start", "begin", "launch", "dva", "verify")


class ConfigError(ValueError):
    """Raised when a configuration or account file cannot be used."""


@dataclass
class Config:
    base_dir: Path
    target_url: str = DEFAULT_URL
    path_marker: str = "/dataAgent"
    accounts_file: str = "accounts.json"
    proxies_file: str = "proxies.txt"
    debug_dir: str = "."
    activity_interval: float = 120.0  # seconds between keepalive ticks
    session_duration: float = 8 * 60 * 60  # keepalive cap, seconds
    page_timeout: float = 120.0  # per-navigation timeout, seconds
    navigation_settle: float = 5.0
    locator_settle: float = 8.0
    scroll_back_delay: float = 1.0
    poll_interval: float = 0.5
    headless: bool = True
    viewport: tuple[int, int] = (1280, 800)
    user_agent: str = DEFAULT_USER_AGENT
    close_on_expiry: bool = True
    keywords: tuple[str, ...] = field(default=DEFAULT_KEYWORDS)

    @property
    def accounts_path(self) -> Path:
        return self.base_dir / self.accounts_file

    @property
    def proxies_path(self) -> Path:
        return self.base_dir / self.proxies_file

    @property
    def debug_path(self) -> Path:
        return self.base_dir / self.debug_dir

    @property
    def page_timeout_ms(self) -> float:
        """Playwright takes timeouts in milliseconds."""
        return self.page_timeout * 1000


def load(config_path: Path | None = None) -> Config:
    """Load config from dvakeeper.toml; all fields have defaults.

    With no explicit path, dvakeeper.toml in the current directory is used
    if present. Relative file names resolve against the config's directory.
    """
    if config_path is None:
        config_path = Path.cwd() / CONFIG_FILENAME

    data: dict = {}
    if config_path.exists():
        try:
            with open(config_path, "rb") as f:
                data = tomllib.load(f)
        except tomllib.TOMLDecodeError as exc:
            raise ConfigError(f"Invalid TOML in {config_path}: {exc}") from exc

    target = data.get("target", {})
    files = data.get("files", {})
    timing = data.get("timing", {})
    browser = data.get("browser", {})
    locator = data.get("locator", {})

    viewport = browser.get("viewport", [1280, 800])
    if (
        not isinstance(viewport, list)
        or len(viewport) != 2
        or not all(isinstance(v, int) and v > 0 for v in viewport)
    ):
        raise ConfigError(f"browser.viewport must be [width, height], got {viewport!r}")

    raw_keywords = locator.get("keywords", list(DEFAULT_KEYWORDS))
    if not isinstance(raw_keywords, list) or not raw_keywords:
        raise ConfigError("locator.keywords must be a non-empty list of strings")
    if not all(isinstance(k, str) and k.strip() for k in raw_keywords):
        raise ConfigError(f"locator.keywords must not contain empty values: {raw_keywords!r}")
    keywords = tuple(k.strip().lower() for k in raw_keywords)

    return Config(
        base_dir=config_path.resolve().parent,
        target_url=target.get("url", DEFAULT_URL),
        path_marker=target.get("path_marker", "/dataAgent"),
        accounts_file=files.get("accounts", "accounts.json"),
        proxies_file=files.get("proxies", "proxies.txt"),
        debug_dir=files.get("debug_dir", "."),
        activity_interval=timing.get("activity_interval", 120.0),
        session_duration=timing.get("session_duration", 8 * 60 * 60),
        page_timeout=timing.get("page_timeout", 120.0),
        navigation_settle=timing.get("navigation_settle", 5.0),
        locator_settle=timing.get("locator_settle", 8.0),
        scroll_back_delay=timing.get("scroll_back_delay", 1.0),
        poll_interval=timing.get("poll_interval", 0.5),
        headless=browser.get("headless", True),
        viewport=(int(viewport[0]), int(viewport[1])),
        user_agent=browser.get("user_agent", DEFAULT_USER_AGENT),
        close_on_expiry=browser.get("close_on_expiry", True),
        keywords=keywords,
    )
