"""dvakeeper daemon: main orchestrator.

Startup sequence:
1. Load config, accounts and proxies (a bad accounts file is fatal)
2. Ask the operator once whether to use proxies
3. Register SIGINT/SIGTERM once; both set the shared cancel event, and a
   second signal falls through to the default handler
4. Launch one AccountSession per account and wait for all of them
"""
from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys
from collections import Counter
from pathlib import Path
from typing import Callable

import structlog

from dvakeeper import config as config_module
from dvakeeper.accounts import Account, assign_proxies, load_accounts, load_proxies
from dvakeeper.config import Config, ConfigError
from dvakeeper.session import AccountSession, SessionOutcome

log = structlog.get_logger(__name__)

_YES_ANSWERS = frozenset({"yes", "y", "sim", "s"})


def _configure_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    structlog.configure(
        processors=[
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            structlog.dev.ConsoleRenderer(colors=False),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
    )


def parse_answer(answer: str) -> bool:
    return answer.strip().lower() in _YES_ANSWERS


def ask_use_proxies(input_fn: Callable[[str], str] = input) -> bool:
    """Prompt the operator once; anything but a yes means no proxies."""
    try:
        answer = input_fn("Run with proxies? (yes/no): ")
    except EOFError:
        answer = ""
    use = parse_answer(answer)
    log.info("execution mode", proxies=use)
    return use


class Daemon:
    """Run one independent session per account until all have finished."""

    def __init__(
        self,
        cfg: Config,
        accounts: list[Account],
        proxies: list[str],
        use_proxies: bool,
        session_factory: Callable[..., AccountSession] = AccountSession,
    ) -> None:
        self.cfg = cfg
        self.accounts = accounts
        self.proxies = proxies
        self.use_proxies = use_proxies
        self.cancel = asyncio.Event()
        self._session_factory = session_factory
        self.outcomes: list[SessionOutcome] = []
        self._loop: asyncio.AbstractEventLoop | None = None

    def build_sessions(self) -> list[AccountSession]:
        pairs = assign_proxies(self.accounts, self.proxies, self.use_proxies)
        return [
            self._session_factory(self.cfg, account, proxy, cancel=self.cancel)
            for account, proxy in pairs
        ]

    async def run(self) -> list[SessionOutcome]:
        """Install signal handlers, run all sessions, report outcomes."""
        self._loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            self._loop.add_signal_handler(sig, self.stop)
        try:
            return await self.run_sessions()
        finally:
            self._restore_signal_handlers()
            self._loop = None

    async def run_sessions(self) -> list[SessionOutcome]:
        sessions = self.build_sessions()
        log.info("launching sessions", count=len(sessions))
        results = await asyncio.gather(
            *(s.run() for s in sessions), return_exceptions=True
        )

        self.outcomes = []
        for session, result in zip(sessions, results):
            if isinstance(result, BaseException):
                log.error(
                    "session crashed",
                    account=session.account.address,
                    error=repr(result),
                )
                self.outcomes.append(SessionOutcome.ERROR)
            else:
                self.outcomes.append(result)

        counts = Counter(o.value for o in self.outcomes)
        log.info("all sessions finished", **counts)
        return self.outcomes

    def stop(self) -> None:
        """Signal every session to close its browser.

        The default handlers come back at once, so a second Ctrl-C kills
        the process even if a browser hangs while closing.
        """
        if not self.cancel.is_set():
            log.info("shutting down; interrupt again to force exit")
            self.cancel.set()
        self._restore_signal_handlers()

    def _restore_signal_handlers(self) -> None:
        if self._loop is None:
            return
        for sig in (signal.SIGINT, signal.SIGTERM):
            self._loop.remove_signal_handler(sig)


# ------------------------------------------------------------------
# Entrypoint
# ------------------------------------------------------------------


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="dvakeeper",
        description="Keep one browser session per account alive on the data agent app",
    )
    parser.add_argument(
        "--config", type=Path, default=None,
        help=f"path to {config_module.CONFIG_FILENAME} (default: ./{config_module.CONFIG_FILENAME})",
    )
    proxy_group = parser.add_mutually_exclusive_group()
    proxy_group.add_argument(
        "--proxies", dest="use_proxies", action="store_true", default=None,
        help="use proxies without prompting",
    )
    proxy_group.add_argument(
        "--no-proxies", dest="use_proxies", action="store_false",
        help="run without proxies without prompting",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="debug logging")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    """CLI entrypoint: dvakeeper [--config PATH] [--proxies | --no-proxies]"""
    args = _parse_args(argv)
    _configure_logging(args.verbose)

    try:
        cfg = config_module.load(args.config)
        accounts = load_accounts(cfg.accounts_path)
        proxies = load_proxies(cfg.proxies_path)
    except (OSError, ConfigError) as exc:
        log.error("cannot start", error=str(exc))
        return 1

    use_proxies = args.use_proxies
    if use_proxies is None:
        use_proxies = ask_use_proxies()

    daemon = Daemon(cfg, accounts, proxies, use_proxies)
    asyncio.run(daemon.run())
    return 0


if __name__ == "__main__":
    sys.exit(main())
