"""Composition root: wires credentials, clients, cache and notifier together.

All mutable state (latest results, notification flags) is owned by a
``UsageMonitor`` instance; nothing here is module-global.
"""

import asyncio
import logging
import threading
from pathlib import Path
from typing import Awaitable, Callable

from usage_bar.claude_api import fetch_claude_usage
from usage_bar.codex_api import fetch_codex_usage, read_codex_token
from usage_bar.config import Settings
from usage_bar.cookie_reader import (
    VARIANTS,
    CredentialBundle,
    bundle_from_cookie_string,
    read_credentials_async,
)
from usage_bar.errors import UsageBarError
from usage_bar.models import UsageData
from usage_bar.notifier import ThresholdNotifier
from usage_bar.openrouter import OpenRouterCredits, fetch_openrouter_credits, read_api_key
from usage_bar.secret_store import SecretStore

log = logging.getLogger(__name__)

CLAUDE = "Claude"
CODEX = "Codex"
OPENROUTER = "OpenRouter"


class UsageCache:
    """Latest successful result per provider. Last writer wins."""

    def __init__(self):
        self._lock = threading.Lock()
        self._data: dict[str, object] = {}

    def put(self, provider: str, data):
        with self._lock:
            self._data[provider] = data

    def get(self, provider: str):
        with self._lock:
            return self._data.get(provider)


class UsageMonitor:
    def __init__(self, settings: Settings, secret_store: SecretStore, session,
                 notifier: ThresholdNotifier | None = None,
                 cache: UsageCache | None = None,
                 home: str | Path | None = None):
        self.settings = settings
        self.secret_store = secret_store
        self.session = session
        self.notifier = notifier or ThresholdNotifier()
        self.cache = cache or UsageCache()
        self.home = home

    # ── credentials ───────────────────────────────────────────────────────────

    async def claude_credentials(self) -> CredentialBundle:
        if self.settings.cookie_str:
            return bundle_from_cookie_string(self.settings.cookie_str)
        variant = VARIANTS[self.settings.claude_source]
        return await read_credentials_async(variant, self.secret_store, self.home)

    # ── fetch ─────────────────────────────────────────────────────────────────

    def _notify(self, provider: str, data: UsageData):
        self.notifier.check(
            provider, data,
            self.settings.notify_threshold,
            self.settings.notifications_enabled,
        )

    async def fetch_claude(self) -> UsageData:
        bundle = await self.claude_credentials()
        data = await fetch_claude_usage(bundle, self.session)
        self.cache.put(CLAUDE, data)
        self._notify(CLAUDE, data)
        return data

    async def fetch_codex(self) -> UsageData:
        token = await asyncio.to_thread(read_codex_token, self.home)
        data = await fetch_codex_usage(token, self.session)
        self.cache.put(CODEX, data)
        self._notify(CODEX, data)
        return data

    async def fetch_openrouter(self) -> OpenRouterCredits:
        key = await asyncio.to_thread(read_api_key, self.secret_store)
        data = await fetch_openrouter_credits(key, self.session)
        self.cache.put(OPENROUTER, data)
        return data

    def cached(self, provider: str):
        return self.cache.get(provider)

    async def refresh_all(self, providers: list[str] | None = None) -> dict:
        """Fetch every provider; a failure becomes its error string."""
        fetchers = {
            CLAUDE: self.fetch_claude,
            CODEX: self.fetch_codex,
            OPENROUTER: self.fetch_openrouter,
        }
        names = providers or list(fetchers)
        results = await asyncio.gather(
            *(fetchers[n]() for n in names), return_exceptions=True
        )
        out = {}
        for name, result in zip(names, results):
            if isinstance(result, UsageBarError):
                log.error("%s fetch failed: %s", name, result)
                out[name] = str(result)
            elif isinstance(result, BaseException):
                raise result
            else:
                out[name] = result
        return out


class IntervalTicker:
    """Calls *callback* every ``interval_fn()`` seconds.

    The interval is re-read each tick so settings changes apply without a
    restart; *sleep* is injectable for tests.
    """

    def __init__(self, callback: Callable[[], Awaitable[object]],
                 interval_fn: Callable[[], float],
                 sleep: Callable[[float], Awaitable[None]] = asyncio.sleep):
        self.callback = callback
        self.interval_fn = interval_fn
        self.sleep = sleep
        self.ticks = 0

    async def run(self, max_ticks: int | None = None, immediate: bool = True):
        if immediate:
            await self._tick()
        while max_ticks is None or self.ticks < max_ticks:
            await self.sleep(self.interval_fn())
            await self._tick()

    async def _tick(self):
        self.ticks += 1
        try:
            await self.callback()
        except UsageBarError as e:
            log.error("refresh failed: %s", e)
