"""
In-process caches for provider responses.

`EditionCache` memoizes whole editions by key with in-flight request coalescing;
`MemoryCache` is the plain TTL map the adapters use for their own response caches.
Both are unsynchronized and rely on running inside a single event loop.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Callable, Generic, Optional, TypeVar

from src.news.types import Edition, EditionFetcher

LOGGER = logging.getLogger(__name__)

V = TypeVar("V")


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class CacheEntry:
    expires_at: int
    value: Optional[Edition] = None
    task: Optional["asyncio.Future[Edition]"] = None


class EditionCache:
    """Keyed TTL cache that never runs two fetchers for the same key at once."""

    def __init__(self, clock: Callable[[], int] = now_ms) -> None:
        self._entries: dict[str, CacheEntry] = {}
        self._clock = clock

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def clear(self) -> None:
        self._entries.clear()

    async def get(self, key: str, ttl_ms: int, fetcher: EditionFetcher) -> Edition:
        now = self._clock()
        existing = self._entries.get(key)
        if existing:
            if existing.value is not None and existing.expires_at > now:
                LOGGER.debug("Edition cache hit for %s", key)
                return existing.value
            if existing.task is not None:
                LOGGER.debug("Joining in-flight fetch for %s", key)
                return await asyncio.shield(existing.task)
            del self._entries[key]

        entry = CacheEntry(expires_at=now + ttl_ms)
        entry.task = asyncio.ensure_future(self._settle(key, entry, now + ttl_ms, fetcher))
        self._entries[key] = entry
        return await asyncio.shield(entry.task)

    async def _settle(self, key: str, entry: CacheEntry, expires_at: int, fetcher: EditionFetcher) -> Edition:
        try:
            value = await fetcher()
        except BaseException:
            if self._entries.get(key) is entry:
                del self._entries[key]
            LOGGER.debug("Fetch for %s failed; entry dropped.", key, exc_info=True)
            raise
        if self._entries.get(key) is entry:
            self._entries[key] = CacheEntry(expires_at=expires_at, value=value)
        return value

    get_cached_edition = get


class MemoryCache(Generic[V]):
    """TTL map keyed by string; expired values are evicted on read."""

    def __init__(self, ttl_ms: int, clock: Callable[[], int] = now_ms) -> None:
        self.ttl_ms = ttl_ms
        self._clock = clock
        self._values: dict[str, tuple[V, int]] = {}

    def get(self, key: str) -> Optional[V]:
        hit = self._values.get(key)
        if not hit:
            return None
        value, expires_at = hit
        if expires_at <= self._clock():
            del self._values[key]
            return None
        return value

    def set(self, key: str, value: V) -> None:
        self._values[key] = (value, self._clock() + self.ttl_ms)

    def clear(self) -> None:
        self._values.clear()

    def __len__(self) -> int:
        return len(self._values)
