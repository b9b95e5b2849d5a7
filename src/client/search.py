"""
Search override: debounced, cancellable, version-guarded API search that replaces the
categorized front page while a valid query is active.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, List, Optional, Sequence

from src.client.api_client import FetchJson, search_path
from src.client.composer import rebucket_search_sections
from src.client.store import LocalStore, VersionedCache
from src.news.cache import now_ms
from src.news.normalize import sanitize_query
from src.news.types import Edition, Section

LOGGER = logging.getLogger(__name__)

SEARCH_KEY = "hn_search_q"
SEARCH_EVT = "hn-search-change"
SEARCH_CACHE_PREFIX = "hn_search_cache_v1:"
SEARCH_CACHE_TTL_MS = 2 * 60 * 1000
DEBOUNCE_MS = 400
SEARCH_ERROR = "Search failed (API)."


class SearchController:
    def __init__(
        self,
        store: LocalStore,
        fetch_json: FetchJson,
        labels: Sequence[str] = (),
        debounce_ms: int = DEBOUNCE_MS,
        clock: Callable[[], int] = now_ms,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.store = store
        self.fetch_json = fetch_json
        self.labels = list(labels)
        self.debounce_ms = debounce_ms
        self.cache = VersionedCache(store, SEARCH_CACHE_PREFIX, SEARCH_CACHE_TTL_MS, clock=clock)
        self._clock = clock
        self._sleep = sleep

        self.query = ""
        self.sections: Optional[List[Section]] = None
        self.loading = False
        self.error = ""
        self._request_id = 0
        self._last_fetch = 0
        self._task: Optional[asyncio.Task] = None

    @property
    def active(self) -> bool:
        return self.sections is not None

    @property
    def result_sections(self) -> Optional[List[Section]]:
        """Search results bucketed into the selected labels, or None when no search is active."""
        if self.sections is None:
            return None
        return rebucket_search_sections(self.sections, self.labels)

    def set_query(self, raw: str) -> None:
        self.store.set(SEARCH_KEY, raw)
        self.store.publish(SEARCH_EVT, raw)
        self.update(raw)

    def restore(self) -> None:
        self.update(self.store.get(SEARCH_KEY, "") or "")

    def _cancel(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    def update(self, raw: str) -> None:
        sanitized = sanitize_query(raw)
        query = sanitized.query.lower().strip()
        if not query or not sanitized.valid:
            self._cancel()
            self.query = ""
            self.sections = None
            self.loading = False
            self.error = ""
            return

        self.query = query
        cached = self.cache.read(query)
        has_cached = bool(cached and cached.sections)
        if cached and has_cached:
            self.cache.set_applied(query, cached.version)
            self.sections = cached.sections
            self.loading = False
            self.error = ""
            LOGGER.debug("Search cache hit for %r (v%s)", query, cached.version)
        else:
            self.cache.forget(query)

        wait_ms = max(0, self.debounce_ms - (self._clock() - self._last_fetch))
        self._cancel()
        self._task = asyncio.ensure_future(self._delayed(query, wait_ms, has_cached))

    async def _delayed(self, query: str, wait_ms: int, has_cached: bool) -> None:
        if wait_ms:
            await self._sleep(wait_ms / 1000)
        self._last_fetch = self._clock()
        await self._run(query, has_cached)

    async def _run(self, query: str, has_cached: bool) -> None:
        if not has_cached:
            self.loading = True
        self.error = ""
        self._request_id += 1
        request_id = self._request_id
        try:
            payload = await self.fetch_json(search_path(query), None)
        except asyncio.CancelledError:
            raise
        except Exception as exc:  # noqa: BLE001
            if request_id != self._request_id:
                return
            LOGGER.warning("Search request for %r failed: %s", query, exc)
            self.sections = []
            self.error = SEARCH_ERROR
            return
        finally:
            if request_id == self._request_id:
                self.loading = False

        if request_id != self._request_id:
            return
        edition = Edition.from_dict(payload)
        version = edition.fetched_at
        if not self.cache.accept(query, version):
            return
        self.sections = edition.sections
        self.cache.write(query, edition.sections, version)
        LOGGER.debug("Applied search results for %r (v%s)", query, version)

    async def wait(self) -> None:
        task = self._task
        if task is None:
            return
        try:
            await task
        except asyncio.CancelledError:
            if task is self._task:
                raise

    def close(self) -> None:
        self._cancel()
