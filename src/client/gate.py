"""
Front-page gate: owns the category selection, fetches category-routed editions with a timeout,
and guards applied sections against stale responses.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, List, Optional, Sequence

from src.client.api_client import FetchJson, front_page_path
from src.client.bookmarks import Bookmarks
from src.client.cards import CardStateMachine
from src.client.composer import FrontPageView, build_edition, build_exact_sections, compose_front_page
from src.client.search import SearchController
from src.client.store import LocalStore, VersionedCache
from src.news.cache import now_ms
from src.news.categories import DEFAULT_CATEGORY_IDS, MAX_SELECTED_CATEGORIES, find_category, labels_for
from src.news.types import Edition, Section

LOGGER = logging.getLogger(__name__)

SELECTED_KEY = "hn_selected_categories"
SECTIONS_EVT = "hn-sections-change"
FRONT_CACHE_PREFIX = "hn_frontpage_cache_v1:"
FRONT_CACHE_TTL_MS = 2 * 60 * 1000
FRONT_RESET_KEY = "hn_frontpage_cache_reset"
TOP_ROW_KEY = "hn_top_row_kickers"
TOP_ROW_EVT = "hn-top-row-change"
STORY_COUNT_KEY = "hn_story_count"
STORY_COUNT_EVT = "hn-story-count"
LOAD_TIMEOUT_SECONDS = 60.0
SSR_FRESH_MS = 90_000


def page_key(mode: str) -> str:
    return f"hn_page_{mode}"


def bookmarks_only_key(mode: str) -> str:
    return f"hn_bookmarksOnly_{mode}"


class FrontPageGate:
    def __init__(
        self,
        store: LocalStore,
        fetch_json: FetchJson,
        server_edition: Optional[Edition] = None,
        timeout: float = LOAD_TIMEOUT_SECONDS,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self.store = store
        self.fetch_json = fetch_json
        self.server_edition = server_edition or Edition()
        self.timeout = timeout
        self.cache = VersionedCache(
            store,
            FRONT_CACHE_PREFIX,
            FRONT_CACHE_TTL_MS,
            reset_key=FRONT_RESET_KEY,
            clock=clock,
        )
        self._clock = clock
        self._task: Optional[asyncio.Task] = None

        self.live_sections: Optional[List[Section]] = None
        self.live_key = ""
        self.live_version = 0
        self.timed_out = False
        self.selected_ids = self.load_selected()
        self._restore_from_cache()

    def load_selected(self) -> List[str]:
        raw = self.store.get_json(SELECTED_KEY, [])
        values = [value for value in raw if isinstance(value, str)] if isinstance(raw, list) else []
        unique = [value for value in dict.fromkeys(values) if find_category(value) is not None]
        if unique:
            return unique[:MAX_SELECTED_CATEGORIES]
        fallback = DEFAULT_CATEGORY_IDS[:MAX_SELECTED_CATEGORIES]
        self.store.set_json(SELECTED_KEY, fallback)
        return list(fallback)

    @property
    def selected_key(self) -> str:
        return "|".join(self.selected_ids)

    @property
    def selected_labels(self) -> List[str]:
        return labels_for(self.selected_ids)

    @property
    def uses_server_sections(self) -> bool:
        return self.selected_ids == DEFAULT_CATEGORY_IDS[:MAX_SELECTED_CATEGORIES]

    @property
    def sections(self) -> List[Section]:
        if self.live_sections is not None and self.live_key == self.selected_key:
            return self.live_sections
        if self.uses_server_sections:
            return self.server_edition.sections
        return []

    @property
    def placeholder_state(self) -> Optional[str]:
        if self.sections:
            return None
        return "error" if self.timed_out else "loading"

    @property
    def status_message(self) -> str:
        if self.sections:
            return ""
        if self.timed_out:
            return "No stories found - try different categories"
        return "Rendering latest stories..."

    def _restore_from_cache(self) -> None:
        cached = self.cache.read(self.selected_key)
        if cached and cached.sections:
            self.live_sections = cached.sections
            self.live_key = self.selected_key
            self.live_version = cached.version
            self.cache.set_applied(self.selected_key, cached.version)
            return
        self.live_sections = None
        self.live_key = ""
        self.live_version = 0

    def select(self, category_ids: Sequence[str]) -> bool:
        """Persist a new selection; more than three categories is rejected."""
        cleaned = [value.strip().lower() for value in category_ids if value and value.strip()]
        unique = [value for value in dict.fromkeys(cleaned) if find_category(value) is not None]
        if len(unique) > MAX_SELECTED_CATEGORIES:
            LOGGER.info("Rejected selection of %s categories", len(unique))
            return False
        if unique == self.selected_ids:
            return True
        purged = self.cache.purge()
        self.store.set(FRONT_RESET_KEY, self._clock())
        self.store.set_json(SELECTED_KEY, unique)
        LOGGER.debug("Selection changed to %s; purged %s cached editions", unique, purged)
        self.selected_ids = unique
        self.cache.forget()
        self._cancel()
        self.timed_out = False
        self._restore_from_cache()
        self.store.publish(SECTIONS_EVT, list(unique))
        return True

    def sync_selection(self) -> None:
        """Re-read the persisted selection after an external change."""
        loaded = self.load_selected()
        if loaded != self.selected_ids:
            self.selected_ids = loaded
            self._restore_from_cache()

    def _cancel(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    def server_is_fresh(self) -> bool:
        fetched_at = self.server_edition.fetched_at
        return (
            self.uses_server_sections
            and bool(self.server_edition.sections)
            and bool(fetched_at)
            and self._clock() - fetched_at < SSR_FRESH_MS
        )

    async def refresh(self, force: bool = False) -> bool:
        """Fetch the selected categories; True when new sections were applied."""
        if not self.selected_ids:
            return False
        if not force and self.server_is_fresh():
            LOGGER.debug("Skipping refetch for %s; server sections are fresh.", self.selected_key)
            return False
        self._cancel()
        task = asyncio.ensure_future(self._fetch(list(self.selected_ids), self.selected_key))
        self._task = task
        try:
            return await task
        except asyncio.CancelledError:
            if task is not self._task:
                return False
            raise

    async def retry(self) -> bool:
        return await self.refresh(force=True)

    async def _fetch(self, ids: List[str], key: str) -> bool:
        self.timed_out = False
        params = {"categories": ",".join(ids)} if ids else None
        LOGGER.info("Front page fetch start for %s", key)
        try:
            payload = await asyncio.wait_for(self.fetch_json(front_page_path(), params), timeout=self.timeout)
        except asyncio.TimeoutError:
            LOGGER.warning("Front page fetch for %s timed out after %ss", key, self.timeout)
            self.timed_out = True
            return False
        except Exception as exc:  # noqa: BLE001
            LOGGER.warning("Front page fetch for %s failed: %s", key, exc)
            self.timed_out = True
            return False

        edition = Edition.from_dict(payload)
        if not edition.sections:
            self.timed_out = True
            return False
        version = edition.fetched_at
        if self.live_key == key and not self.cache.is_newer(key, version):
            LOGGER.debug("Skipping stale front page v%s for %s (applied v%s)", version, key, self.live_version)
            self.timed_out = False
            return False
        applied_version = version or self._clock()
        self.cache.set_applied(key, applied_version)
        self.live_sections = edition.sections
        self.live_key = key
        self.live_version = applied_version
        self.timed_out = False
        self.cache.write(key, edition.sections, applied_version)
        return True

    def edition_sections(self, search: Optional[SearchController] = None) -> List[Section]:
        labels = self.selected_labels
        base = self.sections
        if search is not None and search.result_sections is not None:
            base = search.result_sections
        exact = build_exact_sections(base, labels, self.placeholder_state, self.selected_ids)
        return build_edition(exact, now=self._clock())

    def _stored_page(self, mode: str) -> int:
        raw = self.store.get(page_key(mode), "0")
        try:
            return int(raw or 0)
        except (TypeError, ValueError):
            LOGGER.debug("Ignoring unreadable stored page %r for %s", raw, mode)
            return 0

    def view(
        self,
        page: Optional[int] = None,
        mode: str = "all",
        search: Optional[SearchController] = None,
        bookmarks: Optional[Bookmarks] = None,
        bookmarks_only: bool = False,
    ) -> FrontPageView:
        """Compose the current page and persist the top-row kickers, story count and page."""
        requested = page if page is not None else self._stored_page(mode)
        bookmarked_ids = bookmarks.ids() if bookmarks is not None else []
        if mode == "all" or not bookmarked_ids:
            bookmarks_only = False
        if mode == "bookmarks":
            sections = bookmarks.sections() if bookmarks is not None else []
        else:
            sections = self.edition_sections(search)
        view = compose_front_page(
            sections,
            self.selected_labels,
            page=requested,
            mode=mode,
            bookmarks_only=bookmarks_only,
            bookmarked_ids=bookmarked_ids,
        )
        self.store.set(page_key(mode), view.page)
        self.store.set(bookmarks_only_key(mode), "1" if bookmarks_only else "0")
        self.store.set_json(TOP_ROW_KEY, view.top_kickers)
        self.store.publish(TOP_ROW_EVT, view.top_kickers)
        self.store.set(STORY_COUNT_KEY, len(view.stories))
        self.store.publish(STORY_COUNT_EVT, len(view.stories))
        return view

    def cards(self, view: FrontPageView) -> List[CardStateMachine]:
        return [CardStateMachine.for_story(story, on_retry=self.retry) for story in view.top]

    def close(self) -> None:
        self._cancel()
