"""
Server-side front page: one section per selected category, each filled by the first provider
in a fallback chain that returns enough stories.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

from src.news.adapters.base import BaseNewsAdapter
from src.news.cache import EditionCache
from src.news.categories import (
    DEFAULT_CATEGORY_IDS,
    find_category,
    label_for_category,
    normalize_category_ids,
)
from src.news.config import BASE_QUERY, CACHE_TTL_MS
from src.news.normalize import keep_first, merge_by_key, normalize_key
from src.news.resolver import (
    CategoryQueryBuilder,
    resolve_category_query,
    score_story_for_category,
)
from src.news.types import Edition, Section, Story

LOGGER = logging.getLogger(__name__)


@dataclass
class ProviderEntry:
    """One link of a fallback chain: an adapter plus how to query and cache it."""

    name: str
    adapter: BaseNewsAdapter
    ttl_ms: Optional[int] = None
    query_builder: Optional[CategoryQueryBuilder] = None
    min_stories: int = 1

    async def fetch(self, query: str) -> Edition:
        return await self.adapter(query)

    def min_acceptable(self, edition: Edition) -> bool:
        return len(edition.first_stories) >= self.min_stories


def mock_query_builder(category_id: str, _base_query: str) -> str:
    return label_for_category(category_id)


def _stories_for_label(edition: Edition, label: str) -> List[Story]:
    key = normalize_key(label)
    for section in edition.sections:
        if normalize_key(section.label) == key:
            return list(section.stories)
    return edition.first_stories


class FrontPageBuilder:
    def __init__(
        self,
        cache: EditionCache,
        providers: Sequence[ProviderEntry],
        primary: Optional[ProviderEntry] = None,
        base_query: str = BASE_QUERY,
        ttl_ms: int = CACHE_TTL_MS,
    ) -> None:
        self.cache = cache
        self.providers = list(providers)
        self.primary = primary
        self.base_query = base_query
        self.ttl_ms = ttl_ms

    async def _fetch_entry(self, entry: ProviderEntry, category_id: str, base_query: str, ttl_ms: int) -> Edition:
        query = resolve_category_query(entry.query_builder, category_id, base_query)
        cache_key = f"frontpage:{entry.name}:{category_id}:{query}"
        LOGGER.info("Category %s using %s with query %r", category_id, entry.name, query)
        return await self.cache.get(cache_key, entry.ttl_ms or ttl_ms, lambda: entry.fetch(query))

    async def try_in_order(
        self,
        providers: Sequence[ProviderEntry],
        category_id: str,
        base_query: Optional[str] = None,
        ttl_ms: Optional[int] = None,
    ) -> List[Story]:
        """Return the first provider result that passes `min_acceptable`, else []."""
        base = self.base_query if base_query is None else base_query
        ttl = ttl_ms or self.ttl_ms
        for entry in providers:
            try:
                edition = await self._fetch_entry(entry, category_id, base, ttl)
            except Exception as exc:  # noqa: BLE001
                LOGGER.warning("Provider %s failed for category %s: %s", entry.name, category_id, exc)
                continue
            if entry.min_acceptable(edition):
                LOGGER.info(
                    "Category %s filled by %s with %s stories",
                    category_id,
                    entry.name,
                    len(edition.first_stories),
                )
                return edition.first_stories
            LOGGER.info("Provider %s returned too few stories for %s; trying next.", entry.name, category_id)
        LOGGER.warning("All providers exhausted for category %s", category_id)
        return []

    async def _stories_from_mock(
        self, primary: ProviderEntry, category_id: str, base_query: str, ttl_ms: int
    ) -> List[Story]:
        edition = await self._fetch_entry(primary, category_id, base_query, ttl_ms)
        return _stories_for_label(edition, label_for_category(category_id))

    async def _category_stories(self, category_id: str, base_query: str, ttl_ms: int) -> List[Story]:
        if self.primary is not None and self.primary.name == "mock":
            return await self._stories_from_mock(self.primary, category_id, base_query, ttl_ms)
        return await self.try_in_order(self.providers, category_id, base_query, ttl_ms)

    async def build(
        self,
        category_ids: Optional[Sequence[str]] = None,
        base_query: Optional[str] = None,
        ttl_ms: Optional[int] = None,
    ) -> Edition:
        ids = normalize_category_ids(DEFAULT_CATEGORY_IDS if category_ids is None else category_ids)
        if not ids:
            return Edition(sections=[])
        base = self.base_query if base_query is None else base_query
        ttl = ttl_ms or self.ttl_ms

        results = await asyncio.gather(
            *(self._category_stories(category_id, base, ttl) for category_id in ids),
            return_exceptions=True,
        )
        sections: List[Section] = []
        for category_id, result in zip(ids, results):
            label = label_for_category(category_id)
            if isinstance(result, BaseException):
                LOGGER.warning("Category %s failed: %s", category_id, result)
                stories: List[Story] = []
            else:
                stories = [story.with_changes(kicker=label) for story in result]
            sections.append(Section(label=label, stories=stories, category_id=category_id))
        return Edition(sections=sections)

    get_front_page_edition = build

    async def build_mixed(
        self,
        category_id: str,
        primary: ProviderEntry,
        secondary: ProviderEntry,
        base_query: Optional[str] = None,
        ttl_ms: Optional[int] = None,
    ) -> Section:
        """Lead with the primary provider's top story when it fits the category.

        The lead's popularity is lifted above every secondary story, past the usual 0-100 range,
        so it always takes the first slot.
        """
        label = label_for_category(category_id)
        category = find_category(category_id)
        base = self.base_query if base_query is None else base_query
        ttl = ttl_ms or self.ttl_ms

        lead: Optional[Story] = None
        try:
            primary_edition = await self._fetch_entry(primary, category_id, base, ttl)
        except Exception as exc:  # noqa: BLE001
            LOGGER.warning("Primary provider %s failed for %s: %s", primary.name, category_id, exc)
            primary_edition = Edition(sections=[])
        if primary_edition.first_stories:
            candidate = primary_edition.first_stories[0]
            min_score = category.min_score if category else 1
            if score_story_for_category(candidate, category) >= min_score:
                lead = candidate
            else:
                LOGGER.debug("Primary lead %s does not match category %s", candidate.id, category_id)

        secondary_stories = await self.try_in_order([secondary], category_id, base, ttl)
        stories: List[Story] = []
        if lead is not None:
            top = max((story.popularity or 0 for story in secondary_stories), default=0)
            stories.append(lead.with_changes(popularity=max(100, top) + 1))
        stories.extend(secondary_stories)
        unique = merge_by_key(stories, key=lambda story: story.id, choose=keep_first)
        return Section(
            label=label,
            stories=[story.with_changes(kicker=label) for story in unique],
            category_id=category_id,
        )
