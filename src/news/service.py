"""
News service: picks the configured adapter, routes category or direct queries through the
edition cache, and shapes the JSON payload served by the API.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import Any, Callable, Dict, Optional, Sequence

from src.news.adapters.base import BaseNewsAdapter
from src.news.adapters.gdelt import GdeltAdapter
from src.news.adapters.mock import MockAdapter
from src.news.adapters.newsapi import NewsApiAdapter
from src.news.cache import EditionCache, now_ms
from src.news.categories import parse_category_param
from src.news.config import NewsSettings, load_settings, resolve_adapter_name
from src.news.frontpage import FrontPageBuilder, ProviderEntry, mock_query_builder
from src.news.normalize import sanitize_query
from src.news.resolver import build_category_query
from src.news.types import Edition

LOGGER = logging.getLogger(__name__)

CACHE_CONTROL = "public, max-age=0, s-maxage=120, stale-while-revalidate=300"


def build_adapters(settings: NewsSettings) -> Dict[str, BaseNewsAdapter]:
    return {
        "mock": MockAdapter(path=settings.mock_data_path),
        "gdelt": GdeltAdapter(us_only=settings.gdelt_us_only),
        "newsapi": NewsApiAdapter(api_key=settings.newsapi_key),
    }


def invalid_response(q: str) -> dict[str, Any]:
    return {"sections": [], "debug": {"q": q, "invalid": True}}


class NewsService:
    def __init__(
        self,
        settings: Optional[NewsSettings] = None,
        cache: Optional[EditionCache] = None,
        adapters: Optional[Dict[str, BaseNewsAdapter]] = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self.settings = settings or NewsSettings()
        self.cache = cache if cache is not None else EditionCache(clock=clock)
        self.adapters = adapters if adapters is not None else build_adapters(self.settings)
        self.adapter_name = resolve_adapter_name(self.settings.adapter_name)
        self._clock = clock

        providers = [
            ProviderEntry(name="gdelt", adapter=self.adapters["gdelt"], query_builder=build_category_query),
            ProviderEntry(name="newsapi", adapter=self.adapters["newsapi"], ttl_ms=self.settings.fallback_ttl_ms),
        ]
        primary = None
        if self.adapter_name == "mock":
            primary = ProviderEntry(name="mock", adapter=self.adapters["mock"], query_builder=mock_query_builder)
        self.front_page = FrontPageBuilder(
            self.cache,
            providers,
            primary=primary,
            base_query=self.settings.base_query,
            ttl_ms=self.settings.cache_ttl_ms,
        )

    @property
    def adapter(self) -> BaseNewsAdapter:
        return self.adapters[self.adapter_name]

    async def direct_edition(self, q: str) -> Edition:
        """Query the primary adapter; when newsapi comes back empty, fall back to GDELT."""

        async def fetch_with_fallback() -> Edition:
            primary = await self.adapter(q)
            if primary.has_stories() or self.adapter_name != "newsapi":
                return primary
            LOGGER.info("Primary adapter newsapi returned no stories for %r; falling back to gdelt.", q)
            fallback = self.adapters["gdelt"]
            return await self.cache.get(
                f"news:gdelt:{q}",
                self.settings.fallback_ttl_ms,
                lambda: fallback(q),
            )

        return await self.cache.get(f"news:{self.adapter_name}:{q}", self.settings.cache_ttl_ms, fetch_with_fallback)

    async def path_edition(self, q: str) -> Edition:
        adapter = self.adapter
        return await self.cache.get(f"news:{self.adapter_name}:{q}", self.settings.cache_ttl_ms, lambda: adapter(q))

    def _payload(self, edition: Edition, debug: dict[str, Any], fetched_at: int) -> dict[str, Any]:
        payload = edition.to_serializable()
        payload["meta"] = {**edition.meta, "fetchedAt": fetched_at}
        payload["debug"] = debug
        return payload

    async def news_response(
        self,
        raw_q: Optional[str] = None,
        categories: Optional[str] = None,
        full_url: Optional[str] = None,
    ) -> dict[str, Any]:
        raw = raw_q or ""
        sanitized = sanitize_query(raw)
        fetched_at = self._clock()
        if raw and not sanitized.valid:
            LOGGER.info("Rejected invalid query %r", raw)
            return invalid_response(sanitized.query)

        category_ids = parse_category_param(categories)
        use_categories = not raw and bool(category_ids)
        if use_categories:
            edition = await self.front_page.build(category_ids)
        else:
            edition = await self.direct_edition(sanitized.query)

        debug: dict[str, Any] = {"q": sanitized.query}
        if use_categories:
            debug["categories"] = category_ids
        if full_url:
            debug["fullUrl"] = full_url
        return self._payload(edition, debug, fetched_at)

    async def path_response(self, raw_q: str, full_url: Optional[str] = None) -> dict[str, Any]:
        sanitized = sanitize_query(raw_q or "")
        fetched_at = self._clock()
        if not sanitized.valid:
            LOGGER.info("Rejected invalid path query %r", raw_q)
            return invalid_response(sanitized.query)
        edition = await self.path_edition(sanitized.query)
        debug: dict[str, Any] = {"q": sanitized.query}
        if full_url:
            debug["fullUrl"] = full_url
        return self._payload(edition, debug, fetched_at)

    async def close(self) -> None:
        for adapter in self.adapters.values():
            await adapter.close()


async def _run(args: argparse.Namespace) -> dict[str, Any]:
    settings = load_settings()
    if args.adapter:
        settings.adapter_name = resolve_adapter_name(args.adapter)
    service = NewsService(settings)
    try:
        return await service.news_response(args.q, args.categories)
    finally:
        await service.close()


def main(argv: Sequence[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Build a news edition in-process and print it as JSON.")
    parser.add_argument("--q", default="", help="Direct search query (2-25 characters).")
    parser.add_argument(
        "--categories",
        default="",
        help="Comma-separated category ids, e.g. global,business,tech (ignored when --q is set).",
    )
    parser.add_argument(
        "--adapter",
        default=None,
        help="Override NEWS_ADAPTER (mock, gdelt or newsapi).",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Python logging level (default: INFO).",
    )
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stdout,
        force=True,
    )

    payload = asyncio.run(_run(args))
    sections = payload.get("sections") or []
    LOGGER.info(
        "Built edition with %s sections and %s stories",
        len(sections),
        sum(len(section.get("stories") or []) for section in sections),
    )
    print(json.dumps(payload, indent=2, ensure_ascii=False))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
