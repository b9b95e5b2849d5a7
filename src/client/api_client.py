"""
Async HTTP client for the news API, used by the search controller and the front-page gate.
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Optional, Sequence
from urllib.parse import quote

import aiohttp

LOGGER = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://localhost:8000"

FetchJson = Callable[[str, Optional[dict[str, str]]], Awaitable[dict[str, Any]]]


def front_page_path() -> str:
    return "/api/news.json"


def search_path(query: str) -> str:
    return f"/api/news/{quote(query, safe='')}.json"


class NewsApiClient:
    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._session = session
        self._owns_session = False

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(headers={"Accept": "application/json"})
            self._owns_session = True
        return self._session

    async def fetch_json(self, path: str, params: Optional[dict[str, str]] = None) -> dict[str, Any]:
        """GET `path` and decode JSON; raises `aiohttp.ClientResponseError` on HTTP errors."""
        session = await self._get_session()
        url = f"{self.base_url}{path}"
        LOGGER.debug("GET %s params=%s", url, params)
        async with session.get(url, params=params) as response:
            response.raise_for_status()
            payload = await response.json(content_type=None)
        return payload if isinstance(payload, dict) else {}

    async def front_page(self, category_ids: Sequence[str]) -> dict[str, Any]:
        params = {"categories": ",".join(category_ids)} if category_ids else None
        return await self.fetch_json(front_page_path(), params)

    async def search(self, query: str) -> dict[str, Any]:
        return await self.fetch_json(search_path(query))

    async def close(self) -> None:
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None
        self._owns_session = False
