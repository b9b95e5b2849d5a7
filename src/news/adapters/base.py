"""
Shared plumbing for provider adapters: the adapter interface and the aiohttp session they borrow.
"""

from __future__ import annotations

import logging
from typing import Optional

import aiohttp

from src.news.types import Edition

LOGGER = logging.getLogger(__name__)

USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/142.0.0.0 Safari/537.36"
)


class BaseNewsAdapter:
    """Abstract interface for concrete upstream providers.

    `fetch` must never raise for provider failures; it returns an empty edition instead so
    fallback chains can move on to the next provider.
    """

    name: str

    def __init__(self, session: Optional[aiohttp.ClientSession] = None, timeout: float = 20) -> None:
        self._session = session
        self._owns_session = False
        self.timeout = timeout

    async def fetch(self, q: Optional[str] = None) -> Edition:
        raise NotImplementedError

    async def __call__(self, q: Optional[str] = None) -> Edition:
        return await self.fetch(q)

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(headers={"User-Agent": USER_AGENT})
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None
        self._owns_session = False
