"""
EventRegistry ("NewsAPI.ai") adapter.

Category queries arrive in GDELT boolean form (`"United States" AND (a OR "b c")`); they are
reduced to an EventRegistry keyword string before posting.
"""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass, field
from typing import Any, List, Optional, Tuple

import aiohttp

from src.news.adapters.base import BaseNewsAdapter
from src.news.cache import MemoryCache
from src.news.config import BASE_QUERY
from src.news.types import Edition, Section, Story

LOGGER = logging.getLogger(__name__)

CACHE_TTL_MS = 30 * 60 * 1000
MAX_KEYWORDS = 12
ARTICLES_COUNT = 30
LANGUAGE = "eng"

OPERATOR_PATTERN = re.compile(r"\b(?:AND|OR)\b", re.IGNORECASE)
BASE_PATTERN = re.compile(r"^(.*?)\s+AND\s+\(", re.IGNORECASE)
GROUP_PATTERN = re.compile(r"\((.*)\)")
OR_SPLIT = re.compile(r"\s+OR\s+", re.IGNORECASE)
TERM_PATTERN = re.compile(r'"([^"]+)"|(\S+)')


@dataclass
class KeywordQuery:
    query: str
    keywords: List[str] = field(default_factory=list)
    base: str = ""


def clean_text(value: Any) -> str:
    return re.sub(r"\s+", " ", str(value or "")).strip()


def quote_term(value: str) -> str:
    trimmed = value.strip()
    if not trimmed:
        return ""
    return f'"{trimmed}"' if " " in trimmed else trimmed


def to_keyword_text(query: Optional[str]) -> str:
    """Drop boolean operators and parentheses, keeping quoted phrases intact."""
    text = OPERATOR_PATTERN.sub(" ", str(query or ""))
    text = text.replace("(", " ").replace(")", " ")
    return clean_text(text)


def _dedupe(values: List[str]) -> List[str]:
    seen: List[str] = []
    for value in values:
        if value and value not in seen:
            seen.append(value)
    return seen


def build_keyword_query(raw_query: str, limit: int = MAX_KEYWORDS) -> KeywordQuery:
    trimmed = (raw_query or "").strip()
    if not trimmed:
        return KeywordQuery(query="")

    group_match = GROUP_PATTERN.search(trimmed)
    if group_match:
        base_match = BASE_PATTERN.match(trimmed)
        base = base_match.group(1).strip().strip('"').strip() if base_match else ""
        keywords = _dedupe([part.strip().strip('"').strip() for part in OR_SPLIT.split(group_match.group(1))])
        limited = keywords[:limit]
        terms = [quote_term(term) for term in [base, *limited] if term]
        return KeywordQuery(query=" ".join(terms) or trimmed, keywords=limited, base=base)

    tokens = [phrase or word for phrase, word in TERM_PATTERN.findall(to_keyword_text(trimmed))]
    limited = _dedupe([token.strip() for token in tokens])[:limit]
    query = " ".join(quote_term(term) for term in limited)
    return KeywordQuery(query=query or trimmed, keywords=limited)


def build_payload(api_key: str, keyword: str, limit: int = ARTICLES_COUNT) -> dict[str, Any]:
    return {
        "apiKey": api_key,
        "action": "getArticles",
        "resultType": "articles",
        "articlesPage": 1,
        "articlesCount": limit,
        "query": {"$query": {"$and": [{"keyword": keyword}, {"lang": LANGUAGE}]}},
    }


def _is_error(status: int, payload: dict[str, Any]) -> bool:
    return not 200 <= status < 300 or bool(payload.get("error") or payload.get("errorDescr"))


def _results(payload: dict[str, Any]) -> List[dict[str, Any]]:
    articles = payload.get("articles") or {}
    results = articles.get("results") if isinstance(articles, dict) else None
    return [item for item in results or [] if isinstance(item, dict)]


class NewsApiAdapter(BaseNewsAdapter):
    """Query EventRegistry's article search and rank results by position."""

    name = "newsapi"
    endpoint = "https://eventregistry.org/api/v1/article/getArticles"

    def __init__(
        self,
        api_key: str = "",
        session: Optional[aiohttp.ClientSession] = None,
        timeout: float = 20,
        limit: int = ARTICLES_COUNT,
        cache: Optional[MemoryCache[Edition]] = None,
    ) -> None:
        super().__init__(session=session, timeout=timeout)
        self.api_key = api_key
        self.limit = limit
        self.cache = cache if cache is not None else MemoryCache[Edition](CACHE_TTL_MS)

    async def fetch(self, q: Optional[str] = None) -> Edition:
        if not self.api_key:
            LOGGER.info("No EventRegistry API key configured; skipping newsapi fetch.")
            return Edition(sections=[])

        raw_query = q.strip() if q and q.strip() else BASE_QUERY
        built = build_keyword_query(raw_query)
        LOGGER.debug(
            "EventRegistry query raw=%r keyword=%r base=%r keywords=%s",
            raw_query,
            built.query,
            built.base,
            built.keywords,
        )
        cache_key = f"er:key={self.api_key}|q={built.query}|limit={self.limit}|lang={LANGUAGE}"
        cached = self.cache.get(cache_key)
        if cached is not None:
            return cached

        status, payload = await self._post(build_payload(self.api_key, built.query, self.limit))
        if _is_error(status, payload):
            LOGGER.warning(
                "EventRegistry request failed (status %s): %s %s",
                status,
                payload.get("error"),
                payload.get("errorDescr"),
            )
            return Edition(sections=[])
        raw_articles = _results(payload)

        if not raw_articles and built.base:
            retry_query = " ".join(quote_term(term) for term in built.keywords)
            if retry_query:
                LOGGER.info("EventRegistry returned nothing for %r; retrying with %r", built.query, retry_query)
                status, payload = await self._post(build_payload(self.api_key, retry_query, self.limit))
                if _is_error(status, payload):
                    LOGGER.warning(
                        "EventRegistry retry failed (status %s): %s %s",
                        status,
                        payload.get("error"),
                        payload.get("errorDescr"),
                    )
                    return Edition(sections=[])
                raw_articles = _results(payload)

        stories = [self._to_story(article, idx) for idx, article in enumerate(raw_articles)]
        LOGGER.info("EventRegistry mapped %s stories for %r", len(stories), built.query)
        edition = Edition(sections=[Section(label="Featured", stories=stories)])
        self.cache.set(cache_key, edition)
        return edition

    def _to_story(self, article: dict[str, Any], idx: int) -> Story:
        url = article.get("url") or ""
        source = article.get("source") if isinstance(article.get("source"), dict) else {}
        return Story(
            id=f"newsapi:{url}" if url else f"newsapi:{article.get('uri') or idx}",
            source=clean_text(source.get("title") or "NewsAPI.ai"),
            kicker="Featured",
            title=clean_text(article.get("title") or "Untitled"),
            summary="",
            url=url,
            image_url=article.get("image") or "",
            image_float="right",
            publish_date=article.get("dateTimePub") or article.get("dateTime") or None,
            popularity=max(0, min(100, 100 - idx)),
        )

    async def _post(self, payload: dict[str, Any]) -> Tuple[int, dict[str, Any]]:
        try:
            session = await self._get_session()
            timeout = aiohttp.ClientTimeout(total=self.timeout)
            async with session.post(
                self.endpoint,
                json=payload,
                headers={"Accept": "application/json"},
                timeout=timeout,
            ) as response:
                status = response.status
                try:
                    body = await response.json(content_type=None)
                except ValueError:
                    body = {}
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            LOGGER.warning("EventRegistry request error: %s", exc)
            return 0, {}
        return status, body if isinstance(body, dict) else {}
