"""
GDELT Document API adapter.

Articles are filtered to US English outlets (unless disabled), scored for popularity from
recency, headline clustering and source trust, deduplicated per headline and day, and the
top stories are enriched with a short description scraped from the article page.
"""

from __future__ import annotations

import asyncio
import json
import logging
import math
import re
from collections import Counter
from typing import Any, Callable, List, Optional

import aiohttp
from bs4 import BeautifulSoup

from src.news.adapters.base import BaseNewsAdapter
from src.news.cache import MemoryCache, now_ms
from src.news.config import BASE_QUERY
from src.news.normalize import (
    age_hours,
    merge_by_key,
    normalize_title,
    parse_datetime,
    title_day_key,
)
from src.news.types import Edition, Section, Story

LOGGER = logging.getLogger(__name__)

HALF_LIFE_HOURS = 8
MAX_RECORDS = 90
SUMMARY_CACHE_TTL_MS = 15 * 60 * 1000
SUMMARY_FETCH_TIMEOUT_SECONDS = 1.5
SUMMARY_MAX_LENGTH = 220
SUMMARY_ENRICH_LIMIT = 4
SUMMARY_RANGE_BYTES = 60_000
IMAGE_BONUS = 6
SUMMARY_BONUS = 2

# Preferred domains boost scoring but are not required for US-only gating.
PREFERRED_DOMAINS = [
    # National + wire
    "apnews.com",
    "reuters.com",
    "axios.com",
    "npr.org",
    "pbs.org",
    "usatoday.com",
    "politico.com",
    "thehill.com",
    "c-span.org",
    "abcnews.go.com",
    "abcnews.com",
    "cbsnews.com",
    "nbcnews.com",
    "cnn.com",
    "foxnews.com",
    "newsweek.com",
    "time.com",
    "theatlantic.com",
    "newyorker.com",
    "foreignpolicy.com",
    "csmonitor.com",
    # Opinion + politics
    "semafor.com",
    "huffpost.com",
    "thedailybeast.com",
    "dailycaller.com",
    "breitbart.com",
    "theintercept.com",
    "motherjones.com",
    "thenation.com",
    "nationalreview.com",
    "newrepublic.com",
    "nymag.com",
    "newsmax.com",
    "rawstory.com",
    "reason.com",
    "salon.com",
    "vanityfair.com",
    "thewrap.com",
    "worldofreel.com",
    "showbiz411.com",
    "rollcall.com",
    "stateline.org",
    # Business + finance
    "bloomberg.com",
    "wsj.com",
    "marketwatch.com",
    "barrons.com",
    "forbes.com",
    "fortune.com",
    "businessinsider.com",
    "investopedia.com",
    "seekingalpha.com",
    "fool.com",
    "thestreet.com",
    "nasdaq.com",
    "finance.yahoo.com",
    "cnbc.com",
    "foxbusiness.com",
    "bizjournals.com",
    "bankrate.com",
    "kiplinger.com",
    "morningstar.com",
    # Energy + utilities
    "energy.gov",
    "eia.gov",
    "oilprice.com",
    "utilitydive.com",
    "renewableenergyworld.com",
    "greentechmedia.com",
    "powermag.com",
    "rigzone.com",
    # Tech
    "theverge.com",
    "cnet.com",
    "techcrunch.com",
    "wired.com",
    "arstechnica.com",
    "engadget.com",
    "gizmodo.com",
    "pcmag.com",
    "zdnet.com",
    "venturebeat.com",
    "thenextweb.com",
    "tomshardware.com",
    "tomsguide.com",
    "androidcentral.com",
    "9to5mac.com",
    "9to5google.com",
    "macrumors.com",
    "techradar.com",
    "bgr.com",
    "pcworld.com",
    "computerworld.com",
    "infoworld.com",
    "networkworld.com",
    "cio.com",
    "techrepublic.com",
    "digitaltrends.com",
    "geekwire.com",
    "siliconangle.com",
    "anandtech.com",
    "slashdot.org",
    "theinformation.com",
    # Cybersecurity
    "bleepingcomputer.com",
    "krebsonsecurity.com",
    "thehackernews.com",
    "darkreading.com",
    "securityweek.com",
    "therecord.media",
    "csoonline.com",
    "cyberscoop.com",
    "threatpost.com",
    # Science + space
    "sciencemag.org",
    "scientificamerican.com",
    "space.com",
    "sciencenews.org",
    "sciencedaily.com",
    "livescience.com",
    "science.org",
    "nasa.gov",
    "phys.org",
    # Health
    "cdc.gov",
    "nih.gov",
    "statnews.com",
    "healthline.com",
    "webmd.com",
    "medscape.com",
    "medicalnewstoday.com",
    "kff.org",
    # Sports
    "espn.com",
    "cbssports.com",
    "nbcsports.com",
    "foxsports.com",
    "si.com",
    "bleacherreport.com",
    "sports.yahoo.com",
    # Weather
    "weather.com",
    "weather.gov",
    "noaa.gov",
    "accuweather.com",
    # Entertainment
    "variety.com",
    "hollywoodreporter.com",
    "deadline.com",
    "ew.com",
    "rollingstone.com",
    "billboard.com",
    "people.com",
    "tmz.com",
    "eonline.com",
    "vulture.com",
    # Regional + metro
    "nytimes.com",
    "nydailynews.com",
    "nypost.com",
    "washingtonpost.com",
    "latimes.com",
    "chicagotribune.com",
    "suntimes.com",
    "chicago.suntimes.com",
    "sfchronicle.com",
    "sfgate.com",
    "boston.com",
    "bostonglobe.com",
    "bostonherald.com",
    "dailynews.com",
    "dallasnews.com",
    "freep.com",
    "seattletimes.com",
    "miamiherald.com",
    "denverpost.com",
    "ajc.com",
    "startribune.com",
    "inquirer.com",
    "houstonchronicle.com",
    "stltoday.com",
    "cleveland.com",
    "azcentral.com",
    "sacbee.com",
    "kansas.com",
    "newsday.com",
    "post-gazette.com",
]

US_SOURCE_HINTS = frozenset(
    {
        # National + wire
        "ap",
        "associatedpress",
        "abcnews",
        "cbsnews",
        "cspan",
        "c-span",
        "cnn",
        "nbcnews",
        "foxnews",
        "npr",
        "pbs",
        "usatoday",
        "politico",
        "thehill",
        "reuters",
        "newsweek",
        "time",
        "atlantic",
        "theatlantic",
        "newyorker",
        "foreignpolicy",
        "csmonitor",
        # Business + finance
        "bloomberg",
        "wsj",
        "wallstreetjournal",
        "marketwatch",
        "barrons",
        "forbes",
        "fortune",
        "businessinsider",
        "investopedia",
        "seekingalpha",
        "motleyfool",
        "thestreet",
        "nasdaq",
        "yahoofinance",
        "cnbc",
        "foxbusiness",
        "bizjournals",
        "bankrate",
        "kiplinger",
        "morningstar",
        # Energy + utilities
        "energygov",
        "eia",
        "oilprice",
        "utilitydive",
        "renewableenergyworld",
        "greentechmedia",
        "powermag",
        "rigzone",
        # Tech
        "theverge",
        "cnet",
        "techcrunch",
        "wired",
        "arstechnica",
        "engadget",
        "gizmodo",
        "pcmag",
        "zdnet",
        "venturebeat",
        "thenextweb",
        "tomshardware",
        "tomsguide",
        "androidcentral",
        "9to5mac",
        "9to5google",
        "macrumors",
        "techradar",
        "bgr",
        "pcworld",
        "computerworld",
        "infoworld",
        "networkworld",
        "cio",
        "techrepublic",
        "digitaltrends",
        "geekwire",
        "siliconangle",
        "anandtech",
        "slashdot",
        "theinformation",
        # Cybersecurity
        "bleepingcomputer",
        "krebsonsecurity",
        "thehackernews",
        "darkreading",
        "securityweek",
        "therecord",
        "csoonline",
        "cyberscoop",
        "threatpost",
        # Science + space
        "sciencemag",
        "scientificamerican",
        "space",
        "sciencenews",
        "sciencedaily",
        "livescience",
        "science",
        "nasa",
        "phys",
        # Health
        "cdc",
        "nih",
        "statnews",
        "healthline",
        "webmd",
        "medscape",
        "medicalnewstoday",
        "kff",
        # Sports
        "espn",
        "cbssports",
        "nbcsports",
        "foxsports",
        "sportsillustrated",
        "bleacherreport",
        "yahoosports",
        # Weather
        "weather",
        "noaa",
        "accuweather",
        # Entertainment
        "variety",
        "hollywoodreporter",
        "deadline",
        "entertainmentweekly",
        "ew",
        "rollingstone",
        "billboard",
        "people",
        "tmz",
        "eonline",
        "vulture",
        "showbiz411",
        "worldofreel",
        # Regional + metro
        "nytimes",
        "newyorktimes",
        "washingtonpost",
        "latimes",
        "bostonglobe",
        "bostonherald",
        "boston",
        "chicagotribune",
        "suntimes",
        "sfchronicle",
        "sfgate",
        "dallasnews",
        "seattletimes",
        "miamiherald",
        "denverpost",
        "ajc",
        "startribune",
        "inquirer",
        "houstonchronicle",
        "stltoday",
        "cleveland",
        "azcentral",
        "sacbee",
        "kansas",
        "newsday",
        "postgazette",
        # Opinion + magazines
        "motherjones",
        "thenation",
        "nationalreview",
        "breitbart",
        "newrepublic",
        "newyork",
        "nymag",
        "newsmax",
        "reason",
        "salon",
        "vanityfair",
        "thewrap",
        # Misc
        "dailybeast",
        "dailycaller",
        "mediaite",
        "rawstory",
        "stateline",
        "rollcall",
        "semafor",
        "huffingtonpost",
        "huffpost",
        "intercept",
        "theintercept",
        "crazydaysandnights",
        "freepress",
        "freep",
        "elnuevodia",
        "ladailynews",
        "nydailynews",
        "nypost",
    }
)

META_DESCRIPTION_ATTRS = (
    ("property", "og:description"),
    ("name", "description"),
    ("property", "twitter:description"),
    ("name", "twitter:description"),
)

PUNCTUATION_MAP = str.maketrans(
    {
        "“": '"',
        "”": '"',
        "‘": "'",
        "’": "'",
        "–": "-",
        "—": "-",
        "\xa0": " ",
    }
)
NON_PRINTABLE = re.compile(r"[^\x20-\x7E]+")
NON_ALNUM = re.compile(r"[^a-z0-9]+")


def normalize_source_key(value: Optional[str]) -> str:
    return NON_ALNUM.sub("", str(value or "").lower())


def is_us_tld(domain: Optional[str]) -> bool:
    clean = str(domain or "").lower().strip()
    return bool(clean) and clean.endswith(".us")


def is_preferred_domain(domain: Optional[str]) -> bool:
    clean = str(domain or "").lower().strip()
    if not clean:
        return False
    return any(clean == suffix or clean.endswith(f".{suffix}") for suffix in PREFERRED_DOMAINS)


def is_us_article(article: dict[str, Any]) -> bool:
    country = str(article.get("sourcecountry") or "").lower()
    if country in {"us", "usa"} or "united states" in country:
        return True
    if is_us_tld(article.get("domain")):
        return True
    return normalize_source_key(article.get("sourcecommonname")) in US_SOURCE_HINTS


def is_english_article(article: dict[str, Any]) -> bool:
    language = str(article.get("language") or "").lower()
    return language == "english" or language.startswith("en")


def source_score(article: dict[str, Any]) -> float:
    if normalize_source_key(article.get("sourcecommonname")) in US_SOURCE_HINTS:
        return 1.0
    domain = article.get("domain")
    if is_preferred_domain(domain):
        return 0.8
    if is_us_tld(domain):
        return 0.7
    return 0.4


def _clamp01(value: float) -> float:
    return max(0.0, min(1.0, value))


def compute_popularity(article: dict[str, Any], title_counts: Counter, now: int) -> int:
    """Blend recency (8h half-life), headline clustering and source trust into 0-100."""
    hours = age_hours(_iso_date(article.get("seendate")), now)
    recency = math.exp(-hours / HALF_LIFE_HOURS) if math.isfinite(hours) else 0.0
    title_key = normalize_title(article.get("title"))
    cluster_count = title_counts.get(title_key, 1) if title_key else 1
    cluster = _clamp01((cluster_count - 1) / 4)
    score = 100 * _clamp01(0.6 * recency + 0.25 * cluster + 0.15 * source_score(article))
    return max(0, min(100, round(score)))


def story_quality(story: Story) -> float:
    base = float(story.popularity or 0)
    image = IMAGE_BONUS if story.image_url else 0
    summary = SUMMARY_BONUS if story.summary else 0
    return base + image + summary


def pick_best_story(existing: Story, incoming: Story) -> Story:
    return incoming if story_quality(incoming) > story_quality(existing) else existing


def dedupe_stories(stories: List[Story]) -> List[Story]:
    """Collapse same-headline, same-day stories, keeping the best one at the first position."""
    return merge_by_key(
        stories,
        key=lambda story: title_day_key(story.title, story.publish_date),
        choose=pick_best_story,
    )


def _iso_date(raw: Optional[str]) -> str:
    parsed = parse_datetime(raw)
    return parsed.isoformat() if parsed else ""


def clean_description(value: str) -> str:
    text = value.translate(PUNCTUATION_MAP)
    text = NON_PRINTABLE.sub(" ", text)
    return re.sub(r"\s+", " ", text).strip()


def extract_meta_description(html: str) -> str:
    if not html:
        return ""
    soup = BeautifulSoup(html, "html.parser")
    for attr, value in META_DESCRIPTION_ATTRS:
        tag = soup.find("meta", attrs={attr: value})
        content = tag.get("content") if tag else None
        if content:
            cleaned = clean_description(str(content))
            if cleaned:
                return cleaned
    return ""


def trim_summary(summary: str) -> str:
    clean = re.sub(r"\s+", " ", summary or "").strip()
    if len(clean) <= SUMMARY_MAX_LENGTH:
        return clean
    return f"{clean[:SUMMARY_MAX_LENGTH].strip()}…"


class SummaryFetcher:
    """Scrapes article meta descriptions with a short, byte-limited request."""

    def __init__(
        self,
        adapter: "GdeltAdapter",
        cache: Optional[MemoryCache[str]] = None,
        timeout: float = SUMMARY_FETCH_TIMEOUT_SECONDS,
    ) -> None:
        self.adapter = adapter
        self.cache = cache if cache is not None else MemoryCache[str](SUMMARY_CACHE_TTL_MS)
        self.timeout = timeout

    async def fetch(self, url: Optional[str]) -> str:
        if not url:
            return ""
        cached = self.cache.get(url)
        if cached:
            return cached
        try:
            html = await self._download(url)
        except (aiohttp.ClientError, asyncio.TimeoutError, UnicodeDecodeError) as exc:
            LOGGER.debug("Summary fetch failed for %s: %s", url, exc)
            return ""
        summary = trim_summary(extract_meta_description(html or ""))
        if summary:
            self.cache.set(url, summary)
        return summary

    async def _download(self, url: str) -> Optional[str]:
        session = await self.adapter._get_session()
        headers = {
            "Accept": "text/html,application/xhtml+xml",
            "Range": f"bytes=0-{SUMMARY_RANGE_BYTES}",
        }
        timeout = aiohttp.ClientTimeout(total=self.timeout)
        async with session.get(url, headers=headers, timeout=timeout) as response:
            if response.status >= 400:
                return None
            return await response.text(errors="ignore")


class GdeltAdapter(BaseNewsAdapter):
    """Fetch and score stories from the GDELT Document API."""

    name = "gdelt"
    endpoint = "https://api.gdeltproject.org/api/v2/doc/doc"

    def __init__(
        self,
        session: Optional[aiohttp.ClientSession] = None,
        us_only: bool = True,
        max_records: int = MAX_RECORDS,
        timeout: float = 20,
        enrich_limit: int = SUMMARY_ENRICH_LIMIT,
        summary_cache: Optional[MemoryCache[str]] = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        super().__init__(session=session, timeout=timeout)
        self.us_only = us_only
        self.max_records = max_records
        self.enrich_limit = enrich_limit
        self.summaries = SummaryFetcher(self, cache=summary_cache)
        self._clock = clock

    async def fetch(self, q: Optional[str] = None) -> Edition:
        query = q.strip() if q and q.strip() else BASE_QUERY
        raw_articles = await self._fetch_articles(query)
        if self.us_only:
            articles = [article for article in raw_articles if is_us_article(article) and is_english_article(article)]
        else:
            articles = list(raw_articles)
        LOGGER.info(
            "GDELT query '%s' returned %s articles (%s after US/English filter)",
            query,
            len(raw_articles),
            len(articles),
        )
        title_counts: Counter = Counter()
        for article in articles:
            key = normalize_title(article.get("title"))
            if key:
                title_counts[key] += 1

        now = self._clock()
        stories = [self._to_story(article, idx, title_counts, now) for idx, article in enumerate(articles)]
        unique = dedupe_stories(stories)
        if len(unique) != len(stories):
            LOGGER.debug("Collapsed %s duplicate GDELT stories", len(stories) - len(unique))
        enriched = await self._enrich(unique)
        return Edition(sections=[Section(label="News", stories=enriched)])

    def _to_story(self, article: dict[str, Any], idx: int, title_counts: Counter, now: int) -> Story:
        url = article.get("url") or ""
        return Story(
            id=f"gdelt:{url}" if url else f"gdelt:{idx}",
            source=article.get("sourcecommonname") or article.get("domain") or "GDELT",
            kicker="News",
            title=article.get("title") or "Untitled",
            summary="",
            url=url,
            image_url=article.get("socialimage") or "",
            image_float="right",
            publish_date=_iso_date(article.get("seendate")) or None,
            popularity=compute_popularity(article, title_counts, now),
        )

    async def _enrich(self, stories: List[Story]) -> List[Story]:
        if self.enrich_limit <= 0:
            return stories
        candidates = sorted(
            (story for story in stories if story.url),
            key=lambda story: story.popularity or 0,
            reverse=True,
        )[: self.enrich_limit]
        if not candidates:
            return stories
        results = await asyncio.gather(
            *(self.summaries.fetch(story.url) for story in candidates),
            return_exceptions=True,
        )
        summaries = {
            story.id: result
            for story, result in zip(candidates, results)
            if isinstance(result, str) and result
        }
        if not summaries:
            return stories
        return [
            story.with_changes(summary=summaries[story.id]) if story.id in summaries else story
            for story in stories
        ]

    async def _fetch_articles(self, query: str) -> List[dict[str, Any]]:
        params = {
            "query": query,
            "format": "json",
            "maxrecords": str(self.max_records),
            "mode": "ArtList",
            "sort": "DateDesc",
        }
        try:
            session = await self._get_session()
            timeout = aiohttp.ClientTimeout(total=self.timeout)
            async with session.get(self.endpoint, params=params, timeout=timeout) as response:
                text = await response.text(errors="ignore")
                status = response.status
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            LOGGER.warning("GDELT request failed: %s", exc)
            return []
        try:
            payload = json.loads(text)
        except ValueError:
            LOGGER.warning("GDELT returned non-JSON response (status %s): %s", status, text[:300])
            return []
        if not isinstance(payload, dict):
            return []
        articles = payload.get("articles") or []
        return [article for article in articles if isinstance(article, dict)]
