"""
Category catalogue used to route provider queries and to bucket stories on the client.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple

from src.news.normalize import normalize_key

MAX_SELECTED_CATEGORIES = 3


@dataclass(frozen=True)
class Category:
    id: str
    label: str
    keywords: Tuple[str, ...] = ()
    domains_preferred: Tuple[str, ...] = ()
    query_hints: Tuple[str, ...] = ()
    min_score: int = 1


CATEGORIES: List[Category] = [
    Category(
        id="global",
        label="Global Politics",
        keywords=(
            "election",
            "congress",
            "senate",
            "white house",
            "president",
            "diplomacy",
            "foreign policy",
            "sanctions",
            "supreme court",
            "governor",
            "campaign",
            "lawmakers",
        ),
        domains_preferred=("politico.com", "thehill.com", "rollcall.com", "foreignpolicy.com", "c-span.org"),
        query_hints=("election", "congress", "white house", "diplomacy", "foreign policy", "senate"),
    ),
    Category(
        id="business",
        label="Business",
        keywords=(
            "markets",
            "stocks",
            "earnings",
            "economy",
            "finance",
            "banking",
            "wall street",
            "inflation",
            "fed",
            "interest rates",
            "revenue",
            "ipo",
        ),
        domains_preferred=(
            "bloomberg.com",
            "wsj.com",
            "marketwatch.com",
            "cnbc.com",
            "forbes.com",
            "fortune.com",
            "barrons.com",
            "businessinsider.com",
        ),
        query_hints=("markets", "stocks", "earnings", "economy", "finance", "banking", "wall street"),
    ),
    Category(
        id="tech",
        label="Technology",
        keywords=(
            "technology",
            "tech",
            "ai",
            "artificial intelligence",
            "software",
            "cloud",
            "startup",
            "semiconductor",
            "chip",
            "apple",
            "google",
            "microsoft",
        ),
        domains_preferred=(
            "theverge.com",
            "techcrunch.com",
            "wired.com",
            "arstechnica.com",
            "engadget.com",
            "cnet.com",
            "zdnet.com",
            "geekwire.com",
        ),
        query_hints=("technology", "tech", "ai", "software", "cloud", "startup", "semiconductor", "chip"),
    ),
    Category(
        id="cyber",
        label="Cybersecurity",
        keywords=(
            "cybersecurity",
            "breach",
            "ransomware",
            "malware",
            "hacking",
            "hackers",
            "vulnerability",
            "phishing",
            "data leak",
        ),
        domains_preferred=(
            "bleepingcomputer.com",
            "krebsonsecurity.com",
            "thehackernews.com",
            "darkreading.com",
            "securityweek.com",
            "therecord.media",
            "cyberscoop.com",
        ),
        query_hints=("cybersecurity", "breach", "ransomware", "malware", "hacking"),
    ),
    Category(
        id="energy",
        label="Energy",
        keywords=(
            "energy",
            "oil",
            "gas",
            "power",
            "grid",
            "electricity",
            "utility",
            "solar",
            "wind",
            "opec",
            "nuclear",
        ),
        domains_preferred=("eia.gov", "energy.gov", "oilprice.com", "utilitydive.com", "rigzone.com"),
        query_hints=("energy", "oil", "gas", "power", "grid", "electricity", "utility"),
    ),
    Category(
        id="science",
        label="Science",
        keywords=(
            "science",
            "research",
            "nasa",
            "space",
            "climate",
            "study",
            "scientists",
            "astronomy",
            "physics",
        ),
        domains_preferred=(
            "nasa.gov",
            "science.org",
            "scientificamerican.com",
            "space.com",
            "sciencenews.org",
            "livescience.com",
            "phys.org",
        ),
        query_hints=("science", "research", "nasa", "space", "climate", "study"),
    ),
    Category(
        id="health",
        label="Health",
        keywords=(
            "health",
            "medical",
            "hospital",
            "vaccine",
            "public health",
            "cdc",
            "disease",
            "fda",
            "outbreak",
            "patients",
        ),
        domains_preferred=("cdc.gov", "nih.gov", "statnews.com", "kff.org", "medscape.com", "webmd.com"),
        query_hints=("health", "medical", "hospital", "vaccine", "public health", "cdc"),
    ),
    Category(
        id="sports",
        label="Sports",
        keywords=(
            "sports",
            "nfl",
            "nba",
            "mlb",
            "nhl",
            "soccer",
            "college football",
            "playoffs",
            "coach",
            "quarterback",
        ),
        domains_preferred=(
            "espn.com",
            "cbssports.com",
            "nbcsports.com",
            "foxsports.com",
            "si.com",
            "bleacherreport.com",
        ),
        query_hints=("sports", "nfl", "nba", "mlb", "nhl", "soccer", "college"),
    ),
    Category(
        id="weather",
        label="Weather",
        keywords=(
            "weather",
            "storm",
            "hurricane",
            "tornado",
            "forecast",
            "snow",
            "flood",
            "heat wave",
            "wildfire",
        ),
        domains_preferred=("weather.com", "weather.gov", "noaa.gov", "accuweather.com"),
        query_hints=("weather", "storm", "hurricane", "tornado", "forecast"),
    ),
    Category(
        id="entertainment",
        label="Entertainment",
        keywords=(
            "entertainment",
            "movie",
            "film",
            "tv",
            "music",
            "celebrity",
            "hollywood",
            "box office",
            "album",
            "streaming",
        ),
        domains_preferred=(
            "variety.com",
            "hollywoodreporter.com",
            "deadline.com",
            "ew.com",
            "rollingstone.com",
            "billboard.com",
        ),
        query_hints=("entertainment", "movie", "tv", "music", "celebrity", "hollywood"),
    ),
]

DEFAULT_CATEGORY_IDS: List[str] = ["global", "business", "tech"]

_BY_ID = {category.id: category for category in CATEGORIES}
_BY_LABEL_KEY = {normalize_key(category.label): category for category in CATEGORIES}


def find_category(category_id: str) -> Optional[Category]:
    return _BY_ID.get(str(category_id or "").strip().lower())


def find_category_by_label(label: str) -> Optional[Category]:
    return _BY_LABEL_KEY.get(normalize_key(label))


def label_for_category(category_id: str) -> str:
    category = find_category(category_id)
    return category.label if category else category_id


def normalize_category_ids(values: Iterable[str], limit: int = MAX_SELECTED_CATEGORIES) -> List[str]:
    """Trim, lowercase, dedupe and keep at most `limit` known category ids."""
    unique: List[str] = []
    for value in values:
        cleaned = str(value or "").strip().lower()
        if not cleaned or cleaned in unique or cleaned not in _BY_ID:
            continue
        unique.append(cleaned)
    return unique[:limit]


def parse_category_param(raw: str | None) -> List[str]:
    return [value.strip().lower() for value in (raw or "").split(",") if value.strip()]


def labels_for(category_ids: Sequence[str]) -> List[str]:
    return [label_for_category(category_id) for category_id in category_ids]
