"""
Text and query normalization helpers shared by the server pipeline and the client composer.
"""

from __future__ import annotations

import re
import unicodedata
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Hashable, Iterable, List, Optional, TypeVar

T = TypeVar("T")

TAG_PATTERN = re.compile(r"<[^>]*>")
DISALLOWED_QUERY_CHARS = re.compile(r"[^a-zA-Z0-9\s-]")
WHITESPACE = re.compile(r"\s+")
NON_ALNUM = re.compile(r"[^a-z0-9]+")


@dataclass(frozen=True)
class SanitizedQuery:
    query: str
    valid: bool


def normalize_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).lower()


def sanitize_query(value: Any, min_length: int = 2, max_length: int = 25) -> SanitizedQuery:
    """Strip markup and punctuation from user input and report whether it is searchable."""
    query = "" if value is None else str(value)
    query = TAG_PATTERN.sub(" ", query)
    query = DISALLOWED_QUERY_CHARS.sub(" ", query)
    query = WHITESPACE.sub(" ", query).strip()
    return SanitizedQuery(query=query, valid=min_length <= len(query) <= max_length)


def matches_query(haystack: str, query: Optional[str] = None) -> bool:
    needle = normalize_text(query).strip()
    if not needle:
        return True
    return needle in normalize_text(haystack)


def normalize_key(value: Any) -> str:
    """Collapse a label to a punctuation- and case-insensitive matching key."""
    text = unicodedata.normalize("NFKD", normalize_text(value))
    text = text.replace("’", "").replace("'", "")
    return NON_ALNUM.sub("", text)


def normalize_title(value: Any) -> str:
    return WHITESPACE.sub(" ", NON_ALNUM.sub(" ", normalize_text(value))).strip()


def parse_datetime(raw: Optional[str]) -> Optional[datetime]:
    if not raw:
        return None
    raw = str(raw).strip()
    formats = [
        "%Y%m%dT%H%M%SZ",
        "%Y%m%d%H%M%S",
        "%Y-%m-%dT%H:%M:%S%z",
        "%Y-%m-%dT%H:%M:%S",
    ]
    for fmt in formats:
        try:
            parsed = datetime.strptime(raw, fmt)
        except ValueError:
            continue
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed
    iso_candidate = raw[:-1] + "+00:00" if raw.endswith("Z") else raw
    try:
        parsed = datetime.fromisoformat(iso_candidate)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def timestamp_ms(raw: Optional[str]) -> int:
    parsed = parse_datetime(raw)
    if not parsed:
        return 0
    return int(parsed.timestamp() * 1000)


def age_hours(raw: Optional[str], now_ms: int) -> float:
    """Hours elapsed since `raw`; infinite when the date is missing or unparseable."""
    published = timestamp_ms(raw)
    if published <= 0:
        return float("inf")
    return max(0, now_ms - published) / (1000 * 60 * 60)


def story_day_key(raw: Optional[str]) -> str:
    parsed = parse_datetime(raw)
    if not parsed:
        return ""
    return parsed.astimezone(timezone.utc).strftime("%Y-%m-%d")


def title_day_key(title: Optional[str], publish_date: Optional[str]) -> str:
    title_key = normalize_title(title)
    if not title_key:
        return ""
    day_key = story_day_key(publish_date)
    return f"{title_key}:{day_key}" if day_key else title_key


def merge_by_key(
    items: Iterable[T],
    key: Callable[[T], Optional[Hashable]],
    choose: Callable[[T, T], T],
) -> List[T]:
    """Upsert items by key, keeping the first position and merging collisions with `choose`.

    Items whose key is empty are passed through untouched.
    """
    ordered: List[T] = []
    positions: dict[Hashable, int] = {}
    for item in items:
        item_key = key(item)
        if item_key is None or item_key == "":
            ordered.append(item)
            continue
        index = positions.get(item_key)
        if index is None:
            positions[item_key] = len(ordered)
            ordered.append(item)
            continue
        ordered[index] = choose(ordered[index], item)
    return ordered


def keep_first(existing: T, _incoming: T) -> T:
    return existing
