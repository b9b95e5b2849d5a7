"""
Category routing: build provider queries for a category and classify stories back into categories.
"""

from __future__ import annotations

import logging
import re
from typing import Callable, Dict, List, Optional, Sequence
from urllib.parse import urlparse

from src.news.categories import Category, find_category, find_category_by_label, label_for_category
from src.news.config import BASE_QUERY
from src.news.normalize import normalize_text
from src.news.types import Story

LOGGER = logging.getLogger(__name__)

NON_ALNUM = re.compile(r"[^a-z0-9]+")

CategoryQueryBuilder = Callable[[str, str], str]


def _quote(term: str) -> str:
    return f'"{term}"' if " " in term else term


def build_category_query(category_id: str, base_query: str = BASE_QUERY) -> str:
    """Return `<base> AND (<hint> OR ...)` for the category, or `<base> <label>` without hints."""
    category = find_category(category_id)
    hints = [hint.strip() for hint in (category.query_hints if category else ()) if hint.strip()]
    base_value = str(base_query or "").strip()
    label = label_for_category(category_id)

    if not hints:
        return " ".join(part for part in (base_value, label) if part).strip()

    group = " OR ".join(_quote(hint) for hint in hints)
    clause = _quote(base_value) if base_value else label
    if clause:
        return f"{clause} AND ({group})"
    return f"({group})"


def resolve_category_query(
    builder: Optional[CategoryQueryBuilder],
    category_id: str,
    base_query: str,
) -> str:
    raw = (builder or build_category_query)(category_id, base_query)
    trimmed = str(raw or "").strip()
    if trimmed:
        return trimmed
    return label_for_category(category_id)


def domain_from_url(url: Optional[str]) -> str:
    if not url:
        return ""
    try:
        host = urlparse(url).hostname or ""
    except ValueError:
        return ""
    host = host.lower()
    if host.startswith("www."):
        host = host[4:]
    return host


def matches_domain(domain: str, domains: Sequence[str]) -> bool:
    if not domain:
        return False
    return any(domain == entry or domain.endswith(f".{entry}") for entry in domains)


def score_story_for_category(story: Story, category: Optional[Category]) -> int:
    """+3 for a preferred-domain URL, +1 per keyword present in the story text."""
    if category is None:
        return 0
    score = 0
    if category.domains_preferred and matches_domain(domain_from_url(story.url), category.domains_preferred):
        score += 3
    if not category.keywords:
        return score
    haystack = NON_ALNUM.sub(
        " ",
        normalize_text(f"{story.title or ''} {story.summary or ''} {story.source or ''} {story.url or ''}"),
    )
    words = {word for word in haystack.split(" ") if word}
    for keyword in category.keywords:
        needle = NON_ALNUM.sub(" ", normalize_text(keyword)).strip()
        if not needle:
            continue
        if " " in needle:
            if needle in haystack:
                score += 1
            continue
        if needle in words:
            score += 1
    return score


def assign_stories_to_categories(stories: Sequence[Story], labels: Sequence[str]) -> Dict[str, List[Story]]:
    """Bucket each story under its single best label; stories under every threshold are dropped."""
    buckets: Dict[str, List[Story]] = {label: [] for label in labels}
    categories = [(label, find_category_by_label(label)) for label in labels]
    dropped = 0
    for story in stories or []:
        best_label: Optional[str] = None
        best_score = 0
        for label, category in categories:
            score = score_story_for_category(story, category)
            min_score = category.min_score if category else 1
            if score >= min_score and score > best_score:
                best_score = score
                best_label = label
        if best_label is None:
            dropped += 1
            continue
        buckets[best_label].append(story)
    if dropped:
        LOGGER.debug("Left %s stories unassigned across labels %s", dropped, list(labels))
    return buckets
