"""
Client edition composer.

Turns the server's per-category sections into the rendered front page: exactly one section per
selected label, a deduplicated popularity-ranked story list with breaking/featured flags, a
three-slot top row, and paginated "more stories" columns.
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from src.news.cache import now_ms
from src.news.categories import find_category_by_label
from src.news.normalize import age_hours, keep_first, merge_by_key, normalize_key, timestamp_ms, title_day_key
from src.news.resolver import assign_stories_to_categories
from src.news.types import Section, Story

LOGGER = logging.getLogger(__name__)

FRONT_PAGE_LABEL = "Front Page"
BORROW_LIMIT = 4
FEATURED_COUNT = 3
BREAKING_MIN_PCT = 90
BREAKING_WINDOW_HOURS = 3
FEATURED_WINDOW_HOURS = 24
MIN_STORIES_PER_SECTION = 20
MIN_MAX_STORIES = 30
TOP_SLOTS = 3
PAGE_SIZE_FIRST = 8
PAGE_SIZE = 6
MIN_MORE_STORIES = 8

PLACEHOLDER_COPY = {
    "error": ("Connection error", "Try again or contact site administrator at support@happeningnow.news."),
    "loading": ("Loading...", ""),
    "missing": (
        "Could not find any headlines...",
        "This category isn't mapped yet. When we wire more sources, real headlines will appear here.",
    ),
}


def hash_score(text: str) -> int:
    """Stable 0-999 score so unscored stories keep the same rank across loads."""
    h = 0
    for char in text:
        h = (h * 31 + ord(char)) % 2**32
    return h % 1000


def get_popularity(story: Story) -> float:
    if story.popularity is not None and story.popularity > 0:
        return story.popularity
    return hash_score(f"{story.id}|{story.title}")


def rank_key(story: Story) -> Tuple[float, int]:
    """Sort key for popularity desc, then publish date desc."""
    return (-(story.popularity or 0), -timestamp_ms(story.publish_date))


def is_newsapi_story(story: Story) -> bool:
    return story.id.startswith("newsapi:")


def is_gdelt_story(story: Story) -> bool:
    return story.id.startswith("gdelt:")


def flatten(sections: Iterable[Section]) -> List[Story]:
    return [
        story if story.kicker else story.with_changes(kicker=section.label)
        for section in sections
        for story in section.stories
    ]


def make_placeholder_section(label: str, state: Optional[str] = None, category_id: Optional[str] = None) -> Section:
    placeholder_state = state or "missing"
    title, summary = PLACEHOLDER_COPY.get(placeholder_state, PLACEHOLDER_COPY["missing"])
    story = Story(
        id=re.sub(r"[^a-z0-9]+", "-", f"placeholder-{label}".lower()),
        kicker=label,
        title=title,
        summary=summary,
        image_url="",
        image_float="left",
        page_ref="",
        featured=False,
        is_placeholder=True,
        placeholder_state=placeholder_state,
    )
    return Section(label=label, stories=[story], category_id=category_id)


def find_best_section_match(
    sections: Sequence[Section],
    label: str,
    category_id: Optional[str] = None,
) -> Optional[Section]:
    """Resolve a selected label to a server section: id join, exact key, then fuzzy substring."""
    if category_id:
        for section in sections:
            if section.category_id == category_id:
                return section
    want = normalize_key(label)
    for section in sections:
        if normalize_key(section.label) == want:
            return section
    if not want:
        return None
    for section in sections:
        have = normalize_key(section.label)
        if have and (want in have or have in want):
            LOGGER.info("Fuzzy label join: %r matched section %r", label, section.label)
            return section
    return None


def build_exact_sections(
    sections: Sequence[Section],
    labels: Sequence[str],
    placeholder_state: Optional[str] = None,
    category_ids: Optional[Sequence[str]] = None,
) -> List[Section]:
    """Return exactly one section per label; stories are unique by id across the result."""
    all_stories = [story for section in sections for story in section.stories]
    keyword_assignments = assign_stories_to_categories(all_stories, labels)
    single = sections[0] if len(sections) == 1 else None
    single_assignments = assign_stories_to_categories(single.stories, labels) if single else None
    used_ids: Set[str] = set()
    ids = list(category_ids or [])

    result: List[Section] = []
    for idx, label in enumerate(labels):
        category_id = ids[idx] if idx < len(ids) else None
        if category_id is None:
            category = find_category_by_label(label)
            category_id = category.id if category else None
        match = find_best_section_match(sections, label, category_id)
        if match is None and single is None:
            result.append(make_placeholder_section(label, placeholder_state, category_id))
            continue

        if match is not None:
            base_stories = list(match.stories)
        else:
            base_stories = list((single_assignments or {}).get(label, []))
            if not base_stories:
                result.append(make_placeholder_section(label, placeholder_state, category_id))
                continue

        if not base_stories:
            borrowed = keyword_assignments.get(label, [])
            base_stories = [story for story in borrowed if story.id not in used_ids][:BORROW_LIMIT]
        if not base_stories:
            base_stories = [story for story in all_stories if story.id and story.id not in used_ids][:BORROW_LIMIT]

        unique: List[Story] = []
        for story in base_stories:
            if not story.id or story.id in used_ids:
                continue
            used_ids.add(story.id)
            unique.append(story.with_changes(kicker=label, image_url="" if story.is_placeholder else story.image_url))
        if not unique:
            result.append(make_placeholder_section(label, placeholder_state, category_id))
            continue
        result.append(Section(label=label, stories=unique, category_id=category_id))
    return result


def _dedupe_titles(stories: List[Story]) -> List[Story]:
    def key(story: Story) -> str:
        if story.is_placeholder:
            return ""
        return title_day_key(story.title, story.publish_date)

    return merge_by_key(stories, key=key, choose=keep_first)


def build_edition(
    exact_sections: Sequence[Section],
    max_stories: Optional[int] = None,
    now: Optional[int] = None,
) -> List[Section]:
    """Merge exact sections into one ranked "Front Page" section with breaking/featured flags."""
    current = now_ms() if now is None else now
    limit = max_stories or max(MIN_MAX_STORIES, len(exact_sections) * MIN_STORIES_PER_SECTION)
    stories = [
        story.with_changes(kicker=section.label, popularity=get_popularity(story))
        for section in exact_sections
        for story in section.stories
    ]
    stories = _dedupe_titles(stories)

    max_popularity = max((story.popularity or 0 for story in stories), default=0)
    scored: List[Story] = []
    for story in stories:
        pct = 100 * (story.popularity or 0) / max_popularity if max_popularity > 0 else 0
        hours = age_hours(story.publish_date, current)
        breaking = bool(story.breaking) or (pct >= BREAKING_MIN_PCT and hours <= BREAKING_WINDOW_HOURS)
        scored.append(story.with_changes(breaking=breaking))

    preferred = [story for story in scored if is_newsapi_story(story)]
    pool = preferred or scored
    featured_ids = [
        story.id
        for story in sorted(pool, key=rank_key)
        if (story.popularity or 0) > 0 and age_hours(story.publish_date, current) <= FEATURED_WINDOW_HOURS
    ][:FEATURED_COUNT]

    flagged = [story.with_changes(featured=bool(story.featured) or story.id in featured_ids) for story in scored]
    ranked = sorted(flagged, key=rank_key)
    featured_row = [story for story in ranked if story.id in featured_ids][:FEATURED_COUNT]
    used = {story.id for story in featured_row}
    merged = (featured_row + [story for story in ranked if story.id not in used])[:limit]
    return [Section(label=FRONT_PAGE_LABEL, stories=merged)]


def _pick_top_for_label(stories: Sequence[Story], label: str, used_ids: Set[str]) -> Optional[Story]:
    pool = [story for story in stories if story.kicker == label and story.id not in used_ids]
    if not pool:
        return None
    working = [story for story in pool if is_newsapi_story(story)] or pool
    for story in working:
        if story.breaking:
            return story
    for story in working:
        if story.featured:
            return story
    return sorted(working, key=rank_key)[0]


def pick_top_stories(stories: Sequence[Story], order: Sequence[str], slots: int = TOP_SLOTS) -> List[Story]:
    """Fill the lead row: one per label, then unused kickers by popularity, then anything."""
    if not stories:
        return []
    used_ids: Set[str] = set()
    ordered: List[Story] = []
    unique_order = list(dict.fromkeys(label for label in order if label))

    for label in unique_order:
        if len(ordered) >= slots:
            break
        pick = _pick_top_for_label(stories, label, used_ids)
        if pick is not None:
            ordered.append(pick)
            used_ids.add(pick.id)

    by_rank = sorted(stories, key=rank_key)
    if len(ordered) < slots:
        used_kickers = {story.kicker for story in ordered}
        for story in by_rank:
            if len(ordered) >= slots:
                break
            if story.id in used_ids or story.kicker in used_kickers:
                continue
            ordered.append(story)
            used_ids.add(story.id)
            used_kickers.add(story.kicker)

    if len(ordered) < slots:
        for story in by_rank:
            if len(ordered) >= slots:
                break
            if story.id in used_ids:
                continue
            ordered.append(story)
            used_ids.add(story.id)
    return ordered[:slots]


def lead_layout(top: Sequence[Story]) -> Tuple[Optional[Story], List[Optional[Story]]]:
    featured = top[1] if len(top) > 1 else (top[0] if top else None)
    sides = [story for story in top if featured is None or story.id != featured.id]
    return featured, [sides[0] if sides else None, sides[1] if len(sides) > 1 else None]


def select_more_stories(
    stories: Sequence[Story],
    top: Sequence[Story],
    mode: str = "all",
    bookmarks_only: bool = False,
    bookmarked_ids: Iterable[str] = (),
) -> List[Story]:
    used = {story.id for story in top}
    pool = [story for story in stories if story.id not in used]
    if mode == "bookmarks":
        source_pool = pool
    else:
        source_pool = [story for story in pool if is_gdelt_story(story)] or pool

    marked = set(bookmarked_ids)

    def allowed(candidates: Iterable[Story]) -> List[Story]:
        if not bookmarks_only:
            return list(candidates)
        return [story for story in candidates if story.id in marked]

    cutoff = max((story.popularity or 0 for story in source_pool), default=0) * 0.5
    result = allowed(story for story in source_pool if (story.popularity or 0) < cutoff)
    ids = {story.id for story in result}
    if len(result) < MIN_MORE_STORIES:
        backfill = sorted(
            (story for story in allowed(pool) if story.id not in ids),
            key=lambda story: story.popularity or 0,
        )
        for story in backfill:
            if len(result) >= MIN_MORE_STORIES:
                break
            result.append(story)
            ids.add(story.id)
    if result:
        return result
    return allowed(pool)


def max_page(count: int) -> int:
    if count <= PAGE_SIZE_FIRST:
        return 0
    return math.ceil((count - PAGE_SIZE_FIRST) / PAGE_SIZE)


def clamp_page(page: int, count: int) -> int:
    return max(0, min(page, max_page(count)))


def page_slice(stories: Sequence[Story], page: int) -> List[Story]:
    start = 0 if page == 0 else PAGE_SIZE_FIRST + (page - 1) * PAGE_SIZE
    size = PAGE_SIZE_FIRST if page == 0 else PAGE_SIZE
    return list(stories[start : start + size])


def more_columns(page_stories: Sequence[Story], top: Sequence[Story]) -> List[List[Story]]:
    """Place each story under its kicker's lead column while that column has room."""
    count = max(1, min(TOP_SLOTS, len(top) or TOP_SLOTS))
    columns: List[List[Story]] = [[] for _ in range(count)]
    top_kickers = [story.kicker for story in top]
    per_column = max(1, math.ceil(len(page_stories) / count))
    for story in page_stories:
        idx = top_kickers.index(story.kicker) if story.kicker in top_kickers else -1
        if 0 <= idx < count and len(columns[idx]) < per_column:
            target = idx
        else:
            target = min(range(count), key=lambda i: len(columns[i]))
        columns[target].append(story)
    return columns


@dataclass
class FrontPageView:
    stories: List[Story] = field(default_factory=list)
    top: List[Story] = field(default_factory=list)
    featured: Optional[Story] = None
    sides: List[Optional[Story]] = field(default_factory=list)
    more: List[Story] = field(default_factory=list)
    page: int = 0
    max_page: int = 0
    page_stories: List[Story] = field(default_factory=list)
    columns: List[List[Story]] = field(default_factory=list)

    @property
    def top_kickers(self) -> List[str]:
        return list(dict.fromkeys(story.kicker for story in self.top if story.kicker))


def compose_front_page(
    sections: Sequence[Section],
    selection_order: Sequence[str],
    page: int = 0,
    mode: str = "all",
    bookmarks_only: bool = False,
    bookmarked_ids: Sequence[str] = (),
    removing_ids: Iterable[str] = (),
) -> FrontPageView:
    stories = flatten(sections)
    marked = list(bookmarked_ids)
    if mode == "bookmarks" or bookmarks_only:
        stories = [story for story in stories if story.id in marked]
    hidden = set(removing_ids)
    displayed = [story for story in stories if story.id not in hidden]

    if mode == "bookmarks" or bookmarks_only:
        order: List[str] = list(dict.fromkeys(story.kicker for story in displayed))
    else:
        order = list(selection_order)
    top = pick_top_stories(displayed, order)
    featured, sides = lead_layout(top)
    more = select_more_stories(displayed, top, mode=mode, bookmarks_only=bookmarks_only, bookmarked_ids=marked)
    current_page = clamp_page(page, len(more))
    page_stories = page_slice(more, current_page)
    return FrontPageView(
        stories=displayed,
        top=top,
        featured=featured,
        sides=sides,
        more=more,
        page=current_page,
        max_page=max_page(len(more)),
        page_stories=page_stories,
        columns=more_columns(page_stories, top),
    )


def rebucket_search_sections(sections: Sequence[Section], labels: Sequence[str]) -> List[Section]:
    """Spread flat search results across the selected labels by keyword score."""
    if not labels:
        return list(sections)
    assignments: Dict[str, List[Story]] = assign_stories_to_categories(flatten(sections), labels)
    return [Section(label=label, stories=assignments.get(label, [])) for label in labels]


