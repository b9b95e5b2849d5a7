"""
Value objects shared by the adapters, the front-page builder and the client composer.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Awaitable, Callable, List, Optional

PlaceholderState = str  # "loading" | "missing" | "error"


def _as_bool(value: Any) -> bool | None:
    if value is None:
        return None
    return bool(value)


def _as_number(value: Any) -> float | None:
    if value is None or value == "":
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if number != number:  # NaN
        return None
    return int(number) if number.is_integer() else number


@dataclass(frozen=True)
class Story:
    id: str
    kicker: str = ""
    title: str = ""
    summary: str = ""
    source: Optional[str] = None
    url: Optional[str] = None
    image_url: Optional[str] = None
    image_float: str = "right"
    publish_date: Optional[str] = None
    page_ref: Optional[str] = None
    featured: Optional[bool] = None
    popularity: Optional[float] = None
    is_placeholder: Optional[bool] = None
    breaking: Optional[bool] = None
    placeholder_state: Optional[PlaceholderState] = None

    def with_changes(self, **changes: Any) -> "Story":
        return replace(self, **changes)

    def to_serializable(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "id": self.id,
            "source": self.source,
            "kicker": self.kicker,
            "title": self.title,
            "summary": self.summary,
            "url": self.url,
            "imageUrl": self.image_url,
            "imageFloat": self.image_float,
            "publishDate": self.publish_date,
            "pageRef": self.page_ref,
            "featured": self.featured,
            "popularity": self.popularity,
            "isPlaceholder": self.is_placeholder,
            "breaking": self.breaking,
            "placeholderState": self.placeholder_state,
        }
        return {key: value for key, value in payload.items() if value is not None}

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "Story":
        """Build a story from either the camelCase wire shape or snake_case keys."""

        def pick(camel: str, snake: str | None = None) -> Any:
            if camel in raw:
                return raw[camel]
            if snake and snake in raw:
                return raw[snake]
            return None

        return cls(
            id=str(raw.get("id") or ""),
            kicker=str(raw.get("kicker") or ""),
            title=str(raw.get("title") or ""),
            summary=str(raw.get("summary") or ""),
            source=raw.get("source") or None,
            url=raw.get("url") or None,
            image_url=pick("imageUrl", "image_url") or None,
            image_float=pick("imageFloat", "image_float") or "right",
            publish_date=pick("publishDate", "publish_date") or None,
            page_ref=pick("pageRef", "page_ref") or None,
            featured=_as_bool(raw.get("featured")),
            popularity=_as_number(raw.get("popularity")),
            is_placeholder=_as_bool(pick("isPlaceholder", "is_placeholder")),
            breaking=_as_bool(raw.get("breaking")),
            placeholder_state=pick("placeholderState", "placeholder_state") or None,
        )


@dataclass(frozen=True)
class Section:
    label: str
    stories: List[Story] = field(default_factory=list)
    category_id: Optional[str] = None

    def to_serializable(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "label": self.label,
            "stories": [story.to_serializable() for story in self.stories],
        }
        if self.category_id:
            payload["categoryId"] = self.category_id
        return payload

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "Section":
        stories = raw.get("stories") or []
        return cls(
            label=str(raw.get("label") or ""),
            stories=[Story.from_dict(item) for item in stories if isinstance(item, dict)],
            category_id=raw.get("categoryId") or raw.get("category_id") or None,
        )


@dataclass(frozen=True)
class Edition:
    sections: List[Section] = field(default_factory=list)
    meta: dict[str, Any] = field(default_factory=dict)

    @property
    def first_stories(self) -> List[Story]:
        if not self.sections:
            return []
        return list(self.sections[0].stories)

    def has_stories(self) -> bool:
        return any(section.stories for section in self.sections)

    @property
    def fetched_at(self) -> int:
        raw = _as_number(self.meta.get("fetchedAt"))
        return int(raw) if raw else 0

    def to_serializable(self) -> dict[str, Any]:
        return {
            "meta": dict(self.meta),
            "sections": [section.to_serializable() for section in self.sections],
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "Edition":
        sections = raw.get("sections") or []
        meta = raw.get("meta") if isinstance(raw.get("meta"), dict) else {}
        return cls(
            sections=[Section.from_dict(item) for item in sections if isinstance(item, dict)],
            meta=dict(meta),
        )


EditionFetcher = Callable[[], Awaitable[Edition]]
