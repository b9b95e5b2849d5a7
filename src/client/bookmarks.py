"""Bookmarked stories: an id list plus snapshots, kept consistent with each other."""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional

from src.client.store import LocalStore
from src.news.cache import now_ms
from src.news.normalize import merge_by_key
from src.news.types import Section, Story

LOGGER = logging.getLogger(__name__)

BOOKMARK_KEY = "hn_bookmarks"
BOOKMARK_ITEMS_KEY = "hn_bookmark_items"
BOOKMARK_EVT = "hn-bookmarks-change"
BOOKMARKS_LABEL = "Bookmarks"


def snapshot_story(story: Story, saved_at: int) -> Optional[dict[str, Any]]:
    if not story.id:
        return None
    return {
        "id": story.id,
        "source": story.source or "",
        "kicker": story.kicker or "",
        "title": story.title or "",
        "summary": story.summary or "",
        "url": story.url or "",
        "imageUrl": story.image_url or "",
        "imageFloat": story.image_float or "right",
        "publishDate": story.publish_date or "",
        "pageRef": story.page_ref or "",
        "featured": bool(story.featured),
        "breaking": bool(story.breaking),
        "popularity": story.popularity or 0,
        "savedAt": saved_at,
    }


def _newer_snapshot(existing: dict[str, Any], incoming: dict[str, Any]) -> dict[str, Any]:
    return incoming if (incoming.get("savedAt") or 0) > (existing.get("savedAt") or 0) else existing


class Bookmarks:
    def __init__(self, store: LocalStore, clock: Callable[[], int] = now_ms) -> None:
        self.store = store
        self._clock = clock

    def items(self) -> Dict[str, dict[str, Any]]:
        parsed = self.store.get_json(BOOKMARK_ITEMS_KEY, {})
        return parsed if isinstance(parsed, dict) else {}

    def ids(self) -> List[str]:
        """Bookmarked ids; falls back to the snapshot keys when the id list is empty."""
        parsed = self.store.get_json(BOOKMARK_KEY, [])
        ids = [value for value in parsed if isinstance(value, str)] if isinstance(parsed, list) else []
        if ids:
            return ids
        return list(self.items().keys())

    def has(self, story_id: str) -> bool:
        return story_id in self.ids()

    def _write_ids(self, ids: List[str]) -> None:
        unique = list(dict.fromkeys(ids))
        self.store.set_json(BOOKMARK_KEY, unique)
        self.store.publish(BOOKMARK_EVT, unique)

    def _write_items(self, items: Dict[str, dict[str, Any]]) -> None:
        self.store.set_json(BOOKMARK_ITEMS_KEY, items)
        self.store.publish(BOOKMARK_EVT, None)

    def toggle(self, story: Story) -> bool:
        """Add or remove the story; returns True when it is bookmarked afterwards."""
        current = self.ids()
        exists = story.id in current
        next_ids = [value for value in current if value != story.id] if exists else [*current, story.id]
        self._write_ids(next_ids)

        items = self.items()
        if exists:
            if story.id in items:
                items.pop(story.id)
                self._write_items(items)
        else:
            snapshot = snapshot_story(story, self._clock())
            if snapshot is not None:
                items[snapshot["id"]] = snapshot
                self._write_items(items)
        LOGGER.debug("Bookmark %s %s", "removed" if exists else "added", story.id)
        return not exists

    def reconcile(self) -> int:
        """Drop snapshots with no matching id; clear them all when no ids remain."""
        raw_ids = self.store.get_json(BOOKMARK_KEY, [])
        ids = [value for value in raw_ids if isinstance(value, str)] if isinstance(raw_ids, list) else []
        items = self.items()
        if not items:
            return 0
        if not ids:
            self._write_items({})
            return len(items)
        allowed = set(ids)
        kept = merge_by_key(
            [snapshot for key, snapshot in items.items() if key in allowed and isinstance(snapshot, dict)],
            key=lambda snapshot: snapshot.get("id"),
            choose=_newer_snapshot,
        )
        pruned = {snapshot["id"]: snapshot for snapshot in kept if snapshot.get("id")}
        removed = len(items) - len(pruned)
        if removed:
            LOGGER.info("Pruned %s orphaned bookmark snapshots", removed)
            self._write_items(pruned)
        return removed

    def stories(self) -> List[Story]:
        allowed = set(self.ids())
        snapshots = [
            snapshot
            for snapshot in self.items().values()
            if isinstance(snapshot, dict) and snapshot.get("id") in allowed
        ]
        snapshots.sort(key=lambda snapshot: snapshot.get("savedAt") or 0, reverse=True)
        return [Story.from_dict(snapshot) for snapshot in snapshots]

    def sections(self) -> List[Section]:
        stories = self.stories()
        if not stories:
            return []
        return [Section(label=BOOKMARKS_LABEL, stories=stories)]

    def sync_pending(self) -> bool:
        """True when ids exist but no snapshot backs them yet."""
        return bool(self.ids()) and not self.stories()
