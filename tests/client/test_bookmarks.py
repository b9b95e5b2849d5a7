from typing import Any, List

from src.client.bookmarks import BOOKMARK_EVT, BOOKMARK_ITEMS_KEY, BOOKMARK_KEY, Bookmarks
from src.client.store import LocalStore
from src.news.types import Story


class FakeClock:
    def __init__(self, now: int = 1_000) -> None:
        self.now = now

    def __call__(self) -> int:
        self.now += 1
        return self.now


def test_toggle_adds_and_removes_snapshot() -> None:
    store = LocalStore()
    events: List[Any] = []
    store.subscribe(BOOKMARK_EVT, events.append)
    bookmarks = Bookmarks(store, clock=FakeClock())
    story = Story(id="gdelt:1", title="Fed holds rates", kicker="Business", image_url="https://img")

    assert bookmarks.toggle(story) is True
    assert bookmarks.has("gdelt:1")
    snapshot = bookmarks.items()["gdelt:1"]
    assert snapshot["title"] == "Fed holds rates"
    assert snapshot["imageUrl"] == "https://img"
    assert snapshot["featured"] is False

    assert bookmarks.toggle(story) is False
    assert not bookmarks.has("gdelt:1")
    assert bookmarks.items() == {}
    assert ["gdelt:1"] in events


def test_stories_are_newest_first() -> None:
    bookmarks = Bookmarks(LocalStore(), clock=FakeClock())
    bookmarks.toggle(Story(id="a", title="First"))
    bookmarks.toggle(Story(id="b", title="Second"))

    assert [story.id for story in bookmarks.stories()] == ["b", "a"]
    section = bookmarks.sections()[0]
    assert section.label == "Bookmarks"
    assert [story.title for story in section.stories] == ["Second", "First"]


def test_ids_fall_back_to_snapshot_keys() -> None:
    store = LocalStore()
    store.set_json(BOOKMARK_ITEMS_KEY, {"x": {"id": "x", "title": "Saved", "savedAt": 5}})

    assert Bookmarks(store).ids() == ["x"]


def test_reconcile_drops_orphaned_snapshots() -> None:
    store = LocalStore()
    store.set_json(BOOKMARK_KEY, ["keep"])
    store.set_json(
        BOOKMARK_ITEMS_KEY,
        {
            "keep": {"id": "keep", "title": "Kept", "savedAt": 2},
            "orphan": {"id": "orphan", "title": "Gone", "savedAt": 3},
        },
    )
    bookmarks = Bookmarks(store)

    assert bookmarks.reconcile() == 1
    assert list(bookmarks.items()) == ["keep"]


def test_reconcile_clears_snapshots_without_ids() -> None:
    store = LocalStore()
    store.set_json(BOOKMARK_KEY, [])
    store.set_json(BOOKMARK_ITEMS_KEY, {"a": {"id": "a", "savedAt": 1}})
    bookmarks = Bookmarks(store)

    assert bookmarks.reconcile() == 1
    assert bookmarks.items() == {}
    assert bookmarks.sections() == []


def test_sync_pending_when_ids_lack_snapshots() -> None:
    store = LocalStore()
    store.set_json(BOOKMARK_KEY, ["a"])

    assert Bookmarks(store).sync_pending()
