import asyncio
from typing import Any, List, Optional

from src.client.search import SEARCH_ERROR, SEARCH_EVT, SEARCH_KEY, SearchController
from src.client.store import LocalStore
from src.news.types import Section, Story

NOW = 1_768_219_200_000


class FakeClock:
    def __init__(self, now: int = NOW) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now


class FakeApi:
    def __init__(self, version: int = NOW, error: Optional[Exception] = None) -> None:
        self.version = version
        self.error = error
        self.paths: List[str] = []

    async def __call__(self, path: str, params: Optional[dict[str, str]] = None) -> dict[str, Any]:
        self.paths.append(path)
        if self.error is not None:
            raise self.error
        return {
            "meta": {"fetchedAt": self.version},
            "sections": [
                {
                    "label": "Featured",
                    "stories": [
                        {"id": "newsapi:1", "title": "Senate passes bill"},
                        {"id": "newsapi:2", "title": "AI startup ships chip"},
                    ],
                }
            ],
        }


def make_controller(api: FakeApi, clock: Optional[FakeClock] = None, sleeps: Optional[List[float]] = None) -> SearchController:
    recorded = sleeps if sleeps is not None else []

    async def fake_sleep(seconds: float) -> None:
        recorded.append(seconds)

    return SearchController(
        LocalStore(),
        api,
        labels=["Global Politics", "Technology"],
        clock=clock or FakeClock(),
        sleep=fake_sleep,
    )


async def test_typing_issues_a_single_request() -> None:
    api = FakeApi()
    search = make_controller(api)

    for end in range(1, len("btc price") + 1):
        search.set_query("btc price"[:end])
    await search.wait()

    assert api.paths == ["/api/news/btc%20price.json"]
    assert search.query == "btc price"
    assert [story.id for story in search.sections[0].stories] == ["newsapi:1", "newsapi:2"]
    assert not search.loading
    assert search.store.get(SEARCH_KEY) == "btc price"


async def test_set_query_publishes_change_event() -> None:
    search = make_controller(FakeApi())
    seen: List[Any] = []
    search.store.subscribe(SEARCH_EVT, seen.append)

    search.set_query("fed")
    await search.wait()

    assert seen == ["fed"]


async def test_requests_are_spaced_by_the_debounce_window() -> None:
    clock = FakeClock()
    sleeps: List[float] = []
    search = make_controller(FakeApi(), clock=clock, sleeps=sleeps)

    search.update("fed")
    await search.wait()
    clock.now += 100
    search.update("fed rates")
    await search.wait()

    assert sleeps == [0.3]


async def test_invalid_input_clears_the_override() -> None:
    search = make_controller(FakeApi())
    search.update("fed")
    await search.wait()
    assert search.active

    search.update("f")

    assert not search.active
    assert search.result_sections is None
    assert search.query == ""


async def test_failed_request_shows_error() -> None:
    search = make_controller(FakeApi(error=RuntimeError("503")))

    search.update("fed")
    await search.wait()

    assert search.sections == []
    assert search.error == SEARCH_ERROR
    assert not search.loading


async def test_cached_results_apply_immediately_and_ignore_stale_responses() -> None:
    api = FakeApi(version=NOW - 5_000)
    search = make_controller(api)
    cached = [Section(label="Featured", stories=[Story(id="newsapi:cached", title="Fed holds rates")])]
    search.cache.write("fed", cached, NOW - 1_000)

    search.update("FED")
    assert [story.id for story in search.sections[0].stories] == ["newsapi:cached"]
    assert not search.loading
    await search.wait()

    assert api.paths == ["/api/news/fed.json"]
    assert [story.id for story in search.sections[0].stories] == ["newsapi:cached"]


async def test_newer_response_is_cached_for_next_time() -> None:
    search = make_controller(FakeApi(version=NOW))

    search.update("fed")
    await search.wait()

    cached = search.cache.read("fed")
    assert cached is not None
    assert cached.version == NOW


async def test_clearing_the_query_cancels_in_flight_request() -> None:
    started = asyncio.Event()
    cancelled: List[bool] = []

    async def slow_api(path: str, params: Optional[dict[str, str]] = None) -> dict[str, Any]:
        started.set()
        try:
            await asyncio.sleep(10)
        except asyncio.CancelledError:
            cancelled.append(True)
            raise
        return {}

    search = SearchController(LocalStore(), slow_api, clock=FakeClock())
    search.update("fed")
    await started.wait()

    search.update("")
    for _ in range(3):
        await asyncio.sleep(0)

    assert cancelled == [True]
    assert not search.active
    await search.wait()


async def test_results_are_rebucketed_under_selected_labels() -> None:
    search = make_controller(FakeApi())

    search.update("news")
    await search.wait()

    buckets = search.result_sections
    assert [section.label for section in buckets] == ["Global Politics", "Technology"]
    assert [[story.id for story in section.stories] for section in buckets] == [["newsapi:1"], ["newsapi:2"]]


async def test_restore_reads_persisted_query() -> None:
    api = FakeApi()
    search = make_controller(api)
    search.store.set(SEARCH_KEY, "fed")

    search.restore()
    await search.wait()

    assert api.paths == ["/api/news/fed.json"]


class SlowApi(FakeApi):
    def __init__(self) -> None:
        super().__init__()
        self.release = asyncio.Event()

    async def __call__(self, path: str, params: Optional[dict[str, str]] = None) -> dict[str, Any]:
        payload = await super().__call__(path, params)
        await self.release.wait()
        return payload


async def test_loading_flag_is_raised_while_slow_request_is_pending() -> None:
    api = SlowApi()
    search = make_controller(api)

    for end in range(1, len("btc price") + 1):
        search.set_query("btc price"[:end])
    for _ in range(3):
        await asyncio.sleep(0)

    assert search.loading
    assert search.sections is None
    assert api.paths == ["/api/news/btc%20price.json"]

    api.release.set()
    await search.wait()

    assert not search.loading
    assert api.paths == ["/api/news/btc%20price.json"]
    assert [story.id for story in search.sections[0].stories] == ["newsapi:1", "newsapi:2"]
