import asyncio

import pytest

from src.news.cache import EditionCache, MemoryCache
from src.news.types import Edition, Section, Story


class FakeClock:
    def __init__(self, now: int = 1_000_000) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now


def make_edition(label: str) -> Edition:
    return Edition(sections=[Section(label=label, stories=[Story(id=f"mock:{label}", title=label)])])


async def test_concurrent_gets_share_one_fetch() -> None:
    cache = EditionCache()
    calls = 0

    async def fetcher() -> Edition:
        nonlocal calls
        calls += 1
        await asyncio.sleep(0.01)
        return make_edition("News")

    first, second, third = await asyncio.gather(
        cache.get("news:gdelt:fed", 1000, fetcher),
        cache.get("news:gdelt:fed", 1000, fetcher),
        cache.get("news:gdelt:fed", 1000, fetcher),
    )

    assert calls == 1
    assert first is second is third


async def test_live_value_is_returned_until_ttl_expires() -> None:
    clock = FakeClock()
    cache = EditionCache(clock=clock)
    calls = 0

    async def fetcher() -> Edition:
        nonlocal calls
        calls += 1
        return make_edition(f"v{calls}")

    assert (await cache.get("k", 500, fetcher)).sections[0].label == "v1"
    clock.now += 499
    assert (await cache.get("k", 500, fetcher)).sections[0].label == "v1"
    clock.now += 1
    assert (await cache.get("k", 500, fetcher)).sections[0].label == "v2"
    assert calls == 2


async def test_failed_fetch_rejects_all_waiters_and_drops_entry() -> None:
    cache = EditionCache()
    calls = 0

    async def failing() -> Edition:
        nonlocal calls
        calls += 1
        await asyncio.sleep(0.01)
        raise RuntimeError("upstream down")

    results = await asyncio.gather(
        cache.get("k", 1000, failing),
        cache.get("k", 1000, failing),
        return_exceptions=True,
    )

    assert calls == 1
    assert all(isinstance(result, RuntimeError) for result in results)
    assert "k" not in cache

    async def healthy() -> Edition:
        return make_edition("recovered")

    recovered = await cache.get_cached_edition("k", 1000, healthy)
    assert recovered.sections[0].label == "recovered"


async def test_cancelled_waiter_does_not_cancel_shared_fetch() -> None:
    cache = EditionCache()
    started = asyncio.Event()

    async def slow() -> Edition:
        started.set()
        await asyncio.sleep(0.02)
        return make_edition("slow")

    first = asyncio.ensure_future(cache.get("k", 1000, slow))
    await started.wait()
    second = asyncio.ensure_future(cache.get("k", 1000, slow))
    first.cancel()

    with pytest.raises(asyncio.CancelledError):
        await first
    assert (await second).sections[0].label == "slow"


def test_memory_cache_evicts_expired_values() -> None:
    clock = FakeClock()
    cache: MemoryCache[str] = MemoryCache(100, clock=clock)
    cache.set("url", "summary")

    assert cache.get("url") == "summary"
    clock.now += 100
    assert cache.get("url") is None
    assert len(cache) == 0
