from typing import Dict, List, Optional

from src.news.adapters.base import BaseNewsAdapter
from src.news.adapters.mock import MockAdapter
from src.news.cache import EditionCache
from src.news.frontpage import FrontPageBuilder, ProviderEntry, mock_query_builder
from src.news.resolver import build_category_query
from src.news.types import Edition, Section, Story


class FakeAdapter(BaseNewsAdapter):
    def __init__(self, name: str, stories: Optional[List[Story]] = None, error: Optional[Exception] = None) -> None:
        super().__init__()
        self.name = name
        self.stories = stories or []
        self.error = error
        self.queries: List[str] = []

    async def fetch(self, q: Optional[str] = None) -> Edition:
        self.queries.append(q or "")
        if self.error is not None:
            raise self.error
        if not self.stories:
            return Edition(sections=[])
        return Edition(sections=[Section(label="News", stories=list(self.stories))])


def story(story_id: str, title: str = "Story", popularity: float = 50, url: Optional[str] = None) -> Story:
    return Story(id=story_id, title=title, popularity=popularity, url=url, kicker="News")


def make_builder(adapters: Dict[str, BaseNewsAdapter], cache: Optional[EditionCache] = None) -> FrontPageBuilder:
    providers = [
        ProviderEntry(name="gdelt", adapter=adapters["gdelt"], query_builder=build_category_query),
        ProviderEntry(name="newsapi", adapter=adapters["newsapi"], ttl_ms=86_400_000),
    ]
    return FrontPageBuilder(cache if cache is not None else EditionCache(), providers)


async def test_empty_primary_falls_back_to_next_provider() -> None:
    gdelt = FakeAdapter("gdelt")
    newsapi = FakeAdapter("newsapi", [story("newsapi:1"), story("newsapi:2")])
    cache = EditionCache()
    builder = make_builder({"gdelt": gdelt, "newsapi": newsapi}, cache)

    edition = await builder.build(["global"])

    section = edition.sections[0]
    assert section.label == "Global Politics"
    assert section.category_id == "global"
    assert [item.id for item in section.stories] == ["newsapi:1", "newsapi:2"]
    assert {item.kicker for item in section.stories} == {"Global Politics"}
    query = build_category_query("global")
    assert gdelt.queries == [query]
    assert f"frontpage:gdelt:global:{query}" in cache
    assert f"frontpage:newsapi:global:{query}" in cache


async def test_provider_errors_are_skipped() -> None:
    gdelt = FakeAdapter("gdelt", error=RuntimeError("boom"))
    newsapi = FakeAdapter("newsapi", [story("newsapi:1")])
    builder = make_builder({"gdelt": gdelt, "newsapi": newsapi})

    edition = await builder.get_front_page_edition(["tech"])

    assert [item.id for item in edition.sections[0].stories] == ["newsapi:1"]


async def test_exhausted_chain_keeps_an_empty_section_per_category() -> None:
    builder = make_builder({"gdelt": FakeAdapter("gdelt"), "newsapi": FakeAdapter("newsapi")})

    edition = await builder.build(["global", "business"])

    assert [(section.label, section.stories) for section in edition.sections] == [
        ("Global Politics", []),
        ("Business", []),
    ]


async def test_category_ids_are_normalized_before_building() -> None:
    gdelt = FakeAdapter("gdelt", [story("gdelt:1")])
    builder = make_builder({"gdelt": gdelt, "newsapi": FakeAdapter("newsapi")})

    edition = await builder.build(["Tech", "tech", "bogus", "global", "business", "science"])

    assert [section.category_id for section in edition.sections] == ["tech", "global", "business"]
    assert (await builder.build([])).sections == []


async def test_min_stories_rejects_thin_results() -> None:
    gdelt = FakeAdapter("gdelt", [story("gdelt:1")])
    newsapi = FakeAdapter("newsapi", [story("newsapi:1"), story("newsapi:2")])
    providers = [
        ProviderEntry(name="gdelt", adapter=gdelt, min_stories=2),
        ProviderEntry(name="newsapi", adapter=newsapi),
    ]
    builder = FrontPageBuilder(EditionCache(), providers)

    stories = await builder.try_in_order(providers, "global")

    assert [item.id for item in stories] == ["newsapi:1", "newsapi:2"]


async def test_mock_primary_is_queried_by_label() -> None:
    dataset = {
        "meta": {},
        "sections": [
            {"label": "Business", "stories": [{"id": "mock:b1", "title": "Stocks rise", "kicker": "Business"}]},
            {"label": "Technology", "stories": [{"id": "mock:t1", "title": "New chip", "kicker": "Technology"}]},
        ],
    }
    mock = MockAdapter(dataset=dataset)
    builder = FrontPageBuilder(
        EditionCache(),
        [],
        primary=ProviderEntry(name="mock", adapter=mock, query_builder=mock_query_builder),
    )

    edition = await builder.build(["tech", "business", "sports"])

    assert [[item.id for item in section.stories] for section in edition.sections] == [["mock:t1"], ["mock:b1"], []]


async def test_mixed_sourcing_leads_with_boosted_primary_story() -> None:
    lead = story("newsapi:lead", title="Senate passes election bill", popularity=100)
    primary = ProviderEntry(name="newsapi", adapter=FakeAdapter("newsapi", [lead]))
    secondary = ProviderEntry(
        name="gdelt",
        adapter=FakeAdapter("gdelt", [story("gdelt:1", popularity=120), story("newsapi:lead"), story("gdelt:2")]),
    )
    builder = FrontPageBuilder(EditionCache(), [])

    section = await builder.build_mixed("global", primary, secondary)

    assert [item.id for item in section.stories] == ["newsapi:lead", "gdelt:1", "gdelt:2"]
    assert section.stories[0].popularity == 121
    assert {item.kicker for item in section.stories} == {"Global Politics"}


async def test_mixed_sourcing_skips_off_topic_lead() -> None:
    primary = ProviderEntry(name="newsapi", adapter=FakeAdapter("newsapi", [story("newsapi:x", title="Bakery opens")]))
    secondary = ProviderEntry(name="gdelt", adapter=FakeAdapter("gdelt", [story("gdelt:1", popularity=40)]))
    builder = FrontPageBuilder(EditionCache(), [])

    section = await builder.build_mixed("global", primary, secondary)

    assert [item.id for item in section.stories] == ["gdelt:1"]
    assert section.stories[0].popularity == 40
