from datetime import datetime, timezone
from typing import Any, List, Optional

from src.news.adapters.gdelt import (
    GdeltAdapter,
    SummaryFetcher,
    compute_popularity,
    extract_meta_description,
    is_english_article,
    is_us_article,
    source_score,
    trim_summary,
)

NOW = int(datetime(2026, 1, 12, 12, 0, tzinfo=timezone.utc).timestamp() * 1000)


def make_article(title: str, url: str, **extra: Any) -> dict[str, Any]:
    article = {
        "title": title,
        "url": url,
        "seendate": "20260112T100000Z",
        "sourcecountry": "United States",
        "language": "English",
        "domain": "cnbc.com",
        "sourcecommonname": "cnbc",
    }
    article.update(extra)
    return article


class StubGdeltAdapter(GdeltAdapter):
    def __init__(self, articles: List[dict[str, Any]], **kwargs: Any) -> None:
        kwargs.setdefault("clock", lambda: NOW)
        super().__init__(**kwargs)
        self.articles = articles
        self.queries: List[str] = []

    async def _fetch_articles(self, query: str) -> List[dict[str, Any]]:
        self.queries.append(query)
        return list(self.articles)


class StubSummaryFetcher(SummaryFetcher):
    def __init__(self, adapter: GdeltAdapter, pages: dict[str, str]) -> None:
        super().__init__(adapter)
        self.pages = pages
        self.downloads: List[str] = []

    async def _download(self, url: str) -> Optional[str]:
        self.downloads.append(url)
        return self.pages.get(url)


def test_us_and_english_filters() -> None:
    assert is_us_article({"sourcecountry": "USA"})
    assert is_us_article({"sourcecountry": "France", "domain": "example.us"})
    assert is_us_article({"sourcecountry": "", "sourcecommonname": "The Hill"})
    assert not is_us_article({"sourcecountry": "France", "domain": "lemonde.fr", "sourcecommonname": "Le Monde"})
    assert is_english_article({"language": "English"})
    assert is_english_article({"language": "en-US"})
    assert not is_english_article({"language": "Spanish"})


def test_source_score_tiers() -> None:
    assert source_score({"sourcecommonname": "Reuters"}) == 1.0
    assert source_score({"sourcecommonname": "x", "domain": "news.bloomberg.com"}) == 0.8
    assert source_score({"sourcecommonname": "x", "domain": "town.us"}) == 0.7
    assert source_score({"sourcecommonname": "x", "domain": "example.org"}) == 0.4


def test_full_trust_lists_cover_regional_and_niche_outlets() -> None:
    assert source_score({"domain": "huffpost.com"}) == 0.8
    assert source_score({"domain": "www.nypost.com"}) == 0.8
    assert source_score({"domain": "techradar.com"}) == 0.8
    assert source_score({"sourcecommonname": "Daily Beast", "domain": "example.org"}) == 1.0
    assert is_us_article({"sourcecountry": "", "sourcecommonname": "Huffington Post"})
    assert is_us_article({"sourcecountry": "", "sourcecommonname": "E! Online"})


def test_popularity_blends_recency_cluster_and_source() -> None:
    article = make_article("Fed Raises Rates", "https://a")
    counts = {"fed raises rates": 2}

    assert compute_popularity(article, counts, NOW) == 68
    undated = make_article("Fed Raises Rates", "https://a", seendate="")
    assert compute_popularity(undated, {}, NOW) == 15


async def test_same_day_headline_variants_collapse_to_best_story() -> None:
    adapter = StubGdeltAdapter(
        [
            make_article("Fed Raises Rates", "https://a.example/fed"),
            make_article("Fed raises rates!!", "https://b.example/fed", socialimage="https://img/fed.jpg"),
            make_article("Markets rally", "https://c.example/markets"),
            make_article("Élection en France", "https://d.example/fr", sourcecountry="France", language="French"),
        ],
        enrich_limit=0,
    )

    edition = await adapter.fetch("  ")

    assert adapter.queries == ["United States"]
    assert [section.label for section in edition.sections] == ["News"]
    stories = edition.sections[0].stories
    assert [story.id for story in stories] == ["gdelt:https://b.example/fed", "gdelt:https://c.example/markets"]
    lead = stories[0]
    assert lead.image_url == "https://img/fed.jpg"
    assert lead.kicker == "News"
    assert lead.source == "cnbc"
    assert lead.publish_date == "2026-01-12T10:00:00+00:00"


async def test_us_only_can_be_disabled() -> None:
    adapter = StubGdeltAdapter(
        [make_article("Élection en France", "https://d.example/fr", sourcecountry="France", language="French")],
        us_only=False,
        enrich_limit=0,
    )

    edition = await adapter.fetch("France")

    assert len(edition.sections[0].stories) == 1
    assert adapter.queries == ["France"]


async def test_top_stories_are_enriched_with_cached_meta_descriptions() -> None:
    long_text = "word " * 80
    adapter = StubGdeltAdapter(
        [
            make_article("Fed Raises Rates", "https://a.example/fed"),
            make_article("Markets rally", "https://c.example/markets", seendate="20260101T000000Z"),
        ],
        enrich_limit=1,
    )
    fetcher = StubSummaryFetcher(
        adapter,
        {
            "https://a.example/fed": (
                "<html><head><meta property=\"og:description\" "
                f"content=\"Rates &amp; “markets” – {long_text}\"></head></html>"
            ),
        },
    )
    adapter.summaries = fetcher

    first = await adapter.fetch("fed")
    second = await adapter.fetch("fed")

    summary = first.sections[0].stories[0].summary
    assert summary.startswith('Rates & "markets" - word')
    assert summary.endswith("…")
    assert len(summary) <= 221
    assert first.sections[0].stories[1].summary == ""
    assert second.sections[0].stories[0].summary == summary
    assert fetcher.downloads == ["https://a.example/fed"]


async def test_summary_failures_are_ignored() -> None:
    adapter = StubGdeltAdapter([make_article("Fed Raises Rates", "https://a.example/fed")])
    adapter.summaries = StubSummaryFetcher(adapter, {})

    edition = await adapter.fetch("fed")

    assert edition.sections[0].stories[0].summary == ""


def test_meta_description_falls_back_through_tags() -> None:
    html = '<meta name="twitter:description" content="From twitter"><meta name="description" content="  Plain  ">'

    assert extract_meta_description(html) == "Plain"
    assert extract_meta_description('<meta property="twitter:description" content="Only twitter">') == "Only twitter"
    assert extract_meta_description("<p>No meta</p>") == ""
    assert extract_meta_description("") == ""


def test_trim_summary_adds_ellipsis_past_limit() -> None:
    assert trim_summary("short") == "short"
    trimmed = trim_summary("a" * 300)
    assert trimmed == "a" * 220 + "…"
