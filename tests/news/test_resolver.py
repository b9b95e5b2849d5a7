from src.news.categories import (
    find_category,
    find_category_by_label,
    labels_for,
    normalize_category_ids,
    parse_category_param,
)
from src.news.resolver import (
    assign_stories_to_categories,
    build_category_query,
    domain_from_url,
    resolve_category_query,
    score_story_for_category,
)
from src.news.types import Story


def test_category_query_quotes_multi_word_base_and_hints() -> None:
    query = build_category_query("global")

    assert query == (
        '"United States" AND (election OR congress OR "white house" OR diplomacy OR "foreign policy" OR senate)'
    )


def test_category_query_uses_label_without_base() -> None:
    assert build_category_query("weather", "") == "Weather AND (weather OR storm OR hurricane OR tornado OR forecast)"


def test_category_query_without_hints_joins_base_and_label() -> None:
    assert build_category_query("unknown-id") == "United States unknown-id"


def test_resolve_category_query_falls_back_to_label() -> None:
    assert resolve_category_query(lambda _id, _base: "   ", "tech", "United States") == "Technology"
    assert resolve_category_query(None, "sports", "Ohio").startswith("Ohio AND (sports OR nfl")


def test_category_lookups_normalize_input() -> None:
    assert find_category(" TECH ").label == "Technology"
    assert find_category_by_label("global-politics").id == "global"
    assert find_category("nope") is None
    assert labels_for(["global", "mystery"]) == ["Global Politics", "mystery"]


def test_normalize_category_ids_dedupes_filters_and_truncates() -> None:
    raw = parse_category_param(" Tech,tech,,bogus,GLOBAL,business,science ")

    assert raw == ["tech", "tech", "bogus", "global", "business", "science"]
    assert normalize_category_ids(raw) == ["tech", "global", "business"]


def test_domain_from_url_strips_www() -> None:
    assert domain_from_url("https://www.Politico.com/story") == "politico.com"
    assert domain_from_url("not a url") == ""
    assert domain_from_url(None) == ""


def test_score_counts_preferred_domain_and_keywords() -> None:
    story = Story(
        id="gdelt:1",
        title="Senate election results are in",
        url="https://www.politico.com/news/results",
    )

    assert score_story_for_category(story, find_category("global")) == 5
    assert score_story_for_category(story, None) == 0


def test_phrase_keywords_match_as_substrings_and_words_as_tokens() -> None:
    phrase = Story(id="a", title="Wall Street rallies")
    partial = Story(id="b", title="Fedora release notes")

    assert score_story_for_category(phrase, find_category("business")) == 1
    assert score_story_for_category(partial, find_category("business")) == 0


def test_assign_stories_picks_single_best_label_and_drops_unmatched() -> None:
    labels = ["Global Politics", "Business", "Technology"]
    tech = Story(id="t", title="Startup ships AI chip", url="https://techcrunch.com/chip")
    business = Story(id="b", title="Stocks climb after earnings")
    tie = Story(id="x", title="Senate probes stocks")
    unrelated = Story(id="u", title="Local bakery wins award")

    buckets = assign_stories_to_categories([tech, business, tie, unrelated], labels)

    assert list(buckets) == labels
    assert [story.id for story in buckets["Technology"]] == ["t"]
    assert [story.id for story in buckets["Business"]] == ["b"]
    assert [story.id for story in buckets["Global Politics"]] == ["x"]
