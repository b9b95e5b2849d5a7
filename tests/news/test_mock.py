import json
from pathlib import Path

from src.news.adapters.mock import MockAdapter, load_mock_dataset
from src.news.config import DEFAULT_MOCK_DATA_PATH


async def test_bundled_dataset_filters_by_query() -> None:
    adapter = MockAdapter(path=DEFAULT_MOCK_DATA_PATH)

    everything = await adapter.fetch()
    fed = await adapter.fetch("fed holds")

    assert len(everything.sections) >= 4
    assert [section.label for section in fed.sections] == ["Business"]
    assert all("Fed" in story.title for story in fed.first_stories)


async def test_section_labels_match_queries() -> None:
    adapter = MockAdapter(path=DEFAULT_MOCK_DATA_PATH)

    edition = await adapter.fetch("technology")

    assert [section.label for section in edition.sections] == ["Technology"]
    assert all(story.id.startswith("mock:") for story in edition.first_stories)


def test_missing_or_broken_dataset_yields_no_sections(tmp_path: Path) -> None:
    assert load_mock_dataset(tmp_path / "absent.json") == {"meta": {}, "sections": []}
    broken = tmp_path / "broken.json"
    broken.write_text("{not json", encoding="utf-8")
    assert load_mock_dataset(broken) == {"meta": {}, "sections": []}
    listing = tmp_path / "list.json"
    listing.write_text(json.dumps([1, 2]), encoding="utf-8")
    assert load_mock_dataset(listing) == {"meta": {}, "sections": []}
