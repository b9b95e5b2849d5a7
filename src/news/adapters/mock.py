"""Static dataset adapter used for local development and tests."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Optional

from src.news.adapters.base import BaseNewsAdapter
from src.news.config import DEFAULT_MOCK_DATA_PATH
from src.news.normalize import matches_query
from src.news.types import Edition, Section, Story

LOGGER = logging.getLogger(__name__)


def load_mock_dataset(path: Path = DEFAULT_MOCK_DATA_PATH) -> dict[str, Any]:
    if not path.exists():
        LOGGER.info("Mock dataset %s not found; mock adapter will return no stories.", path)
        return {"meta": {}, "sections": []}
    try:
        with path.open("r", encoding="utf-8") as handle:
            payload = json.load(handle)
    except (OSError, json.JSONDecodeError):
        LOGGER.warning("Failed to read mock dataset at %s", path, exc_info=True)
        return {"meta": {}, "sections": []}
    return payload if isinstance(payload, dict) else {"meta": {}, "sections": []}


class MockAdapter(BaseNewsAdapter):
    name = "mock"

    def __init__(self, dataset: Optional[dict[str, Any]] = None, path: Path = DEFAULT_MOCK_DATA_PATH) -> None:
        super().__init__()
        self.dataset = dataset if dataset is not None else load_mock_dataset(path)

    async def fetch(self, q: Optional[str] = None) -> Edition:
        sections: list[Section] = []
        for raw_section in self.dataset.get("sections") or []:
            label = str(raw_section.get("label") or "")
            stories: list[Story] = []
            for raw_story in raw_section.get("stories") or []:
                haystack = (
                    f"{label} {raw_story.get('kicker') or ''} "
                    f"{raw_story.get('title') or ''} {raw_story.get('summary') or ''}"
                )
                if matches_query(haystack, q):
                    stories.append(Story.from_dict(raw_story))
            if stories:
                sections.append(Section(label=label, stories=stories))
        return Edition(sections=sections, meta=dict(self.dataset.get("meta") or {}))
