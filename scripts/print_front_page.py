#!/usr/bin/env python3
"""
Fetch a front page from a running news API and print it the way the client lays it out.

Usage:
    python3 scripts/print_front_page.py --categories global,business,tech
    python3 scripts/print_front_page.py --q "btc price"
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Sequence
from urllib.parse import quote

import requests

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from src.client.composer import build_edition, build_exact_sections, compose_front_page, rebucket_search_sections
from src.news.categories import DEFAULT_CATEGORY_IDS, labels_for, normalize_category_ids, parse_category_param
from src.news.normalize import sanitize_query
from src.news.types import Edition

LOGGER = logging.getLogger(__name__)


def fetch_edition(base_url: str, category_ids: list[str], query: str, timeout: float) -> Edition:
    if query:
        url = f"{base_url}/api/news/{quote(query, safe='')}.json"
        params = None
    else:
        url = f"{base_url}/api/news.json"
        params = {"categories": ",".join(category_ids)}
    response = requests.get(url, params=params, timeout=timeout, headers={"Accept": "application/json"})
    response.raise_for_status()
    return Edition.from_dict(response.json())


def main(argv: Sequence[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Print a composed front page from the news API.")
    parser.add_argument("--base-url", default="http://localhost:8000", help="News API base URL.")
    parser.add_argument(
        "--categories",
        default=",".join(DEFAULT_CATEGORY_IDS),
        help="Comma-separated category ids (max 3).",
    )
    parser.add_argument("--q", default="", help="Search query; results are re-bucketed into the categories.")
    parser.add_argument("--page", type=int, default=0, help="Zero-based page of more stories.")
    parser.add_argument("--timeout", type=float, default=60.0, help="Request timeout in seconds.")
    parser.add_argument("--log-level", default="INFO", help="Python logging level (default: INFO).")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stdout,
        force=True,
    )

    category_ids = normalize_category_ids(parse_category_param(args.categories)) or list(DEFAULT_CATEGORY_IDS)
    labels = labels_for(category_ids)
    query = ""
    if args.q:
        sanitized = sanitize_query(args.q)
        if not sanitized.valid:
            LOGGER.error("Search query must be 2-25 characters after cleanup: %r", args.q)
            return 1
        query = sanitized.query.lower()

    try:
        edition = fetch_edition(args.base_url.rstrip("/"), category_ids, query, args.timeout)
    except requests.RequestException as exc:
        LOGGER.error("Failed to fetch edition: %s", exc)
        return 1

    sections = rebucket_search_sections(edition.sections, labels) if query else edition.sections
    exact = build_exact_sections(sections, labels, category_ids=category_ids)
    view = compose_front_page(build_edition(exact), labels, page=args.page)

    print("TOP STORIES")
    for story in view.top:
        flags = " ".join(flag for flag, on in (("BREAKING", story.breaking), ("FEATURED", story.featured)) if on)
        print(f"- [{story.kicker}] {story.title} ({story.source or 'unknown'}) {flags}".rstrip())
    print()
    print(f"MORE STORIES (page {view.page + 1} of {view.max_page + 1})")
    for idx, column in enumerate(view.columns, start=1):
        print(f"Column {idx}:")
        for story in column:
            print(f"  - [{story.kicker}] {story.title}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
