"""Environment-driven settings for the news service."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

LOGGER = logging.getLogger(__name__)

REPO_ROOT = Path(__file__).resolve().parents[2]
DEFAULT_MOCK_DATA_PATH = REPO_ROOT / "assets" / "mock_news.json"

CACHE_TTL_MS = 120_000
FALLBACK_TTL_MS = 24 * 60 * 60 * 1000
BASE_QUERY = "United States"
ADAPTER_NAMES = ("mock", "gdelt", "newsapi")
API_KEY_ENV_VARS = ("NEWSAPI_AI_KEY", "NEWSAPI_KEY", "EVENTREGISTRY_API_KEY")


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as exc:
        msg = f"Invalid integer for {name}: '{raw}'."
        raise ValueError(msg) from exc


def resolve_adapter_name(raw: str | None) -> str:
    """Map NEWS_ADAPTER to a known adapter; anything unrecognised means newsapi."""
    value = (raw or "").strip().lower()
    if value in {"mock", "gdelt"}:
        return value
    return "newsapi"


def resolve_api_key() -> str:
    for name in API_KEY_ENV_VARS:
        value = os.getenv(name, "").strip()
        if value:
            return value
    return ""


@dataclass
class NewsSettings:
    adapter_name: str = "newsapi"
    gdelt_us_only: bool = True
    newsapi_key: str = ""
    cache_ttl_ms: int = CACHE_TTL_MS
    fallback_ttl_ms: int = FALLBACK_TTL_MS
    base_query: str = BASE_QUERY
    mock_data_path: Path = DEFAULT_MOCK_DATA_PATH
    api_log_path: Path = Path("logs") / "api_requests.log"


def load_settings(dotenv_path: Path | None = None) -> NewsSettings:
    dotenv_loaded = load_dotenv(dotenv_path=dotenv_path or REPO_ROOT / ".env")
    if dotenv_loaded:
        LOGGER.debug("Loaded environment variables from .env file.")
    # GDELT stays US-only unless explicitly disabled.
    us_only = os.getenv("GDELT_US_ONLY", "").strip().lower() != "false"
    settings = NewsSettings(
        adapter_name=resolve_adapter_name(os.getenv("NEWS_ADAPTER")),
        gdelt_us_only=us_only,
        newsapi_key=resolve_api_key(),
        cache_ttl_ms=_int_env("NEWS_CACHE_TTL_MS", CACHE_TTL_MS),
        fallback_ttl_ms=_int_env("NEWS_FALLBACK_TTL_MS", FALLBACK_TTL_MS),
        base_query=os.getenv("NEWS_BASE_QUERY", "").strip() or BASE_QUERY,
        mock_data_path=Path(os.getenv("NEWS_MOCK_DATA", "") or DEFAULT_MOCK_DATA_PATH),
        api_log_path=Path(os.getenv("NEWS_API_LOG_PATH", "") or Path("logs") / "api_requests.log"),
    )
    LOGGER.debug(
        "Loaded news settings adapter=%s us_only=%s api_key=%s",
        settings.adapter_name,
        settings.gdelt_us_only,
        bool(settings.newsapi_key),
    )
    return settings
