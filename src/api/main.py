"""
FastAPI app serving front-page editions built by the news service.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
import logging
from pathlib import Path
from typing import Any, AsyncIterator, Optional

from fastapi import FastAPI, Query, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from src.news.config import load_settings
from src.news.service import CACHE_CONTROL, NewsService

LOGGER = logging.getLogger("news_api")


def _configure_request_log(path: Path) -> None:
    if LOGGER.handlers:
        return
    LOGGER.setLevel(logging.INFO)
    path.parent.mkdir(parents=True, exist_ok=True)
    file_handler = logging.FileHandler(path)
    formatter = logging.Formatter("%(asctime)s %(levelname)s %(message)s")
    file_handler.setFormatter(formatter)
    LOGGER.addHandler(file_handler)


class StoryOut(BaseModel):
    id: str
    kicker: str = ""
    title: str = ""
    summary: str = ""
    source: Optional[str] = None
    url: Optional[str] = None
    imageUrl: Optional[str] = None
    imageFloat: str = "right"
    publishDate: Optional[str] = None
    pageRef: Optional[str] = None
    featured: Optional[bool] = None
    popularity: Optional[float] = Field(default=None, description="Provider-derived score, normally 0-100")
    isPlaceholder: Optional[bool] = None
    breaking: Optional[bool] = None
    placeholderState: Optional[str] = None


class SectionOut(BaseModel):
    label: str
    stories: list[StoryOut] = Field(default_factory=list)
    categoryId: Optional[str] = None


class EditionOut(BaseModel):
    sections: list[SectionOut] = Field(default_factory=list)
    meta: Optional[dict[str, Any]] = Field(default=None, description="meta.fetchedAt is the edition version")
    debug: Optional[dict[str, Any]] = None


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    if getattr(app.state, "news_service", None) is None:
        settings = load_settings()
        _configure_request_log(settings.api_log_path)
        app.state.news_service = NewsService(settings)
    LOGGER.info("News API started with adapter=%s", app.state.news_service.adapter_name)
    try:
        yield
    finally:
        await app.state.news_service.close()


app = FastAPI(title="Happening Now News API", version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://localhost:4321", "http://localhost:5173"],
    allow_credentials=False,
    allow_methods=["GET"],
    allow_headers=["*"],
)


def _service(request: Request) -> NewsService:
    return request.app.state.news_service


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/api/news.json", response_model=EditionOut, response_model_exclude_none=True)
async def get_news(
    request: Request,
    response: Response,
    q: Optional[str] = Query(default=None, description="Free-text search (2-25 characters after cleanup)."),
    categories: Optional[str] = Query(
        default=None,
        description='Comma-separated category ids, e.g. "global,business,tech". Ignored when q is set.',
    ),
) -> dict[str, Any]:
    LOGGER.info("Fetching news q=%s categories=%s", q, categories)
    payload = await _service(request).news_response(q, categories, full_url=str(request.url))
    response.headers["Cache-Control"] = CACHE_CONTROL
    return payload


@app.get("/api/news/{q}.json", response_model=EditionOut, response_model_exclude_none=True)
async def get_news_for_query(q: str, request: Request, response: Response) -> dict[str, Any]:
    LOGGER.info("Fetching news for path query %s", q)
    payload = await _service(request).path_response(q, full_url=str(request.url))
    response.headers["Cache-Control"] = CACHE_CONTROL
    return payload
