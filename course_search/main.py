"""FastAPI application wiring the course search service."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import asdict
from functools import lru_cache
from pathlib import Path
from typing import List

from elasticsearch import ApiError, TransportError
from fastapi import FastAPI, HTTPException, Query
from fastapi.responses import JSONResponse

from .config import settings
from .errors import EngineUnavailableError, IngestionError, InvalidRequestError
from .es_client import get_client, response_body
from .importer import FileCourseSource, IngestionPipeline
from .indexing import count_courses, list_courses
from .models import Course, SearchRequest, SearchResponse
from .search import search_courses
from .suggest import suggest_courses

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_LEVEL = logging.getLevelName(settings.log_level.upper())

# ``force=True`` replaces uvicorn's default handlers so ingestion progress is
# visible with the same format as request logs.
logging.basicConfig(level=LOG_LEVEL, format=LOG_FORMAT, force=True)
for name in ("uvicorn", "uvicorn.error", "uvicorn.access", "elastic_transport"):
    logging.getLogger(name).setLevel(LOG_LEVEL)

logger = logging.getLogger(__name__)
logger.info("Logging configured at %s", settings.log_level.upper())

app = FastAPI(title="Course Search Service")


@lru_cache(maxsize=1)
def get_pipeline() -> IngestionPipeline:
    return IngestionPipeline(
        get_client(),
        settings.es_index,
        FileCourseSource(Path(settings.sample_data_path)),
        force_reload=settings.force_reload,
    )


@app.on_event("startup")
async def startup_event() -> None:
    if not settings.load_on_startup:
        return
    try:
        report = await asyncio.to_thread(get_pipeline().run)
    except (IngestionError, ApiError, TransportError):
        logger.exception("Course ingestion failed")
        return
    logger.info("Startup ingestion finished: %s", report.state.value)


@app.get("/health")
async def health():
    es = get_client()
    try:
        status = response_body(await asyncio.to_thread(es.cluster.health))
        count = await asyncio.to_thread(count_courses, es, settings.es_index)
    except (ApiError, TransportError) as exc:
        logger.warning("Health check failed: %s", exc)
        return JSONResponse(
            status_code=503,
            content={"elasticsearch": "unavailable", "index": settings.es_index},
        )
    return {
        "elasticsearch": status.get("status"),
        "index": settings.es_index,
        "count": count,
    }


@app.get("/api/search", response_model=SearchResponse)
async def search(
    q: str | None = Query(None, description="Free-text query"),
    minAge: int | None = None,
    maxAge: int | None = None,
    category: str | None = None,
    type: str | None = Query(None, description="ONE_TIME, COURSE or CLUB"),
    minPrice: float | None = None,
    maxPrice: float | None = None,
    startDate: str | None = Query(None, description="ISO-8601 local date-time"),
    sort: str = "upcoming",
    page: int = 0,
    size: int = 10,
) -> SearchResponse:
    request = SearchRequest(
        q=q,
        minAge=minAge,
        maxAge=maxAge,
        category=category,
        type=type,
        minPrice=minPrice,
        maxPrice=maxPrice,
        startDate=startDate,
        sort=sort,
        page=page,
        size=size,
    )
    try:
        return await search_courses(get_client(), settings.es_index, request)
    except InvalidRequestError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except EngineUnavailableError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc


@app.get("/api/search/suggest", response_model=List[str])
async def suggest(q: str = "") -> List[str]:
    return await suggest_courses(get_client(), settings.es_index, q)


@app.get("/api/search/debug")
async def debug() -> dict:
    es = get_client()
    total = await asyncio.to_thread(count_courses, es, settings.es_index)
    documents = await asyncio.to_thread(list_courses, es, settings.es_index)
    return {
        "totalCount": total,
        "indexExists": total > 0,
        "courses": [Course.from_document(doc).model_dump(mode="json") for doc in documents],
    }


@app.post("/reindex")
async def reindex() -> dict:
    try:
        report = await asyncio.to_thread(get_pipeline().run, True)
    except IngestionError as exc:
        logger.exception("Reindex failed")
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    return {**asdict(report), "state": report.state.value}
