"""Course search: request compilation, execution and response shaping."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Mapping, Tuple

from elasticsearch import ApiError, Elasticsearch, TransportError

from .dates import format_session_date, parse_start_date
from .errors import EngineUnavailableError, InvalidRequestError
from .es_client import response_body
from .models import (
    DEFAULT_PAGE_SIZE,
    Course,
    SearchRequest,
    SearchResponse,
    SortOption,
    parse_course_type,
)

logger = logging.getLogger(__name__)

TEXT_FIELDS = ["title^3", "description^2", "category^1"]
# AUTO:3,6 -> 0 edits up to 2 chars, 1 edit for 3-5 chars, 2 edits beyond.
FUZZINESS = "AUTO:3,6"
EXACT_TITLE_BOOST = 3.0
PARTIAL_TITLE_BOOST = 2.0
WILDCARD_TITLE_BOOST = 0.5

SORT_FIELDS: Dict[SortOption, List[dict]] = {
    SortOption.PRICE_ASC: [{"price": {"order": "asc"}}],
    SortOption.PRICE_DESC: [{"price": {"order": "desc"}}],
    SortOption.UPCOMING: [{"nextSessionDate": {"order": "asc"}}],
}


def _blank(value: str | None) -> bool:
    return value is None or not value.strip()


def effective_paging(request: SearchRequest) -> Tuple[int, int]:
    """Return ``(page, size)`` with a negative page and non-positive size coerced."""
    page = request.page if request.page > 0 else 0
    size = request.size if request.size > 0 else DEFAULT_PAGE_SIZE
    return page, size


def _escape_wildcard(text: str) -> str:
    return text.replace("\\", "\\\\").replace("*", "\\*").replace("?", "\\?")


def _text_query(text: str) -> dict:
    lowered = text.lower()
    should: List[dict] = [
        {"term": {"title.keyword": {"value": lowered, "boost": EXACT_TITLE_BOOST}}},
        {"match": {"title.autocomplete": {"query": text, "boost": PARTIAL_TITLE_BOOST}}},
        {
            "multi_match": {
                "query": text,
                "fields": TEXT_FIELDS,
                "fuzziness": FUZZINESS,
                "operator": "or",
            }
        },
        {
            "wildcard": {
                "title.keyword": {
                    "value": f"*{_escape_wildcard(lowered)}*",
                    "boost": WILDCARD_TITLE_BOOST,
                    "case_insensitive": True,
                }
            }
        },
    ]
    return {"bool": {"should": should, "minimum_should_match": 1}}


def _filters(request: SearchRequest) -> List[dict]:
    filters: List[dict] = []

    def add_range(field: str, op: str, value: Any) -> None:
        filters.append({"range": {field: {op: value}}})

    # Age ranges overlap when the request minimum fits under the course maximum
    # and the request maximum reaches the course minimum.
    if request.minAge is not None:
        add_range("maxAge", "gte", request.minAge)
    if request.maxAge is not None:
        add_range("minAge", "lte", request.maxAge)

    if not _blank(request.category):
        filters.append({"term": {"category": request.category}})

    if not _blank(request.type):
        try:
            course_type = parse_course_type(request.type)
        except ValueError as exc:
            raise InvalidRequestError(f"Unknown course type {request.type!r}") from exc
        filters.append({"term": {"type": course_type.value}})

    if request.minPrice is not None:
        add_range("price", "gte", request.minPrice)
    if request.maxPrice is not None:
        add_range("price", "lte", request.maxPrice)

    if not _blank(request.startDate):
        add_range("nextSessionDate", "gte", format_session_date(parse_start_date(request.startDate)))
    return filters


def _sort(sort: str | None) -> List[dict]:
    try:
        option = SortOption(sort)
    except ValueError:
        option = SortOption.UPCOMING
    return SORT_FIELDS[option]


def build_search_query(request: SearchRequest) -> Dict[str, Any]:
    """Compile a search request into an Elasticsearch search body.

    Raises :class:`InvalidRequestError` for an unknown ``type`` or an
    unparseable ``startDate``. The result depends on the request only.
    """
    page, size = effective_paging(request)
    text = (request.q or "").strip()
    must = _text_query(text) if text else {"match_all": {}}

    query = {
        "query": {"bool": {"must": [must], "filter": _filters(request)}},
        "sort": _sort(request.sort),
        "from": page * size,
        "size": size,
        "track_total_hits": True,
    }
    logger.debug("ES query payload=%s", query)
    return query


def _total_hits(hits: Mapping[str, Any]) -> int:
    total = hits.get("total")
    if isinstance(total, Mapping):
        total = total.get("value")
    return int(total or 0)


def map_search_response(response: Mapping[str, Any], request: SearchRequest) -> SearchResponse:
    """Shape an engine response into a paginated envelope, keeping hit order."""
    page, size = effective_paging(request)
    hits = response.get("hits") or {}
    courses = [
        Course.from_document(hit["_source"])
        for hit in hits.get("hits") or []
        if hit.get("_source") is not None
    ]
    total = _total_hits(hits)
    return SearchResponse(
        total=total,
        courses=courses,
        page=page,
        size=size,
        totalPages=-(-total // size),
    )


async def search_courses(es: Elasticsearch, index: str, request: SearchRequest) -> SearchResponse:
    query_body = build_search_query(request)
    try:
        response = await asyncio.to_thread(es.search, index=index, body=query_body)
    except (ApiError, TransportError) as exc:
        logger.error("Search failed for request %s: %s", request.model_dump(exclude_none=True), exc)
        raise EngineUnavailableError("Failed to search courses") from exc

    result = map_search_response(response_body(response), request)
    logger.info(
        "search q=%r filters=%s hits=%s total=%s took=%sms",
        request.q,
        len(query_body["query"]["bool"]["filter"]),
        len(result.courses),
        result.total,
        response_body(response).get("took", 0),
    )
    return result
