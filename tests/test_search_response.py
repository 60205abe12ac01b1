"""Response shaping and search execution against a mocked client."""
import asyncio
import math
from unittest.mock import MagicMock

import pytest
from elasticsearch import ConnectionError as ESConnectionError

from course_search.errors import EngineUnavailableError, InvalidRequestError
from course_search.models import Course, CourseType, SearchRequest
from course_search.search import map_search_response, search_courses


def _hit(course_id: str, title: str, price: float, **extra) -> dict:
    source = {
        "id": course_id,
        "title": title,
        "category": "Science",
        "type": "COURSE",
        "minAge": 10,
        "maxAge": 14,
        "price": price,
        "nextSessionDate": "2025-08-15T10:00:00",
        "suggest": {"input": [title, title.lower()]},
    }
    source.update(extra)
    return {"_id": course_id, "_score": None, "_source": source}


def _response(hits, total) -> dict:
    return {"took": 3, "hits": {"total": total, "hits": hits}}


def test_hits_are_mapped_in_engine_order():
    response = _response(
        [_hit("3", "Art Workshop", 45.0), _hit("2", "Physics 101", 199.99), _hit("1", "Python Programming", 299.99)],
        {"value": 3, "relation": "eq"},
    )

    result = map_search_response(response, SearchRequest(sort="priceAsc"))

    assert [course.price for course in result.courses] == [45.0, 199.99, 299.99]
    assert result.courses[0].title == "Art Workshop"
    assert result.courses[0].type is CourseType.COURSE
    assert result.courses[0].suggestionInputs == ["Art Workshop", "art workshop"]
    assert (result.total, result.page, result.size, result.totalPages) == (3, 0, 10, 1)


def test_local_order_is_never_changed():
    response = _response([_hit("1", "B", 300.0), _hit("2", "A", 10.0)], 2)

    result = map_search_response(response, SearchRequest())

    assert [course.id for course in result.courses] == ["1", "2"]


def test_missing_hits_and_total_map_to_empty_result():
    result = map_search_response({}, SearchRequest())

    assert result.courses == []
    assert (result.total, result.totalPages) == (0, 0)


def test_hits_without_source_are_discarded():
    response = _response([{"_id": "x"}, _hit("2", "Physics 101", 199.99), {"_id": "y", "_source": None}], 3)

    result = map_search_response(response, SearchRequest())

    assert [course.id for course in result.courses] == ["2"]
    assert result.total == 3


def test_page_metadata_uses_coerced_paging():
    result = map_search_response(_response([], 21), SearchRequest(page=-1, size=0))

    assert (result.page, result.size, result.totalPages) == (0, 10, 3)


@pytest.mark.parametrize("total", [0, 1, 9, 10, 11, 99, 100, 101])
@pytest.mark.parametrize("size", [1, 3, 10, 25])
def test_total_pages_is_ceiling_division(total, size):
    result = map_search_response(_response([], {"value": total}), SearchRequest(size=size))

    assert result.totalPages == math.ceil(total / size)


def test_course_round_trips_through_index_document():
    response = _response([_hit("2", "Physics 101", 199.99)], 1)
    course = map_search_response(response, SearchRequest()).courses[0]

    document = course.to_document()

    assert document["nextSessionDate"] == "2025-08-15T10:00:00"
    assert document["suggest"] == {"input": ["Physics 101", "physics 101"]}
    assert Course.from_document(document) == course


def test_search_courses_sends_compiled_query():
    es = MagicMock()
    es.search.return_value = _response([_hit("2", "Physics 101", 199.99)], {"value": 1})

    result = asyncio.run(search_courses(es, "courses", SearchRequest(q="Phisics")))

    assert result.total == 1
    assert result.courses[0].title == "Physics 101"
    kwargs = es.search.call_args.kwargs
    assert kwargs["index"] == "courses"
    assert kwargs["body"]["query"]["bool"]["must"][0]["bool"]["should"][2]["multi_match"]["query"] == "Phisics"


def test_invalid_request_never_reaches_the_engine():
    es = MagicMock()

    with pytest.raises(InvalidRequestError):
        asyncio.run(search_courses(es, "courses", SearchRequest(type="WEBINAR")))
    es.search.assert_not_called()


def test_engine_failure_surfaces_as_unavailable():
    es = MagicMock()
    es.search.side_effect = ESConnectionError("connection refused")

    with pytest.raises(EngineUnavailableError):
        asyncio.run(search_courses(es, "courses", SearchRequest(q="art")))
