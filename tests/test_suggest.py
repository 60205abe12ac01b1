"""Autocomplete lookups are best effort and never fail the caller."""
import asyncio
from unittest.mock import MagicMock

import pytest
from elasticsearch import BadRequestError
from elasticsearch import ConnectionError as ESConnectionError

from course_search.suggest import build_suggest_query, extract_suggestions, suggest_courses

from .conftest import api_error


def _suggest_response(*texts) -> dict:
    return {
        "suggest": {
            "title_suggest": [
                {"text": "ph", "offset": 0, "length": 2, "options": [{"text": text} for text in texts]}
            ]
        }
    }


@pytest.mark.parametrize("prefix", [None, "", "   ", "\t\n"])
def test_blank_prefix_skips_the_engine(prefix):
    es = MagicMock()

    assert asyncio.run(suggest_courses(es, "courses", prefix)) == []
    es.search.assert_not_called()


def test_suggest_query_targets_completion_field():
    assert build_suggest_query("Ph") == {
        "_source": False,
        "suggest": {"title_suggest": {"prefix": "Ph", "completion": {"field": "suggest", "size": 10}}},
    }


def test_extract_drops_empty_options():
    response = _suggest_response("Physics 101", None, "", "physics 101")

    assert extract_suggestions(response) == ["Physics 101", "physics 101"]


def test_extract_handles_missing_suggest_section():
    assert extract_suggestions({}) == []
    assert extract_suggestions({"suggest": {"title_suggest": [{"options": []}]}}) == []


def test_suggest_courses_returns_option_texts():
    es = MagicMock()
    es.search.return_value = _suggest_response("Physics 101", "physics 101")

    assert asyncio.run(suggest_courses(es, "courses", " ph")) == ["Physics 101", "physics 101"]
    assert es.search.call_args.kwargs["body"]["suggest"]["title_suggest"]["prefix"] == "ph"


@pytest.mark.parametrize(
    "error",
    [ESConnectionError("connection refused"), api_error(BadRequestError, "search_phase_execution_exception", 400)],
)
def test_engine_errors_yield_empty_list(error):
    es = MagicMock()
    es.search.side_effect = error

    assert asyncio.run(suggest_courses(es, "courses", "ph")) == []


def test_trailing_whitespace_is_part_of_the_prefix():
    es = MagicMock()
    es.search.return_value = _suggest_response("New York Coding Camp")

    asyncio.run(suggest_courses(es, "courses", "new "))

    assert es.search.call_args.kwargs["body"]["suggest"]["title_suggest"]["prefix"] == "new "
