"""Prefix autocomplete backed by the ``suggest`` completion field.

Suggestions are best effort: a blank prefix never reaches the engine, and any
engine failure is logged and answered with an empty list.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Mapping

from elasticsearch import ApiError, Elasticsearch, TransportError

from .es_client import response_body

logger = logging.getLogger(__name__)

SUGGESTER_NAME = "title_suggest"
SUGGEST_FIELD = "suggest"
DEFAULT_SUGGESTION_SIZE = 10


def build_suggest_query(prefix: str, size: int = DEFAULT_SUGGESTION_SIZE) -> Dict[str, Any]:
    return {
        "_source": False,
        "suggest": {
            SUGGESTER_NAME: {
                "prefix": prefix,
                "completion": {"field": SUGGEST_FIELD, "size": size},
            }
        },
    }


def extract_suggestions(response: Mapping[str, Any]) -> List[str]:
    entries = (response.get("suggest") or {}).get(SUGGESTER_NAME) or []
    return [
        option["text"]
        for entry in entries
        for option in entry.get("options") or []
        if option.get("text")
    ]


async def suggest_courses(
    es: Elasticsearch, index: str, prefix: str | None, size: int = DEFAULT_SUGGESTION_SIZE
) -> List[str]:
    if prefix is None or not prefix.strip():
        return []
    try:
        response = await asyncio.to_thread(
            es.search, index=index, body=build_suggest_query(prefix.lstrip(), size)
        )
    except (ApiError, TransportError) as exc:
        logger.warning("Suggestion lookup failed for %r: %s", prefix, exc)
        return []
    suggestions = extract_suggestions(response_body(response))
    logger.debug("suggest prefix=%r options=%s", prefix, len(suggestions))
    return suggestions
