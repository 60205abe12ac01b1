"""Index creation and maintenance helpers."""
from __future__ import annotations

import logging
from typing import Any, Dict, List

from elasticsearch import Elasticsearch
from elasticsearch.exceptions import BadRequestError, NotFoundError

from .dates import INDEX_DATE_FORMAT
from .es_client import response_body

logger = logging.getLogger(__name__)

COMPLETION_MAX_INPUT_LENGTH = 100

COURSE_INDEX_BODY: Dict[str, Any] = {
    "settings": {
        "analysis": {
            "normalizer": {
                "lowercase_normalizer": {"type": "custom", "filter": ["lowercase"]},
            },
            "tokenizer": {
                "autocomplete_tokenizer": {
                    "type": "edge_ngram",
                    "min_gram": 2,
                    "max_gram": 20,
                    "token_chars": ["letter", "digit"],
                },
            },
            "analyzer": {
                "autocomplete": {
                    "type": "custom",
                    "tokenizer": "autocomplete_tokenizer",
                    "filter": ["lowercase"],
                },
            },
        },
    },
    "mappings": {
        "properties": {
            "id": {"type": "keyword"},
            "title": {
                "type": "text",
                "analyzer": "english",
                "fields": {
                    "keyword": {"type": "keyword", "normalizer": "lowercase_normalizer"},
                    "autocomplete": {
                        "type": "text",
                        "analyzer": "autocomplete",
                        "search_analyzer": "standard",
                    },
                },
            },
            "description": {"type": "text", "analyzer": "english"},
            "category": {"type": "keyword"},
            "type": {"type": "keyword"},
            "gradeRange": {"type": "keyword"},
            "minAge": {"type": "integer"},
            "maxAge": {"type": "integer"},
            "price": {"type": "double"},
            "nextSessionDate": {"type": "date", "format": INDEX_DATE_FORMAT},
            "suggest": {"type": "completion", "max_input_length": COMPLETION_MAX_INPUT_LENGTH},
        }
    },
}


def ensure_index(es: Elasticsearch, index: str) -> bool:
    """Create the course index with its mapping if it is missing.

    Returns ``True`` when the index was created by this call. An existing
    index is left untouched.
    """
    if es.indices.exists(index=index):
        return False
    logger.info("Creating index %s", index)
    try:
        es.indices.create(
            index=index,
            settings=COURSE_INDEX_BODY["settings"],
            mappings=COURSE_INDEX_BODY["mappings"],
        )
    except BadRequestError as exc:
        if getattr(exc, "error", "") == "resource_already_exists_exception":
            logger.info("Index %s already exists", index)
            return False
        logger.exception("Failed to create index: %s", exc)
        raise
    return True


def count_courses(es: Elasticsearch, index: str) -> int:
    try:
        return int(response_body(es.count(index=index)).get("count", 0))
    except NotFoundError:
        return 0


def purge_courses(es: Elasticsearch, index: str) -> int:
    """Delete every document in the index, keeping the index and its mapping."""
    result = response_body(
        es.delete_by_query(index=index, query={"match_all": {}}, refresh=True, conflicts="proceed")
    )
    deleted = int(result.get("deleted", 0))
    logger.info("Purged %s documents from %s", deleted, index)
    return deleted


def list_courses(es: Elasticsearch, index: str, size: int = 100) -> List[Dict[str, Any]]:
    """Return raw ``_source`` documents of the first ``size`` stored courses."""
    try:
        response = response_body(es.search(index=index, query={"match_all": {}}, size=size))
    except NotFoundError:
        return []
    hits = (response.get("hits") or {}).get("hits") or []
    return [hit["_source"] for hit in hits if hit.get("_source") is not None]
