"""Shared fixtures: an in-memory stand-in for the Elasticsearch client."""
from __future__ import annotations

import json
from typing import Dict, Iterable, List
from unittest.mock import Mock

import pytest
from elasticsearch import ConnectionError as ESConnectionError
from elasticsearch import TransportError

from course_search import importer


def api_error(cls, message: str, status: int):
    """Build an ``ApiError`` subclass the way the client raises it."""
    return cls(message, meta=Mock(status=status), body={"error": {"type": message}})


class FakeIndices:
    def __init__(self, es: "FakeElasticsearch") -> None:
        self._es = es

    def exists(self, index: str) -> bool:
        return index in self._es.created

    def create(self, index: str, settings: dict | None = None, mappings: dict | None = None) -> dict:
        self._es.created[index] = {"settings": settings, "mappings": mappings}
        self._es.docs.setdefault(index, {})
        return {"acknowledged": True}

    def refresh(self, index: str) -> dict:
        self._es.refreshes += 1
        return {}


class FakeElasticsearch:
    """Keeps documents in dicts and fails on demand."""

    def __init__(self, info_failures: int = 0) -> None:
        self.created: Dict[str, dict] = {}
        self.docs: Dict[str, Dict[str, dict]] = {}
        self.indices = FakeIndices(self)
        self.info_failures = info_failures
        self.info_calls = 0
        self.refreshes = 0
        self.bulk_batches: List[int] = []
        self.bulk_rejects: set[str] = set()
        self.always_rejects: set[str] = set()
        self.bulk_raises = False
        self.single_index_calls: List[str] = []

    def info(self) -> dict:
        self.info_calls += 1
        if self.info_calls <= self.info_failures:
            raise ESConnectionError("connection refused")
        return {"version": {"number": "8.11.0"}}

    def count(self, index: str) -> dict:
        return {"count": len(self.docs.get(index, {}))}

    def delete_by_query(self, index: str, query: dict, refresh: bool = False, conflicts: str = "abort") -> dict:
        deleted = len(self.docs.get(index, {}))
        self.docs[index] = {}
        return {"deleted": deleted}

    def index(self, index: str, id: str, document: dict) -> dict:
        self.single_index_calls.append(id)
        if id in self.always_rejects:
            raise TransportError("document rejected")
        self.docs.setdefault(index, {})[id] = document
        return {"result": "created"}

    def bulk_actions(self, actions: Iterable[dict]):
        actions = list(actions)
        self.bulk_batches.append(len(actions))
        if self.bulk_raises:
            raise ESConnectionError("bulk connection reset")
        success, errors = 0, []
        for action in actions:
            doc_id = action["_id"]
            if doc_id in self.bulk_rejects or doc_id in self.always_rejects:
                errors.append({"index": {"_id": doc_id, "status": 429, "error": {"type": "es_rejected_execution_exception"}}})
                continue
            self.docs.setdefault(action["_index"], {})[doc_id] = action["_source"]
            success += 1
        return success, errors

    def stored(self, index: str) -> Dict[str, dict]:
        return self.docs.get(index, {})


class InMemorySource:
    def __init__(self, records=None, raw: bytes | None = None, error: Exception | None = None) -> None:
        self.raw = raw if raw is not None else json.dumps(records or []).encode("utf-8")
        self.error = error
        self.reads = 0

    def read(self) -> bytes:
        self.reads += 1
        if self.error is not None:
            raise self.error
        return self.raw


def course_json(course_id: str, **overrides) -> dict:
    record = {
        "id": course_id,
        "title": f"Course {course_id}",
        "description": "Hands-on learning with friendly instructors",
        "category": "Science",
        "type": "COURSE",
        "gradeRange": "5th-8th",
        "minAge": 10,
        "maxAge": 14,
        "price": 100.0,
        "nextSessionDate": "2025-08-15T10:00:00",
    }
    record.update(overrides)
    return record


@pytest.fixture
def fake_es(monkeypatch) -> FakeElasticsearch:
    es = FakeElasticsearch()

    def fake_bulk(client, actions, raise_on_error=True, **kwargs):
        return client.bulk_actions(actions)

    monkeypatch.setattr(importer.helpers, "bulk", fake_bulk)
    return es


@pytest.fixture
def sleeps() -> List[float]:
    return []
