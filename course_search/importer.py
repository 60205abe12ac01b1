"""Course ingestion: load the catalog file, repair records, bulk index them.

The pipeline is a startup batch job. It runs synchronously and blocks through
its retry and settle sleeps::

    check connection -> ensure index -> count existing
        -> skip (already populated, no force)
        -> purge (force) -> load source -> normalize/validate -> persist batches
"""
from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Iterable, Iterator, List, Protocol, Sequence, Tuple

from elasticsearch import ApiError, Elasticsearch, TransportError, helpers
from pydantic import TypeAdapter, ValidationError

from .errors import EngineUnavailableError, IngestionError
from .health import BackoffPolicy, wait_for_engine
from .indexing import count_courses, ensure_index, purge_courses
from .models import Course, RawCourse
from .records import prepare_course

logger = logging.getLogger(__name__)

BATCH_SIZE = 50
SETTLE_SECONDS = 2.0

_RAW_COURSES = TypeAdapter(List[RawCourse])


class CourseSource(Protocol):
    def read(self) -> bytes: ...


@dataclass
class FileCourseSource:
    path: Path

    def read(self) -> bytes:
        return Path(self.path).read_bytes()


class IngestionState(str, Enum):
    ABORTED = "aborted"
    SKIPPED = "skipped"
    DONE = "done"


@dataclass
class IngestionReport:
    state: IngestionState
    existing: int = 0
    source_records: int = 0
    dropped: int = 0
    indexed: int = 0
    failed_ids: List[str] = field(default_factory=list)


def load_courses(source: CourseSource) -> List[RawCourse]:
    """Read and deserialize the source; unknown fields are ignored."""
    try:
        data = source.read()
    except OSError as exc:
        raise IngestionError(f"Course source {source} could not be read: {exc}") from exc
    try:
        return _RAW_COURSES.validate_json(data)
    except ValidationError as exc:
        raise IngestionError(f"Course source {source} is not a valid course list: {exc}") from exc


def prepare_courses(raw_courses: Iterable[RawCourse]) -> List[Course]:
    """Prepare every record, keeping the first course for each document id."""
    courses = []
    seen_ids = set()
    for raw in raw_courses:
        course = prepare_course(raw)
        if course is None:
            continue
        if course.id in seen_ids:
            logger.warning("Dropping course %r: duplicate document id", course.id)
            continue
        seen_ids.add(course.id)
        courses.append(course)
    return courses


def _iter_actions(index: str, courses: Iterable[Course]) -> Iterator[dict]:
    for course in courses:
        yield {
            "_index": index,
            "_id": course.id,
            "_source": course.to_document(),
        }


def _batches(items: Sequence[Course], size: int) -> Iterator[Sequence[Course]]:
    for start in range(0, len(items), size):
        yield items[start : start + size]


def _error_id(item: dict) -> str | None:
    # Bulk error items look like {"index": {"_id": ..., "status": ..., "error": ...}}
    details = next(iter(item.values()), {})
    return details.get("_id") if isinstance(details, dict) else None


class IngestionPipeline:
    """Loads the course catalog into the index once per process."""

    def __init__(
        self,
        es: Elasticsearch,
        index: str,
        source: CourseSource,
        *,
        force_reload: bool = False,
        backoff: BackoffPolicy | None = None,
        batch_size: int = BATCH_SIZE,
        settle_seconds: float = SETTLE_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.es = es
        self.index = index
        self.source = source
        self.force_reload = force_reload
        self.backoff = backoff or BackoffPolicy()
        self.batch_size = batch_size
        self.settle_seconds = settle_seconds
        self.sleep = sleep
        self._lock = threading.Lock()
        self._has_run = False

    def run(self, force: bool | None = None) -> IngestionReport:
        """Run the pipeline.

        Only the first call runs automatically; later calls are skipped unless
        ``force=True`` is passed. ``force=None`` falls back to the configured
        ``force_reload``. Raises :class:`IngestionError` when the source is
        unreadable.
        """
        with self._lock:
            if self._has_run and force is not True:
                logger.info("Ingestion already ran in this process; skipping")
                return IngestionReport(IngestionState.SKIPPED)
            self._has_run = True
            return self._run(self.force_reload if force is None else force)

    def _run(self, force: bool) -> IngestionReport:
        try:
            wait_for_engine(self.es, self.backoff)
        except EngineUnavailableError as exc:
            logger.error("%s. Skipping data loading.", exc)
            return IngestionReport(IngestionState.ABORTED)

        try:
            ensure_index(self.es, self.index)
            existing = count_courses(self.es, self.index)
            logger.info("Current course count in %s: %s", self.index, existing)
            if existing and not force:
                logger.info("Courses already indexed, skipping data loading")
                return IngestionReport(IngestionState.SKIPPED, existing=existing)
            if existing:
                logger.info("Force reload requested; purging %s existing courses", existing)
                purge_courses(self.es, self.index)
                self.sleep(self.settle_seconds)
        except (ApiError, TransportError) as exc:
            logger.error("Preparing index %s failed: %s. Skipping data loading.", self.index, exc)
            return IngestionReport(IngestionState.ABORTED)

        raw_courses = load_courses(self.source)
        courses = prepare_courses(raw_courses)
        report = IngestionReport(
            IngestionState.DONE,
            existing=existing,
            source_records=len(raw_courses),
            dropped=len(raw_courses) - len(courses),
        )
        logger.info(
            "Loaded %s courses from source, %s kept after validation", len(raw_courses), len(courses)
        )

        for number, batch in enumerate(_batches(courses, self.batch_size), start=1):
            indexed, failed_ids = self._persist_batch(batch)
            report.indexed += indexed
            report.failed_ids.extend(failed_ids)
            logger.debug("Batch %s: indexed=%s failed=%s", number, indexed, len(failed_ids))

        try:
            self.es.indices.refresh(index=self.index)
        except (ApiError, TransportError) as exc:
            logger.warning("Refreshing index %s failed: %s", self.index, exc)
        logger.info(
            "Successfully loaded %s courses (%s dropped, %s failed)",
            report.indexed,
            report.dropped,
            len(report.failed_ids),
        )
        return report

    def _persist_batch(self, batch: Sequence[Course]) -> Tuple[int, List[str]]:
        actions = list(_iter_actions(self.index, batch))
        try:
            indexed, errors = helpers.bulk(self.es, actions, raise_on_error=False)
        except (ApiError, TransportError) as exc:
            logger.warning("Bulk request for %s courses failed: %s; retrying one by one", len(batch), exc)
            indexed, retry = 0, list(batch)
        else:
            if not errors:
                return indexed, []
            failed = {_error_id(item) for item in errors}
            logger.warning("%s of %s courses failed in bulk; retrying one by one", len(failed), len(batch))
            retry = [course for course in batch if course.id in failed]

        failed_ids: List[str] = []
        for course in retry:
            try:
                self.es.index(index=self.index, id=course.id, document=course.to_document())
            except (ApiError, TransportError) as exc:
                logger.error("Failed to index course %r: %s", course.id, exc)
                failed_ids.append(course.id)
            else:
                indexed += 1
        return indexed, failed_ids
