"""Per-record repair, validation and completion seeding for ingestion."""
from __future__ import annotations

import logging
import re
from typing import Iterable, List, Optional

from .dates import normalize_session_date
from .errors import DataFormatError
from .models import Course, RawCourse, parse_course_type

logger = logging.getLogger(__name__)

SUGGESTION_STOPWORDS = frozenset({"comprehensive", "class", "designed", "for", "and", "the"})
MAX_DESCRIPTION_SUGGESTIONS = 5
MIN_SUGGESTION_TOKEN_LENGTH = 4

_TOKEN_SPLIT_RE = re.compile(r"\W+")


def _description_tokens(description: str) -> Iterable[str]:
    for token in _TOKEN_SPLIT_RE.split(description.lower()):
        if len(token) >= MIN_SUGGESTION_TOKEN_LENGTH and token not in SUGGESTION_STOPWORDS:
            yield token


def build_suggestion_inputs(title: str, category: Optional[str] = None, description: Optional[str] = None) -> List[str]:
    """Completion seeds: title, lowercase title, category, then description words."""
    inputs: List[str] = []

    def add(value: Optional[str]) -> bool:
        if value and value not in inputs:
            inputs.append(value)
            return True
        return False

    add(title)
    add(title.lower())
    add(category)
    if description:
        extra = 0
        for token in _description_tokens(description):
            if extra >= MAX_DESCRIPTION_SUGGESTIONS:
                break
            if add(token):
                extra += 1
    return inputs


def prepare_course(raw: RawCourse) -> Optional[Course]:
    """Normalize and repair one source record; ``None`` means the record is dropped."""
    label = raw.id or raw.title
    try:
        session_date = normalize_session_date(raw.nextSessionDate)
    except DataFormatError as exc:
        logger.warning("Dropping course %r: %s", label, exc)
        return None

    title = (raw.title or "").strip()
    if not title:
        logger.warning("Dropping course %r: title is blank", label)
        return None
    if not (raw.description or "").strip():
        logger.warning("Course %r has a blank description", label)

    course_type = None
    if raw.type and raw.type.strip():
        try:
            course_type = parse_course_type(raw.type)
        except ValueError:
            logger.warning("Dropping course %r: unknown type %r", label, raw.type)
            return None

    min_age, max_age = raw.minAge, raw.maxAge
    if min_age is not None and max_age is not None and min_age > max_age:
        logger.warning("Course %r has minAge %s > maxAge %s; swapping", label, min_age, max_age)
        min_age, max_age = max_age, min_age

    price = raw.price
    if price is not None and price < 0:
        logger.warning("Course %r has negative price %s; clamping to 0", label, price)
        price = 0.0

    return Course(
        id=raw.id or title,
        title=title,
        description=raw.description,
        category=raw.category,
        type=course_type,
        gradeRange=raw.gradeRange,
        minAge=min_age,
        maxAge=max_age,
        price=price,
        nextSessionDate=session_date,
        suggestionInputs=build_suggestion_inputs(title, raw.category, raw.description),
    )
