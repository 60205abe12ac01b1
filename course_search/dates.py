"""Session date normalization.

Source files carry ``nextSessionDate`` in several shapes (``...Z`` suffixes,
minute precision, millisecond precision). The index stores one shape only,
``uuuu-MM-dd'T'HH:mm:ss``, so every value is normalized before persisting:

    "2025-08-15T10:00:00Z"      -> 2025-08-15T10:00:00
    "2025-08-15T10:00"          -> 2025-08-15T10:00:01
    "2025-08-15T10:00:00.250Z"  -> 2025-08-15T10:00:00

Minute-precision values are padded with ``:01`` rather than ``:00`` so that a
padded value can always be told apart from a source that never had seconds.
Serialization goes through :func:`format_session_date`, which always writes the
seconds component.
"""
from __future__ import annotations

import re
from datetime import datetime, timedelta

from .errors import DataFormatError, InvalidRequestError

CANONICAL_FORMAT = "%Y-%m-%dT%H:%M:%S"
INDEX_DATE_FORMAT = "uuuu-MM-dd'T'HH:mm:ss"
MISSING_SECONDS = ":01"

_SESSION_DATE_RE = re.compile(r"^(\d{4}-\d{2}-\d{2}T\d{2}:\d{2})(?:(:\d{2})(\.\d+)?)?$")
_LOCAL_DATE_TIME_RE = re.compile(r"^(\d{4}-\d{2}-\d{2}T\d{2}:\d{2}(?::\d{2})?)(?:\.(\d{1,9}))?$")


def normalize_session_date(value: str | None) -> datetime:
    """Parse a source session date into a second-precision naive datetime.

    Raises :class:`DataFormatError` for anything that is not one of the
    recognized shapes.
    """
    if value is None:
        raise DataFormatError("session date is missing")
    text = value.strip()
    if text[-1:] in {"Z", "z"}:
        text = text[:-1]
    match = _SESSION_DATE_RE.match(text)
    if match is None:
        raise DataFormatError(f"unrecognized session date {value!r}")
    minutes, seconds, _millis = match.groups()
    canonical = minutes + (seconds if seconds is not None else MISSING_SECONDS)
    try:
        return datetime.strptime(canonical, CANONICAL_FORMAT)
    except ValueError as exc:
        raise DataFormatError(f"invalid session date {value!r}") from exc


def format_session_date(value: datetime) -> str:
    return value.isoformat(timespec="seconds")


def parse_start_date(value: str) -> datetime:
    """Parse a request ``startDate`` (ISO-8601 local date-time, no zone).

    Fractional seconds round up to the next whole second so the inclusive
    lower bound never admits a session stored before the requested instant.
    """
    match = _LOCAL_DATE_TIME_RE.match(value.strip())
    if match is None:
        raise InvalidRequestError(f"startDate must be an ISO-8601 local date-time, got {value!r}")
    whole, fraction = match.groups()
    pattern = CANONICAL_FORMAT if whole.count(":") == 2 else "%Y-%m-%dT%H:%M"
    try:
        parsed = datetime.strptime(whole, pattern)
    except ValueError as exc:
        raise InvalidRequestError(f"startDate is not a valid date-time: {value!r}") from exc
    if fraction and int(fraction):
        parsed += timedelta(seconds=1)
    return parsed
