"""Exception hierarchy for the course search service."""
from __future__ import annotations


class CourseSearchError(Exception):
    """Base class for errors raised by this package."""


class InvalidRequestError(CourseSearchError):
    """A search request carries a malformed enum value or date."""


class EngineUnavailableError(CourseSearchError):
    """Elasticsearch could not be reached or rejected a read request."""


class DataFormatError(CourseSearchError, ValueError):
    """A source value (usually a session date) has an unrecognized shape."""


class IngestionError(CourseSearchError):
    """The course source could not be read or deserialized."""
