"""Pydantic models for catalog records and request/response payloads."""
from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

from .dates import format_session_date

DEFAULT_PAGE_SIZE = 10


class CourseType(str, Enum):
    ONE_TIME = "ONE_TIME"
    COURSE = "COURSE"
    CLUB = "CLUB"


class SortOption(str, Enum):
    UPCOMING = "upcoming"
    PRICE_ASC = "priceAsc"
    PRICE_DESC = "priceDesc"


def parse_course_type(value: str) -> CourseType:
    """Resolve a course type name case-insensitively; raises ``ValueError``."""
    return CourseType(value.strip().upper())


class RawCourse(BaseModel):
    """A course as it appears in the source file, before normalization."""

    model_config = ConfigDict(extra="ignore")

    id: str | None = None
    title: str | None = None
    description: str | None = None
    category: str | None = None
    type: str | None = None
    gradeRange: str | None = None
    minAge: int | None = None
    maxAge: int | None = None
    price: float | None = None
    nextSessionDate: str | None = None

    @field_validator("id", mode="before")
    @classmethod
    def _id_as_string(cls, value: Any) -> Any:
        if value is None or isinstance(value, str):
            return value
        return str(value)


class Course(BaseModel):
    """Canonical catalog record, as stored in and returned from the index."""

    id: str
    title: str
    description: str | None = None
    category: str | None = None
    type: CourseType | None = None
    gradeRange: str | None = None
    minAge: int | None = None
    maxAge: int | None = None
    price: float | None = None
    nextSessionDate: datetime
    suggestionInputs: list[str] = Field(default_factory=list)

    @field_serializer("nextSessionDate")
    def _serialize_session_date(self, value: datetime) -> str:
        return format_session_date(value)

    def to_document(self) -> dict[str, Any]:
        document = self.model_dump(mode="json", exclude={"suggestionInputs"}, exclude_none=True)
        document["suggest"] = {"input": list(self.suggestionInputs)}
        return document

    @classmethod
    def from_document(cls, source: Mapping[str, Any]) -> "Course":
        data = dict(source)
        suggest = data.pop("suggest", None)
        inputs = suggest.get("input", []) if isinstance(suggest, dict) else suggest or []
        data["suggestionInputs"] = [inputs] if isinstance(inputs, str) else list(inputs)
        return cls.model_validate(data)


class SearchRequest(BaseModel):
    q: str | None = Field(None, description="Free-text query")
    minAge: int | None = None
    maxAge: int | None = None
    category: str | None = None
    type: str | None = Field(None, description="ONE_TIME, COURSE or CLUB")
    minPrice: float | None = None
    maxPrice: float | None = None
    startDate: str | None = Field(None, description="ISO-8601 local date-time")
    sort: str = SortOption.UPCOMING.value
    page: int = 0
    size: int = DEFAULT_PAGE_SIZE


class SearchResponse(BaseModel):
    total: int
    courses: list[Course]
    page: int
    size: int
    totalPages: int
