from __future__ import annotations

from pydantic import BaseModel, field_validator

from learnhub.models.course import CourseStatus


def _required_title(value: str) -> str:
    value = str(value or "").strip()
    if not value:
        raise ValueError("Title is required")
    return value


class CourseCreateRequest(BaseModel):
    title: str
    description: str | None = None
    image_url: str | None = None

    @field_validator("title")
    @classmethod
    def _title(cls, v: str) -> str:
        return _required_title(v)


class CourseUpdateRequest(BaseModel):
    title: str | None = None
    description: str | None = None
    image_url: str | None = None
    status: CourseStatus | None = None

    @field_validator("title")
    @classmethod
    def _title(cls, v: str | None) -> str | None:
        return None if v is None else _required_title(v)


class CourseCreateResponse(BaseModel):
    id: str


class CoursePublic(BaseModel):
    id: str
    title: str
    description: str | None
    image_url: str | None
    status: CourseStatus
    published_at: str | None = None
    module_count: int = 0


class CoursesListResponse(BaseModel):
    items: list[CoursePublic]
