from __future__ import annotations

from pydantic import BaseModel, Field, field_validator

from learnhub.schemas.course import _required_title


class ModuleCreateRequest(BaseModel):
    title: str
    description: str | None = None
    # Omitted: append after the last module.
    sort_order: int | None = Field(default=None, ge=0)

    @field_validator("title")
    @classmethod
    def _title(cls, v: str) -> str:
        return _required_title(v)


class ModuleUpdateRequest(BaseModel):
    title: str | None = None
    description: str | None = None
    sort_order: int | None = Field(default=None, ge=0)

    @field_validator("title")
    @classmethod
    def _title(cls, v: str | None) -> str | None:
        return None if v is None else _required_title(v)


class ModuleCreateResponse(BaseModel):
    id: str
    sort_order: int


class ModulePublic(BaseModel):
    id: str
    course_id: str
    title: str
    description: str | None
    sort_order: int
    item_count: int = 0


class ModulesListResponse(BaseModel):
    course_id: str
    items: list[ModulePublic]
