from __future__ import annotations

from pydantic import BaseModel, Field, field_validator, model_validator

from learnhub.models.course import ContentSource, ContentType
from learnhub.schemas.course import _required_title


def check_source_fields(source: ContentSource, url: str | None, storage_path: str | None) -> None:
    if source == ContentSource.external and not (url or "").strip():
        raise ValueError("URL is required")
    if source == ContentSource.storage and not (storage_path or "").strip():
        raise ValueError("Storage path is required")


class ContentCreateRequest(BaseModel):
    title: str
    type: ContentType
    content_source: ContentSource = ContentSource.external
    url: str | None = None
    storage_path: str | None = None
    mime_type: str | None = None
    file_size: int | None = Field(default=None, ge=0)
    # Omitted: append after the last item.
    sort_order: int | None = Field(default=None, ge=0)

    @field_validator("title")
    @classmethod
    def _title(cls, v: str) -> str:
        return _required_title(v)

    @model_validator(mode="after")
    def _source(self) -> "ContentCreateRequest":
        check_source_fields(self.content_source, self.url, self.storage_path)
        return self


class ContentUpdateRequest(BaseModel):
    title: str | None = None
    type: ContentType | None = None
    content_source: ContentSource | None = None
    url: str | None = None
    storage_path: str | None = None
    mime_type: str | None = None
    file_size: int | None = Field(default=None, ge=0)
    sort_order: int | None = Field(default=None, ge=0)

    @field_validator("title")
    @classmethod
    def _title(cls, v: str | None) -> str | None:
        return None if v is None else _required_title(v)


class ContentCreateResponse(BaseModel):
    id: str
    sort_order: int


class ContentItemPublic(BaseModel):
    id: str
    module_id: str
    title: str
    type: ContentType
    content_source: ContentSource
    url: str | None
    storage_path: str | None
    mime_type: str | None
    file_size: int | None
    sort_order: int | None


class ContentItemsListResponse(BaseModel):
    module_id: str
    items: list[ContentItemPublic]
