from __future__ import annotations

from pydantic import BaseModel

from learnhub.models.course import ContentSource, ContentType, CourseStatus


class ContentNodePublic(BaseModel):
    id: str
    title: str
    type: ContentType
    content_source: ContentSource
    url: str | None
    sort_order: int | None
    is_completed: bool


class ModuleNodePublic(BaseModel):
    id: str
    title: str
    description: str | None
    sort_order: int
    total_items: int
    completed_items: int
    items: list[ContentNodePublic]


class CourseTreeResponse(BaseModel):
    id: str
    tenant_id: str
    title: str
    description: str | None
    status: CourseStatus
    total_items: int
    completed_items: int
    progress_percentage: int
    modules: list[ModuleNodePublic]


class NavEntryPublic(BaseModel):
    module_id: str
    content_item_id: str
    title: str


class LearnItemResponse(BaseModel):
    course: CourseTreeResponse
    module_id: str | None
    current: ContentNodePublic | None
    previous: NavEntryPublic | None
    next: NavEntryPublic | None


class AssignedCoursePublic(BaseModel):
    id: str
    title: str
    description: str | None
    image_url: str | None
    status: CourseStatus
    progress_completed: int
    progress_total: int
    progress_percentage: int


class AssignedCoursesResponse(BaseModel):
    items: list[AssignedCoursePublic]


class ProgressToggleRequest(BaseModel):
    content_item_id: str
    completed: bool


class ProgressToggleResponse(BaseModel):
    ok: bool = True
    content_item_id: str
    completed: bool
    completed_at: str | None


class EmployeeStatsPublic(BaseModel):
    id: str
    full_name: str | None
    email: str
    courses_assigned: int
    items_completed: int


class EmployeeStatsResponse(BaseModel):
    items: list[EmployeeStatsPublic]


class EmployeeProgressResponse(BaseModel):
    employee_id: str
    courses: list[AssignedCoursePublic]
