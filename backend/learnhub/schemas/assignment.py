from __future__ import annotations

from pydantic import BaseModel

from learnhub.models.tenant import MembershipRole


class EmployeePublic(BaseModel):
    id: str
    email: str
    full_name: str | None
    role: str
    active: bool


class EmployeesListResponse(BaseModel):
    items: list[EmployeePublic]


class AssignmentsUpdateRequest(BaseModel):
    course_ids: list[str]


class AssignmentsResponse(BaseModel):
    employee_id: str
    course_ids: list[str]
    added: list[str] = []
    removed: list[str] = []


class EmployeeUpdateRequest(BaseModel):
    active: bool | None = None
    role: MembershipRole | None = None
