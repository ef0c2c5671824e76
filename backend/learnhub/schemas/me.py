from __future__ import annotations

from pydantic import BaseModel


class MembershipPublic(BaseModel):
    tenant_id: str
    tenant_slug: str
    tenant_name: str
    role: str
    home_path: str


class MeResponse(BaseModel):
    id: str
    email: str | None
    memberships: list[MembershipPublic]
