from __future__ import annotations

from typing import Any

from pydantic import BaseModel


class AuditLogPublic(BaseModel):
    id: str
    actor_id: str | None
    actor_email: str | None
    action: str
    entity_type: str
    entity_id: str | None
    meta: Any = None
    request_id: str | None
    created_at: str


class AuditLogsResponse(BaseModel):
    items: list[AuditLogPublic]
