from __future__ import annotations

import json

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.orm import Session

from learnhub.core.security import TenantContext, require_tenant_roles
from learnhub.db.session import get_db
from learnhub.models.audit import AuditLog
from learnhub.models.tenant import MembershipRole
from learnhub.schemas.audit import AuditLogsResponse

router = APIRouter(prefix="/t/{tenant_slug}/admin/audit", tags=["admin"])


def _meta(raw: str | None):
    if not raw:
        return None
    try:
        return json.loads(raw)
    except ValueError:
        return raw


@router.get("", response_model=AuditLogsResponse)
def list_audit(
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(require_tenant_roles(MembershipRole.admin)),
    action: str | None = Query(default=None, max_length=100),
    limit: int = Query(default=100, ge=1, le=500),
):
    stmt = select(AuditLog).where(AuditLog.tenant_id == ctx.tenant_id)
    if action:
        stmt = stmt.where(AuditLog.action == action.strip().upper())
    rows = db.scalars(stmt.order_by(AuditLog.created_at.desc(), AuditLog.id).limit(int(limit))).all()

    return {
        "items": [
            {
                "id": str(r.id),
                "actor_id": str(r.actor_id) if r.actor_id else None,
                "actor_email": r.actor_email,
                "action": r.action,
                "entity_type": r.entity_type,
                "entity_id": str(r.entity_id) if r.entity_id else None,
                "meta": _meta(r.meta),
                "request_id": r.request_id,
                "created_at": r.created_at.isoformat(),
            }
            for r in rows
        ]
    }
