from __future__ import annotations

import json
import uuid

from fastapi import Request
from sqlalchemy.orm import Session

from learnhub.core.rate_limit import client_ip
from learnhub.core.security import Viewer
from learnhub.models.audit import AuditAction, AuditLog


def _request_id(request: Request) -> str | None:
    rid = getattr(getattr(request, "state", None), "request_id", None)
    rid = str(rid or "").strip()
    return rid or None


def audit_log(
    *,
    db: Session,
    request: Request,
    tenant_id: uuid.UUID | None,
    actor: Viewer | None,
    action: AuditAction,
    entity_type: str,
    entity_id: uuid.UUID | None = None,
    meta: dict | str | None = None,
) -> None:
    """Stage an audit row in the caller's transaction; it commits with the mutation."""
    if isinstance(meta, dict):
        meta_str = json.dumps(meta, ensure_ascii=False, default=str)
    elif isinstance(meta, str):
        meta_str = meta
    else:
        meta_str = None

    db.add(
        AuditLog(
            tenant_id=tenant_id,
            actor_id=actor.id if actor is not None else None,
            actor_email=actor.email if actor is not None else None,
            action=AuditAction(action).value,
            entity_type=str(entity_type),
            entity_id=entity_id,
            meta=meta_str,
            request_id=_request_id(request),
            ip=client_ip(request),
        )
    )
