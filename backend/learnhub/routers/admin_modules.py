from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from learnhub.core.audit_log import audit_log
from learnhub.core.ids import parse_uuid
from learnhub.core.rate_limit import rate_limit
from learnhub.core.security import TenantContext, require_tenant_roles
from learnhub.core.transactions import write_transaction
from learnhub.db.session import get_db
from learnhub.models.audit import AuditAction
from learnhub.models.course import ContentItem, Course, Module
from learnhub.models.tenant import MembershipRole
from learnhub.schemas.module import (
    ModuleCreateRequest,
    ModuleCreateResponse,
    ModulePublic,
    ModulesListResponse,
    ModuleUpdateRequest,
)
from learnhub.services import ordering

router = APIRouter(prefix="/t/{tenant_slug}/admin/courses/{course_id}/modules", tags=["admin"])


def _module_public(m: Module, item_count: int = 0) -> dict:
    return {
        "id": str(m.id),
        "course_id": str(m.course_id),
        "title": m.title,
        "description": m.description,
        "sort_order": int(m.sort_order),
        "item_count": int(item_count),
    }


@router.get("", response_model=ModulesListResponse)
def list_modules(
    course_id: str,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(require_tenant_roles(MembershipRole.admin)),
):
    cid = parse_uuid(course_id, field="course_id")
    course = db.scalar(select(Course.id).where(Course.id == cid, Course.tenant_id == ctx.tenant_id))
    if course is None:
        raise HTTPException(status_code=404, detail="course not found")

    modules = ordering.ordered(db, ordering.module_scope(course_id=cid, tenant_id=ctx.tenant_id))
    counts: dict[uuid.UUID, int] = {}
    if modules:
        counts = dict(
            db.execute(
                select(ContentItem.module_id, func.count(ContentItem.id))
                .where(ContentItem.module_id.in_([m.id for m in modules]))
                .group_by(ContentItem.module_id)
            ).all()
        )
    return {"course_id": str(cid), "items": [_module_public(m, counts.get(m.id, 0)) for m in modules]}


@router.post("", response_model=ModuleCreateResponse)
def create_module(
    request: Request,
    course_id: str,
    body: ModuleCreateRequest,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(require_tenant_roles(MembershipRole.admin)),
    _: object = rate_limit(key_prefix="admin_create_module", limit=120, window_seconds=60),
):
    cid = parse_uuid(course_id, field="course_id")
    scope = ordering.module_scope(course_id=cid, tenant_id=ctx.tenant_id)

    with write_transaction(db, action="create module"):
        module = ordering.insert_at(
            db,
            scope,
            Module(title=body.title, description=body.description),
            body.sort_order,
        )
        audit_log(
            db=db,
            request=request,
            tenant_id=ctx.tenant_id,
            actor=ctx.viewer,
            action=AuditAction.module_create,
            entity_type="module",
            entity_id=module.id,
            meta={"course_id": str(cid), "title": module.title, "sort_order": module.sort_order},
        )
    return {"id": str(module.id), "sort_order": int(module.sort_order)}


@router.patch("/{module_id}", response_model=ModulePublic)
def update_module(
    request: Request,
    course_id: str,
    module_id: str,
    body: ModuleUpdateRequest,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(require_tenant_roles(MembershipRole.admin)),
    _: object = rate_limit(key_prefix="admin_update_module", limit=120, window_seconds=60),
):
    cid = parse_uuid(course_id, field="course_id")
    mid = parse_uuid(module_id, field="module_id")
    scope = ordering.module_scope(course_id=cid, tenant_id=ctx.tenant_id)
    changes = body.model_dump(exclude_unset=True)

    with write_transaction(db, action="update module"):
        if body.sort_order is not None:
            module = ordering.move(db, scope, mid, body.sort_order)
        else:
            module = db.scalar(select(Module).where(Module.id == mid, *scope.siblings()))
            if module is None:
                raise HTTPException(status_code=404, detail="module not found")

        if body.title is not None:
            module.title = body.title
        if "description" in changes:
            module.description = body.description
        db.add(module)
        audit_log(
            db=db,
            request=request,
            tenant_id=ctx.tenant_id,
            actor=ctx.viewer,
            action=AuditAction.module_update,
            entity_type="module",
            entity_id=module.id,
            meta=changes,
        )
    return _module_public(module)


@router.delete("/{module_id}")
def delete_module(
    request: Request,
    course_id: str,
    module_id: str,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(require_tenant_roles(MembershipRole.admin)),
    _: object = rate_limit(key_prefix="admin_delete_module", limit=60, window_seconds=60),
):
    cid = parse_uuid(course_id, field="course_id")
    mid = parse_uuid(module_id, field="module_id")
    scope = ordering.module_scope(course_id=cid, tenant_id=ctx.tenant_id)

    with write_transaction(db, action="delete module"):
        db.execute(delete(ContentItem).where(ContentItem.module_id == mid, ContentItem.tenant_id == ctx.tenant_id))
        module = ordering.remove(db, scope, mid)
        audit_log(
            db=db,
            request=request,
            tenant_id=ctx.tenant_id,
            actor=ctx.viewer,
            action=AuditAction.module_delete,
            entity_type="module",
            entity_id=module.id,
            meta={"course_id": str(cid), "title": module.title},
        )
    return {"ok": True}
