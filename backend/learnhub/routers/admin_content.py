from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy import select
from sqlalchemy.orm import Session

from learnhub.core.audit_log import audit_log
from learnhub.core.ids import parse_uuid
from learnhub.core.rate_limit import rate_limit
from learnhub.core.security import TenantContext, require_tenant_roles
from learnhub.core.transactions import write_transaction
from learnhub.db.session import get_db
from learnhub.models.audit import AuditAction
from learnhub.models.course import ContentItem, Module
from learnhub.models.tenant import MembershipRole
from learnhub.schemas.content import (
    ContentCreateRequest,
    ContentCreateResponse,
    ContentItemPublic,
    ContentItemsListResponse,
    ContentUpdateRequest,
    check_source_fields,
)
from learnhub.services import ordering

router = APIRouter(prefix="/t/{tenant_slug}/admin/modules/{module_id}/content", tags=["admin"])


def _item_public(c: ContentItem) -> dict:
    return {
        "id": str(c.id),
        "module_id": str(c.module_id),
        "title": c.title,
        "type": c.type,
        "content_source": c.content_source,
        "url": c.url,
        "storage_path": c.storage_path,
        "mime_type": c.mime_type,
        "file_size": c.file_size,
        "sort_order": c.sort_order,
    }


@router.get("", response_model=ContentItemsListResponse)
def list_content(
    module_id: str,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(require_tenant_roles(MembershipRole.admin)),
):
    mid = parse_uuid(module_id, field="module_id")
    module = db.scalar(select(Module.id).where(Module.id == mid, Module.tenant_id == ctx.tenant_id))
    if module is None:
        raise HTTPException(status_code=404, detail="module not found")

    items = ordering.ordered(db, ordering.content_scope(module_id=mid, tenant_id=ctx.tenant_id))
    return {"module_id": str(mid), "items": [_item_public(c) for c in items]}


@router.post("", response_model=ContentCreateResponse)
def create_content(
    request: Request,
    module_id: str,
    body: ContentCreateRequest,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(require_tenant_roles(MembershipRole.admin)),
    _: object = rate_limit(key_prefix="admin_create_content", limit=120, window_seconds=60),
):
    mid = parse_uuid(module_id, field="module_id")
    scope = ordering.content_scope(module_id=mid, tenant_id=ctx.tenant_id)

    item = ContentItem(
        title=body.title,
        type=body.type,
        content_source=body.content_source,
        url=(body.url or "").strip() or None,
        storage_path=(body.storage_path or "").strip() or None,
        mime_type=body.mime_type,
        file_size=body.file_size,
    )
    with write_transaction(db, action="create content item"):
        item = ordering.insert_at(db, scope, item, body.sort_order)
        audit_log(
            db=db,
            request=request,
            tenant_id=ctx.tenant_id,
            actor=ctx.viewer,
            action=AuditAction.content_create,
            entity_type="content_item",
            entity_id=item.id,
            meta={
                "module_id": str(mid),
                "title": item.title,
                "type": item.type.value,
                "content_source": item.content_source.value,
                "sort_order": item.sort_order,
            },
        )
    return {"id": str(item.id), "sort_order": int(item.sort_order)}


@router.patch("/{content_item_id}", response_model=ContentItemPublic)
def update_content(
    request: Request,
    module_id: str,
    content_item_id: str,
    body: ContentUpdateRequest,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(require_tenant_roles(MembershipRole.admin)),
    _: object = rate_limit(key_prefix="admin_update_content", limit=120, window_seconds=60),
):
    mid = parse_uuid(module_id, field="module_id")
    iid = parse_uuid(content_item_id, field="content_item_id")
    scope = ordering.content_scope(module_id=mid, tenant_id=ctx.tenant_id)
    changes = body.model_dump(exclude_unset=True)

    with write_transaction(db, action="update content item"):
        if body.sort_order is not None:
            item = ordering.move(db, scope, iid, body.sort_order)
        else:
            item = db.scalar(select(ContentItem).where(ContentItem.id == iid, *scope.siblings()))
            if item is None:
                raise HTTPException(status_code=404, detail="content item not found")

        if body.title is not None:
            item.title = body.title
        if body.type is not None:
            item.type = body.type
        if body.content_source is not None:
            item.content_source = body.content_source
        for field in ("url", "storage_path"):
            if field in changes:
                setattr(item, field, (changes[field] or "").strip() or None)
        if "mime_type" in changes:
            item.mime_type = body.mime_type
        if "file_size" in changes:
            item.file_size = body.file_size

        try:
            check_source_fields(item.content_source, item.url, item.storage_path)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e

        db.add(item)
        audit_log(
            db=db,
            request=request,
            tenant_id=ctx.tenant_id,
            actor=ctx.viewer,
            action=AuditAction.content_update,
            entity_type="content_item",
            entity_id=item.id,
            meta=changes,
        )
    return _item_public(item)


@router.delete("/{content_item_id}")
def delete_content(
    request: Request,
    module_id: str,
    content_item_id: str,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(require_tenant_roles(MembershipRole.admin)),
    _: object = rate_limit(key_prefix="admin_delete_content", limit=120, window_seconds=60),
):
    mid = parse_uuid(module_id, field="module_id")
    iid = parse_uuid(content_item_id, field="content_item_id")
    scope = ordering.content_scope(module_id=mid, tenant_id=ctx.tenant_id)

    with write_transaction(db, action="delete content item"):
        item = ordering.remove(db, scope, iid)
        audit_log(
            db=db,
            request=request,
            tenant_id=ctx.tenant_id,
            actor=ctx.viewer,
            action=AuditAction.content_delete,
            entity_type="content_item",
            entity_id=item.id,
            meta={"module_id": str(mid), "title": item.title},
        )
    return {"ok": True}
