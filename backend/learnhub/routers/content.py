from __future__ import annotations

import logging
import uuid
from urllib.parse import urlparse

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import Response
from sqlalchemy import select
from sqlalchemy.orm import Session

from learnhub.core.audit_log import audit_log
from learnhub.core.ids import parse_uuid
from learnhub.core.rate_limit import rate_limit
from learnhub.core.security import Viewer, get_current_viewer, get_optional_viewer
from learnhub.core.transactions import write_transaction
from learnhub.db.session import get_db
from learnhub.models.assignment import CourseAssignment
from learnhub.models.audit import AuditAction
from learnhub.models.course import ContentItem, ContentSource, Module
from learnhub.models.tenant import MembershipRole, Tenant, TenantMembership
from learnhub.services.content_proxy import ContentFetchError, drive_image_url, fetch_content, fetch_url
from learnhub.services.storage import presign_get

router = APIRouter(tags=["content"])

log = logging.getLogger(__name__)


def _authorize_item(db: Session, viewer: Viewer, item: ContentItem) -> None:
    membership = db.scalar(
        select(TenantMembership).where(
            TenantMembership.tenant_id == item.tenant_id,
            TenantMembership.user_id == viewer.id,
            TenantMembership.active == True,  # noqa: E712
        )
    )
    if membership is not None and membership.role == MembershipRole.admin:
        return

    assigned = None
    if membership is not None:
        assigned = db.scalar(
            select(CourseAssignment.id)
            .join(Module, Module.course_id == CourseAssignment.course_id)
            .where(
                Module.id == item.module_id,
                CourseAssignment.employee_id == viewer.id,
                CourseAssignment.tenant_id == item.tenant_id,
            )
        )
    if assigned is None:
        raise HTTPException(status_code=403, detail="You do not have access to this content")


def _load_item(db: Session, content_item_id: uuid.UUID) -> ContentItem:
    item = db.get(ContentItem, content_item_id)
    if item is None:
        raise HTTPException(status_code=404, detail="Content not found")
    return item


@router.get("/content/stream")
def stream_content(
    request: Request,
    content_item_id: str | None = Query(default=None, alias="contentItemId"),
    db: Session = Depends(get_db),
    viewer: Viewer | None = Depends(get_optional_viewer),
    _: object = rate_limit(key_prefix="content_stream", limit=120, window_seconds=60),
):
    if not (content_item_id or "").strip():
        raise HTTPException(status_code=400, detail="Content item ID is required")
    iid = parse_uuid(content_item_id, field="contentItemId", detail="Content item ID is invalid")

    if viewer is None:
        raise HTTPException(status_code=401, detail="Unauthorized")

    item = _load_item(db, iid)
    _authorize_item(db, viewer, item)

    try:
        fetched = fetch_content(item)
    except ContentFetchError as e:
        log.info("content %s unavailable: %s", item.id, e.message)
        raise HTTPException(status_code=e.status_code, detail=e.message) from e

    with write_transaction(db, action="record content view"):
        audit_log(
            db=db,
            request=request,
            tenant_id=item.tenant_id,
            actor=viewer,
            action=AuditAction.content_view,
            entity_type="content_item",
            entity_id=item.id,
            meta={"content_source": ContentSource(item.content_source).value, "bytes": len(fetched.body)},
        )

    return Response(
        content=fetched.body,
        media_type=fetched.content_type,
        headers={
            "Content-Disposition": "inline",
            "Cache-Control": "private, no-store, max-age=0",
        },
    )


@router.get("/content/{content_item_id}/link")
def content_link(
    content_item_id: str,
    db: Session = Depends(get_db),
    viewer: Viewer = Depends(get_current_viewer),
):
    iid = parse_uuid(content_item_id, field="content_item_id")

    item = _load_item(db, iid)
    _authorize_item(db, viewer, item)

    if item.content_source == ContentSource.storage:
        if not item.storage_path:
            raise HTTPException(status_code=404, detail="Content not found")
        return {"url": presign_get(object_key=item.storage_path), "content_source": ContentSource.storage.value}

    if not item.url:
        raise HTTPException(status_code=404, detail="Content not found")
    return {"url": item.url, "content_source": ContentSource.external.value}


@router.get("/proxy/image")
def proxy_image(
    drive_id: str | None = Query(default=None, alias="driveId", max_length=200),
    url: str | None = Query(default=None, max_length=2000),
    db: Session = Depends(get_db),
    viewer: Viewer = Depends(get_current_viewer),
    _: object = rate_limit(key_prefix="proxy_image", limit=240, window_seconds=60),
):
    member_of = db.scalar(
        select(TenantMembership.id)
        .join(Tenant, Tenant.id == TenantMembership.tenant_id)
        .where(
            TenantMembership.user_id == viewer.id,
            TenantMembership.active == True,  # noqa: E712
            Tenant.active == True,  # noqa: E712
        )
        .limit(1)
    )
    if member_of is None:
        raise HTTPException(status_code=403, detail="forbidden")

    if drive_id:
        try:
            target = drive_image_url(drive_id.strip())
        except ContentFetchError as e:
            raise HTTPException(status_code=400, detail="invalid driveId") from e
    elif url:
        parsed = urlparse(url.strip())
        if parsed.scheme not in {"http", "https"} or not parsed.netloc:
            raise HTTPException(status_code=400, detail="invalid url")
        target = url.strip()
    else:
        raise HTTPException(status_code=400, detail="driveId or url is required")

    try:
        body, ctype = fetch_url(target)
    except ContentFetchError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message) from e

    return Response(
        content=body,
        media_type=ctype or "image/jpeg",
        headers={"Cache-Control": "private, max-age=3600"},
    )
