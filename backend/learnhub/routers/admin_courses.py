from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from learnhub.core.audit_log import audit_log
from learnhub.core.ids import parse_uuid
from learnhub.core.rate_limit import rate_limit
from learnhub.core.security import TenantContext, require_tenant_roles
from learnhub.core.transactions import write_transaction
from learnhub.db.session import get_db
from learnhub.models.assignment import CourseAssignment
from learnhub.models.audit import AuditAction
from learnhub.models.course import ContentItem, Course, CourseStatus, Module
from learnhub.models.tenant import MembershipRole
from learnhub.schemas.course import (
    CourseCreateRequest,
    CourseCreateResponse,
    CoursePublic,
    CoursesListResponse,
    CourseUpdateRequest,
)

router = APIRouter(prefix="/t/{tenant_slug}/admin/courses", tags=["admin"])


def _course_or_404(db: Session, ctx: TenantContext, course_id: str) -> Course:
    cid = parse_uuid(course_id, field="course_id")
    course = db.scalar(select(Course).where(Course.id == cid, Course.tenant_id == ctx.tenant_id))
    if course is None:
        raise HTTPException(status_code=404, detail="course not found")
    return course


def _course_public(c: Course, module_count: int = 0) -> dict:
    return {
        "id": str(c.id),
        "title": c.title,
        "description": c.description,
        "image_url": c.image_url,
        "status": c.status,
        "published_at": c.published_at.isoformat() if c.published_at else None,
        "module_count": int(module_count),
    }


@router.get("", response_model=CoursesListResponse)
def list_courses(
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(require_tenant_roles(MembershipRole.admin)),
):
    courses = db.scalars(
        select(Course).where(Course.tenant_id == ctx.tenant_id).order_by(Course.created_at.desc(), Course.id)
    ).all()
    counts = dict(
        db.execute(
            select(Module.course_id, func.count(Module.id))
            .where(Module.tenant_id == ctx.tenant_id)
            .group_by(Module.course_id)
        ).all()
    )
    return {"items": [_course_public(c, counts.get(c.id, 0)) for c in courses]}


@router.post("", response_model=CourseCreateResponse)
def create_course(
    request: Request,
    body: CourseCreateRequest,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(require_tenant_roles(MembershipRole.admin)),
    _: object = rate_limit(key_prefix="admin_create_course", limit=60, window_seconds=60),
):
    with write_transaction(db, action="create course"):
        course = Course(
            tenant_id=ctx.tenant_id,
            title=body.title,
            description=body.description,
            image_url=body.image_url,
            status=CourseStatus.draft,
        )
        db.add(course)
        db.flush()
        audit_log(
            db=db,
            request=request,
            tenant_id=ctx.tenant_id,
            actor=ctx.viewer,
            action=AuditAction.course_create,
            entity_type="course",
            entity_id=course.id,
            meta={"title": course.title},
        )
    return {"id": str(course.id)}


@router.patch("/{course_id}", response_model=CoursePublic)
def update_course(
    request: Request,
    course_id: str,
    body: CourseUpdateRequest,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(require_tenant_roles(MembershipRole.admin)),
    _: object = rate_limit(key_prefix="admin_update_course", limit=120, window_seconds=60),
):
    course = _course_or_404(db, ctx, course_id)
    changes = body.model_dump(exclude_unset=True)

    with write_transaction(db, action="update course"):
        if body.title is not None:
            course.title = body.title
        if "description" in changes:
            course.description = body.description
        if "image_url" in changes:
            course.image_url = body.image_url
        if body.status is not None and body.status != course.status:
            course.status = body.status
            if body.status == CourseStatus.published and course.published_at is None:
                course.published_at = datetime.utcnow()
        db.add(course)
        audit_log(
            db=db,
            request=request,
            tenant_id=ctx.tenant_id,
            actor=ctx.viewer,
            action=AuditAction.course_update,
            entity_type="course",
            entity_id=course.id,
            meta=changes,
        )
    return _course_public(course)


@router.delete("/{course_id}")
def delete_course(
    request: Request,
    course_id: str,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(require_tenant_roles(MembershipRole.admin)),
    _: object = rate_limit(key_prefix="admin_delete_course", limit=30, window_seconds=60),
):
    course = _course_or_404(db, ctx, course_id)

    with write_transaction(db, action="delete course"):
        module_ids = select(Module.id).where(Module.course_id == course.id)
        db.execute(delete(ContentItem).where(ContentItem.module_id.in_(module_ids)))
        db.execute(delete(Module).where(Module.course_id == course.id))
        db.execute(delete(CourseAssignment).where(CourseAssignment.course_id == course.id))
        db.delete(course)
        audit_log(
            db=db,
            request=request,
            tenant_id=ctx.tenant_id,
            actor=ctx.viewer,
            action=AuditAction.course_delete,
            entity_type="course",
            entity_id=course.id,
            meta={"title": course.title},
        )
    return {"ok": True}
