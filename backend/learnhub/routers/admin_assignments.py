from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from learnhub.core.audit_log import audit_log
from learnhub.core.ids import parse_uuid
from learnhub.core.rate_limit import rate_limit
from learnhub.core.security import TenantContext, require_tenant_roles
from learnhub.core.transactions import write_transaction
from learnhub.db.session import get_db
from learnhub.models.assignment import CourseAssignment
from learnhub.models.audit import AuditAction
from learnhub.models.course import Course
from learnhub.models.tenant import MembershipRole
from learnhub.routers.admin_employees import employee_membership_or_404
from learnhub.schemas.assignment import AssignmentsResponse, AssignmentsUpdateRequest

router = APIRouter(prefix="/t/{tenant_slug}/admin", tags=["admin"])


def _assigned_ids(db: Session, ctx: TenantContext, employee_id: uuid.UUID) -> list[uuid.UUID]:
    return list(
        db.scalars(
            select(CourseAssignment.course_id)
            .where(CourseAssignment.tenant_id == ctx.tenant_id, CourseAssignment.employee_id == employee_id)
            .order_by(CourseAssignment.assigned_at, CourseAssignment.course_id)
        ).all()
    )


@router.get("/assignments/{employee_id}", response_model=AssignmentsResponse)
def get_assignments(
    employee_id: str,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(require_tenant_roles(MembershipRole.admin)),
):
    eid = employee_membership_or_404(db, ctx, employee_id).user_id
    return {"employee_id": str(eid), "course_ids": [str(c) for c in _assigned_ids(db, ctx, eid)]}


@router.put("/assignments/{employee_id}", response_model=AssignmentsResponse)
def replace_assignments(
    request: Request,
    employee_id: str,
    body: AssignmentsUpdateRequest,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(require_tenant_roles(MembershipRole.admin)),
    _: object = rate_limit(key_prefix="admin_replace_assignments", limit=60, window_seconds=60),
):
    eid = employee_membership_or_404(db, ctx, employee_id).user_id

    wanted: list[uuid.UUID] = []
    for raw in body.course_ids:
        cid = parse_uuid(str(raw), field="course_id")
        if cid not in wanted:
            wanted.append(cid)

    if wanted:
        known = set(
            db.scalars(select(Course.id).where(Course.tenant_id == ctx.tenant_id, Course.id.in_(wanted))).all()
        )
        missing = [str(c) for c in wanted if c not in known]
        if missing:
            raise HTTPException(status_code=400, detail=f"unknown course ids: {', '.join(missing)}")

    current = _assigned_ids(db, ctx, eid)
    to_add = [c for c in wanted if c not in current]
    to_remove = [c for c in current if c not in wanted]

    with write_transaction(db, action="update assignments"):
        if to_remove:
            db.execute(
                delete(CourseAssignment).where(
                    CourseAssignment.tenant_id == ctx.tenant_id,
                    CourseAssignment.employee_id == eid,
                    CourseAssignment.course_id.in_(to_remove),
                )
            )
        for cid in to_add:
            db.add(
                CourseAssignment(
                    tenant_id=ctx.tenant_id,
                    employee_id=eid,
                    course_id=cid,
                    assigned_by=ctx.viewer.id,
                )
            )
        if to_add or to_remove:
            audit_log(
                db=db,
                request=request,
                tenant_id=ctx.tenant_id,
                actor=ctx.viewer,
                action=AuditAction.assignment_update,
                entity_type="employee",
                entity_id=eid,
                meta={"added": [str(c) for c in to_add], "removed": [str(c) for c in to_remove]},
            )

    return {
        "employee_id": str(eid),
        "course_ids": [str(c) for c in wanted],
        "added": [str(c) for c in to_add],
        "removed": [str(c) for c in to_remove],
    }
