from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy import delete, or_, select
from sqlalchemy.orm import Session

from learnhub.core.audit_log import audit_log
from learnhub.core.ids import parse_uuid
from learnhub.core.rate_limit import rate_limit
from learnhub.core.security import TenantContext, require_tenant_roles
from learnhub.core.transactions import write_transaction
from learnhub.db.session import get_db
from learnhub.models.assignment import CourseAssignment
from learnhub.models.audit import AuditAction
from learnhub.models.tenant import MembershipRole, Profile, TenantMembership
from learnhub.schemas.assignment import EmployeePublic, EmployeesListResponse, EmployeeUpdateRequest

router = APIRouter(prefix="/t/{tenant_slug}/admin/employees", tags=["admin"])


def employee_membership_or_404(db: Session, ctx: TenantContext, employee_id: str) -> TenantMembership:
    eid = parse_uuid(employee_id, field="employee_id")
    membership = db.scalar(
        select(TenantMembership).where(
            TenantMembership.tenant_id == ctx.tenant_id,
            TenantMembership.user_id == eid,
        )
    )
    if membership is None:
        raise HTTPException(status_code=404, detail="employee not found")
    return membership


def _employee_public(profile: Profile, membership: TenantMembership) -> dict:
    return {
        "id": str(profile.id),
        "email": profile.email,
        "full_name": profile.full_name,
        "role": MembershipRole(membership.role).value,
        "active": bool(membership.active),
    }


@router.get("", response_model=EmployeesListResponse)
def list_employees(
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(require_tenant_roles(MembershipRole.admin)),
    q: str | None = Query(default=None, max_length=200),
):
    stmt = (
        select(Profile, TenantMembership)
        .join(TenantMembership, TenantMembership.user_id == Profile.id)
        .where(TenantMembership.tenant_id == ctx.tenant_id)
    )
    needle = (q or "").strip()
    if needle:
        pattern = f"%{needle}%"
        stmt = stmt.where(or_(Profile.email.ilike(pattern), Profile.full_name.ilike(pattern)))

    rows = db.execute(stmt.order_by(Profile.full_name, Profile.email)).all()
    return {"items": [_employee_public(p, m) for p, m in rows]}


@router.patch("/{employee_id}", response_model=EmployeePublic)
def update_employee(
    request: Request,
    employee_id: str,
    body: EmployeeUpdateRequest,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(require_tenant_roles(MembershipRole.admin)),
    _: object = rate_limit(key_prefix="admin_update_employee", limit=60, window_seconds=60),
):
    membership = employee_membership_or_404(db, ctx, employee_id)

    changes: dict[str, object] = {}
    if body.active is not None and bool(body.active) != bool(membership.active):
        changes["active"] = bool(body.active)
    if body.role is not None and body.role != MembershipRole(membership.role):
        changes["role"] = body.role.value

    if membership.user_id == ctx.viewer.id:
        if changes.get("active") is False:
            raise HTTPException(status_code=400, detail="You cannot deactivate your own account.")
        if "role" in changes:
            raise HTTPException(status_code=400, detail="You cannot change your own role.")

    if changes:
        with write_transaction(db, action="update employee"):
            if "active" in changes:
                membership.active = bool(changes["active"])
            if "role" in changes:
                membership.role = MembershipRole(changes["role"])
            audit_log(
                db=db,
                request=request,
                tenant_id=ctx.tenant_id,
                actor=ctx.viewer,
                action=AuditAction.user_update,
                entity_type="membership",
                entity_id=membership.user_id,
                meta=changes,
            )

    profile = db.get(Profile, membership.user_id)
    return _employee_public(profile, membership)


@router.delete("/{employee_id}")
def delete_employee(
    request: Request,
    employee_id: str,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(require_tenant_roles(MembershipRole.admin)),
    _: object = rate_limit(key_prefix="admin_delete_employee", limit=30, window_seconds=60),
):
    """Remove the employee from this tenant.

    The profile and any progress rows stay; other tenants' memberships are untouched.
    """
    membership = employee_membership_or_404(db, ctx, employee_id)
    if membership.user_id == ctx.viewer.id:
        raise HTTPException(status_code=400, detail="You cannot delete your own account.")

    profile = db.get(Profile, membership.user_id)
    eid = membership.user_id

    with write_transaction(db, action="remove employee"):
        removed = db.execute(
            delete(CourseAssignment).where(
                CourseAssignment.tenant_id == ctx.tenant_id,
                CourseAssignment.employee_id == eid,
            )
        ).rowcount
        db.delete(membership)
        audit_log(
            db=db,
            request=request,
            tenant_id=ctx.tenant_id,
            actor=ctx.viewer,
            action=AuditAction.user_delete,
            entity_type="membership",
            entity_id=eid,
            meta={
                "email": profile.email if profile is not None else None,
                "full_name": profile.full_name if profile is not None else None,
                "assignments_removed": int(removed or 0),
            },
        )
    return {"ok": True}
