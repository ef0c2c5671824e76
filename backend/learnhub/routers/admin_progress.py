from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from learnhub.core.security import TenantContext, require_tenant_roles
from learnhub.db.session import get_db
from learnhub.models.tenant import MembershipRole
from learnhub.routers.admin_employees import employee_membership_or_404
from learnhub.schemas.learn import EmployeeProgressResponse, EmployeeStatsResponse
from learnhub.services.learning import LearningService

router = APIRouter(prefix="/t/{tenant_slug}/admin/progress", tags=["admin"])


@router.get("", response_model=EmployeeStatsResponse)
def employee_stats(
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(require_tenant_roles(MembershipRole.admin)),
):
    return {"items": LearningService(db).get_employee_stats(tenant_id=ctx.tenant_id)}


@router.get("/{employee_id}", response_model=EmployeeProgressResponse)
def employee_progress(
    employee_id: str,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(require_tenant_roles(MembershipRole.admin)),
):
    eid = employee_membership_or_404(db, ctx, employee_id).user_id

    courses = LearningService(db).get_assigned_courses(employee_id=eid, tenant_id=ctx.tenant_id)
    return {"employee_id": str(eid), "courses": courses}
