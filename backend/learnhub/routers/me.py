from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.orm import Session

from learnhub.core.security import Viewer, get_current_viewer
from learnhub.db.session import get_db
from learnhub.models.tenant import MembershipRole, Profile, Tenant, TenantMembership
from learnhub.schemas.me import MeResponse

router = APIRouter(prefix="/me", tags=["me"])


def home_path(slug: str, role: MembershipRole) -> str:
    return f"/t/{slug}/admin" if role == MembershipRole.admin else f"/t/{slug}/employee"


@router.get("", response_model=MeResponse)
def me(db: Session = Depends(get_db), viewer: Viewer = Depends(get_current_viewer)):
    profile = db.get(Profile, viewer.id)
    rows = db.execute(
        select(Tenant, TenantMembership)
        .join(TenantMembership, TenantMembership.tenant_id == Tenant.id)
        .where(
            TenantMembership.user_id == viewer.id,
            TenantMembership.active == True,  # noqa: E712
            Tenant.active == True,  # noqa: E712
        )
        .order_by(Tenant.name)
    ).all()

    return {
        "id": str(viewer.id),
        "email": viewer.email or (profile.email if profile is not None else None),
        "memberships": [
            {
                "tenant_id": str(t.id),
                "tenant_slug": t.slug,
                "tenant_name": t.name,
                "role": m.role.value,
                "home_path": home_path(t.slug, m.role),
            }
            for t, m in rows
        ],
    }
