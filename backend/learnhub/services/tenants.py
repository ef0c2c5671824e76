from __future__ import annotations

import logging
import re
import uuid

from sqlalchemy import select
from sqlalchemy.orm import Session

from learnhub.models.tenant import MembershipRole, Profile, Tenant, TenantMembership


log = logging.getLogger(__name__)

_SLUG_RE = re.compile(r"^[a-z0-9][a-z0-9-]{0,98}[a-z0-9]$")


def normalize_slug(slug: str) -> str:
    s = str(slug or "").strip().lower()
    if not _SLUG_RE.match(s):
        raise ValueError("slug must be 2-100 chars of a-z, 0-9 and '-'")
    return s


def ensure_tenant(db: Session, *, slug: str, name: str) -> Tenant:
    """Idempotent: an existing tenant keeps its id and gets the new name."""
    slug = normalize_slug(slug)
    tenant = db.scalar(select(Tenant).where(Tenant.slug == slug))
    if tenant is None:
        tenant = Tenant(slug=slug, name=name.strip() or slug, active=True)
        db.add(tenant)
        log.info("created tenant %s", slug)
    else:
        tenant.name = name.strip() or tenant.name
    db.flush()
    return tenant


def ensure_membership(
    db: Session,
    *,
    tenant: Tenant,
    user_id: uuid.UUID,
    email: str,
    full_name: str | None = None,
    role: MembershipRole = MembershipRole.employee,
) -> TenantMembership:
    profile = db.get(Profile, user_id)
    if profile is None:
        profile = Profile(id=user_id, email=email.strip().lower(), full_name=full_name, active=True)
        db.add(profile)
    else:
        profile.email = email.strip().lower() or profile.email
        if full_name:
            profile.full_name = full_name

    membership = db.scalar(
        select(TenantMembership).where(TenantMembership.tenant_id == tenant.id, TenantMembership.user_id == user_id)
    )
    if membership is None:
        membership = TenantMembership(tenant_id=tenant.id, user_id=user_id, role=role, active=True)
        db.add(membership)
    else:
        membership.role = role
        membership.active = True
    db.flush()
    log.info("membership %s in %s set to %s", user_id, tenant.slug, role.value)
    return membership
