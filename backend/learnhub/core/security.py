from __future__ import annotations

import uuid
from dataclasses import dataclass

from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy import select
from sqlalchemy.orm import Session

from learnhub.core.config import settings
from learnhub.db.session import get_db
from learnhub.models.tenant import MembershipRole, Tenant, TenantMembership


bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class Viewer:
    id: uuid.UUID
    email: str | None = None


@dataclass(frozen=True)
class TenantContext:
    tenant: Tenant
    membership: TenantMembership
    viewer: Viewer

    @property
    def tenant_id(self) -> uuid.UUID:
        return self.tenant.id

    @property
    def is_admin(self) -> bool:
        return self.membership.role == MembershipRole.admin


def decode_viewer_token(token: str) -> Viewer:
    audience = (settings.auth_jwt_audience or "").strip() or None
    issuer = (settings.auth_jwt_issuer or "").strip() or None
    try:
        payload = jwt.decode(
            token,
            settings.auth_jwt_secret,
            algorithms=[settings.auth_jwt_algorithm],
            audience=audience,
            issuer=issuer,
            options={"verify_aud": audience is not None},
        )
    except JWTError as e:
        raise HTTPException(status_code=401, detail="invalid token") from e

    sub = payload.get("sub")
    if not sub:
        raise HTTPException(status_code=401, detail="invalid token")
    try:
        viewer_id = uuid.UUID(str(sub))
    except ValueError as e:
        raise HTTPException(status_code=401, detail="invalid token") from e

    email = payload.get("email")
    return Viewer(id=viewer_id, email=str(email) if email else None)


def _request_token(request: Request, credentials: HTTPAuthorizationCredentials | None) -> str | None:
    if credentials is not None and credentials.credentials:
        return credentials.credentials
    return request.cookies.get(settings.auth_cookie_name) or None


def get_optional_viewer(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> Viewer | None:
    token = _request_token(request, credentials)
    if not token:
        return None
    viewer = decode_viewer_token(token)
    request.state.user_id = str(viewer.id)
    return viewer


def get_current_viewer(viewer: Viewer | None = Depends(get_optional_viewer)) -> Viewer:
    if viewer is None:
        raise HTTPException(status_code=401, detail="not authenticated")
    return viewer


def get_tenant_context(
    tenant_slug: str,
    db: Session = Depends(get_db),
    viewer: Viewer = Depends(get_current_viewer),
) -> TenantContext:
    # Unknown tenant and foreign tenant look the same to the caller.
    tenant = db.scalar(select(Tenant).where(Tenant.slug == tenant_slug, Tenant.active == True))  # noqa: E712
    if tenant is None:
        raise HTTPException(status_code=404, detail="not found")

    membership = db.scalar(
        select(TenantMembership).where(
            TenantMembership.tenant_id == tenant.id,
            TenantMembership.user_id == viewer.id,
            TenantMembership.active == True,  # noqa: E712
        )
    )
    if membership is None:
        raise HTTPException(status_code=404, detail="not found")

    return TenantContext(tenant=tenant, membership=membership, viewer=viewer)


def require_tenant_roles(*roles: MembershipRole):
    def _dep(ctx: TenantContext = Depends(get_tenant_context)) -> TenantContext:
        # Role model: admin + employee
        # - admin can access everything in its tenant
        # - employee can access only endpoints that explicitly allow it
        if ctx.is_admin:
            return ctx

        if ctx.membership.role not in roles:
            raise HTTPException(status_code=403, detail="forbidden")
        return ctx

    return _dep
