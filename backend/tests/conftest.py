import sys
import time
import uuid
from datetime import datetime, timedelta
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from jose import jwt

backend_dir = Path(__file__).resolve().parents[1]
if str(backend_dir) not in sys.path:
    sys.path.insert(0, str(backend_dir))

from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from learnhub.core.config import settings
from learnhub.db.base import Base
from learnhub.db import session as session_module
from learnhub.main import create_app

# Import models so that they are registered in Base.metadata before create_all.
from learnhub.models.tenant import MembershipRole, Profile, Tenant, TenantMembership
from learnhub.models.course import ContentItem, ContentSource, ContentType, Course, CourseStatus, Module
from learnhub.models.assignment import CourseAssignment
from learnhub.models.progress import ContentProgress
from learnhub.models.audit import AuditLog  # noqa: F401


class _MemoryRedis:
    def __init__(self):
        self._data: dict[str, tuple[str, float | None]] = {}

    def ping(self):
        return True

    def _now(self) -> float:
        return time.time()

    def _get_entry(self, key: str):
        v = self._data.get(key)
        if not v:
            return None
        value, exp = v
        if exp is not None and exp <= self._now():
            self._data.pop(key, None)
            return None
        return value, exp

    def get(self, key: str):
        entry = self._get_entry(key)
        return entry[0] if entry else None

    def incr(self, key: str):
        cur = self.get(key)
        n = int(cur or 0) + 1
        _, exp = self._data.get(key, ("", None))
        self._data[key] = (str(n), exp)
        return n

    def expire(self, key: str, seconds: int):
        entry = self._get_entry(key)
        if not entry:
            return False
        value, _ = entry
        self._data[key] = (value, self._now() + int(seconds))
        return True

    def ttl(self, key: str):
        entry = self._get_entry(key)
        if not entry:
            return -2
        _, exp = entry
        if exp is None:
            return -1
        return max(0, int(exp - self._now()))


# Configure test DB (SQLite in-memory) at import time so all tests importing
# learnhub.db.session.SessionLocal will get the patched version.
_engine = create_engine(
    "sqlite+pysqlite:///:memory:",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
Base.metadata.create_all(bind=_engine)
session_module.engine = _engine
session_module.SessionLocal = session_module.sessionmaker(autocommit=False, autoflush=False, bind=_engine)


# Stub Redis at import time (rate limiting + readiness).
_mem_redis = _MemoryRedis()
import learnhub.core.redis_client as redis_client_module

redis_client_module.get_redis = lambda: _mem_redis

import learnhub.core.rate_limit as rate_limit_module
rate_limit_module.get_redis = lambda: _mem_redis

import learnhub.routers.health as health_router_module
health_router_module.get_redis = lambda: _mem_redis


def make_token(user_id: uuid.UUID, *, email: str | None = None, audience: str | None = "authenticated", secret: str | None = None) -> str:
    claims = {"sub": str(user_id), "exp": datetime.utcnow() + timedelta(hours=1)}
    if email:
        claims["email"] = email
    if audience:
        claims["aud"] = audience
    return jwt.encode(claims, secret or settings.auth_jwt_secret, algorithm=settings.auth_jwt_algorithm)


class Seeder:
    """Writes fixture rows directly; every row gets unique identifiers so tests never collide."""

    def _save(self, *rows):
        with session_module.SessionLocal(expire_on_commit=False) as db:
            for row in rows:
                db.add(row)
            db.commit()
        return rows[0]

    def tenant(self, *, name: str = "Acme") -> Tenant:
        return self._save(Tenant(slug=f"t-{uuid.uuid4().hex[:10]}", name=name, active=True))

    def member(
        self,
        tenant: Tenant,
        *,
        role: MembershipRole = MembershipRole.employee,
        full_name: str | None = None,
        active: bool = True,
    ) -> Profile:
        uid = uuid.uuid4()
        profile = Profile(id=uid, email=f"{uid.hex[:8]}@example.com", full_name=full_name or f"User {uid.hex[:6]}")
        self._save(profile)
        self._save(TenantMembership(tenant_id=tenant.id, user_id=uid, role=role, active=active))
        return profile

    def join(self, tenant: Tenant, profile: Profile, *, role: MembershipRole = MembershipRole.employee) -> None:
        self._save(TenantMembership(tenant_id=tenant.id, user_id=profile.id, role=role, active=True))

    def course(self, tenant: Tenant, *, title: str = "Course", status: CourseStatus = CourseStatus.published) -> Course:
        return self._save(Course(tenant_id=tenant.id, title=title, status=status))

    def module(self, course: Course, *, title: str = "Module", sort_order: int = 1) -> Module:
        return self._save(Module(tenant_id=course.tenant_id, course_id=course.id, title=title, sort_order=sort_order))

    def item(
        self,
        module: Module,
        *,
        title: str = "Item",
        sort_order: int | None = 1,
        type: ContentType = ContentType.pdf,
        source: ContentSource = ContentSource.external,
        url: str | None = "https://cdn.example.com/file.pdf",
        storage_path: str | None = None,
        mime_type: str | None = None,
        created_at: datetime | None = None,
    ) -> ContentItem:
        row = ContentItem(
            tenant_id=module.tenant_id,
            module_id=module.id,
            title=title,
            type=type,
            content_source=source,
            url=url if source == ContentSource.external else None,
            storage_path=storage_path,
            mime_type=mime_type,
            sort_order=sort_order,
        )
        if created_at is not None:
            row.created_at = created_at
        return self._save(row)

    def assign(self, course: Course, profile: Profile) -> CourseAssignment:
        return self._save(CourseAssignment(tenant_id=course.tenant_id, employee_id=profile.id, course_id=course.id))

    def progress(self, item: ContentItem, profile: Profile, *, completed: bool = True) -> ContentProgress:
        return self._save(
            ContentProgress(
                tenant_id=item.tenant_id,
                employee_id=profile.id,
                content_item_id=item.id,
                completed=completed,
                completed_at=datetime.utcnow() if completed else None,
            )
        )


@pytest.fixture(scope="session")
def client():
    app = create_app()

    # Ensure app dependencies use our session factory.
    def _get_db_override():
        db = session_module.SessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[session_module.get_db] = _get_db_override
    return TestClient(app)


@pytest.fixture()
def db():
    with session_module.SessionLocal() as session:
        yield session


@pytest.fixture()
def seed():
    return Seeder()


@pytest.fixture()
def headers_for():
    def _headers(profile: Profile) -> dict[str, str]:
        return {"Authorization": f"Bearer {make_token(profile.id, email=profile.email)}"}

    return _headers


@pytest.fixture()
def tenant(seed):
    return seed.tenant()


@pytest.fixture()
def admin(seed, tenant):
    return seed.member(tenant, role=MembershipRole.admin, full_name="Ada Admin")


@pytest.fixture()
def employee(seed, tenant):
    return seed.member(tenant, role=MembershipRole.employee, full_name="Eve Employee")


@pytest.fixture()
def bearer():
    def _bearer(user_id: uuid.UUID, **kwargs) -> dict[str, str]:
        return {"Authorization": f"Bearer {make_token(user_id, **kwargs)}"}

    return _bearer
