from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Any, Dict, List

from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from learnhub.models.assignment import CourseAssignment
from learnhub.models.course import ContentItem, Course, Module
from learnhub.models.progress import ContentProgress
from learnhub.models.tenant import MembershipRole, Profile, TenantMembership
from learnhub.services.course_tree import completion_percentage


log = logging.getLogger(__name__)


class LearningService:
    def __init__(self, db: Session):
        self.db = db

    def _upsert_statement(self):
        dialect = self.db.get_bind().dialect.name
        if dialect == "postgresql":
            return pg_insert(ContentProgress)
        if dialect == "sqlite":
            return sqlite_insert(ContentProgress)
        raise RuntimeError(f"progress upsert not supported on {dialect}")

    def toggle_content_progress(
        self,
        *,
        viewer_id: uuid.UUID,
        tenant_id: uuid.UUID,
        content_item_id: uuid.UUID,
        completed: bool,
    ) -> ContentProgress | None:
        """
        Upsert the viewer's completion flag for one content item.

        Returns None when the item is outside the tenant or the viewer is not
        assigned to the item's course. Flushes only; the caller commits.
        """
        course_id = self.db.scalar(
            select(Module.course_id)
            .join(ContentItem, ContentItem.module_id == Module.id)
            .where(ContentItem.id == content_item_id, ContentItem.tenant_id == tenant_id)
        )
        if course_id is None:
            return None

        assigned = self.db.scalar(
            select(CourseAssignment.id).where(
                CourseAssignment.employee_id == viewer_id,
                CourseAssignment.course_id == course_id,
                CourseAssignment.tenant_id == tenant_id,
            )
        )
        if assigned is None:
            return None

        now = datetime.utcnow()
        completed_at = now if completed else None
        stmt = self._upsert_statement().values(
            id=uuid.uuid4(),
            tenant_id=tenant_id,
            employee_id=viewer_id,
            content_item_id=content_item_id,
            completed=bool(completed),
            completed_at=completed_at,
            created_at=now,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[ContentProgress.employee_id, ContentProgress.content_item_id],
            set_={"completed": bool(completed), "completed_at": completed_at, "updated_at": now},
        )
        self.db.execute(stmt)
        self.db.flush()

        # The upsert bypasses the identity map; reload the row as stored.
        row = self.db.scalar(
            select(ContentProgress)
            .where(
                ContentProgress.employee_id == viewer_id,
                ContentProgress.content_item_id == content_item_id,
            )
            .execution_options(populate_existing=True)
        )
        log.info("progress %s for %s on %s", "completed" if completed else "reset", viewer_id, content_item_id)
        return row

    def get_assigned_courses(self, *, employee_id: uuid.UUID, tenant_id: uuid.UUID) -> List[Dict[str, Any]]:
        """
        Assigned courses with completion roll-ups, in title order.
        Batched: one query per entity kind regardless of course count.
        """
        courses = self.db.scalars(
            select(Course)
            .join(CourseAssignment, CourseAssignment.course_id == Course.id)
            .where(
                CourseAssignment.employee_id == employee_id,
                CourseAssignment.tenant_id == tenant_id,
                Course.tenant_id == tenant_id,
            )
            .order_by(Course.title, Course.id)
        ).all()
        if not courses:
            return []

        course_ids = [c.id for c in courses]
        item_rows = self.db.execute(
            select(Module.course_id, ContentItem.id)
            .join(ContentItem, ContentItem.module_id == Module.id)
            .where(Module.course_id.in_(course_ids), ContentItem.tenant_id == tenant_id)
        ).all()

        items_by_course: dict[uuid.UUID, list[uuid.UUID]] = {}
        for cid, item_id in item_rows:
            items_by_course.setdefault(cid, []).append(item_id)

        all_item_ids = [item_id for _, item_id in item_rows]
        done_ids: set[uuid.UUID] = set()
        if all_item_ids:
            done_ids = set(
                self.db.scalars(
                    select(ContentProgress.content_item_id).where(
                        ContentProgress.employee_id == employee_id,
                        ContentProgress.completed == True,  # noqa: E712
                        ContentProgress.content_item_id.in_(all_item_ids),
                    )
                ).all()
            )

        out = []
        for c in courses:
            ids = items_by_course.get(c.id, [])
            total = len(ids)
            done = sum(1 for i in ids if i in done_ids)
            out.append(
                {
                    "id": str(c.id),
                    "title": c.title,
                    "description": c.description,
                    "image_url": c.image_url,
                    "status": c.status.value,
                    "progress_completed": done,
                    "progress_total": total,
                    "progress_percentage": completion_percentage(done, total),
                }
            )
        return out

    def get_employee_stats(self, *, tenant_id: uuid.UUID) -> List[Dict[str, Any]]:
        employees = self.db.execute(
            select(Profile.id, Profile.full_name, Profile.email)
            .join(TenantMembership, TenantMembership.user_id == Profile.id)
            .where(
                TenantMembership.tenant_id == tenant_id,
                TenantMembership.role == MembershipRole.employee,
            )
            .order_by(Profile.full_name, Profile.email)
        ).all()
        if not employees:
            return []

        ids = [e.id for e in employees]
        assigned = dict(
            self.db.execute(
                select(CourseAssignment.employee_id, func.count(CourseAssignment.id))
                .where(CourseAssignment.tenant_id == tenant_id, CourseAssignment.employee_id.in_(ids))
                .group_by(CourseAssignment.employee_id)
            ).all()
        )
        completed = dict(
            self.db.execute(
                select(ContentProgress.employee_id, func.count(ContentProgress.id))
                .join(
                    ContentItem,
                    (ContentItem.id == ContentProgress.content_item_id) & (ContentItem.tenant_id == tenant_id),
                )
                .join(Module, Module.id == ContentItem.module_id)
                .join(
                    CourseAssignment,
                    (CourseAssignment.course_id == Module.course_id)
                    & (CourseAssignment.employee_id == ContentProgress.employee_id)
                    & (CourseAssignment.tenant_id == tenant_id),
                )
                .where(
                    ContentProgress.tenant_id == tenant_id,
                    ContentProgress.employee_id.in_(ids),
                    ContentProgress.completed == True,  # noqa: E712
                )
                .group_by(ContentProgress.employee_id)
            ).all()
        )

        return [
            {
                "id": str(e.id),
                "full_name": e.full_name,
                "email": e.email,
                "courses_assigned": int(assigned.get(e.id, 0)),
                "items_completed": int(completed.get(e.id, 0)),
            }
            for e in employees
        ]
