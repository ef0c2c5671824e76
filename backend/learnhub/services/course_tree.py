from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field

from sqlalchemy import select
from sqlalchemy.orm import Session

from learnhub.models.assignment import CourseAssignment
from learnhub.models.course import ContentItem, ContentSource, ContentType, Course, CourseStatus, Module
from learnhub.models.progress import ContentProgress
from learnhub.models.tenant import TenantMembership


log = logging.getLogger(__name__)


def completion_percentage(completed: int, total: int) -> int:
    """Whole-number share of completed items; an empty collection is 0%."""
    return round(completed * 100 / total) if total > 0 else 0


@dataclass(frozen=True)
class ContentNode:
    id: uuid.UUID
    title: str
    type: ContentType
    content_source: ContentSource
    url: str | None
    sort_order: int | None
    is_completed: bool = False


@dataclass(frozen=True)
class ModuleNode:
    id: uuid.UUID
    title: str
    description: str | None
    sort_order: int
    items: tuple[ContentNode, ...] = field(default_factory=tuple)

    @property
    def total_items(self) -> int:
        return len(self.items)

    @property
    def completed_items(self) -> int:
        return sum(1 for i in self.items if i.is_completed)

    @property
    def progress_percentage(self) -> int:
        return completion_percentage(self.completed_items, self.total_items)


@dataclass(frozen=True)
class CourseTree:
    id: uuid.UUID
    tenant_id: uuid.UUID
    title: str
    description: str | None
    status: CourseStatus
    modules: tuple[ModuleNode, ...] = field(default_factory=tuple)

    @property
    def total_items(self) -> int:
        return sum(m.total_items for m in self.modules)

    @property
    def completed_items(self) -> int:
        return sum(m.completed_items for m in self.modules)

    @property
    def progress_percentage(self) -> int:
        return completion_percentage(self.completed_items, self.total_items)


def content_sort_key(item: ContentItem) -> tuple:
    """Canonical sibling order: sort_order ascending with missing values last, then creation time, then id."""
    return (item.sort_order is None, item.sort_order or 0, item.created_at, str(item.id))


def build_course_tree(
    db: Session,
    *,
    course_id: uuid.UUID,
    viewer_id: uuid.UUID,
    tenant_id: uuid.UUID | None = None,
) -> CourseTree | None:
    """Assemble the modules -> content items tree of a course for one viewer.

    Returns None when the viewer is not assigned to the course, when the
    course does not exist, or when it lives outside the assignment's tenant.
    The caller cannot tell the three cases apart.
    Performs reads only.
    """
    stmt = select(CourseAssignment).where(
        CourseAssignment.employee_id == viewer_id,
        CourseAssignment.course_id == course_id,
    )
    if tenant_id is not None:
        stmt = stmt.where(CourseAssignment.tenant_id == tenant_id)
    assignment = db.scalar(stmt.limit(1))
    if assignment is None:
        log.info("course tree unavailable: viewer %s not assigned to course %s", viewer_id, course_id)
        return None

    membership = db.scalar(
        select(TenantMembership.id).where(
            TenantMembership.tenant_id == assignment.tenant_id,
            TenantMembership.user_id == viewer_id,
            TenantMembership.active == True,  # noqa: E712
        )
    )
    if membership is None:
        log.info("course tree unavailable: viewer %s has no active membership in %s", viewer_id, assignment.tenant_id)
        return None

    course = db.scalar(select(Course).where(Course.id == course_id, Course.tenant_id == assignment.tenant_id))
    if course is None:
        log.info("course tree unavailable: course %s not found in tenant %s", course_id, assignment.tenant_id)
        return None

    modules = db.scalars(
        select(Module)
        .where(Module.course_id == course.id, Module.tenant_id == course.tenant_id)
        .order_by(Module.sort_order.asc(), Module.created_at.asc(), Module.id.asc())
    ).all()

    items_by_module: dict[uuid.UUID, list[ContentItem]] = {}
    if modules:
        rows = db.scalars(
            select(ContentItem).where(
                ContentItem.module_id.in_([m.id for m in modules]),
                ContentItem.tenant_id == course.tenant_id,
            )
        ).all()
        for c in rows:
            items_by_module.setdefault(c.module_id, []).append(c)

    item_ids = [c.id for items in items_by_module.values() for c in items]
    completed: dict[uuid.UUID, bool] = {}
    if item_ids:
        rows = db.execute(
            select(ContentProgress.content_item_id, ContentProgress.completed).where(
                ContentProgress.employee_id == viewer_id,
                ContentProgress.content_item_id.in_(item_ids),
            )
        ).all()
        completed = {cid: bool(done) for cid, done in rows}

    tree_modules = []
    for m in modules:
        items = sorted(items_by_module.get(m.id, []), key=content_sort_key)
        tree_modules.append(
            ModuleNode(
                id=m.id,
                title=m.title,
                description=m.description,
                sort_order=int(m.sort_order),
                items=tuple(
                    ContentNode(
                        id=c.id,
                        title=c.title,
                        type=c.type,
                        content_source=c.content_source,
                        url=c.url if c.content_source == ContentSource.external else None,
                        sort_order=c.sort_order,
                        is_completed=completed.get(c.id, False),
                    )
                    for c in items
                ),
            )
        )

    return CourseTree(
        id=course.id,
        tenant_id=course.tenant_id,
        title=course.title,
        description=course.description,
        status=course.status,
        modules=tuple(tree_modules),
    )
