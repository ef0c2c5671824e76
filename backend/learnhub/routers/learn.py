from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from learnhub.core.ids import parse_uuid
from learnhub.core.rate_limit import rate_limit
from learnhub.core.security import TenantContext, require_tenant_roles
from learnhub.core.transactions import write_transaction
from learnhub.db.session import get_db
from learnhub.models.tenant import MembershipRole
from learnhub.schemas.learn import (
    AssignedCoursesResponse,
    CourseTreeResponse,
    LearnItemResponse,
    ProgressToggleRequest,
    ProgressToggleResponse,
)
from learnhub.services.course_tree import ContentNode, CourseTree, build_course_tree
from learnhub.services.learning import LearningService
from learnhub.services.navigation import NavEntry, compute_neighbors, locate

router = APIRouter(prefix="/t/{tenant_slug}/learn", tags=["learn"])


def _node_public(n: ContentNode) -> dict:
    return {
        "id": str(n.id),
        "title": n.title,
        "type": n.type,
        "content_source": n.content_source,
        "url": n.url,
        "sort_order": n.sort_order,
        "is_completed": bool(n.is_completed),
    }


def _nav_public(e: NavEntry | None) -> dict | None:
    if e is None:
        return None
    return {"module_id": str(e.module_id), "content_item_id": str(e.content_item_id), "title": e.title}


def _tree_public(tree: CourseTree) -> dict:
    return {
        "id": str(tree.id),
        "tenant_id": str(tree.tenant_id),
        "title": tree.title,
        "description": tree.description,
        "status": tree.status,
        "total_items": tree.total_items,
        "completed_items": tree.completed_items,
        "progress_percentage": tree.progress_percentage,
        "modules": [
            {
                "id": str(m.id),
                "title": m.title,
                "description": m.description,
                "sort_order": m.sort_order,
                "total_items": m.total_items,
                "completed_items": m.completed_items,
                "items": [_node_public(i) for i in m.items],
            }
            for m in tree.modules
        ],
    }


def _tree_or_404(db: Session, ctx: TenantContext, course_id: str) -> CourseTree:
    cid = parse_uuid(course_id, field="course_id")
    tree = build_course_tree(db, course_id=cid, viewer_id=ctx.viewer.id, tenant_id=ctx.tenant_id)
    if tree is None:
        raise HTTPException(status_code=404, detail="course not found")
    return tree


@router.get("/courses", response_model=AssignedCoursesResponse)
def my_courses(
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(require_tenant_roles(MembershipRole.employee)),
):
    items = LearningService(db).get_assigned_courses(employee_id=ctx.viewer.id, tenant_id=ctx.tenant_id)
    return {"items": items}


@router.get("/courses/{course_id}", response_model=CourseTreeResponse)
def course_tree(
    course_id: str,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(require_tenant_roles(MembershipRole.employee)),
):
    return _tree_public(_tree_or_404(db, ctx, course_id))


@router.get("/courses/{course_id}/modules/{module_id}/items/{content_item_id}", response_model=LearnItemResponse)
def learn_item(
    course_id: str,
    module_id: str,
    content_item_id: str,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(require_tenant_roles(MembershipRole.employee)),
):
    parse_uuid(module_id, field="module_id")
    iid = parse_uuid(content_item_id, field="content_item_id")
    tree = _tree_or_404(db, ctx, course_id)

    # The item is located by id alone; a stale module segment in the URL still resolves.
    found = locate(tree, iid)
    if found is None:
        return {"course": _tree_public(tree), "module_id": None, "current": None, "previous": None, "next": None}

    module, node = found
    neighbors = compute_neighbors(tree, iid)
    return {
        "course": _tree_public(tree),
        "module_id": str(module.id),
        "current": _node_public(node),
        "previous": _nav_public(neighbors.previous),
        "next": _nav_public(neighbors.next),
    }


@router.post("/progress", response_model=ProgressToggleResponse)
def toggle_progress(
    body: ProgressToggleRequest,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(require_tenant_roles(MembershipRole.employee)),
    _: object = rate_limit(key_prefix="learn_toggle_progress", limit=240, window_seconds=60),
):
    iid = parse_uuid(body.content_item_id, field="content_item_id")

    with write_transaction(db, action="save progress"):
        row = LearningService(db).toggle_content_progress(
            viewer_id=ctx.viewer.id,
            tenant_id=ctx.tenant_id,
            content_item_id=iid,
            completed=body.completed,
        )
        if row is None:
            raise HTTPException(status_code=404, detail="content item not found")
        completed_at = row.completed_at.isoformat() if row.completed_at else None
        completed = bool(row.completed)

    return {"ok": True, "content_item_id": str(iid), "completed": completed, "completed_at": completed_at}
