"""Explicit sort positions for siblings under one parent.

Modules are ordered within a course and content items within a module. Every
operation here runs inside the caller's transaction: neighbours are shifted
first, then the target row is written, and the caller commits once. Nothing
in this module commits or rolls back.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from learnhub.models.course import ContentItem, Course, Module


log = logging.getLogger(__name__)


class OrderingError(Exception):
    pass


class PositionError(OrderingError, ValueError):
    pass


class ScopeNotFound(OrderingError, LookupError):
    pass


class ItemNotFound(OrderingError, LookupError):
    pass


@dataclass(frozen=True)
class OrderScope:
    """Sibling set: rows of `model` whose `parent_attr` equals `parent_id` in `tenant_id`."""

    model: Any
    parent_model: Any
    parent_attr: str
    parent_id: uuid.UUID
    tenant_id: uuid.UUID
    label: str = "item"
    parent_label: str = "parent"

    @property
    def parent_column(self):
        return getattr(self.model, self.parent_attr)

    def siblings(self):
        return (
            self.parent_column == self.parent_id,
            self.model.tenant_id == self.tenant_id,
        )


def module_scope(*, course_id: uuid.UUID, tenant_id: uuid.UUID) -> OrderScope:
    return OrderScope(
        model=Module,
        parent_model=Course,
        parent_attr="course_id",
        parent_id=course_id,
        tenant_id=tenant_id,
        label="module",
        parent_label="course",
    )


def content_scope(*, module_id: uuid.UUID, tenant_id: uuid.UUID) -> OrderScope:
    return OrderScope(
        model=ContentItem,
        parent_model=Module,
        parent_attr="module_id",
        parent_id=module_id,
        tenant_id=tenant_id,
        label="content item",
        parent_label="module",
    )


def validate_position(position: Any) -> int:
    if isinstance(position, bool) or not isinstance(position, int):
        raise PositionError("position must be an integer")
    if position < 0:
        raise PositionError("position must be zero or greater")
    return position


def lock_scope(db: Session, scope: OrderScope):
    """Load the parent row FOR UPDATE so reorders on one scope serialize."""
    parent = db.scalar(
        select(scope.parent_model)
        .where(scope.parent_model.id == scope.parent_id, scope.parent_model.tenant_id == scope.tenant_id)
        .with_for_update()
    )
    if parent is None:
        raise ScopeNotFound(f"{scope.parent_label} not found")
    return parent


def max_position(db: Session, scope: OrderScope) -> int | None:
    return db.scalar(select(func.max(scope.model.sort_order)).where(*scope.siblings()))


def _shift(db: Session, scope: OrderScope, *conditions, delta: int, exclude_id: uuid.UUID | None = None) -> int:
    stmt = (
        update(scope.model)
        .where(*scope.siblings(), *conditions)
        .values(sort_order=scope.model.sort_order + delta)
        .execution_options(synchronize_session="fetch")
    )
    if exclude_id is not None:
        stmt = stmt.where(scope.model.id != exclude_id)
    result = db.execute(stmt)
    return int(result.rowcount or 0)


def _load_item(db: Session, scope: OrderScope, item_id: uuid.UUID):
    item = db.scalar(select(scope.model).where(scope.model.id == item_id, *scope.siblings()))
    if item is None:
        raise ItemNotFound(f"{scope.label} not found")
    return item


def insert_at(db: Session, scope: OrderScope, item, position: int | None = None):
    """Place a new `item` at `position`, pushing the occupant and everything after it back by one.

    With no position the item is appended after the current maximum.
    """
    if position is not None:
        position = validate_position(position)

    lock_scope(db, scope)

    if position is None:
        current_max = max_position(db, scope)
        position = (current_max or 0) + 1
        shifted = 0
    else:
        shifted = _shift(db, scope, scope.model.sort_order >= position, delta=1)

    setattr(item, scope.parent_attr, scope.parent_id)
    item.tenant_id = scope.tenant_id
    item.sort_order = position
    db.add(item)
    db.flush()

    log.debug(
        "inserted %s %s at %s (shifted %s)", scope.model.__tablename__, item.id, position, shifted
    )
    return item


def move(db: Session, scope: OrderScope, item_id: uuid.UUID, new_position: int):
    """Relocate an existing item to `new_position`.

    Moving earlier shifts [new, old-1] later; moving later shifts [old+1, new]
    earlier. The moved row itself is never part of the shift set.
    """
    new_position = validate_position(new_position)

    lock_scope(db, scope)
    item = _load_item(db, scope, item_id)
    old_position = item.sort_order

    if old_position == new_position:
        return item

    if old_position is None:
        _shift(db, scope, scope.model.sort_order >= new_position, delta=1, exclude_id=item.id)
    elif new_position < old_position:
        _shift(
            db,
            scope,
            scope.model.sort_order >= new_position,
            scope.model.sort_order <= old_position - 1,
            delta=1,
            exclude_id=item.id,
        )
    else:
        _shift(
            db,
            scope,
            scope.model.sort_order >= old_position + 1,
            scope.model.sort_order <= new_position,
            delta=-1,
            exclude_id=item.id,
        )

    item.sort_order = new_position
    db.flush()

    log.debug("moved %s %s from %s to %s", scope.model.__tablename__, item.id, old_position, new_position)
    return item


def remove(db: Session, scope: OrderScope, item_id: uuid.UUID):
    """Delete an item. Remaining positions keep their gaps."""
    item = _load_item(db, scope, item_id)
    db.delete(item)
    db.flush()
    return item


def ordered(db: Session, scope: OrderScope) -> list:
    return list(
        db.scalars(
            select(scope.model)
            .where(*scope.siblings())
            .order_by(scope.model.sort_order.asc().nulls_last(), scope.model.created_at.asc(), scope.model.id.asc())
        ).all()
    )
