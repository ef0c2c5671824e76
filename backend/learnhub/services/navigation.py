from __future__ import annotations

import uuid
from dataclasses import dataclass

from learnhub.services.course_tree import ContentNode, CourseTree, ModuleNode


@dataclass(frozen=True)
class NavEntry:
    module_id: uuid.UUID
    content_item_id: uuid.UUID
    title: str


@dataclass(frozen=True)
class Neighbors:
    previous: NavEntry | None = None
    next: NavEntry | None = None


def flatten(tree: CourseTree) -> list[NavEntry]:
    return [
        NavEntry(module_id=m.id, content_item_id=i.id, title=i.title)
        for m in tree.modules
        for i in m.items
    ]


def compute_neighbors(tree: CourseTree, content_item_id: uuid.UUID) -> Neighbors:
    """Previous/next items around `content_item_id` in document order.

    An id that is not in the tree (stale link, deleted item) has no neighbours.
    """
    entries = flatten(tree)
    index = next((n for n, e in enumerate(entries) if e.content_item_id == content_item_id), None)
    if index is None:
        return Neighbors()

    return Neighbors(
        previous=entries[index - 1] if index > 0 else None,
        next=entries[index + 1] if index < len(entries) - 1 else None,
    )


def locate(tree: CourseTree, content_item_id: uuid.UUID) -> tuple[ModuleNode, ContentNode] | None:
    for m in tree.modules:
        for i in m.items:
            if i.id == content_item_id:
                return m, i
    return None
