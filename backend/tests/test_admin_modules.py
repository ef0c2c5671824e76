import uuid

from sqlalchemy import select

from learnhub.models.audit import AuditLog
from learnhub.models.course import ContentItem, Module


def _modules(client, slug, course_id, headers):
    r = client.get(f"/t/{slug}/admin/courses/{course_id}/modules", headers=headers)
    assert r.status_code == 200
    return [(m["title"], m["sort_order"]) for m in r.json()["items"]]


def test_create_at_position_shifts_existing_modules(client, seed, tenant, admin, headers_for):
    course = seed.course(tenant)
    for n, title in enumerate(["A", "B", "C"], start=1):
        seed.module(course, title=title, sort_order=n)
    h = headers_for(admin)

    r = client.post(
        f"/t/{tenant.slug}/admin/courses/{course.id}/modules",
        json={"title": "Intro", "sort_order": 1},
        headers=h,
    )
    assert r.status_code == 200
    assert r.json()["sort_order"] == 1

    assert _modules(client, tenant.slug, course.id, h) == [("Intro", 1), ("A", 2), ("B", 3), ("C", 4)]


def test_create_without_position_appends(client, seed, tenant, admin, headers_for):
    course = seed.course(tenant)
    seed.module(course, title="A", sort_order=1)
    seed.module(course, title="B", sort_order=2)
    h = headers_for(admin)

    r = client.post(f"/t/{tenant.slug}/admin/courses/{course.id}/modules", json={"title": "Last"}, headers=h)
    assert r.status_code == 200
    assert r.json()["sort_order"] == 3


def test_update_sort_order_moves_module(client, seed, tenant, admin, headers_for):
    course = seed.course(tenant)
    mods = [seed.module(course, title=t, sort_order=n) for n, t in enumerate("ABCD", start=1)]
    h = headers_for(admin)

    r = client.patch(
        f"/t/{tenant.slug}/admin/courses/{course.id}/modules/{mods[3].id}",
        json={"sort_order": 1, "title": "D!"},
        headers=h,
    )
    assert r.status_code == 200
    assert r.json()["sort_order"] == 1
    assert r.json()["title"] == "D!"

    assert _modules(client, tenant.slug, course.id, h) == [("D!", 1), ("A", 2), ("B", 3), ("C", 4)]


def test_negative_sort_order_is_rejected_and_nothing_changes(client, seed, tenant, admin, headers_for):
    course = seed.course(tenant)
    seed.module(course, title="A", sort_order=1)
    h = headers_for(admin)

    r = client.post(
        f"/t/{tenant.slug}/admin/courses/{course.id}/modules",
        json={"title": "Bad", "sort_order": -1},
        headers=h,
    )
    assert r.status_code == 422
    assert r.json()["ok"] is False
    assert "sort_order" in r.json()["error"]

    assert _modules(client, tenant.slug, course.id, h) == [("A", 1)]


def test_blank_title_is_rejected(client, seed, tenant, admin, headers_for):
    course = seed.course(tenant)

    r = client.post(
        f"/t/{tenant.slug}/admin/courses/{course.id}/modules",
        json={"title": "   "},
        headers=headers_for(admin),
    )
    assert r.status_code == 422
    assert "Title is required" in r.json()["error"]


def test_create_in_unknown_course_is_404(client, tenant, admin, headers_for):
    r = client.post(
        f"/t/{tenant.slug}/admin/courses/{uuid.uuid4()}/modules",
        json={"title": "Orphan", "sort_order": 1},
        headers=headers_for(admin),
    )
    assert r.status_code == 404
    assert r.json()["error_message"] == "course not found"


def test_move_of_unknown_module_is_404(client, seed, tenant, admin, headers_for):
    course = seed.course(tenant)

    r = client.patch(
        f"/t/{tenant.slug}/admin/courses/{course.id}/modules/{uuid.uuid4()}",
        json={"sort_order": 2},
        headers=headers_for(admin),
    )
    assert r.status_code == 404


def test_delete_module_removes_its_items_and_keeps_gaps(client, db, seed, tenant, admin, headers_for):
    course = seed.course(tenant)
    a = seed.module(course, title="A", sort_order=1)
    b = seed.module(course, title="B", sort_order=2)
    seed.module(course, title="C", sort_order=3)
    seed.item(b, title="inside")
    h = headers_for(admin)

    r = client.delete(f"/t/{tenant.slug}/admin/courses/{course.id}/modules/{b.id}", headers=h)
    assert r.status_code == 200

    assert _modules(client, tenant.slug, course.id, h) == [("A", 1), ("C", 3)]
    assert db.scalar(select(ContentItem).where(ContentItem.module_id == b.id)) is None
    assert db.get(Module, a.id) is not None

    actions = db.scalars(
        select(AuditLog.action).where(AuditLog.tenant_id == tenant.id, AuditLog.entity_id == b.id)
    ).all()
    assert actions == ["MODULE_DELETE"]


def test_storage_failure_rolls_back_and_reports_error(client, monkeypatch, seed, tenant, admin, headers_for):
    from sqlalchemy.exc import OperationalError

    from learnhub.services import ordering

    course = seed.course(tenant)
    seed.module(course, title="A", sort_order=1)
    seed.module(course, title="B", sort_order=2)
    h = headers_for(admin)

    real_shift = ordering._shift

    def _failing_flush(*args, **kwargs):
        real_shift(*args, **kwargs)
        raise OperationalError("UPDATE modules", {}, Exception("disk I/O error"))

    monkeypatch.setattr(ordering, "_shift", _failing_flush)

    r = client.post(
        f"/t/{tenant.slug}/admin/courses/{course.id}/modules",
        json={"title": "New", "sort_order": 1},
        headers=h,
    )
    assert r.status_code == 500
    body = r.json()
    assert body["error_code"] == "storage_error"
    assert body["error"].startswith("Failed to create module")

    monkeypatch.undo()
    assert _modules(client, tenant.slug, course.id, h) == [("A", 1), ("B", 2)]
