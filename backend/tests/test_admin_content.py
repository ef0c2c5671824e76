from learnhub.models.course import ContentSource, ContentType


def _items(client, slug, module_id, headers):
    r = client.get(f"/t/{slug}/admin/modules/{module_id}/content", headers=headers)
    assert r.status_code == 200
    return [(i["title"], i["sort_order"]) for i in r.json()["items"]]


def test_insert_at_one_into_three_items(client, seed, tenant, admin, headers_for):
    course = seed.course(tenant)
    module = seed.module(course)
    for n, title in enumerate(["a", "b", "c"], start=1):
        seed.item(module, title=title, sort_order=n)
    h = headers_for(admin)

    r = client.post(
        f"/t/{tenant.slug}/admin/modules/{module.id}/content",
        json={"title": "new", "type": "video", "url": "https://cdn.example.com/v.mp4", "sort_order": 1},
        headers=h,
    )
    assert r.status_code == 200

    assert _items(client, tenant.slug, module.id, h) == [("new", 1), ("a", 2), ("b", 3), ("c", 4)]


def test_external_item_requires_url(client, seed, tenant, admin, headers_for):
    module = seed.module(seed.course(tenant))

    r = client.post(
        f"/t/{tenant.slug}/admin/modules/{module.id}/content",
        json={"title": "no url", "type": "link", "content_source": "external"},
        headers=headers_for(admin),
    )
    assert r.status_code == 422
    assert "URL is required" in r.json()["error"]


def test_storage_item_requires_storage_path(client, seed, tenant, admin, headers_for):
    module = seed.module(seed.course(tenant))

    r = client.post(
        f"/t/{tenant.slug}/admin/modules/{module.id}/content",
        json={"title": "no path", "type": "pdf", "content_source": "storage"},
        headers=headers_for(admin),
    )
    assert r.status_code == 422
    assert "Storage path is required" in r.json()["error"]


def test_unknown_content_type_is_rejected(client, seed, tenant, admin, headers_for):
    module = seed.module(seed.course(tenant))

    r = client.post(
        f"/t/{tenant.slug}/admin/modules/{module.id}/content",
        json={"title": "odd", "type": "hologram", "url": "https://x.test"},
        headers=headers_for(admin),
    )
    assert r.status_code == 422


def test_update_switching_source_revalidates(client, seed, tenant, admin, headers_for):
    module = seed.module(seed.course(tenant))
    item = seed.item(module, title="doc")
    h = headers_for(admin)

    r = client.patch(
        f"/t/{tenant.slug}/admin/modules/{module.id}/content/{item.id}",
        json={"content_source": "storage"},
        headers=h,
    )
    assert r.status_code == 400
    assert r.json()["error"] == "Storage path is required"

    r = client.patch(
        f"/t/{tenant.slug}/admin/modules/{module.id}/content/{item.id}",
        json={"content_source": "storage", "storage_path": f"{tenant.id}/doc.pdf", "type": "pdf"},
        headers=h,
    )
    assert r.status_code == 200
    body = r.json()
    assert body["content_source"] == ContentSource.storage.value
    assert body["type"] == ContentType.pdf.value
    assert body["storage_path"] == f"{tenant.id}/doc.pdf"


def test_move_item_within_module(client, seed, tenant, admin, headers_for):
    module = seed.module(seed.course(tenant))
    items = [seed.item(module, title=t, sort_order=n) for n, t in enumerate("abc", start=1)]
    h = headers_for(admin)

    r = client.patch(
        f"/t/{tenant.slug}/admin/modules/{module.id}/content/{items[0].id}",
        json={"sort_order": 3},
        headers=h,
    )
    assert r.status_code == 200

    assert _items(client, tenant.slug, module.id, h) == [("b", 1), ("c", 2), ("a", 3)]


def test_delete_item(client, seed, tenant, admin, headers_for):
    module = seed.module(seed.course(tenant))
    a = seed.item(module, title="a", sort_order=1)
    seed.item(module, title="b", sort_order=2)
    h = headers_for(admin)

    r = client.delete(f"/t/{tenant.slug}/admin/modules/{module.id}/content/{a.id}", headers=h)
    assert r.status_code == 200

    assert _items(client, tenant.slug, module.id, h) == [("b", 2)]


def test_module_of_another_tenant_is_not_visible(client, seed, tenant, admin, headers_for):
    foreign_module = seed.module(seed.course(seed.tenant()))

    r = client.get(f"/t/{tenant.slug}/admin/modules/{foreign_module.id}/content", headers=headers_for(admin))
    assert r.status_code == 404

    r = client.post(
        f"/t/{tenant.slug}/admin/modules/{foreign_module.id}/content",
        json={"title": "sneaky", "type": "link", "url": "https://x.test"},
        headers=headers_for(admin),
    )
    assert r.status_code == 404
