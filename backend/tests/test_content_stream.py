import io
import uuid

import httpx
import pytest
from botocore.exceptions import ClientError
from sqlalchemy import select

from learnhub.models.audit import AuditLog
from learnhub.models.course import ContentSource, ContentType
from learnhub.models.tenant import MembershipRole
from learnhub.services import content_proxy


class _FakeS3:
    def __init__(self, objects: dict[str, tuple[bytes, str]]):
        self.objects = objects

    def get_object(self, *, Bucket: str, Key: str):
        if Key not in self.objects:
            raise ClientError({"Error": {"Code": "NoSuchKey", "Message": "missing"}}, "GetObject")
        body, ctype = self.objects[Key]
        return {"Body": io.BytesIO(body), "ContentType": ctype}


class _BrokenS3:
    def get_object(self, *, Bucket: str, Key: str):
        raise ClientError({"Error": {"Code": "InternalError", "Message": "boom"}}, "GetObject")


@pytest.fixture()
def upstream(monkeypatch):
    """Route every outbound HTTP fetch to an in-process handler keyed by URL."""
    routes: dict[str, httpx.Response | Exception] = {}
    seen: list[str] = []

    def _handler(request: httpx.Request) -> httpx.Response:
        seen.append(str(request.url))
        resp = routes.get(str(request.url))
        if resp is None:
            return httpx.Response(404)
        if isinstance(resp, Exception):
            raise resp
        return httpx.Response(resp.status_code, headers=resp.headers, content=resp.content)

    monkeypatch.setattr(
        content_proxy,
        "_http_client",
        lambda: httpx.Client(transport=httpx.MockTransport(_handler)),
    )
    # Hostnames resolve to a public documentation address unless a test says otherwise.
    monkeypatch.setattr(content_proxy, "_resolve_host", lambda host: ["93.184.216.34"])
    return routes, seen


@pytest.fixture()
def assigned(seed, tenant, employee):
    course = seed.course(tenant)
    seed.assign(course, employee)
    return seed.module(course)


def _stream(client, item_id, headers=None):
    return client.get("/content/stream", params={"contentItemId": str(item_id)}, headers=headers or {})


def test_missing_id_is_400_even_without_viewer(client):
    r = client.get("/content/stream")
    assert r.status_code == 400
    assert r.json()["error"] == "Content item ID is required"


def test_anonymous_viewer_is_401(client, seed, assigned):
    item = seed.item(assigned)

    r = _stream(client, item.id)
    assert r.status_code == 401


def test_invalid_token_is_401(client, seed, assigned):
    item = seed.item(assigned)

    r = _stream(client, item.id, headers={"Authorization": "Bearer not-a-jwt"})
    assert r.status_code == 401


def test_unknown_item_is_404(client, employee, headers_for):
    r = _stream(client, uuid.uuid4(), headers=headers_for(employee))
    assert r.status_code == 404
    assert r.json()["error"] == "Content not found"


def test_unassigned_viewer_is_403(client, seed, tenant, headers_for):
    course = seed.course(tenant)
    item = seed.item(seed.module(course))
    outsider = seed.member(tenant, role=MembershipRole.employee)

    r = _stream(client, item.id, headers=headers_for(outsider))
    assert r.status_code == 403


def test_tenant_admin_can_stream_without_assignment(client, monkeypatch, seed, tenant, admin, headers_for):
    course = seed.course(tenant)
    item = seed.item(seed.module(course), source=ContentSource.storage, storage_path="k/doc.pdf")
    monkeypatch.setattr(content_proxy, "get_s3_client", lambda: _FakeS3({"k/doc.pdf": (b"%PDF-1.7", "application/pdf")}))

    r = _stream(client, item.id, headers=headers_for(admin))
    assert r.status_code == 200
    assert r.content == b"%PDF-1.7"


def test_storage_item_streams_bytes_with_headers(client, db, monkeypatch, seed, tenant, employee, assigned, headers_for):
    item = seed.item(assigned, source=ContentSource.storage, storage_path=f"{tenant.id}/slides.pdf")
    monkeypatch.setattr(
        content_proxy,
        "get_s3_client",
        lambda: _FakeS3({f"{tenant.id}/slides.pdf": (b"%PDF-1.4 body", "application/pdf")}),
    )

    r = _stream(client, item.id, headers=headers_for(employee))
    assert r.status_code == 200
    assert r.content == b"%PDF-1.4 body"
    assert r.headers["content-type"].startswith("application/pdf")
    assert r.headers["content-disposition"] == "inline"
    assert "no-store" in r.headers["cache-control"]
    assert "private" in r.headers["cache-control"]

    views = db.scalars(
        select(AuditLog).where(AuditLog.entity_id == item.id, AuditLog.action == "CONTENT_VIEW")
    ).all()
    assert len(views) == 1
    assert views[0].actor_id == employee.id


def test_missing_storage_object_is_404(client, monkeypatch, seed, employee, assigned, headers_for):
    item = seed.item(assigned, source=ContentSource.storage, storage_path="gone.pdf")
    monkeypatch.setattr(content_proxy, "get_s3_client", lambda: _FakeS3({}))

    r = _stream(client, item.id, headers=headers_for(employee))
    assert r.status_code == 404


def test_storage_outage_is_502(client, monkeypatch, seed, employee, assigned, headers_for):
    item = seed.item(assigned, source=ContentSource.storage, storage_path="any.pdf")
    monkeypatch.setattr(content_proxy, "get_s3_client", lambda: _BrokenS3())

    r = _stream(client, item.id, headers=headers_for(employee))
    assert r.status_code == 502


def test_external_item_is_proxied(client, seed, employee, assigned, headers_for, upstream):
    routes, _ = upstream
    routes["https://cdn.example.com/clip.mp4"] = httpx.Response(200, content=b"\x00\x01video", headers={"content-type": "video/mp4"})
    item = seed.item(assigned, type=ContentType.video, url="https://cdn.example.com/clip.mp4")

    r = _stream(client, item.id, headers=headers_for(employee))
    assert r.status_code == 200
    assert r.content == b"\x00\x01video"
    assert r.headers["content-type"].startswith("video/mp4")


def test_content_type_falls_back_to_item_then_type_default(client, seed, employee, assigned, headers_for, upstream):
    routes, _ = upstream
    routes["https://cdn.example.com/raw"] = httpx.Response(200, content=b"data")
    with_mime = seed.item(assigned, type=ContentType.ppt, url="https://cdn.example.com/raw", mime_type="application/x-custom")
    without_mime = seed.item(assigned, type=ContentType.ppt, url="https://cdn.example.com/raw")

    r = _stream(client, with_mime.id, headers=headers_for(employee))
    assert r.headers["content-type"].startswith("application/x-custom")

    r = _stream(client, without_mime.id, headers=headers_for(employee))
    assert r.headers["content-type"].startswith("application/vnd.ms-powerpoint")


def test_drive_link_is_rewritten_and_served_as_pdf(client, seed, employee, assigned, headers_for, upstream):
    routes, seen = upstream
    routes["https://drive.google.com/uc?export=download&id=AbCdEf123456"] = httpx.Response(
        200, content=b"%PDF", headers={"content-type": "application/octet-stream"}
    )
    item = seed.item(assigned, url="https://drive.google.com/file/d/AbCdEf123456/view?usp=sharing")

    r = _stream(client, item.id, headers=headers_for(employee))
    assert r.status_code == 200
    assert r.headers["content-type"].startswith("application/pdf")
    assert seen == ["https://drive.google.com/uc?export=download&id=AbCdEf123456"]


def test_upstream_error_status_is_502(client, seed, employee, assigned, headers_for, upstream):
    routes, _ = upstream
    routes["https://cdn.example.com/broken.pdf"] = httpx.Response(500)
    item = seed.item(assigned, url="https://cdn.example.com/broken.pdf")

    r = _stream(client, item.id, headers=headers_for(employee))
    assert r.status_code == 502


def test_upstream_timeout_is_502(client, seed, employee, assigned, headers_for, upstream):
    routes, _ = upstream
    routes["https://cdn.example.com/slow.pdf"] = httpx.ReadTimeout("too slow")
    item = seed.item(assigned, url="https://cdn.example.com/slow.pdf")

    r = _stream(client, item.id, headers=headers_for(employee))
    assert r.status_code == 502
    assert r.json()["error"] == "content source timed out"


def test_oversized_upstream_body_is_refused(client, monkeypatch, seed, employee, assigned, headers_for, upstream):
    from learnhub.core.config import settings

    routes, _ = upstream
    routes["https://cdn.example.com/huge.bin"] = httpx.Response(200, content=b"x" * 64)
    monkeypatch.setattr(settings, "content_fetch_max_bytes", 16)
    item = seed.item(assigned, url="https://cdn.example.com/huge.bin")

    r = _stream(client, item.id, headers=headers_for(employee))
    assert r.status_code == 502


def test_link_returns_presigned_url_for_storage(client, monkeypatch, seed, employee, assigned, headers_for):
    from learnhub.routers import content as content_router

    item = seed.item(assigned, source=ContentSource.storage, storage_path="docs/a.pdf")
    monkeypatch.setattr(content_router, "presign_get", lambda *, object_key: f"https://signed.example.com/{object_key}")

    r = client.get(f"/content/{item.id}/link", headers=headers_for(employee))
    assert r.status_code == 200
    assert r.json() == {"url": "https://signed.example.com/docs/a.pdf", "content_source": "storage"}


def test_image_proxy_requires_viewer_and_valid_target(client, employee, headers_for, upstream):
    routes, _ = upstream
    routes["https://docs.google.com/uc?export=view&id=Img_ABCDEFGHIJ"] = httpx.Response(
        200, content=b"\x89PNG", headers={"content-type": "image/png"}
    )

    assert client.get("/proxy/image", params={"driveId": "Img_ABCDEFGHIJ"}).status_code == 401

    h = headers_for(employee)
    r = client.get("/proxy/image", params={"driveId": "Img_ABCDEFGHIJ"}, headers=h)
    assert r.status_code == 200
    assert r.content == b"\x89PNG"

    assert client.get("/proxy/image", params={"url": "file:///etc/passwd"}, headers=h).status_code == 400
    assert client.get("/proxy/image", params={"driveId": "../../x"}, headers=h).status_code == 400
    assert client.get("/proxy/image", headers=h).status_code == 400


def test_image_proxy_requires_an_active_tenant_membership(client, seed, tenant, bearer, headers_for, upstream):
    routes, seen = upstream
    routes["https://cdn.example.com/logo.png"] = httpx.Response(200, content=b"\x89PNG", headers={"content-type": "image/png"})

    r = client.get("/proxy/image", params={"url": "https://cdn.example.com/logo.png"}, headers=bearer(uuid.uuid4()))
    assert r.status_code == 403

    inactive = seed.member(tenant, active=False)
    r = client.get("/proxy/image", params={"url": "https://cdn.example.com/logo.png"}, headers=headers_for(inactive))
    assert r.status_code == 403
    assert seen == []


@pytest.mark.parametrize(
    "target",
    [
        "http://169.254.169.254/latest/meta-data/iam",
        "http://127.0.0.1:8000/health",
        "http://[::1]/",
        "http://10.0.0.5/internal.png",
        "http://0.0.0.0/",
    ],
)
def test_image_proxy_refuses_internal_addresses(client, employee, headers_for, upstream, target):
    routes, seen = upstream
    routes[target] = httpx.Response(200, content=b"secret-metadata")

    r = client.get("/proxy/image", params={"url": target}, headers=headers_for(employee))
    assert r.status_code == 400
    assert r.json()["error_message"] == "url is not allowed"
    assert seen == []


def test_image_proxy_refuses_hostnames_resolving_to_private_addresses(client, monkeypatch, employee, headers_for, upstream):
    routes, seen = upstream
    routes["http://intranet.example.com/a.png"] = httpx.Response(200, content=b"internal")
    monkeypatch.setattr(content_proxy, "_resolve_host", lambda host: ["93.184.216.34", "192.168.1.20"])

    r = client.get("/proxy/image", params={"url": "http://intranet.example.com/a.png"}, headers=headers_for(employee))
    assert r.status_code == 400
    assert seen == []


def test_image_proxy_checks_every_redirect_hop(client, employee, headers_for, upstream):
    routes, seen = upstream
    routes["https://cdn.example.com/moved.png"] = httpx.Response(302, headers={"location": "/v2/moved.png"})
    routes["https://cdn.example.com/v2/moved.png"] = httpx.Response(
        200, content=b"\x89PNG", headers={"content-type": "image/png"}
    )
    routes["https://cdn.example.com/sneaky.png"] = httpx.Response(
        302, headers={"location": "http://169.254.169.254/latest/meta-data/iam"}
    )
    routes["http://169.254.169.254/latest/meta-data/iam"] = httpx.Response(200, content=b"secret-metadata")
    h = headers_for(employee)

    r = client.get("/proxy/image", params={"url": "https://cdn.example.com/moved.png"}, headers=h)
    assert r.status_code == 200
    assert r.content == b"\x89PNG"

    r = client.get("/proxy/image", params={"url": "https://cdn.example.com/sneaky.png"}, headers=h)
    assert r.status_code == 400
    assert "http://169.254.169.254/latest/meta-data/iam" not in seen


def test_redirect_loop_is_502(client, employee, headers_for, upstream):
    routes, seen = upstream
    routes["https://cdn.example.com/loop.png"] = httpx.Response(302, headers={"location": "https://cdn.example.com/loop.png"})

    r = client.get("/proxy/image", params={"url": "https://cdn.example.com/loop.png"}, headers=headers_for(employee))
    assert r.status_code == 502
    assert len(seen) == 6


def test_external_item_redirecting_to_internal_address_is_502(client, seed, employee, assigned, headers_for, upstream):
    routes, seen = upstream
    routes["https://cdn.example.com/doc.pdf"] = httpx.Response(302, headers={"location": "http://127.0.0.1/admin"})
    item = seed.item(assigned, url="https://cdn.example.com/doc.pdf")

    r = _stream(client, item.id, headers_for(employee))
    assert r.status_code == 502
    assert r.json()["error_message"] == "content source is not allowed"
    assert seen == ["https://cdn.example.com/doc.pdf"]
