from __future__ import annotations

import ipaddress
import logging
import re
import socket
from dataclasses import dataclass
from urllib.parse import urljoin, urlparse

import httpx
from botocore.exceptions import BotoCoreError, ClientError

from learnhub.core.config import settings
from learnhub.models.course import ContentItem, ContentSource, ContentType
from learnhub.services.storage import get_s3_client


log = logging.getLogger(__name__)


_DEFAULT_MIME: dict[ContentType, str] = {
    ContentType.pdf: "application/pdf",
    ContentType.ppt: "application/vnd.ms-powerpoint",
    ContentType.video: "video/mp4",
    ContentType.image: "application/octet-stream",
    ContentType.youtube: "text/html",
    ContentType.link: "application/octet-stream",
}

_DRIVE_FILE_RE = re.compile(r"/file/d/([^/?#]+)")
_DRIVE_ID_RE = re.compile(r"^[A-Za-z0-9_-]{10,200}$")
_MAX_REDIRECTS = 5


class ContentFetchError(Exception):
    status_code = 502

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ContentNotFound(ContentFetchError):
    status_code = 404


class UpstreamUnavailable(ContentFetchError):
    status_code = 502


class BlockedTarget(ContentFetchError):
    status_code = 400


@dataclass(frozen=True)
class FetchedContent:
    body: bytes
    content_type: str


def drive_download_url(url: str) -> str | None:
    if "drive.google.com" not in (url or ""):
        return None
    m = _DRIVE_FILE_RE.search(url)
    if not m:
        return None
    return f"https://drive.google.com/uc?export=download&id={m.group(1)}"


def drive_image_url(drive_id: str) -> str:
    if not _DRIVE_ID_RE.match(drive_id or ""):
        raise ContentNotFound("invalid drive id")
    return f"https://docs.google.com/uc?export=view&id={drive_id}"


def _http_client() -> httpx.Client:
    timeout = httpx.Timeout(
        float(settings.content_fetch_read_timeout_seconds),
        connect=float(settings.content_fetch_connect_timeout_seconds),
    )
    return httpx.Client(timeout=timeout, follow_redirects=False)


def _resolve_host(host: str) -> list[str]:
    infos = socket.getaddrinfo(host, None, proto=socket.IPPROTO_TCP)
    return [str(info[4][0]).split("%", 1)[0] for info in infos]


def ensure_public_url(url: str) -> None:
    """Refuse anything that is not plain http(s) to a publicly routable address.

    Literal IPs are checked as given; hostnames are resolved and every
    address they resolve to must be public.
    """
    parsed = urlparse(url or "")
    host = parsed.hostname
    if parsed.scheme not in {"http", "https"} or not host:
        raise BlockedTarget("url is not allowed")

    try:
        addresses = [ipaddress.ip_address(host)]
    except ValueError:
        try:
            addresses = [ipaddress.ip_address(a) for a in _resolve_host(host)]
        except (OSError, UnicodeError, ValueError) as e:
            log.info("refusing %s: host does not resolve", host)
            raise BlockedTarget("url is not allowed") from e

    if not addresses or any(not a.is_global or a.is_multicast for a in addresses):
        log.warning("refusing %s: resolves to a non-public address", host)
        raise BlockedTarget("url is not allowed")


def fetch_url(url: str) -> tuple[bytes, str | None]:
    """GET `url` and buffer the whole body; nothing is returned unless the transfer completed.

    Redirects are followed by hand so that every hop passes `ensure_public_url`.
    """
    parsed = urlparse(url or "")
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        raise ContentNotFound("content url is not fetchable")

    max_bytes = int(settings.content_fetch_max_bytes)
    current = url
    try:
        with _http_client() as client:
            for _ in range(_MAX_REDIRECTS + 1):
                ensure_public_url(current)
                host = urlparse(current).netloc
                with client.stream("GET", current, follow_redirects=False) as resp:
                    if resp.is_redirect:
                        current = urljoin(current, resp.headers["location"])
                        log.debug("upstream %s redirected to %s", host, urlparse(current).netloc)
                        continue

                    if not (200 <= resp.status_code < 300):
                        log.warning("upstream %s responded %s", host, resp.status_code)
                        raise UpstreamUnavailable("failed to fetch content from source")

                    buf = bytearray()
                    for chunk in resp.iter_bytes():
                        buf.extend(chunk)
                        if len(buf) > max_bytes:
                            raise UpstreamUnavailable("content from source is too large")
                    return bytes(buf), resp.headers.get("content-type")
    except httpx.TimeoutException as e:
        log.warning("upstream %s timed out", urlparse(current).netloc)
        raise UpstreamUnavailable("content source timed out") from e
    except httpx.HTTPError as e:
        log.warning("upstream %s failed: %s", urlparse(current).netloc, e)
        raise UpstreamUnavailable("failed to fetch content from source") from e

    log.warning("upstream %s exceeded %s redirects", parsed.netloc, _MAX_REDIRECTS)
    raise UpstreamUnavailable("failed to fetch content from source")


def fetch_object(object_key: str) -> tuple[bytes, str | None]:
    try:
        obj = get_s3_client().get_object(Bucket=settings.s3_bucket, Key=object_key)
        body = obj.get("Body")
        if body is None:
            raise ContentNotFound("file not found in storage")
        return body.read(), obj.get("ContentType")
    except ClientError as e:
        code = str((e.response or {}).get("Error", {}).get("Code") or "")
        if code in {"NoSuchKey", "NotFound", "404"}:
            raise ContentNotFound("file not found in storage") from e
        log.warning("storage get_object %s failed: %s", object_key, code)
        raise UpstreamUnavailable("storage is unavailable") from e
    except BotoCoreError as e:
        log.warning("storage get_object %s failed: %s", object_key, e)
        raise UpstreamUnavailable("storage is unavailable") from e


def fetch_content(item: ContentItem) -> FetchedContent:
    """Resolve a content item to its bytes. The only place content sources are dispatched."""
    fallback_type = item.mime_type or _DEFAULT_MIME[ContentType(item.type)]
    source = ContentSource(item.content_source)

    if source == ContentSource.storage:
        if not item.storage_path:
            raise ContentNotFound("file not found in storage")
        body, ctype = fetch_object(item.storage_path)
        return FetchedContent(body=body, content_type=ctype or fallback_type)

    if source == ContentSource.external:
        if not item.url:
            raise ContentNotFound("no content source available")
        drive_url = drive_download_url(item.url)
        try:
            body, ctype = fetch_url(drive_url or item.url)
        except BlockedTarget as e:
            raise UpstreamUnavailable("content source is not allowed") from e
        if drive_url and "pdf" not in (ctype or ""):
            ctype = "application/pdf"
        return FetchedContent(body=body, content_type=ctype or fallback_type)

    raise ValueError(f"unhandled content source: {source}")
