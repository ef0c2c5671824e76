from __future__ import annotations

import logging
from dataclasses import dataclass

import redis
from fastapi import Depends, HTTPException, Request

from learnhub.core.config import settings
from learnhub.core.redis_client import get_redis


log = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimit:
    key: str
    limit: int
    window_seconds: int
    # None when the counter store could not be reached and the request was let through.
    used: int | None = None


def client_ip(request: Request) -> str | None:
    if settings.trust_proxy_headers:
        real_ip = str(request.headers.get("x-real-ip") or "").strip()
        if real_ip:
            return real_ip
        first_hop = str(request.headers.get("x-forwarded-for") or "").split(",")[0].strip()
        if first_hop:
            return first_hop
    if request.client and request.client.host:
        return request.client.host
    return None


def budget_key(request: Request, key_prefix: str) -> str:
    """Counter key for one caller on one endpoint.

    Uses the matched route template rather than the concrete path, so
    `/modules/<id-1>/content` and `/modules/<id-2>/content` draw on the same
    budget. Tenant-scoped routes get a budget per tenant.
    """
    route = request.scope.get("route")
    template = getattr(route, "path", None) or request.url.path
    tenant_slug = str(request.path_params.get("tenant_slug") or "-")
    ip = client_ip(request) or "unknown"
    return f"rl:{key_prefix}:{request.method}:{template}:{tenant_slug}:{ip}"


def rate_limit(*, key_prefix: str, limit: int, window_seconds: int):
    """Fixed-window limiter, used as a route default: `_: object = rate_limit(...)`.

    Must stay a sync dependency so FastAPI runs it in the threadpool; the
    redis calls block.
    """
    limit = int(limit)
    window_seconds = int(window_seconds)

    def _dep(request: Request) -> RateLimit:
        key = budget_key(request, key_prefix)
        r = get_redis()
        try:
            used = int(r.incr(key))
            if used == 1:
                r.expire(key, window_seconds)
        except redis.RedisError as e:
            log.warning("rate limit store unavailable, allowing %s: %s", key_prefix, e)
            return RateLimit(key=key, limit=limit, window_seconds=window_seconds)

        if used > limit:
            try:
                ttl = int(r.ttl(key) or 0)
            except redis.RedisError:
                ttl = 0
            raise HTTPException(
                status_code=429,
                detail="rate limit exceeded",
                headers={"Retry-After": str(ttl if ttl > 0 else window_seconds)},
            )

        return RateLimit(key=key, limit=limit, window_seconds=window_seconds, used=used)

    return Depends(_dep)
