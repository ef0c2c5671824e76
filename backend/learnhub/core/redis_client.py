from __future__ import annotations

from functools import lru_cache

import redis

from learnhub.core.config import settings


@lru_cache(maxsize=1)
def get_redis() -> redis.Redis:
    """Process-wide client; connections come from its internal pool, so callers never close it."""
    return redis.Redis.from_url(
        settings.redis_url,
        decode_responses=True,
        socket_connect_timeout=float(settings.redis_connect_timeout_seconds),
        socket_timeout=float(settings.redis_socket_timeout_seconds),
        health_check_interval=30,
    )
