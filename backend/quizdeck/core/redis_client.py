"""Redis access for rate limiting, cron locks and the rq job queue."""

from __future__ import annotations

from functools import lru_cache

import redis
from rq import Queue

from quizdeck.core.config import settings


@lru_cache(maxsize=1)
def _pool() -> redis.ConnectionPool:
    return redis.ConnectionPool.from_url(settings.redis_url, decode_responses=True)


def get_redis() -> redis.Redis:
    return redis.Redis(connection_pool=_pool())


def get_queue(name: str | None = None) -> Queue:
    # rq pickles job payloads, so it needs a connection that returns bytes.
    conn = redis.Redis.from_url(settings.redis_url)
    return Queue(name=str(name or "").strip() or str(settings.rq_queue_default), connection=conn)


def acquire_lock(key: str, ttl_seconds: int) -> bool:
    """Best-effort single-holder lock; it expires on its own after ``ttl_seconds``."""
    return bool(get_redis().set(f"locks:{key}", "1", nx=True, ex=max(1, int(ttl_seconds))))
