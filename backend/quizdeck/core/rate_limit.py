from __future__ import annotations

import logging
from dataclasses import dataclass

from fastapi import Depends, HTTPException, Request

from quizdeck.core.config import settings
from quizdeck.core import redis_client


log = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimit:
    key: str
    limit: int
    window_seconds: int
    remaining: int


def client_ip(request: Request) -> str | None:
    if settings.trust_proxy_headers:
        forwarded = [p.strip() for p in str(request.headers.get("x-forwarded-for") or "").split(",") if p.strip()]
        if forwarded:
            return forwarded[0]
        real_ip = str(request.headers.get("x-real-ip") or "").strip()
        if real_ip:
            return real_ip
    return request.client.host if request.client and request.client.host else None


def _subject(request: Request) -> str:
    # get_current_user stores the id on request.state when it runs first.
    user_id = getattr(request.state, "user_id", None)
    if user_id:
        return f"user:{user_id}"
    return f"ip:{client_ip(request) or 'unknown'}"


def rate_limit(*, key_prefix: str, limit: int, window_seconds: int):
    """Fixed-window limiter keyed per user when authenticated, else per client IP.

    Declare it after ``get_current_user`` in the endpoint signature so the
    user key is available.
    """

    def _dep(request: Request) -> RateLimit:
        key = f"rl:{key_prefix}:{_subject(request)}"
        r = redis_client.get_redis()
        try:
            hits = int(r.incr(key))
            if hits == 1:
                r.expire(key, int(window_seconds))
        except Exception:
            log.warning("rate limiter unavailable, allowing request: key=%s", key)
            return RateLimit(key=key, limit=int(limit), window_seconds=int(window_seconds), remaining=int(limit))

        if hits > int(limit):
            ttl = r.ttl(key)
            log.info("rate limit exceeded: key=%s hits=%s", key, hits)
            raise HTTPException(
                status_code=429,
                detail="too many requests, slow down",
                headers={"Retry-After": str(ttl if ttl and ttl > 0 else int(window_seconds))},
            )
        return RateLimit(key=key, limit=int(limit), window_seconds=int(window_seconds), remaining=int(limit) - hits)

    return Depends(_dep)
