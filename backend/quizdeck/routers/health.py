from __future__ import annotations

import hmac
import logging

from fastapi import APIRouter, Depends, Header, HTTPException
from fastapi.responses import JSONResponse
from sqlalchemy import text

from quizdeck.core import redis_client
from quizdeck.core.config import settings
from quizdeck.db import session as session_module
from quizdeck.services.cleanup_jobs import cleanup_orphan_attempts_job

router = APIRouter(prefix="/health", tags=["health"])

log = logging.getLogger(__name__)


def require_cron_secret(x_cron_secret: str | None = Header(default=None)) -> None:
    expected = str(settings.cron_secret or "").strip()
    if not expected:
        # Cron endpoints do not exist unless a secret is configured.
        raise HTTPException(status_code=404, detail="not found")
    if not hmac.compare_digest(str(x_cron_secret or "").strip(), expected):
        raise HTTPException(status_code=403, detail="forbidden")


def _database_ok() -> bool:
    try:
        with session_module.SessionLocal() as db:
            db.execute(text("SELECT 1"))
    except Exception:
        log.exception("readiness: database check failed")
        return False
    return True


def _redis_ok() -> bool:
    try:
        return bool(redis_client.get_redis().ping())
    except Exception:
        log.exception("readiness: redis check failed")
        return False


@router.get("")
def health():
    return {"status": "ok"}


@router.get("/live")
def live():
    return {"status": "live"}


@router.get("/ready")
def ready():
    checks = {"database": _database_ok(), "redis": _redis_ok()}
    if not all(checks.values()):
        return JSONResponse(status_code=503, content={"status": "not_ready", "checks": checks})
    return {"status": "ready", "checks": checks}


@router.post("/cron/orphan-cleanup", dependencies=[Depends(require_cron_secret)])
def cron_orphan_cleanup():
    interval = max(60, int(settings.orphan_cleanup_interval_minutes) * 60)
    if not redis_client.acquire_lock("orphan_attempts_cleanup", interval - 5):
        return {"ok": True, "enqueued": False, "reason": "locked"}

    job = redis_client.get_queue().enqueue(
        cleanup_orphan_attempts_job,
        job_timeout=10 * 60,
        result_ttl=60 * 60,
        failure_ttl=24 * 60 * 60,
    )
    log.info("orphan cleanup enqueued: job_id=%s", job.id)
    return {"ok": True, "enqueued": True, "job_id": str(job.id)}
