from __future__ import annotations

import logging

from rq import get_current_job
from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from quizdeck.db import session as session_module
from quizdeck.models.attempt import Attempt, AttemptAnswer
from quizdeck.models.quiz import Quiz


log = logging.getLogger(__name__)


def purge_orphan_attempts(db: Session, *, batch_size: int = 500) -> dict:
    """Delete attempts (and their answers) whose quiz no longer exists."""
    deleted_attempts = 0
    deleted_answers = 0

    orphan_stmt = select(Attempt.id).where(Attempt.quiz_id.not_in(select(Quiz.id))).limit(int(batch_size))
    while True:
        ids = list(db.scalars(orphan_stmt))
        if not ids:
            break
        deleted_answers += db.execute(delete(AttemptAnswer).where(AttemptAnswer.attempt_id.in_(ids))).rowcount or 0
        deleted_attempts += db.execute(delete(Attempt).where(Attempt.id.in_(ids))).rowcount or 0
        db.commit()

    return {"ok": True, "deleted_attempts": int(deleted_attempts), "deleted_answers": int(deleted_answers)}


def cleanup_orphan_attempts_job(*, batch_size: int = 500) -> dict:
    """rq entry point; safe to run repeatedly."""
    job = get_current_job()

    with session_module.SessionLocal() as db:
        out = purge_orphan_attempts(db, batch_size=batch_size)

    if job is not None:
        meta = dict(job.meta or {})
        meta.update(out)
        job.meta = meta
        job.save_meta()

    log.info(
        "cleanup_orphan_attempts_job: deleted_attempts=%s deleted_answers=%s",
        out["deleted_attempts"],
        out["deleted_answers"],
    )
    return out
