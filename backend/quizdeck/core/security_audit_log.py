"""Append-only trail of account and moderation events.

Events are staged on the caller's session and land in the same commit as the
change they describe.
"""

from __future__ import annotations

import enum
import json

from fastapi import Request
from sqlalchemy.orm import Session

from quizdeck.core.rate_limit import client_ip
from quizdeck.models.security_audit import SecurityAuditEvent


class AuditEvent(str, enum.Enum):
    register_success = "auth_register_success"
    register_failed = "auth_register_failed"
    login_success = "auth_login_success"
    login_failed = "auth_login_failed"
    admin_quiz_deleted = "admin_quiz_deleted"


def request_id(request: Request) -> str | None:
    return str(getattr(request.state, "request_id", "") or "").strip() or None


def audit_log(
    db: Session,
    request: Request,
    event: AuditEvent,
    *,
    actor_user_id: str | None = None,
    target_user_id: str | None = None,
    quiz_id: str | None = None,
    **details: object,
) -> SecurityAuditEvent:
    row = SecurityAuditEvent(
        event_type=event.value,
        actor_user_id=actor_user_id,
        target_user_id=target_user_id,
        quiz_id=quiz_id,
        details=json.dumps(details, ensure_ascii=False, default=str) if details else None,
        request_id=request_id(request),
        ip=client_ip(request),
    )
    db.add(row)
    return row
