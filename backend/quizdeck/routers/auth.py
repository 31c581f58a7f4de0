from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.security import OAuth2PasswordRequestForm
from pydantic import BaseModel, Field, field_validator
from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from quizdeck.core.config import settings
from quizdeck.core.rate_limit import rate_limit
from quizdeck.core.security import create_access_token, get_current_user, hash_password, verify_password
from quizdeck.core.security_audit_log import AuditEvent, audit_log
from quizdeck.db.session import get_db
from quizdeck.models.user import User, UserRole

router = APIRouter(prefix="/auth", tags=["auth"])

log = logging.getLogger(__name__)


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int


class MeResponse(BaseModel):
    id: str
    username: str
    email: str
    role: str
    created_at: str | None


class RegisterRequest(BaseModel):
    username: str = Field(min_length=3, max_length=30, pattern=r"^[A-Za-z0-9]+$")
    email: str = Field(max_length=254, pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    password: str = Field(max_length=128)

    @field_validator("email")
    @classmethod
    def _normalize_email(cls, v: str) -> str:
        return v.strip().lower()


def _issue_token(user: User) -> TokenResponse:
    return TokenResponse(
        access_token=create_access_token(user_id=str(user.id), role=user.role.value),
        expires_in=int(settings.jwt_access_token_minutes) * 60,
    )


@router.post("/register", response_model=TokenResponse, status_code=201)
def register(
    request: Request,
    payload: RegisterRequest,
    db: Session = Depends(get_db),
    _: object = rate_limit(key_prefix="auth_register", limit=10, window_seconds=60),
):
    if not settings.allow_public_register:
        raise HTTPException(status_code=403, detail="registration disabled")
    if len(payload.password) < int(settings.password_min_length or 0):
        raise HTTPException(
            status_code=400, detail=f"password must be at least {settings.password_min_length} characters"
        )

    taken = db.scalar(select(User.id).where(or_(User.username == payload.username, User.email == payload.email)))
    if taken is not None:
        audit_log(db, request, AuditEvent.register_failed, username=payload.username, reason="user_exists")
        db.commit()
        raise HTTPException(status_code=409, detail="username or email already registered")

    user = User(
        username=payload.username,
        email=payload.email,
        role=UserRole.user,
        password_hash=hash_password(payload.password),
    )
    db.add(user)
    db.flush()
    audit_log(db, request, AuditEvent.register_success, actor_user_id=user.id, target_user_id=user.id)
    db.commit()

    log.info("user registered: user_id=%s", user.id)
    return _issue_token(user)


@router.post("/token", response_model=TokenResponse)
def token(
    request: Request,
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: Session = Depends(get_db),
    _: object = rate_limit(key_prefix="auth_token", limit=20, window_seconds=60),
):
    # Accepts the username or the email address.
    login = str(form_data.username or "").strip()
    user = db.scalar(select(User).where(or_(User.username == login, User.email == login.lower())))

    if user is None or not verify_password(form_data.password, user.password_hash):
        audit_log(db, request, AuditEvent.login_failed, login=login)
        db.commit()
        raise HTTPException(status_code=401, detail="invalid credentials")

    audit_log(
        db,
        request,
        AuditEvent.login_success,
        actor_user_id=user.id,
        target_user_id=user.id,
        user_agent=str(request.headers.get("user-agent") or "").strip() or None,
    )
    db.commit()
    return _issue_token(user)


@router.get("/me", response_model=MeResponse)
def me(user: User = Depends(get_current_user)):
    return MeResponse(
        id=user.id,
        username=user.username,
        email=user.email,
        role=user.role.value,
        created_at=user.created_at.isoformat() if user.created_at else None,
    )
