from __future__ import annotations

import uuid
from datetime import datetime, timedelta

from fastapi import Depends, HTTPException, Request
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy import select
from sqlalchemy.orm import Session

from quizdeck.core.config import settings
from quizdeck.db.base import is_object_id
from quizdeck.db.session import get_db
from quizdeck.models.user import User, UserRole


TOKEN_COOKIE = "quizdeck_token"

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/token", auto_error=False)
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    return pwd_context.verify(password, password_hash)


def create_access_token(*, user_id: str, role: str) -> str:
    now = datetime.utcnow()
    claims = {
        "sub": user_id,
        "role": role,
        "iss": str(settings.jwt_issuer),
        "iat": now,
        "exp": now + timedelta(minutes=int(settings.jwt_access_token_minutes)),
        "jti": uuid.uuid4().hex,
    }
    return jwt.encode(claims, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def token_subject(token: str) -> str:
    """Return the user id a valid token was issued for; 401 otherwise."""
    try:
        claims = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
            issuer=str(settings.jwt_issuer),
        )
    except JWTError as e:
        raise HTTPException(status_code=401, detail="invalid token") from e

    subject = claims.get("sub")
    if not is_object_id(subject):
        raise HTTPException(status_code=401, detail="invalid token")
    return str(subject)


def get_current_user(
    request: Request,
    db: Session = Depends(get_db),
    token: str | None = Depends(oauth2_scheme),
) -> User:
    token = token or request.cookies.get(TOKEN_COOKIE)
    if not token:
        raise HTTPException(status_code=401, detail="not authenticated")

    user = db.scalar(select(User).where(User.id == token_subject(token)))
    if user is None:
        raise HTTPException(status_code=401, detail="invalid token")

    request.state.user_id = str(user.id)
    return user


def is_admin(user: User | None) -> bool:
    return user is not None and user.role == UserRole.admin
