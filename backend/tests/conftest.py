import os
import sys
import time
import uuid
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

backend_dir = Path(__file__).resolve().parents[1]
if str(backend_dir) not in sys.path:
    sys.path.insert(0, str(backend_dir))

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("CRON_SECRET", "test-cron-secret")

from sqlalchemy import create_engine, update
from sqlalchemy.pool import StaticPool

from quizdeck.db.base import Base
from quizdeck.db import session as session_module
from quizdeck.main import create_app

# Import models so that they are registered in Base.metadata before create_all.
from quizdeck.models.user import User, UserRole
from quizdeck.models.quiz import Question, Quiz  # noqa: F401
from quizdeck.models.attempt import Attempt, AttemptAnswer  # noqa: F401
from quizdeck.models.security_audit import SecurityAuditEvent  # noqa: F401


class _MemoryRedis:
    """Just enough of redis for the rate limiter, cron locks and readiness."""

    def __init__(self):
        self._values: dict[str, str] = {}
        self._expires: dict[str, float] = {}

    def _purge(self, key: str) -> None:
        exp = self._expires.get(key)
        if exp is not None and exp <= time.monotonic():
            self._values.pop(key, None)
            self._expires.pop(key, None)

    def clear(self):
        self._values.clear()
        self._expires.clear()

    def ping(self):
        return True

    def set(self, key: str, value: str, ex: int | None = None, nx: bool = False):
        self._purge(key)
        if nx and key in self._values:
            return None
        self._values[key] = str(value)
        self._expires.pop(key, None)
        if ex:
            self._expires[key] = time.monotonic() + int(ex)
        return True

    def incr(self, key: str) -> int:
        self._purge(key)
        n = int(self._values.get(key, "0")) + 1
        self._values[key] = str(n)
        return n

    def expire(self, key: str, seconds: int) -> bool:
        self._purge(key)
        if key not in self._values:
            return False
        self._expires[key] = time.monotonic() + int(seconds)
        return True

    def ttl(self, key: str) -> int:
        self._purge(key)
        if key not in self._values:
            return -2
        if key not in self._expires:
            return -1
        return max(0, int(self._expires[key] - time.monotonic()))


# Configure test DB (SQLite in-memory) at import time so all tests importing
# quizdeck.db.session.SessionLocal will get the patched version.
_engine = create_engine(
    "sqlite+pysqlite:///:memory:",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
Base.metadata.create_all(bind=_engine)
session_module.engine = _engine
session_module.SessionLocal = session_module.sessionmaker(autocommit=False, autoflush=False, bind=_engine)


# Stub Redis at import time (rate limiting + cron locks).
_mem_redis = _MemoryRedis()
import quizdeck.core.redis_client as redis_client_module

redis_client_module.get_redis = lambda: _mem_redis


PASSWORD = "testpass123"


@pytest.fixture(autouse=True)
def _reset_redis():
    _mem_redis.clear()
    yield


@pytest.fixture(scope="session")
def client():
    app = create_app()

    # Ensure app dependencies use our session factory.
    def _get_db_override():
        db = session_module.SessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[session_module.get_db] = _get_db_override
    return TestClient(app)


@pytest.fixture()
def db():
    with session_module.SessionLocal() as session:
        yield session


@pytest.fixture()
def make_user(client):
    def _make(*, admin: bool = False) -> dict:
        username = f"u{uuid.uuid4().hex[:10]}"
        r = client.post(
            "/auth/register",
            json={"username": username, "email": f"{username}@example.com", "password": PASSWORD},
        )
        assert r.status_code == 201, r.text
        headers = {"Authorization": f"Bearer {r.json()['access_token']}"}

        me = client.get("/auth/me", headers=headers)
        assert me.status_code == 200
        user_id = me.json()["id"]

        if admin:
            with session_module.SessionLocal() as s:
                s.execute(update(User).where(User.id == user_id).values(role=UserRole.admin))
                s.commit()

        return {"id": user_id, "username": username, "headers": headers}

    return _make


@pytest.fixture()
def owner(make_user):
    return make_user()


@pytest.fixture()
def taker(make_user):
    return make_user()


def quiz_payload(**overrides) -> dict:
    payload = {
        "title": "Capitals",
        "description": "European capitals",
        "time_limit": 5,
        "category": "geography",
        "is_public": True,
        "questions": [
            {"question_text": "Capital of France?", "options": ["Berlin", "Paris", "Rome"], "correct_answer": 1, "points": 1},
            {"question_text": "Capital of Italy?", "options": ["Rome", "Madrid"], "correct_answer": 0, "points": 1},
        ],
    }
    payload.update(overrides)
    return payload


@pytest.fixture()
def create_quiz(client):
    def _create(user: dict, **overrides) -> dict:
        r = client.post("/quizzes", json=quiz_payload(**overrides), headers=user["headers"])
        assert r.status_code == 201, r.text
        return r.json()

    return _create


@pytest.fixture()
def submit(client):
    def _submit(user: dict, quiz_id: str, selections: list[int], *, time_spent: int = 30, forced: bool = False):
        body = {
            "answers": [{"question_index": i, "selected_option": s} for i, s in enumerate(selections)],
            "time_spent": time_spent,
            "forced_submit": forced,
        }
        return client.post(f"/attempts/{quiz_id}", json=body, headers=user["headers"])

    return _submit


@pytest.fixture()
def quiz_body():
    return quiz_payload
