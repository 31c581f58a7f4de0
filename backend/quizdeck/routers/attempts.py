from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from quizdeck.core.config import settings
from quizdeck.core.rate_limit import rate_limit
from quizdeck.core.security import get_current_user
from quizdeck.db.session import get_db
from quizdeck.models.user import User
from quizdeck.schemas.attempt import AttemptDetailOut, AttemptListResponse, AttemptOut, AttemptSubmitRequest
from quizdeck.services.attempts import AttemptService

router = APIRouter(prefix="/attempts", tags=["attempts"])


def _page_response(service: AttemptService, page) -> dict:
    return {
        "items": service.payloads(page.items),
        "current_page": page.current_page,
        "total_pages": page.total_pages,
        "total": page.total,
    }


@router.post("/{quiz_id}", response_model=AttemptOut, status_code=201)
def submit_attempt(
    quiz_id: str,
    body: AttemptSubmitRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    _: object = rate_limit(key_prefix="attempt_submit", limit=settings.attempt_submit_rate_limit, window_seconds=60),
):
    service = AttemptService(db)
    attempt, quiz = service.submit(quiz_id, user, body)
    return service.payloads([attempt], {quiz.id: quiz})[0]


@router.get("/user/{quiz_id}", response_model=AttemptListResponse)
def list_my_attempts(
    quiz_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=settings.max_page_size),
):
    service = AttemptService(db)
    quiz = service.quizzes.get_or_404(quiz_id)
    return _page_response(service, service.list_for_user(quiz.id, user, page=page, limit=limit))


@router.get("/quiz/{quiz_id}", response_model=AttemptListResponse)
def list_quiz_attempts(
    quiz_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=settings.max_page_size),
):
    service = AttemptService(db)
    quiz = service.quizzes.get_or_404(quiz_id)
    service.quizzes.ensure_owner_or_admin(quiz, user)
    return _page_response(service, service.list_for_quiz(quiz.id, page=page, limit=limit))


@router.get("/{attempt_id}", response_model=AttemptDetailOut)
def get_attempt(attempt_id: str, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    service = AttemptService(db)
    attempt = service.get_or_404(attempt_id)
    quiz = service.quizzes.get(attempt.quiz_id)
    service.ensure_can_view(attempt, quiz, user)
    return service.detail(attempt, quiz)
