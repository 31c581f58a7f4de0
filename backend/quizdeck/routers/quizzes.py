from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from quizdeck.core.config import settings
from quizdeck.core.security import get_current_user, is_admin
from quizdeck.core.security_audit_log import AuditEvent, audit_log
from quizdeck.db.session import get_db
from quizdeck.models.user import User
from quizdeck.schemas.analytics import QuizAnalyticsResponse
from quizdeck.schemas.quiz import QuizCreateRequest, QuizListResponse, QuizOut, QuizUpdateRequest
from quizdeck.services.analytics import QuizAnalyticsService
from quizdeck.services.quizzes import QuizService

router = APIRouter(prefix="/quizzes", tags=["quizzes"])


def _page_response(service: QuizService, page) -> dict:
    return {
        "items": service.summaries(page.items),
        "current_page": page.current_page,
        "total_pages": page.total_pages,
        "total": page.total,
    }


@router.post("", response_model=QuizOut, status_code=201)
def create_quiz(
    body: QuizCreateRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    service = QuizService(db)
    quiz = service.create(user, body)
    return service.detail(quiz, user)


@router.get("", response_model=QuizListResponse)
def list_public_quizzes(
    db: Session = Depends(get_db),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=settings.max_page_size),
    search: str | None = Query(default=None, max_length=100),
    category: str | None = Query(default=None, max_length=50),
):
    service = QuizService(db)
    return _page_response(service, service.list_public(page=page, limit=limit, search=search, category=category))


@router.get("/user", response_model=QuizListResponse)
def list_my_quizzes(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=settings.max_page_size),
    search: str | None = Query(default=None, max_length=100),
    category: str | None = Query(default=None, max_length=50),
):
    service = QuizService(db)
    return _page_response(service, service.list_owned(user, page=page, limit=limit, search=search, category=category))


@router.get("/{quiz_id}", response_model=QuizOut)
def get_quiz(quiz_id: str, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    service = QuizService(db)
    quiz = service.get_or_404(quiz_id)
    service.ensure_can_view(quiz, user)
    return service.detail(quiz, user)


@router.put("/{quiz_id}", response_model=QuizOut)
def update_quiz(
    quiz_id: str,
    body: QuizUpdateRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    service = QuizService(db)
    quiz = service.get_or_404(quiz_id)
    service.ensure_owner(quiz, user)
    quiz = service.update(quiz, body)
    return service.detail(quiz, user)


@router.delete("/{quiz_id}")
def delete_quiz(
    quiz_id: str,
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    service = QuizService(db)
    quiz = service.get_or_404(quiz_id)
    service.ensure_owner_or_admin(quiz, user)

    if is_admin(user) and not service.is_owner(quiz, user):
        audit_log(
            db,
            request,
            AuditEvent.admin_quiz_deleted,
            actor_user_id=user.id,
            target_user_id=quiz.created_by,
            quiz_id=quiz.id,
            title=quiz.title,
        )

    removed = service.delete(quiz)
    return {"ok": True, "message": "quiz deleted", "attempts_deleted": removed}


@router.get("/{quiz_id}/analytics", response_model=QuizAnalyticsResponse)
def quiz_analytics(quiz_id: str, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    service = QuizService(db)
    quiz = service.get_or_404(quiz_id)
    service.ensure_owner_or_admin(quiz, user)
    return QuizAnalyticsService(db).for_quiz(quiz)
