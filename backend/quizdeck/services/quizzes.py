from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime
from typing import Any

from fastapi import HTTPException
from sqlalchemy import delete, func, or_, select
from sqlalchemy.orm import Session

from quizdeck.core.config import settings
from quizdeck.core.security import is_admin
from quizdeck.db.base import is_object_id
from quizdeck.models.attempt import Attempt, AttemptAnswer
from quizdeck.models.quiz import Question, Quiz
from quizdeck.models.user import User
from quizdeck.schemas.quiz import QuestionIn, QuizCreateRequest, QuizUpdateRequest
from quizdeck.services.pagination import Page, paginate


log = logging.getLogger(__name__)


def parse_object_id(value: str, *, what: str) -> str:
    value = str(value or "").strip()
    if not is_object_id(value):
        raise HTTPException(status_code=400, detail=f"invalid {what} id")
    return value.lower()


def _like_pattern(term: str) -> str:
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def _iso(dt: datetime | None) -> str | None:
    return dt.isoformat() if dt else None


def question_payload(question: Question, *, include_answer: bool) -> dict[str, Any]:
    return {
        "index": int(question.position),
        "question_text": question.question_text,
        "options": list(question.options or []),
        "correct_answer": int(question.correct_answer) if include_answer else None,
        "points": int(question.points),
    }


def _question_key(q: QuestionIn | Question) -> tuple:
    return (q.question_text, tuple(q.options or []), int(q.correct_answer), int(q.points))


class QuizService:
    def __init__(self, db: Session):
        self.db = db

    # -- lookups -----------------------------------------------------------

    def get(self, quiz_id: str) -> Quiz | None:
        return self.db.scalar(select(Quiz).where(Quiz.id == quiz_id))

    def get_or_404(self, quiz_id: str) -> Quiz:
        qid = parse_object_id(quiz_id, what="quiz")
        quiz = self.get(qid)
        if quiz is None:
            raise HTTPException(status_code=404, detail="quiz not found")
        return quiz

    def questions(self, quiz_id: str) -> list[Question]:
        return list(self.db.scalars(select(Question).where(Question.quiz_id == quiz_id).order_by(Question.position)))

    def question_stats(self, quiz_ids: Iterable[str]) -> dict[str, tuple[int, int]]:
        """Batch (question_count, total_points) per quiz."""
        ids = list(quiz_ids)
        if not ids:
            return {}
        rows = self.db.execute(
            select(Question.quiz_id, func.count(Question.id), func.coalesce(func.sum(Question.points), 0))
            .where(Question.quiz_id.in_(ids))
            .group_by(Question.quiz_id)
        ).all()
        return {r[0]: (int(r[1]), int(r[2])) for r in rows}

    def attempt_count(self, quiz_id: str) -> int:
        return int(self.db.scalar(select(func.count(Attempt.id)).where(Attempt.quiz_id == quiz_id)) or 0)

    # -- permissions -------------------------------------------------------

    @staticmethod
    def is_owner(quiz: Quiz, user: User | None) -> bool:
        return user is not None and quiz.created_by == user.id

    def can_view(self, quiz: Quiz, user: User | None) -> bool:
        if quiz.is_public:
            return True
        return user is not None and (self.is_owner(quiz, user) or is_admin(user))

    def ensure_can_view(self, quiz: Quiz, user: User | None) -> None:
        if not self.can_view(quiz, user):
            raise HTTPException(status_code=403, detail="access denied")

    def ensure_owner(self, quiz: Quiz, user: User) -> None:
        if not self.is_owner(quiz, user):
            raise HTTPException(status_code=403, detail="access denied")

    def ensure_owner_or_admin(self, quiz: Quiz, user: User) -> None:
        if not (self.is_owner(quiz, user) or is_admin(user)):
            raise HTTPException(status_code=403, detail="access denied")

    # -- listing -----------------------------------------------------------

    def _filtered(self, stmt, *, search: str | None, category: str | None):
        term = str(search or "").strip()
        if term:
            pattern = _like_pattern(term)
            stmt = stmt.where(
                or_(
                    Quiz.title.ilike(pattern, escape="\\"),
                    Quiz.description.ilike(pattern, escape="\\"),
                )
            )
        cat = str(category or "").strip()
        if cat and cat.lower() != "all":
            stmt = stmt.where(Quiz.category == cat)
        return stmt

    def list_public(self, *, page: int, limit: int, search: str | None = None, category: str | None = None) -> Page[Quiz]:
        stmt = select(Quiz).where(Quiz.is_public.is_(True)).order_by(Quiz.created_at.desc())
        return paginate(self.db, self._filtered(stmt, search=search, category=category), page=page, limit=limit)

    def list_owned(
        self, user: User, *, page: int, limit: int, search: str | None = None, category: str | None = None
    ) -> Page[Quiz]:
        stmt = select(Quiz).where(Quiz.created_by == user.id).order_by(Quiz.created_at.desc())
        return paginate(self.db, self._filtered(stmt, search=search, category=category), page=page, limit=limit)

    # -- mutations ---------------------------------------------------------

    def _add_questions(self, quiz_id: str, questions: list[QuestionIn]) -> None:
        for position, q in enumerate(questions):
            self.db.add(
                Question(
                    quiz_id=quiz_id,
                    position=position,
                    question_text=q.question_text,
                    options=list(q.options),
                    correct_answer=int(q.correct_answer),
                    points=int(q.points),
                )
            )

    def create(self, user: User, body: QuizCreateRequest) -> Quiz:
        quiz = Quiz(
            title=body.title,
            description=body.description or "",
            time_limit=int(body.time_limit or settings.default_time_limit_minutes),
            category=(body.category or "").strip() or None,
            is_public=bool(body.is_public),
            created_by=user.id,
        )
        self.db.add(quiz)
        self.db.flush()

        self._add_questions(quiz.id, body.questions)
        self.db.commit()
        self.db.refresh(quiz)

        log.info("quiz created: quiz_id=%s owner=%s questions=%s", quiz.id, user.id, len(body.questions))
        return quiz

    def update(self, quiz: Quiz, body: QuizUpdateRequest) -> Quiz:
        fields = body.model_fields_set

        if "title" in fields and body.title is not None:
            quiz.title = body.title.strip()
        if "description" in fields and body.description is not None:
            quiz.description = body.description
        if "time_limit" in fields and body.time_limit is not None:
            quiz.time_limit = int(body.time_limit)
        if "category" in fields:
            quiz.category = (body.category or "").strip() or None
        if "is_public" in fields and body.is_public is not None:
            quiz.is_public = bool(body.is_public)

        if body.questions is not None:
            existing = self.questions(quiz.id)
            changed = [_question_key(q) for q in existing] != [_question_key(q) for q in body.questions]
            if changed:
                # Attempts reference questions by position; editing them would
                # silently misalign every stored review.
                if self.attempt_count(quiz.id) > 0:
                    raise HTTPException(status_code=409, detail="questions cannot be changed once the quiz has attempts")
                self.db.execute(delete(Question).where(Question.quiz_id == quiz.id))
                self.db.flush()
                self._add_questions(quiz.id, body.questions)

        quiz.updated_at = datetime.utcnow()
        self.db.add(quiz)
        self.db.commit()
        self.db.refresh(quiz)
        return quiz

    def delete(self, quiz: Quiz) -> int:
        """Delete a quiz with its questions and attempts in one transaction."""
        attempt_ids = select(Attempt.id).where(Attempt.quiz_id == quiz.id)
        self.db.execute(delete(AttemptAnswer).where(AttemptAnswer.attempt_id.in_(attempt_ids)))
        removed = self.db.execute(delete(Attempt).where(Attempt.quiz_id == quiz.id)).rowcount or 0
        self.db.execute(delete(Question).where(Question.quiz_id == quiz.id))
        self.db.delete(quiz)
        self.db.commit()

        log.info("quiz deleted: quiz_id=%s attempts_removed=%s", quiz.id, removed)
        return int(removed)

    # -- serialization -----------------------------------------------------

    def authors(self, user_ids: Iterable[str]) -> dict[str, str]:
        ids = list({u for u in user_ids if u})
        if not ids:
            return {}
        rows = self.db.execute(select(User.id, User.username).where(User.id.in_(ids))).all()
        return {r[0]: r[1] for r in rows}

    def summaries(self, quizzes: list[Quiz]) -> list[dict[str, Any]]:
        stats = self.question_stats(q.id for q in quizzes)
        names = self.authors(q.created_by for q in quizzes)
        out: list[dict[str, Any]] = []
        for quiz in quizzes:
            count, points = stats.get(quiz.id, (0, 0))
            out.append(
                {
                    "id": quiz.id,
                    "title": quiz.title,
                    "description": quiz.description or "",
                    "question_count": count,
                    "total_points": points,
                    "time_limit": int(quiz.time_limit),
                    "category": quiz.category,
                    "is_public": bool(quiz.is_public),
                    "created_by": {"id": quiz.created_by, "username": names.get(quiz.created_by)},
                    "created_at": _iso(quiz.created_at),
                }
            )
        return out

    def detail(self, quiz: Quiz, viewer: User | None) -> dict[str, Any]:
        manage = viewer is not None and (self.is_owner(quiz, viewer) or is_admin(viewer))
        questions = self.questions(quiz.id)

        payload = self.summaries([quiz])[0]
        payload["updated_at"] = _iso(quiz.updated_at)
        payload["questions"] = [question_payload(q, include_answer=manage) for q in questions]
        payload["attempt_count"] = self.attempt_count(quiz.id) if manage else None
        return payload
