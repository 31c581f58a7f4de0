from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.orm import Session

from quizdeck.core.security import is_admin
from quizdeck.models.attempt import Attempt, AttemptAnswer
from quizdeck.models.quiz import Quiz
from quizdeck.models.user import User
from quizdeck.schemas.attempt import AttemptSubmitRequest
from quizdeck.services.pagination import Page, paginate
from quizdeck.services.quizzes import QuizService, parse_object_id, question_payload
from quizdeck.services.scoring import grade_submission, normalize_selection, percentage


log = logging.getLogger(__name__)


class AttemptService:
    def __init__(self, db: Session):
        self.db = db
        self.quizzes = QuizService(db)

    def submit(self, quiz_id: str, user: User, body: AttemptSubmitRequest) -> tuple[Attempt, Quiz]:
        """Validate, grade and store one attempt.

        Every call that gets past validation writes exactly one attempt;
        resubmitting the same answers stores a second one.
        """
        quiz = self.quizzes.get_or_404(quiz_id)

        if self.quizzes.is_owner(quiz, user):
            raise HTTPException(status_code=403, detail="you cannot take your own quiz")
        self.quizzes.ensure_can_view(quiz, user)

        questions = self.quizzes.questions(quiz.id)
        if not questions:
            raise HTTPException(status_code=400, detail="quiz has no questions")

        selections: dict[int, int] = {}
        for answer in body.answers:
            idx = int(answer.question_index)
            if idx >= len(questions):
                raise HTTPException(status_code=400, detail=f"question index {idx} out of range")
            if idx in selections:
                raise HTTPException(status_code=400, detail=f"duplicate answer for question {idx}")
            selections[idx] = normalize_selection(answer.selected_option)

        graded = grade_submission(questions, selections)

        attempt = Attempt(
            quiz_id=quiz.id,
            user_id=user.id,
            score=graded.score,
            total_points=graded.total_points,
            time_spent=int(body.time_spent),
            forced_submit=bool(body.forced_submit),
            completed_at=datetime.utcnow(),
        )
        self.db.add(attempt)
        self.db.flush()

        for result in graded.answers:
            self.db.add(
                AttemptAnswer(
                    attempt_id=attempt.id,
                    question_index=result.question_index,
                    selected_option=result.selected_option,
                    is_correct=result.is_correct,
                    points=result.points,
                )
            )

        self.db.commit()
        self.db.refresh(attempt)

        log.info(
            "attempt stored: attempt_id=%s quiz_id=%s user_id=%s score=%s/%s forced=%s",
            attempt.id,
            quiz.id,
            user.id,
            graded.score,
            graded.total_points,
            attempt.forced_submit,
        )
        return attempt, quiz

    # -- reads -------------------------------------------------------------

    def get_or_404(self, attempt_id: str) -> Attempt:
        aid = parse_object_id(attempt_id, what="attempt")
        attempt = self.db.scalar(select(Attempt).where(Attempt.id == aid))
        if attempt is None:
            raise HTTPException(status_code=404, detail="attempt not found")
        return attempt

    def ensure_can_view(self, attempt: Attempt, quiz: Quiz | None, user: User) -> None:
        if attempt.user_id == user.id or is_admin(user):
            return
        if quiz is not None and self.quizzes.is_owner(quiz, user):
            return
        raise HTTPException(status_code=403, detail="access denied")

    def list_for_user(self, quiz_id: str, user: User, *, page: int, limit: int) -> Page[Attempt]:
        stmt = (
            select(Attempt)
            .where(Attempt.quiz_id == quiz_id, Attempt.user_id == user.id)
            .order_by(Attempt.completed_at.desc())
        )
        return paginate(self.db, stmt, page=page, limit=limit)

    def list_for_quiz(self, quiz_id: str, *, page: int, limit: int) -> Page[Attempt]:
        stmt = select(Attempt).where(Attempt.quiz_id == quiz_id).order_by(Attempt.completed_at.desc())
        return paginate(self.db, stmt, page=page, limit=limit)

    def answers(self, attempt_ids: list[str]) -> dict[str, list[AttemptAnswer]]:
        if not attempt_ids:
            return {}
        rows = self.db.scalars(
            select(AttemptAnswer)
            .where(AttemptAnswer.attempt_id.in_(attempt_ids))
            .order_by(AttemptAnswer.attempt_id, AttemptAnswer.question_index)
        ).all()
        out: dict[str, list[AttemptAnswer]] = {}
        for row in rows:
            out.setdefault(row.attempt_id, []).append(row)
        return out

    # -- serialization -----------------------------------------------------

    def payloads(self, attempts: list[Attempt], quizzes: dict[str, Quiz] | None = None) -> list[dict[str, Any]]:
        quizzes = dict(quizzes or {})
        missing = {a.quiz_id for a in attempts if a.quiz_id not in quizzes}
        if missing:
            for quiz in self.db.scalars(select(Quiz).where(Quiz.id.in_(missing))):
                quizzes[quiz.id] = quiz

        names = self.quizzes.authors(a.user_id for a in attempts)
        answers = self.answers([a.id for a in attempts])

        out: list[dict[str, Any]] = []
        for attempt in attempts:
            quiz = quizzes.get(attempt.quiz_id)
            out.append(
                {
                    "id": attempt.id,
                    "quiz_id": attempt.quiz_id,
                    "quiz_title": quiz.title if quiz is not None else None,
                    "user": {"id": attempt.user_id, "username": names.get(attempt.user_id)},
                    "answers": [
                        {
                            "question_index": int(a.question_index),
                            "selected_option": int(a.selected_option),
                            "is_correct": bool(a.is_correct),
                            "points": int(a.points),
                        }
                        for a in answers.get(attempt.id, [])
                    ],
                    "score": int(attempt.score),
                    "total_points": int(attempt.total_points),
                    "percentage": percentage(int(attempt.score), int(attempt.total_points)),
                    "time_spent": int(attempt.time_spent),
                    "forced_submit": bool(attempt.forced_submit),
                    "completed_at": attempt.completed_at.isoformat() if attempt.completed_at else None,
                }
            )
        return out

    def detail(self, attempt: Attempt, quiz: Quiz | None) -> dict[str, Any]:
        payload = self.payloads([attempt], {quiz.id: quiz} if quiz is not None else None)[0]
        questions = self.quizzes.questions(quiz.id) if quiz is not None else []
        payload["questions"] = [question_payload(q, include_answer=True) for q in questions]
        return payload
