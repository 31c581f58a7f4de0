from __future__ import annotations

from typing import Any

from sqlalchemy import case, func, select
from sqlalchemy.orm import Session

from quizdeck.models.attempt import Attempt, AttemptAnswer
from quizdeck.models.quiz import Quiz
from quizdeck.services.quizzes import QuizService
from quizdeck.services.scoring import UNANSWERED, percentage


class QuizAnalyticsService:
    def __init__(self, db: Session):
        self.db = db

    def for_quiz(self, quiz: Quiz) -> dict[str, Any]:
        """Aggregate statistics across every stored attempt of ``quiz``.

        Works from the graded snapshots, so numbers reflect the questions as
        they were when each attempt was submitted.
        """
        attempts = self.db.execute(
            select(Attempt.user_id, Attempt.score, Attempt.total_points, Attempt.time_spent, Attempt.forced_submit).where(
                Attempt.quiz_id == quiz.id
            )
        ).all()

        total = len(attempts)
        percentages = [percentage(int(a.score), int(a.total_points)) for a in attempts]

        per_question = self.db.execute(
            select(
                AttemptAnswer.question_index,
                func.count(AttemptAnswer.id),
                func.sum(case((AttemptAnswer.is_correct.is_(True), 1), else_=0)),
            )
            .join(Attempt, Attempt.id == AttemptAnswer.attempt_id)
            .where(Attempt.quiz_id == quiz.id, AttemptAnswer.selected_option != UNANSWERED)
            .group_by(AttemptAnswer.question_index)
        ).all()
        answered_by_index = {int(r[0]): (int(r[1] or 0), int(r[2] or 0)) for r in per_question}

        questions = []
        for q in QuizService(self.db).questions(quiz.id):
            answered, correct = answered_by_index.get(int(q.position), (0, 0))
            questions.append(
                {
                    "question_index": int(q.position),
                    "question_text": q.question_text,
                    "answered": answered,
                    "correct": correct,
                    "correct_rate": round(correct / total, 3) if total else 0.0,
                }
            )

        return {
            "quiz_id": quiz.id,
            "quiz_title": quiz.title,
            "total_attempts": total,
            "unique_takers": len({a.user_id for a in attempts}),
            "average_score": round(sum(int(a.score) for a in attempts) / total, 1) if total else 0.0,
            "average_percentage": round(sum(percentages) / total, 1) if total else 0.0,
            "best_percentage": max(percentages) if percentages else 0,
            "average_time_spent": int(round(sum(int(a.time_spent) for a in attempts) / total)) if total else 0,
            "forced_submissions": sum(1 for a in attempts if a.forced_submit),
            "questions": questions,
        }
