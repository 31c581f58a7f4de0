from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from quizdeck.db.base import Base, new_object_id


class Attempt(Base):
    __tablename__ = "attempts"

    id: Mapped[str] = mapped_column(String(24), primary_key=True, default=new_object_id)
    # No FK to quizzes: quiz deletion removes attempts explicitly, and the
    # orphan cleanup job handles anything left behind.
    quiz_id: Mapped[str] = mapped_column(String(24), index=True)
    user_id: Mapped[str] = mapped_column(String(24), ForeignKey("users.id"), index=True)

    score: Mapped[int] = mapped_column(Integer, default=0)
    total_points: Mapped[int] = mapped_column(Integer, default=0)

    # seconds
    time_spent: Mapped[int] = mapped_column(Integer, default=0)
    forced_submit: Mapped[bool] = mapped_column(Boolean, default=False)

    completed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow, index=True)


class AttemptAnswer(Base):
    __tablename__ = "attempt_answers"

    id: Mapped[str] = mapped_column(String(24), primary_key=True, default=new_object_id)
    attempt_id: Mapped[str] = mapped_column(String(24), ForeignKey("attempts.id"), index=True)

    question_index: Mapped[int] = mapped_column(Integer)
    selected_option: Mapped[int] = mapped_column(Integer, default=-1)
    is_correct: Mapped[bool] = mapped_column(Boolean, default=False)
    points: Mapped[int] = mapped_column(Integer, default=0)
