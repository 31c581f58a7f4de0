from datetime import datetime

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from quizdeck.db.base import Base, new_object_id


class Quiz(Base):
    __tablename__ = "quizzes"

    id: Mapped[str] = mapped_column(String(24), primary_key=True, default=new_object_id)
    title: Mapped[str] = mapped_column(String(100))
    description: Mapped[str] = mapped_column(String(500), default="")

    # minutes
    time_limit: Mapped[int] = mapped_column(Integer, default=10)
    category: Mapped[str | None] = mapped_column(String(50), nullable=True, index=True)
    is_public: Mapped[bool] = mapped_column(Boolean, default=True, index=True)

    created_by: Mapped[str] = mapped_column(String(24), ForeignKey("users.id"), index=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow)


class Question(Base):
    __tablename__ = "questions"
    __table_args__ = (UniqueConstraint("quiz_id", "position", name="uq_questions_quiz_position"),)

    id: Mapped[str] = mapped_column(String(24), primary_key=True, default=new_object_id)
    quiz_id: Mapped[str] = mapped_column(String(24), ForeignKey("quizzes.id"), index=True)
    position: Mapped[int] = mapped_column(Integer)

    question_text: Mapped[str] = mapped_column(String(1000))
    options: Mapped[list[str]] = mapped_column(JSON, default=list)
    correct_answer: Mapped[int] = mapped_column(Integer)
    points: Mapped[int] = mapped_column(Integer, default=1)
