from __future__ import annotations

from pydantic import BaseModel


class QuestionStat(BaseModel):
    question_index: int
    question_text: str
    answered: int
    correct: int
    correct_rate: float


class QuizAnalyticsResponse(BaseModel):
    quiz_id: str
    quiz_title: str
    total_attempts: int
    unique_takers: int
    average_score: float
    average_percentage: float
    best_percentage: int
    average_time_spent: int
    forced_submissions: int
    questions: list[QuestionStat]
