from __future__ import annotations

from pydantic import BaseModel, Field

from quizdeck.schemas.quiz import QuestionOut


class AnswerSubmission(BaseModel):
    question_index: int = Field(ge=0)
    # -1 (or null) means the question was left unanswered.
    selected_option: int | None = -1


class AttemptSubmitRequest(BaseModel):
    answers: list[AnswerSubmission] = Field(default_factory=list)
    time_spent: int = Field(default=0, ge=0)
    forced_submit: bool = False


class AnswerResultOut(BaseModel):
    question_index: int
    selected_option: int
    is_correct: bool
    points: int


class AttemptUser(BaseModel):
    id: str
    username: str | None


class AttemptOut(BaseModel):
    id: str
    quiz_id: str
    quiz_title: str | None
    user: AttemptUser
    answers: list[AnswerResultOut]
    score: int
    total_points: int
    percentage: int
    time_spent: int
    forced_submit: bool
    completed_at: str


class AttemptDetailOut(AttemptOut):
    questions: list[QuestionOut]


class AttemptListResponse(BaseModel):
    items: list[AttemptOut]
    current_page: int
    total_pages: int
    total: int
