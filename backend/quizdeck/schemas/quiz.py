from __future__ import annotations

from pydantic import BaseModel, Field, field_validator, model_validator


class QuestionIn(BaseModel):
    question_text: str = Field(min_length=1, max_length=1000)
    options: list[str] = Field(min_length=2, max_length=10)
    correct_answer: int = Field(ge=0)
    points: int = Field(default=1, ge=1)

    @field_validator("question_text")
    @classmethod
    def _strip_text(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("question text is required")
        return v

    @field_validator("options")
    @classmethod
    def _strip_options(cls, v: list[str]) -> list[str]:
        out = [str(o).strip() for o in v]
        if any(not o for o in out):
            raise ValueError("all options are required")
        return out

    @model_validator(mode="after")
    def _correct_answer_in_bounds(self) -> "QuestionIn":
        if self.correct_answer >= len(self.options):
            raise ValueError("correct_answer must reference one of the options")
        return self


class QuizCreateRequest(BaseModel):
    title: str = Field(min_length=1, max_length=100)
    description: str = Field(default="", max_length=500)
    questions: list[QuestionIn] = Field(min_length=1)
    time_limit: int | None = Field(default=None, ge=1)
    category: str | None = Field(default=None, max_length=50)
    is_public: bool = True

    @field_validator("title")
    @classmethod
    def _strip_title(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("quiz title is required")
        return v


class QuizUpdateRequest(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=500)
    questions: list[QuestionIn] | None = Field(default=None, min_length=1)
    time_limit: int | None = Field(default=None, ge=1)
    category: str | None = Field(default=None, max_length=50)
    is_public: bool | None = None

    @field_validator("title")
    @classmethod
    def _strip_title(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError("quiz title is required")
        return v


class QuestionOut(BaseModel):
    index: int
    question_text: str
    options: list[str]
    # Only present for the quiz owner, admins and graded reviews.
    correct_answer: int | None = None
    points: int


class QuizAuthor(BaseModel):
    id: str
    username: str | None


class QuizListItem(BaseModel):
    id: str
    title: str
    description: str
    question_count: int
    total_points: int
    time_limit: int
    category: str | None
    is_public: bool
    created_by: QuizAuthor
    created_at: str


class QuizOut(QuizListItem):
    updated_at: str
    questions: list[QuestionOut]
    attempt_count: int | None = None


class QuizListResponse(BaseModel):
    items: list[QuizListItem]
    current_page: int
    total_pages: int
    total: int
