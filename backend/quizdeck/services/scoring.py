"""Attempt grading.

Pure functions only: nothing in here touches the database. The submission
workflow in ``quizdeck.services.attempts`` resolves the quiz, checks who is
allowed to submit and persists the result.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Protocol


UNANSWERED = -1


class GradableQuestion(Protocol):
    correct_answer: int
    points: int


@dataclass(frozen=True)
class AnswerResult:
    question_index: int
    selected_option: int
    is_correct: bool
    points: int


@dataclass(frozen=True)
class GradedSubmission:
    answers: list[AnswerResult]
    score: int
    total_points: int

    @property
    def percentage(self) -> int:
        return percentage(self.score, self.total_points)


def percentage(score: int, total_points: int) -> int:
    if total_points <= 0:
        return 0
    return int(round((score / total_points) * 100))


def normalize_selection(value: object) -> int:
    """Map anything that is not an integer option index to UNANSWERED."""
    if value is None or isinstance(value, bool):
        return UNANSWERED
    try:
        return int(value)
    except (TypeError, ValueError):
        return UNANSWERED


def grade_submission(
    questions: Sequence[GradableQuestion],
    submitted: Sequence[object] | Mapping[int, object],
) -> GradedSubmission:
    """Grade submitted option indexes against the quiz questions.

    ``submitted`` is either positional (one entry per question) or a mapping
    of question index to selected option. Missing entries count as
    unanswered. Every question contributes its points to ``total_points``;
    only exact matches with ``correct_answer`` score them. There is no partial
    credit and no penalty.
    """
    if isinstance(submitted, Mapping):
        lookup = dict(submitted)
    else:
        lookup = dict(enumerate(submitted))

    results: list[AnswerResult] = []
    score = 0
    total_points = 0
    for index, question in enumerate(questions):
        selected = normalize_selection(lookup.get(index, UNANSWERED))
        value = int(question.points)
        total_points += value

        is_correct = selected != UNANSWERED and selected == int(question.correct_answer)
        awarded = value if is_correct else 0
        score += awarded

        results.append(
            AnswerResult(
                question_index=index,
                selected_option=selected,
                is_correct=is_correct,
                points=awarded,
            )
        )

    return GradedSubmission(answers=results, score=score, total_points=total_points)
