"""Strict, side-effect free grading of a question set."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Mapping, Sequence

from ..schemas import Question


@dataclass(frozen=True)
class ScoreResult:
    correct_answers: int
    total_questions: int
    score: float


def is_answer_correct(question: Question, selection: Iterable[str] | None) -> bool:
    """A question counts only when the selection equals the answer key exactly."""

    return frozenset(selection or ()) == question.correct_set


def score_answers(
    questions: Sequence[Question], answers: Mapping[str, Iterable[str]]
) -> ScoreResult:
    total = len(questions)
    correct = sum(
        1 for question in questions if is_answer_correct(question, answers.get(question.id))
    )
    score = (correct / total) * 100 if total else 0.0
    return ScoreResult(correct_answers=correct, total_questions=total, score=score)


def incorrect_questions(
    questions: Sequence[Question], answers: Mapping[str, Iterable[str]]
) -> list[Question]:
    return [
        question
        for question in questions
        if not is_answer_correct(question, answers.get(question.id))
    ]


__all__ = ["ScoreResult", "incorrect_questions", "is_answer_correct", "score_answers"]
