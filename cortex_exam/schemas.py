"""Pydantic models for the question sets consumed by the exam engine."""

from __future__ import annotations

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class QuestionType(str, Enum):
    SINGLE_CHOICE = "Single Choice"
    MULTIPLE_CHOICE = "Multiple Choice"
    SCENARIO = "Scenario"
    TRUE_FALSE = "True/False"

    @property
    def is_multi(self) -> bool:
        return self is QuestionType.MULTIPLE_CHOICE


class _FrozenModel(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)


class AnswerOption(_FrozenModel):
    id: str = Field(..., min_length=1)
    text: str


class Question(_FrozenModel):
    id: str = Field(..., min_length=1)
    type: QuestionType
    text: str
    scenario: Optional[str] = None
    options: List[AnswerOption]
    correct_answers: List[str] = Field(..., alias="correctAnswers")
    domain: str = ""
    explanation: str = ""

    # Option ids must be unique and the answer key must point at them.
    @model_validator(mode="after")
    def check_answer_key(self) -> "Question":
        option_ids = [option.id for option in self.options]
        if len(set(option_ids)) != len(option_ids):
            raise ValueError(f"Question {self.id} has duplicate option ids.")
        if not self.correct_answers:
            raise ValueError(f"Question {self.id} has no correct answers.")
        unknown = set(self.correct_answers) - set(option_ids)
        if unknown:
            raise ValueError(
                f"Question {self.id} lists unknown correct answers: {sorted(unknown)}"
            )
        return self

    @property
    def option_ids(self) -> frozenset[str]:
        return frozenset(option.id for option in self.options)

    @property
    def correct_set(self) -> frozenset[str]:
        return frozenset(self.correct_answers)

    def option_text(self, option_id: str) -> str | None:
        for option in self.options:
            if option.id == option_id:
                return option.text
        return None


class ExamData(_FrozenModel):
    exam_code: str = Field(..., alias="examCode", min_length=1)
    exam_name: str = Field("", alias="examName")
    questions: List[Question]

    @model_validator(mode="after")
    def check_questions(self) -> "ExamData":
        if not self.questions:
            raise ValueError("An exam needs at least one question.")
        ids = [question.id for question in self.questions]
        if len(set(ids)) != len(ids):
            raise ValueError("Question ids must be unique within an exam.")
        return self

    def question_map(self) -> dict[str, Question]:
        return {question.id: question for question in self.questions}

    def to_payload(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


__all__ = ["AnswerOption", "ExamData", "Question", "QuestionType"]
