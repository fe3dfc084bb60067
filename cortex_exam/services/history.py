"""Attempt records and the stores that archive them."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Mapping, Protocol, Sequence

from .. import db
from ..models import ExamAttemptRecord
from ..schemas import ExamData, Question
from .scoring import incorrect_questions

logger = logging.getLogger(__name__)

PASS_MARK = 70.0


class FinishReason(str, Enum):
    MANUAL = "manual"
    TIMEOUT = "timeout"


@dataclass(frozen=True)
class Attempt:
    """Scored record of a finished session; never modified once created."""

    score: float
    total_questions: int
    correct_answers: int
    timestamp: datetime
    exam_code: str
    exam_data: ExamData | None = None
    answers: Mapping[str, tuple[str, ...]] = field(default_factory=dict)
    reason: FinishReason = FinishReason.MANUAL
    attempt_id: int | None = None

    def passes(self, pass_mark: float = PASS_MARK) -> bool:
        return self.score >= pass_mark

    @property
    def passed(self) -> bool:
        return self.passes()

    @property
    def incorrect_count(self) -> int:
        return self.total_questions - self.correct_answers

    def incorrect_questions(self) -> list[Question]:
        if self.exam_data is None:
            return []
        return incorrect_questions(self.exam_data.questions, self.answers)

    def summary(self) -> dict:
        return {
            "score": self.score,
            "totalQuestions": self.total_questions,
            "correctAnswers": self.correct_answers,
            "timestamp": self.timestamp.isoformat(),
            "examCode": self.exam_code,
        }


class HistoryStore(Protocol):
    def append(self, attempt: Attempt) -> None: ...

    def list(self) -> Sequence[Attempt]: ...


class MemoryHistoryStore:
    """History kept in process memory, oldest first."""

    def __init__(self) -> None:
        self._attempts: list[Attempt] = []

    def append(self, attempt: Attempt) -> None:
        self._attempts.append(attempt)

    def list(self) -> Sequence[Attempt]:
        return tuple(self._attempts)


class DatabaseHistoryStore:
    """History persisted in the ``exam_attempts`` table."""

    def append(self, attempt: Attempt) -> None:
        record = ExamAttemptRecord(
            exam_code=attempt.exam_code,
            exam_name=attempt.exam_data.exam_name if attempt.exam_data else None,
            score=attempt.score,
            total_questions=attempt.total_questions,
            correct_answers=attempt.correct_answers,
            reason=attempt.reason.value,
            taken_at=attempt.timestamp,
            exam_data=attempt.exam_data.to_payload() if attempt.exam_data else None,
            answers={key: list(value) for key, value in attempt.answers.items()},
        )
        db.session.add(record)
        db.session.commit()
        logger.info(
            "Archived attempt %s for %s: %.1f%%", record.id, attempt.exam_code, attempt.score
        )

    def list(self) -> Sequence[Attempt]:
        records = ExamAttemptRecord.query.order_by(
            ExamAttemptRecord.taken_at.asc(), ExamAttemptRecord.id.asc()
        ).all()
        return [_record_to_attempt(record) for record in records]

    def get(self, attempt_id: int) -> Attempt | None:
        record = db.session.get(ExamAttemptRecord, attempt_id)
        return _record_to_attempt(record) if record else None


def _record_to_attempt(record: ExamAttemptRecord) -> Attempt:
    # Rows archived before review columns existed carry no question set.
    exam_data = ExamData.model_validate(record.exam_data) if record.exam_data else None
    answers = {key: tuple(value) for key, value in (record.answers or {}).items()}
    try:
        reason = FinishReason(record.reason or FinishReason.MANUAL.value)
    except ValueError:
        reason = FinishReason.MANUAL
    return Attempt(
        score=float(record.score),
        total_questions=record.total_questions,
        correct_answers=record.correct_answers,
        timestamp=record.taken_at,
        exam_code=record.exam_code,
        exam_data=exam_data,
        answers=answers,
        reason=reason,
        attempt_id=record.id,
    )


@dataclass(frozen=True)
class HistorySummary:
    total_attempts: int
    overall_percentage: float
    total_correct: int
    total_incorrect: int
    exam_codes: list[str]
    recent_scores: list[float]


def summarise_history(attempts: Sequence[Attempt], *, recent: int = 5) -> HistorySummary:
    """Aggregate figures for the dashboard, computed over the whole history."""

    total_correct = sum(attempt.correct_answers for attempt in attempts)
    total_questions = sum(attempt.total_questions for attempt in attempts)
    overall = (total_correct / total_questions) * 100 if total_questions else 0.0
    codes: dict[str, None] = {}
    for attempt in attempts:
        codes.setdefault(attempt.exam_code, None)
    return HistorySummary(
        total_attempts=len(attempts),
        overall_percentage=overall,
        total_correct=total_correct,
        total_incorrect=total_questions - total_correct,
        exam_codes=list(codes),
        recent_scores=[attempt.score for attempt in attempts[-recent:]] if recent > 0 else [],
    )


__all__ = [
    "Attempt",
    "DatabaseHistoryStore",
    "FinishReason",
    "HistoryStore",
    "HistorySummary",
    "MemoryHistoryStore",
    "PASS_MARK",
    "summarise_history",
]
