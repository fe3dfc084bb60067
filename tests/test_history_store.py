from __future__ import annotations

from datetime import datetime, timedelta

import pytest

from cortex_exam import create_app, db
from cortex_exam.config import TestConfig
from cortex_exam.models import ExamAttemptRecord
from cortex_exam.services.history import (
    Attempt,
    DatabaseHistoryStore,
    FinishReason,
    summarise_history,
)


@pytest.fixture
def app():
    app = create_app(TestConfig)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


def _attempt(exam, score, correct, minutes, reason=FinishReason.MANUAL, code="CLF-C02"):
    return Attempt(
        score=score,
        total_questions=10,
        correct_answers=correct,
        timestamp=datetime(2024, 6, 1, 12, 0) + timedelta(minutes=minutes),
        exam_code=code,
        exam_data=exam,
        answers={"q1": ("b",), "q3": ("a",)},
        reason=reason,
    )


def test_database_store_round_trips_attempts(app, exam):
    store = DatabaseHistoryStore()
    store.append(_attempt(exam, 20.0, 2, minutes=5, reason=FinishReason.TIMEOUT))
    store.append(_attempt(exam, 70.0, 7, minutes=1))

    attempts = store.list()

    assert [attempt.score for attempt in attempts] == [70.0, 20.0]
    latest = attempts[1]
    assert latest.reason is FinishReason.TIMEOUT
    assert latest.exam_data == exam
    assert latest.answers == {"q1": ("b",), "q3": ("a",)}
    assert store.get(latest.attempt_id).score == 20.0
    assert store.get(9999) is None


def test_legacy_rows_without_review_data_still_load(app):
    db.session.add(
        ExamAttemptRecord(
            exam_code="OLD-1",
            score=50.0,
            total_questions=4,
            correct_answers=2,
            reason="unplugged",
            taken_at=datetime(2023, 1, 1),
        )
    )
    db.session.commit()

    attempt = DatabaseHistoryStore().list()[0]

    assert attempt.exam_data is None
    assert attempt.reason is FinishReason.MANUAL
    assert attempt.incorrect_questions() == []
    assert not attempt.passed


def test_summary_aggregates_whole_history(exam):
    attempts = [
        _attempt(exam, 10.0 * n, n, minutes=n, code="SAA-C03" if n % 2 else "CLF-C02")
        for n in range(1, 8)
    ]

    summary = summarise_history(attempts)

    assert summary.total_attempts == 7
    assert summary.total_correct == 28
    assert summary.total_incorrect == 42
    assert summary.overall_percentage == pytest.approx(40.0)
    assert summary.exam_codes == ["SAA-C03", "CLF-C02"]
    assert summary.recent_scores == [30.0, 40.0, 50.0, 60.0, 70.0]


def test_summary_of_empty_history():
    summary = summarise_history([])

    assert summary.total_attempts == 0
    assert summary.overall_percentage == 0.0
    assert summary.recent_scores == []


def test_attempt_summary_uses_wire_names(exam):
    summary = _attempt(exam, 70.0, 7, minutes=0).summary()

    assert summary == {
        "score": 70.0,
        "totalQuestions": 10,
        "correctAnswers": 7,
        "timestamp": "2024-06-01T12:00:00",
        "examCode": "CLF-C02",
    }


def test_pass_mark_can_be_overridden(exam):
    attempt = _attempt(exam, 60.0, 6, minutes=1)

    assert not attempt.passed
    assert attempt.passes(50.0)
    assert not attempt.passes(60.5)
