from __future__ import annotations

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from cortex_exam.schemas import ExamData

DOMAINS = ("Cloud Concepts", "Security", "Billing")


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def monotonic(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class ManualTicker:
    """Ticker that runs its callback only when the test calls ``fire``."""

    def __init__(self, callback):
        self.callback = callback
        self.started = False
        self.stopped = False

    def start(self) -> None:
        self.started = True

    def stop(self) -> None:
        self.stopped = True

    def fire(self) -> None:
        self.callback()


class ManualTickers:
    """Ticker factory that remembers every ticker it built."""

    def __init__(self):
        self.created = []

    def __call__(self, callback):
        ticker = ManualTicker(callback)
        self.created.append(ticker)
        return ticker

    @property
    def latest(self):
        return self.created[-1]


def build_exam_payload(count: int = 10, code: str = "CLF-C02", name: str = "Cloud Practitioner"):
    questions = []
    for number in range(1, count + 1):
        multi = number % 3 == 0
        questions.append(
            {
                "id": f"q{number}",
                "type": "Multiple Choice" if multi else "Single Choice",
                "text": f"Question {number} about storage",
                "scenario": "A company runs a web shop." if number == 2 else None,
                "options": [
                    {"id": "a", "text": f"Option A{number}"},
                    {"id": "b", "text": f"Option B{number}"},
                    {"id": "c", "text": f"Option C{number}"},
                    {"id": "d", "text": f"Option D{number}"},
                ],
                "correctAnswers": ["a", "c"] if multi else ["b"],
                "domain": DOMAINS[(number - 1) % len(DOMAINS)],
                "explanation": f"Because of rule {number}.",
            }
        )
    return {"examCode": code, "examName": name, "questions": questions}


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def exam_payload():
    return build_exam_payload()


@pytest.fixture
def exam(exam_payload):
    return ExamData.model_validate(exam_payload)
