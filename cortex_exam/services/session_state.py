"""In-memory state of an exam that is being taken."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, Mapping

from ..schemas import ExamData, Question

logger = logging.getLogger(__name__)

SECONDS_PER_QUESTION = 90


@dataclass
class SessionState:
    """Ordered questions, answers, flags, cursor and remaining time of a session.

    ``ordered_questions`` is always a permutation of ``exam.questions``; the
    source question set is never reordered. ``answers`` never holds an empty
    selection: clearing a selection removes the key.
    """

    exam: ExamData
    ordered_questions: list[Question]
    answers: dict[str, frozenset[str]] = field(default_factory=dict)
    flagged: set[str] = field(default_factory=set)
    current_index: int = 0
    time_left_seconds: int = 0

    @classmethod
    def fresh(cls, exam: ExamData, *, seconds_per_question: int = SECONDS_PER_QUESTION) -> "SessionState":
        return cls(
            exam=exam,
            ordered_questions=list(exam.questions),
            time_left_seconds=len(exam.questions) * seconds_per_question,
        )

    @property
    def exam_code(self) -> str:
        return self.exam.exam_code

    @property
    def total_questions(self) -> int:
        return len(self.ordered_questions)

    @property
    def current_question(self) -> Question:
        return self.ordered_questions[self.current_index]

    def question_ids(self) -> list[str]:
        return [question.id for question in self.ordered_questions]

    def find_question(self, question_id: str) -> Question | None:
        return next((q for q in self.ordered_questions if q.id == question_id), None)

    def index_of(self, question_id: str) -> int:
        for index, question in enumerate(self.ordered_questions):
            if question.id == question_id:
                return index
        return -1

    def is_answered(self, question_id: str) -> bool:
        return bool(self.answers.get(question_id))

    def is_flagged(self, question_id: str) -> bool:
        return question_id in self.flagged

    def answered_count(self) -> int:
        return sum(1 for question in self.ordered_questions if self.is_answered(question.id))

    def frozen_answers(self) -> dict[str, tuple[str, ...]]:
        """Return a detached copy of the answers with deterministic ordering."""

        return {
            question_id: tuple(sorted(selection))
            for question_id, selection in self.answers.items()
            if selection
        }


def normalise_answers(raw: Mapping[str, Iterable[str]] | None) -> dict[str, frozenset[str]]:
    """Drop empty selections so that "no options" always means unanswered."""

    normalised: dict[str, frozenset[str]] = {}
    for question_id, selection in (raw or {}).items():
        options = frozenset(str(option_id) for option_id in selection or ())
        if options:
            normalised[str(question_id)] = options
    return normalised


def select_answer(state: SessionState, question_id: str, option_ids: Iterable[str]) -> bool:
    """Replace the selection for a question.

    Single choice, scenario and true/false questions accept one option only;
    multiple choice accepts any subset of the question's options. Correctness is
    not checked here. Returns ``False`` when the intent is rejected.
    """

    question = state.find_question(question_id)
    if question is None:
        logger.debug("Ignoring answer for unknown question %r", question_id)
        return False

    selection = frozenset(option_ids)
    unknown = selection - question.option_ids
    if unknown:
        logger.debug(
            "Ignoring answer for %s with unknown options %s", question_id, sorted(unknown)
        )
        return False
    if not question.type.is_multi and len(selection) > 1:
        logger.debug("Ignoring multi-option answer for single answer question %s", question_id)
        return False

    if selection:
        state.answers[question_id] = selection
    else:
        state.answers.pop(question_id, None)
    return True


def toggle_flag(state: SessionState, question_id: str) -> bool:
    if state.find_question(question_id) is None:
        logger.debug("Ignoring flag for unknown question %r", question_id)
        return False
    if question_id in state.flagged:
        state.flagged.discard(question_id)
    else:
        state.flagged.add(question_id)
    return True


__all__ = [
    "SECONDS_PER_QUESTION",
    "SessionState",
    "normalise_answers",
    "select_answer",
    "toggle_flag",
]
