"""Cursor movement, reordering and filtered views over a session's questions."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterator, NamedTuple

from ..schemas import Question
from .session_state import SessionState

logger = logging.getLogger(__name__)


class FilteredQuestion(NamedTuple):
    question: Question
    index: int


@dataclass(frozen=True)
class QuestionFilter:
    """Criteria for the navigator; every criterion set must match (AND)."""

    domain: str | None = None
    answered: bool | None = None
    flagged: bool | None = None
    text: str | None = None

    def matches(self, question: Question, state: SessionState) -> bool:
        if self.domain and question.domain != self.domain:
            return False
        if self.answered is not None and state.is_answered(question.id) != self.answered:
            return False
        if self.flagged is not None and state.is_flagged(question.id) != self.flagged:
            return False
        needle = (self.text or "").strip().lower()
        if needle and needle not in _search_text(question):
            return False
        return True


def _search_text(question: Question) -> str:
    parts = [question.id, question.text, question.scenario or "", question.domain]
    parts.extend(option.text for option in question.options)
    return "\n".join(parts).lower()


class FilteredView:
    """Lazy view of ``(question, index)`` pairs; iterating again starts over."""

    def __init__(self, state: SessionState, criteria: QuestionFilter | None = None) -> None:
        self._state = state
        self._criteria = criteria or QuestionFilter()

    def __iter__(self) -> Iterator[FilteredQuestion]:
        for index, question in enumerate(self._state.ordered_questions):
            if self._criteria.matches(question, self._state):
                yield FilteredQuestion(question, index)

    def indices(self) -> list[int]:
        return [item.index for item in self]

    def __len__(self) -> int:
        return sum(1 for _ in self)


def filter_questions(state: SessionState, criteria: QuestionFilter | None = None) -> FilteredView:
    return FilteredView(state, criteria)


def domains(questions: list[Question]) -> list[str]:
    """Distinct domains in order of first appearance."""

    seen: dict[str, None] = {}
    for question in questions:
        seen.setdefault(question.domain, None)
    return list(seen)


def jump(state: SessionState, index: int) -> bool:
    if not 0 <= index < state.total_questions:
        logger.debug("Ignoring jump to out-of-range index %s", index)
        return False
    if index == state.current_index:
        return False
    state.current_index = index
    return True


def jump_to_number(state: SessionState, number: int) -> bool:
    """Jump using the 1-based question number shown to the user."""

    return jump(state, number - 1)


def step(state: SessionState, offset: int) -> bool:
    return jump(state, state.current_index + offset)


def reorder(state: SessionState, from_index: int, to_index: int) -> bool:
    """Move the question at ``from_index`` to ``to_index``.

    The cursor follows the current question by id, so the question on screen
    before the move is still the current one afterwards.
    """

    total = state.total_questions
    if not (0 <= from_index < total and 0 <= to_index < total):
        logger.debug("Ignoring reorder %s -> %s outside 0..%s", from_index, to_index, total - 1)
        return False
    if from_index == to_index:
        return False

    current_id = state.current_question.id
    moved = state.ordered_questions.pop(from_index)
    state.ordered_questions.insert(to_index, moved)
    state.current_index = state.index_of(current_id)
    return True


@dataclass(frozen=True)
class NavigatorEntry:
    number: int
    question_id: str
    domain: str
    answered: bool
    flagged: bool
    current: bool


def navigator_entries(state: SessionState) -> list[NavigatorEntry]:
    return [
        NavigatorEntry(
            number=index + 1,
            question_id=question.id,
            domain=question.domain,
            answered=state.is_answered(question.id),
            flagged=state.is_flagged(question.id),
            current=index == state.current_index,
        )
        for index, question in enumerate(state.ordered_questions)
    ]


__all__ = [
    "FilteredQuestion",
    "FilteredView",
    "NavigatorEntry",
    "QuestionFilter",
    "domains",
    "filter_questions",
    "jump",
    "jump_to_number",
    "navigator_entries",
    "reorder",
    "step",
]
