"""Post-exam review helpers built on archived attempts."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Mapping

from ..schemas import Question
from .scoring import is_answer_correct


@dataclass(frozen=True)
class Flashcard:
    question: str
    answer: str


@dataclass(frozen=True)
class ReviewItem:
    question: Question
    selected: tuple[str, ...]
    correct: bool


def build_flashcards(questions: Iterable[Question]) -> list[Flashcard]:
    """One card per question: scenario and prompt on the front, correct options on the back."""

    cards: list[Flashcard] = []
    for question in questions:
        front = f"{question.scenario}\n\n{question.text}" if question.scenario else question.text
        lines = [
            f"• {text}"
            for text in (question.option_text(option_id) for option_id in question.correct_answers)
            if text
        ]
        cards.append(Flashcard(question=front, answer="\n".join(lines)))
    return cards


def review_items(
    questions: Iterable[Question], answers: Mapping[str, Iterable[str]]
) -> list[ReviewItem]:
    items: list[ReviewItem] = []
    for question in questions:
        selected = tuple(sorted(answers.get(question.id) or ()))
        items.append(
            ReviewItem(
                question=question,
                selected=selected,
                correct=is_answer_correct(question, selected),
            )
        )
    return items


__all__ = ["Flashcard", "ReviewItem", "build_flashcards", "review_items"]
