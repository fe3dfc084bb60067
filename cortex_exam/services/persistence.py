"""Crash-recovery snapshots of the in-progress session.

Only one in-progress session exists system-wide, so the snapshot lives in a
single well-known slot of a key-value store. The snapshot references
questions by id; restoring it maps the ids back onto the question set and
discards the whole snapshot if anything fails to line up.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Literal, Protocol, Sequence, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .. import db
from ..models import SnapshotSlot
from ..schemas import ExamData
from .history import Attempt
from .session_state import SessionState, normalise_answers

logger = logging.getLogger(__name__)

SNAPSHOT_KEY = "cortexExamProgress"
TAKING_EXAM = "taking_exam"


class KeyValueStore(Protocol):
    def get(self, key: str) -> bytes | None: ...

    def set(self, key: str, value: bytes) -> None: ...

    def delete(self, key: str) -> None: ...


class MemorySnapshotStore:
    def __init__(self) -> None:
        self._values: dict[str, bytes] = {}

    def get(self, key: str) -> bytes | None:
        return self._values.get(key)

    def set(self, key: str, value: bytes) -> None:
        self._values[key] = bytes(value)

    def delete(self, key: str) -> None:
        self._values.pop(key, None)


class DatabaseSnapshotStore:
    """Snapshot slots stored in the ``snapshot_slots`` table."""

    def get(self, key: str) -> bytes | None:
        slot = db.session.get(SnapshotSlot, key)
        return bytes(slot.payload) if slot else None

    def set(self, key: str, value: bytes) -> None:
        slot = db.session.get(SnapshotSlot, key)
        if not slot:
            slot = SnapshotSlot(key=key, payload=value)
            db.session.add(slot)
        else:
            slot.payload = value
        db.session.commit()

    def delete(self, key: str) -> None:
        slot = db.session.get(SnapshotSlot, key)
        if slot:
            db.session.delete(slot)
            db.session.commit()


class SessionSnapshot(BaseModel):
    """Serialised layout of an in-progress session."""

    model_config = ConfigDict(populate_by_name=True)

    app_state: Literal["taking_exam"] = Field(TAKING_EXAM, alias="appState")
    exam_data: ExamData = Field(..., alias="examData")
    answers: dict[str, list[str]] = Field(default_factory=dict)
    time_left_seconds: int = Field(..., alias="timeLeftSeconds")
    ordered_question_ids: list[str] = Field(..., alias="orderedQuestionIds")
    flagged: list[str] = Field(default_factory=list)
    current_index: int = Field(0, alias="currentIndex")
    history: list[dict[str, Any]] = Field(default_factory=list)

    @classmethod
    def from_state(
        cls, state: SessionState, history: Sequence[Attempt] = ()
    ) -> "SessionSnapshot":
        return cls(
            exam_data=state.exam,
            answers={key: list(value) for key, value in state.frozen_answers().items()},
            time_left_seconds=state.time_left_seconds,
            ordered_question_ids=state.question_ids(),
            flagged=sorted(state.flagged),
            current_index=state.current_index,
            history=[attempt.summary() for attempt in history],
        )

    def answered_count(self) -> int:
        return sum(1 for selection in self.answers.values() if selection)


@dataclass(frozen=True)
class Restored:
    state: SessionState


@dataclass(frozen=True)
class Stale:
    reason: str


@dataclass(frozen=True)
class Absent:
    pass


RestoreResult = Union[Restored, Stale, Absent]


class PersistenceGateway:
    def __init__(self, store: KeyValueStore, *, key: str = SNAPSHOT_KEY) -> None:
        self.store = store
        self.key = key

    def save(self, snapshot: SessionSnapshot) -> None:
        payload = snapshot.model_dump_json(by_alias=True).encode("utf-8")
        self.store.set(self.key, payload)

    def save_state(self, state: SessionState, history: Sequence[Attempt] = ()) -> None:
        self.save(SessionSnapshot.from_state(state, history))

    def load(self) -> SessionSnapshot | None:
        raw = self.store.get(self.key)
        if raw is None:
            return None
        try:
            return SessionSnapshot.model_validate_json(raw)
        except (ValidationError, ValueError) as exc:
            logger.warning("Discarding unreadable session snapshot: %s", exc)
            self.clear()
            return None

    def clear(self) -> None:
        self.store.delete(self.key)


def reconcile(snapshot: SessionSnapshot | None, exam: ExamData | None = None) -> RestoreResult:
    """Rebuild a session from ``snapshot`` against the active question set.

    ``exam`` defaults to the question set embedded in the snapshot. The result
    is ``Restored`` only when every part of the snapshot resolves; there is no
    partial restore.
    """

    if snapshot is None:
        return Absent()

    exam = exam or snapshot.exam_data
    if exam.exam_code != snapshot.exam_data.exam_code:
        return Stale(f"snapshot belongs to exam {snapshot.exam_data.exam_code!r}")
    if snapshot.time_left_seconds <= 0:
        return Stale("no time left in snapshot")

    question_map = exam.question_map()
    ids = snapshot.ordered_question_ids
    if len(ids) != len(question_map) or len(set(ids)) != len(ids):
        return Stale("question order does not match the question set")
    missing = [question_id for question_id in ids if question_id not in question_map]
    if missing:
        return Stale(f"unknown questions in snapshot: {missing}")

    answers = normalise_answers(snapshot.answers)
    for question_id, selection in answers.items():
        question = question_map.get(question_id)
        if question is None or not selection <= question.option_ids:
            return Stale(f"answer for {question_id!r} does not match the question set")
    if not set(snapshot.flagged) <= set(question_map):
        return Stale("flagged questions do not match the question set")
    if not 0 <= snapshot.current_index < len(ids):
        return Stale("current question index out of range")

    state = SessionState(
        exam=exam,
        ordered_questions=[question_map[question_id] for question_id in ids],
        answers=answers,
        flagged=set(snapshot.flagged),
        current_index=snapshot.current_index,
        time_left_seconds=snapshot.time_left_seconds,
    )
    return Restored(state)


__all__ = [
    "Absent",
    "DatabaseSnapshotStore",
    "KeyValueStore",
    "MemorySnapshotStore",
    "PersistenceGateway",
    "RestoreResult",
    "Restored",
    "SNAPSHOT_KEY",
    "SessionSnapshot",
    "Stale",
    "reconcile",
]
