from __future__ import annotations

import json
from datetime import datetime

import pytest

from cortex_exam.schemas import ExamData
from cortex_exam.services import navigator
from cortex_exam.services.history import Attempt
from cortex_exam.services.persistence import (
    SNAPSHOT_KEY,
    Absent,
    MemorySnapshotStore,
    PersistenceGateway,
    Restored,
    Stale,
    reconcile,
)
from cortex_exam.services.session_state import SessionState, select_answer, toggle_flag

from conftest import build_exam_payload


@pytest.fixture
def store():
    return MemorySnapshotStore()


@pytest.fixture
def gateway(store):
    return PersistenceGateway(store)


@pytest.fixture
def state(exam):
    state = SessionState.fresh(exam)
    select_answer(state, "q1", ["b"])
    select_answer(state, "q3", ["a", "c"])
    toggle_flag(state, "q5")
    navigator.reorder(state, 0, 4)
    navigator.jump(state, 2)
    state.time_left_seconds = 421
    return state


def _mutate_snapshot(store, **changes):
    data = json.loads(store.get(SNAPSHOT_KEY))
    data.update(changes)
    store.set(SNAPSHOT_KEY, json.dumps(data).encode("utf-8"))


def test_snapshot_uses_wire_format(gateway, store, state):
    attempt = Attempt(
        score=50.0,
        total_questions=10,
        correct_answers=5,
        timestamp=datetime(2024, 5, 1, 9, 30),
        exam_code="CLF-C02",
    )
    gateway.save_state(state, [attempt])

    data = json.loads(store.get(SNAPSHOT_KEY))
    assert data["appState"] == "taking_exam"
    assert data["examData"]["examCode"] == "CLF-C02"
    assert data["answers"] == {"q1": ["b"], "q3": ["a", "c"]}
    assert data["timeLeftSeconds"] == 421
    assert data["orderedQuestionIds"][:5] == ["q2", "q3", "q4", "q5", "q1"]
    assert data["flagged"] == ["q5"]
    assert data["currentIndex"] == 2
    assert data["history"][0]["examCode"] == "CLF-C02"


def test_save_then_load_restores_equivalent_state(gateway, state):
    gateway.save_state(state)

    result = reconcile(gateway.load())

    assert isinstance(result, Restored)
    restored = result.state
    assert restored.question_ids() == state.question_ids()
    assert restored.answers == state.answers
    assert restored.flagged == state.flagged
    assert restored.time_left_seconds == 421
    assert restored.current_question.id == state.current_question.id


def test_missing_slot_is_absent(gateway):
    assert gateway.load() is None
    assert isinstance(reconcile(None), Absent)


def test_unknown_question_id_discards_everything(gateway, store, state):
    gateway.save_state(state)
    ids = state.question_ids()
    ids[0] = "q999"
    _mutate_snapshot(store, orderedQuestionIds=ids)

    result = reconcile(gateway.load())

    assert isinstance(result, Stale)
    assert "q999" in result.reason


@pytest.mark.parametrize(
    "changes",
    [
        {"timeLeftSeconds": 0},
        {"orderedQuestionIds": ["q1", "q1", "q2", "q3", "q4", "q5", "q6", "q7", "q8", "q9"]},
        {"orderedQuestionIds": ["q1", "q2"]},
        {"answers": {"q1": ["z"]}},
        {"answers": {"ghost": ["a"]}},
        {"flagged": ["ghost"]},
        {"currentIndex": 10},
    ],
)
def test_inconsistent_snapshots_are_stale(gateway, store, state, changes):
    gateway.save_state(state)
    _mutate_snapshot(store, **changes)

    assert isinstance(reconcile(gateway.load()), Stale)


def test_snapshot_for_another_exam_is_stale(gateway, state):
    gateway.save_state(state)
    other = ExamData.model_validate(build_exam_payload(code="SAA-C03"))

    assert isinstance(reconcile(gateway.load(), other), Stale)


def test_empty_answer_lists_restore_as_unanswered(gateway, store, state):
    gateway.save_state(state)
    _mutate_snapshot(store, answers={"q1": ["b"], "q2": []})

    result = reconcile(gateway.load())

    assert isinstance(result, Restored)
    assert result.state.is_answered("q1")
    assert not result.state.is_answered("q2")


def test_unreadable_snapshot_is_cleared(gateway, store):
    store.set(SNAPSHOT_KEY, b"{not json")

    assert gateway.load() is None
    assert store.get(SNAPSHOT_KEY) is None


def test_clear_removes_the_slot(gateway, store, state):
    gateway.save_state(state)
    gateway.clear()

    assert store.get(SNAPSHOT_KEY) is None
