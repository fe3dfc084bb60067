"""Orchestrates a single timed exam session from start to archived attempt.

Every intent, user or timer originated, runs under one lock so that a tick
never interleaves with an answer mid-mutation. Each state-affecting intent is
followed by a synchronous snapshot save; finishing scores the session, hands
the attempt to the history store and clears the snapshot.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Iterable, Mapping

from pydantic import ValidationError

from ..schemas import ExamData, Question
from . import navigator
from .countdown import (
    WARNING_THRESHOLDS,
    Clock,
    CountdownController,
    CountdownState,
    ThreadTicker,
    Ticker,
    log_warning_signal,
)
from .history import PASS_MARK, Attempt, FinishReason, HistoryStore
from .navigator import FilteredQuestion, NavigatorEntry, QuestionFilter
from .persistence import PersistenceGateway, Restored, RestoreResult, Stale, reconcile
from .scoring import score_answers
from .session_state import SECONDS_PER_QUESTION, SessionState, select_answer, toggle_flag

logger = logging.getLogger(__name__)


class ExamEngineError(RuntimeError):
    """Base class for exam engine problems."""


class ExamDataError(ExamEngineError):
    """Raised when a question set cannot be used to start a session."""


class NoActiveSessionError(ExamEngineError):
    """Raised when a query needs a session and none has been started."""


class SessionStatus(str, Enum):
    IDLE = "idle"
    ACTIVE = "active"
    ENDED = "ended"


@dataclass(frozen=True)
class RestoreOffer:
    exam_code: str
    exam_name: str
    time_left_seconds: int
    answered_count: int
    total_questions: int


@dataclass(frozen=True)
class SessionView:
    """Consistent read of a live session, taken under the orchestrator lock."""

    exam_code: str
    exam_name: str
    current_index: int
    total_questions: int
    answered_count: int
    time_left_seconds: int
    reading_mode: bool
    warnings: tuple[int, ...]
    domains: tuple[str, ...]
    question: Question
    selected: tuple[str, ...]
    flagged: bool

    @property
    def progress_fraction(self) -> float:
        return (self.current_index + 1) / self.total_questions


TickerFactory = Callable[[Callable[[], None]], Ticker]


def coerce_exam_data(exam: ExamData | Mapping[str, Any]) -> ExamData:
    if isinstance(exam, ExamData):
        return exam
    try:
        return ExamData.model_validate(exam)
    except ValidationError as exc:
        raise ExamDataError(f"Invalid question set: {exc.error_count()} problem(s) found.") from exc


class ExamSessionOrchestrator:
    def __init__(
        self,
        gateway: PersistenceGateway,
        history: HistoryStore,
        *,
        clock: Clock | None = None,
        on_warning: Callable[[int], None] | None = None,
        now: Callable[[], datetime] = datetime.utcnow,
        seconds_per_question: int = SECONDS_PER_QUESTION,
        warning_thresholds: Iterable[int] = WARNING_THRESHOLDS,
        ticker_factory: TickerFactory | None = ThreadTicker,
        pass_mark: float = PASS_MARK,
    ) -> None:
        self.gateway = gateway
        self.history = history
        self._clock = clock
        self._on_warning = on_warning
        self._now = now
        self.seconds_per_question = seconds_per_question
        self.warning_thresholds = tuple(warning_thresholds)
        # Drives the countdown between intents; None leaves ticking to callers.
        self._ticker_factory = ticker_factory
        self.pass_mark = pass_mark

        self._lock = threading.RLock()
        self._generation = 0
        self._history_summaries: list[Attempt] = []
        self._ticker: Ticker | None = None
        self.state: SessionState | None = None
        self.countdown: CountdownController | None = None
        self.status = SessionStatus.IDLE
        self.end_reason: FinishReason | None = None
        self.last_attempt: Attempt | None = None
        self.warnings: list[int] = []

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------
    def start_session(self, exam: ExamData | Mapping[str, Any]) -> SessionState:
        """Start a fresh session, discarding any unfinished one."""

        exam_data = coerce_exam_data(exam)
        with self._lock:
            self.gateway.clear()
            state = SessionState.fresh(exam_data, seconds_per_question=self.seconds_per_question)
            self._activate(state)
            self._persist()
            logger.info(
                "Started exam %s with %s questions and %ss",
                exam_data.exam_code,
                state.total_questions,
                state.time_left_seconds,
            )
            return state

    def restore_offer(self) -> RestoreOffer | None:
        """Describe a saved in-progress session the user may choose to resume."""

        with self._lock:
            if self.status is SessionStatus.ACTIVE:
                return None
            snapshot = self.gateway.load()
            if snapshot is None or snapshot.time_left_seconds <= 0:
                return None
            return RestoreOffer(
                exam_code=snapshot.exam_data.exam_code,
                exam_name=snapshot.exam_data.exam_name,
                time_left_seconds=snapshot.time_left_seconds,
                answered_count=snapshot.answered_count(),
                total_questions=len(snapshot.ordered_question_ids),
            )

    def resume(self, exam: ExamData | Mapping[str, Any] | None = None) -> RestoreResult:
        """Resume the saved session after the user confirmed the offer.

        A session that is already running is returned untouched.
        """

        exam_data = coerce_exam_data(exam) if exam is not None else None
        with self._lock:
            if self.status is SessionStatus.ACTIVE:
                return Restored(self.state)
            result = reconcile(self.gateway.load(), exam_data)
            if isinstance(result, Restored):
                self._activate(result.state)
                self._persist()
                logger.info(
                    "Resumed exam %s with %ss left",
                    result.state.exam_code,
                    result.state.time_left_seconds,
                )
            elif isinstance(result, Stale):
                logger.info("Discarding stale session snapshot: %s", result.reason)
                self.gateway.clear()
            return result

    def decline_restore(self) -> None:
        with self._lock:
            if self.status is not SessionStatus.ACTIVE:
                self.gateway.clear()

    def abandon(self) -> bool:
        with self._lock:
            self.gateway.clear()
            if self.status is not SessionStatus.ACTIVE:
                return False
            logger.info("Abandoned exam %s", self.state.exam_code)
            self._stop_ticker()
            self._generation += 1
            self.state = None
            self.countdown = None
            self.status = SessionStatus.IDLE
            return True

    def finish(self, reason: FinishReason = FinishReason.MANUAL) -> Attempt | None:
        """Score the session and archive it; returns ``None`` if nothing is live."""

        with self._lock:
            if self.status is not SessionStatus.ACTIVE:
                return None
            if reason is FinishReason.MANUAL:
                self._sync_clock()
                if self.status is not SessionStatus.ACTIVE:
                    return None

            self._mirror_time()
            state = self.state
            answers = state.frozen_answers()
            result = score_answers(state.exam.questions, answers)
            attempt = Attempt(
                score=result.score,
                total_questions=result.total_questions,
                correct_answers=result.correct_answers,
                timestamp=self._now(),
                exam_code=state.exam_code,
                exam_data=state.exam,
                answers=answers,
                reason=reason,
            )
            self._stop_ticker()
            self.history.append(attempt)
            self.gateway.clear()
            self._history_summaries.append(attempt)
            self.status = SessionStatus.ENDED
            self.end_reason = reason
            self.last_attempt = attempt
            logger.info(
                "Finished exam %s (%s): %s/%s correct",
                attempt.exam_code,
                reason.value,
                attempt.correct_answers,
                attempt.total_questions,
            )
            return attempt

    # ------------------------------------------------------------------
    # Intents
    # ------------------------------------------------------------------
    def answer(self, question_id: str, option_ids: Iterable[str]) -> bool:
        selection = list(option_ids)
        return self._apply("answer", lambda state: select_answer(state, question_id, selection))

    def toggle_flag(self, question_id: str) -> bool:
        return self._apply("flag", lambda state: toggle_flag(state, question_id))

    def jump(self, index: int) -> bool:
        return self._apply("jump", lambda state: navigator.jump(state, index))

    def jump_to_number(self, number: int) -> bool:
        return self._apply("jump", lambda state: navigator.jump_to_number(state, number))

    def next_question(self) -> bool:
        return self._apply("next", lambda state: navigator.step(state, 1))

    def previous_question(self) -> bool:
        return self._apply("previous", lambda state: navigator.step(state, -1))

    def reorder(self, from_index: int, to_index: int) -> bool:
        return self._apply("reorder", lambda state: navigator.reorder(state, from_index, to_index))

    def set_reading_mode(self, enabled: bool) -> bool:
        """Suspend (reading mode on) or resume the countdown."""

        with self._lock:
            if not self._accepting():
                return False
            self._sync_clock()
            if not self._accepting():
                return False
            if enabled:
                return self.countdown.suspend()
            return self.countdown.resume()

    def tick(self) -> bool:
        with self._lock:
            if self.countdown is None:
                return False
            applied = self.countdown.tick()
            if applied and self.status is SessionStatus.ACTIVE:
                self._persist()
            return applied

    def sync_clock(self) -> int:
        with self._lock:
            return self._sync_clock()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    @property
    def is_active(self) -> bool:
        return self.status is SessionStatus.ACTIVE

    @property
    def reading_mode(self) -> bool:
        return self.countdown is not None and self.countdown.state is CountdownState.SUSPENDED

    def current_state(self) -> SessionState:
        if self.state is None:
            raise NoActiveSessionError("No exam session has been started.")
        return self.state

    def session_view(self) -> SessionView | None:
        """Read the live session in one step; ``None`` when nothing is active."""

        with self._lock:
            if self.status is not SessionStatus.ACTIVE:
                return None
            state = self.state
            question = state.current_question
            return SessionView(
                exam_code=state.exam_code,
                exam_name=state.exam.exam_name,
                current_index=state.current_index,
                total_questions=state.total_questions,
                answered_count=state.answered_count(),
                time_left_seconds=state.time_left_seconds,
                reading_mode=self.reading_mode,
                warnings=tuple(self.warnings),
                domains=tuple(navigator.domains(state.ordered_questions)),
                question=question,
                selected=tuple(sorted(state.answers.get(question.id, ()))),
                flagged=state.is_flagged(question.id),
            )

    def current_question(self) -> Question:
        with self._lock:
            return self.current_state().current_question

    def progress_fraction(self) -> float:
        with self._lock:
            state = self.current_state()
            return (state.current_index + 1) / state.total_questions

    def time_left(self) -> int:
        with self._lock:
            return self.current_state().time_left_seconds

    def is_flagged(self, question_id: str) -> bool:
        with self._lock:
            return self.current_state().is_flagged(question_id)

    def filtered_questions(self, criteria: QuestionFilter | None = None) -> list[FilteredQuestion]:
        with self._lock:
            return list(navigator.filter_questions(self.current_state(), criteria))

    def navigator(self, criteria: QuestionFilter | None = None) -> list[NavigatorEntry]:
        """Navigator entries, optionally narrowed to the questions matching ``criteria``."""

        with self._lock:
            state = self.current_state()
            entries = navigator.navigator_entries(state)
            if criteria is None:
                return entries
            matches = set(navigator.filter_questions(state, criteria).indices())
            return [entry for entry in entries if entry.number - 1 in matches]

    def domains(self) -> list[str]:
        with self._lock:
            return navigator.domains(self.current_state().ordered_questions)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _activate(self, state: SessionState) -> None:
        self._stop_ticker()
        self._generation += 1
        generation = self._generation
        self.state = state
        self.status = SessionStatus.ACTIVE
        self.end_reason = None
        self.last_attempt = None
        self.warnings = []
        self._history_summaries = list(self.history.list())
        self.countdown = CountdownController(
            state.time_left_seconds,
            on_expire=lambda: self.finish(FinishReason.TIMEOUT),
            on_warning=self._warn,
            is_live=lambda: self._is_current(generation),
            clock=self._clock,
            thresholds=self.warning_thresholds,
        )
        self._mirror_time()
        if self._ticker_factory is not None:
            self._ticker = self._ticker_factory(lambda: self._on_timer(generation))
            self._ticker.start()

    def _is_current(self, generation: int) -> bool:
        return self.status is SessionStatus.ACTIVE and self._generation == generation

    def _on_timer(self, generation: int) -> None:
        # A ticker outliving its session finds a newer generation and does nothing.
        with self._lock:
            if self._is_current(generation):
                self._sync_clock()

    def _stop_ticker(self) -> None:
        if self._ticker is not None:
            self._ticker.stop()
            self._ticker = None

    def _mirror_time(self) -> None:
        # The countdown owns the remaining time; the state copies it for snapshots.
        if self.state is not None and self.countdown is not None:
            self.state.time_left_seconds = self.countdown.time_left

    def _accepting(self) -> bool:
        return (
            self.status is SessionStatus.ACTIVE
            and self.countdown is not None
            and not self.countdown.expired
        )

    def _sync_clock(self) -> int:
        if self.countdown is None:
            return 0
        applied = self.countdown.sync()
        if applied and self.status is SessionStatus.ACTIVE:
            self._persist()
        return applied

    def _apply(self, name: str, mutate: Callable[[SessionState], bool]) -> bool:
        with self._lock:
            if not self._accepting():
                logger.debug("Rejecting %s intent: no live session", name)
                return False
            self._sync_clock()
            if not self._accepting():
                logger.debug("Rejecting %s intent: session ended while catching up", name)
                return False
            applied = mutate(self.state)
            if applied:
                self._persist()
            return applied

    def _warn(self, seconds_left: int) -> None:
        self.warnings.append(seconds_left)
        (self._on_warning or log_warning_signal)(seconds_left)

    def _persist(self) -> None:
        self._mirror_time()
        self.gateway.save_state(self.state, self._history_summaries)


__all__ = [
    "ExamDataError",
    "ExamEngineError",
    "ExamSessionOrchestrator",
    "NoActiveSessionError",
    "RestoreOffer",
    "SessionStatus",
    "SessionView",
    "coerce_exam_data",
]
