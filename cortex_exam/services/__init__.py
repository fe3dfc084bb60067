"""Service layer of the exam session engine."""

from .countdown import CountdownController, CountdownState, format_time, urgency
from .exam_session import (
    ExamDataError,
    ExamEngineError,
    ExamSessionOrchestrator,
    NoActiveSessionError,
    RestoreOffer,
    SessionStatus,
)
from .generation import ExamGenerationClient, ExamGenerationError, StudyMaterial
from .history import (
    Attempt,
    DatabaseHistoryStore,
    FinishReason,
    MemoryHistoryStore,
    summarise_history,
)
from .navigator import QuestionFilter
from .persistence import (
    Absent,
    DatabaseSnapshotStore,
    MemorySnapshotStore,
    PersistenceGateway,
    Restored,
    Stale,
)
from .scoring import ScoreResult, score_answers
from .session_state import SessionState

__all__ = [
    "Absent",
    "Attempt",
    "CountdownController",
    "CountdownState",
    "DatabaseHistoryStore",
    "DatabaseSnapshotStore",
    "ExamDataError",
    "ExamEngineError",
    "ExamGenerationClient",
    "ExamGenerationError",
    "ExamSessionOrchestrator",
    "FinishReason",
    "MemoryHistoryStore",
    "MemorySnapshotStore",
    "NoActiveSessionError",
    "PersistenceGateway",
    "QuestionFilter",
    "RestoreOffer",
    "Restored",
    "ScoreResult",
    "SessionState",
    "SessionStatus",
    "Stale",
    "StudyMaterial",
    "format_time",
    "score_answers",
    "summarise_history",
    "urgency",
]
