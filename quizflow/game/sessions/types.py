from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from uuid import UUID

from quizflow.game.questions.types import AnswerValue, Question


class SessionStatus(str, Enum):
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    ABANDONED = "ABANDONED"
    INTERRUPTED = "INTERRUPTED"


TERMINAL_STATUSES = frozenset(
    {SessionStatus.COMPLETED, SessionStatus.ABANDONED, SessionStatus.INTERRUPTED}
)


@dataclass(frozen=True, slots=True)
class AnswerRecord:
    question_id: str
    raw_answer: str
    value: AnswerValue
    is_correct: bool
    points_awarded: int
    time_spent_ms: int
    answered_at: datetime
    graded: bool = False


@dataclass(slots=True)
class EngagementMetadata:
    time_spent_ms: int = 0
    question_times_ms: dict[str, int] = field(default_factory=dict)
    engagement_score: int = 0
    difficulty_adjustments: list[str] = field(default_factory=list)
    questions_skipped: int = 0


@dataclass(slots=True)
class QuizSessionState:
    id: UUID
    participant_id: str
    status: SessionStatus
    started_at: datetime
    last_activity_at: datetime
    version: int = 1
    current_question_index: int = 0
    score: int = 0
    answers: dict[str, AnswerRecord] = field(default_factory=dict)
    engagement: EngagementMetadata = field(default_factory=EngagementMetadata)
    current_streak: int = 0
    best_streak: int = 0
    completed_at: datetime | None = None


@dataclass(frozen=True, slots=True)
class Lease:
    session_id: UUID
    lease_id: UUID
    holder: str
    acquired_at: datetime
    expires_at: datetime

    def is_valid(self, now_utc: datetime) -> bool:
        return now_utc < self.expires_at


@dataclass(slots=True)
class ResolvedSession:
    session: QuizSessionState
    created: bool
    restarted: bool = False
    interrupted_session_id: UUID | None = None


@dataclass(slots=True)
class AnswerOutcome:
    question_id: str
    accepted_value: AnswerValue | None
    is_correct: bool
    points_awarded: int
    skipped: bool
    completed: bool


@dataclass(slots=True)
class QuizReply:
    session_id: UUID | None
    text: str
    status: SessionStatus | None
    question: Question | None = None
    question_number: int | None = None
    total_questions: int | None = None
    score: int | None = None
    accepted: bool = True
    error_code: str | None = None


@dataclass(frozen=True, slots=True)
class DropOffPoint:
    question_index: int
    drop_off_rate: float


@dataclass(slots=True)
class ParticipantStatistics:
    participant_id: str
    total_sessions: int
    completed_sessions: int
    abandoned_sessions: int
    interrupted_sessions: int
    active_sessions: int
    average_score: float
    average_engagement_score: float
    average_completion_seconds: float
    completion_rate: float
    drop_off_points: list[DropOffPoint] = field(default_factory=list)


@dataclass(slots=True)
class AdminResetResult:
    participant_id: str
    reset_session_id: UUID | None
    cleared_answers: int
    released_leases: int
