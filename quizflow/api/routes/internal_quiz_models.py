from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field


class QuizAnswerRequest(BaseModel):
    participant_id: str = Field(min_length=1, max_length=64)
    message: str = Field(max_length=4000)


class QuizParticipantRequest(BaseModel):
    participant_id: str = Field(min_length=1, max_length=64)


class QuizReplyResponse(BaseModel):
    session_id: UUID | None
    text: str
    status: str | None
    accepted: bool
    question_id: str | None = None
    question_number: int | None = None
    total_questions: int | None = None
    score: int | None = None
    error_code: str | None = None


class QuizResetResponse(BaseModel):
    participant_id: str
    reset_session_id: UUID | None
    cleared_answers: int = Field(ge=0)
    released_leases: int = Field(ge=0)


class QuizDropOffPointResponse(BaseModel):
    question_index: int = Field(ge=0)
    drop_off_rate: float = Field(gt=0.0, le=100.0)


class QuizParticipantStatsResponse(BaseModel):
    participant_id: str
    total_sessions: int = Field(ge=0)
    completed_sessions: int = Field(ge=0)
    abandoned_sessions: int = Field(ge=0)
    interrupted_sessions: int = Field(ge=0)
    active_sessions: int = Field(ge=0)
    average_score: float = Field(ge=0.0)
    average_engagement_score: float = Field(ge=0.0, le=100.0)
    average_completion_seconds: float = Field(ge=0.0)
    completion_rate: float = Field(ge=0.0, le=1.0)
    drop_off_points: list[QuizDropOffPointResponse]


class RuleMatchRequest(BaseModel):
    message: str = Field(min_length=1, max_length=4000)


class RuleCandidateResponse(BaseModel):
    rule_id: str
    priority: int
    confidence: float = Field(ge=0.0, le=1.0)
    matched_pattern: str


class RuleMatchResponse(BaseModel):
    selected: RuleCandidateResponse | None
    response: str | None
    conflicting: list[RuleCandidateResponse]


class RuleConflictResponse(BaseModel):
    rule_ids: list[str]
    conflict_type: str
    severity: str
    description: str
    shared_patterns: list[str]


class RuleSuggestionResponse(BaseModel):
    rule_ids: list[str]
    conflict_type: str
    action: str
    description: str


class RuleConflictsReportResponse(BaseModel):
    generated_at: datetime
    rules_checked: int = Field(ge=0)
    conflicts: list[RuleConflictResponse]
    suggestions: list[RuleSuggestionResponse]
