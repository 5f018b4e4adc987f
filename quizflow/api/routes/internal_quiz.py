from __future__ import annotations

from datetime import datetime, timezone
from zoneinfo import ZoneInfo

import structlog
from fastapi import APIRouter, HTTPException

from quizflow.core.config import get_settings
from quizflow.db.store import load_active_rules, record_rule_usage
from quizflow.game.rules.conflicts import detect_conflicts, suggest_resolutions
from quizflow.game.rules.matching import match_rule
from quizflow.game.rules.types import RuleCandidate
from quizflow.game.sessions.errors import (
    ConcurrentModificationError,
    InvalidParticipantError,
    LockUnavailableError,
    SessionNotFoundError,
)
from quizflow.game.sessions.service_facade import get_quiz_session_service
from quizflow.game.sessions.types import QuizReply

from .internal_quiz_models import (
    QuizAnswerRequest,
    QuizDropOffPointResponse,
    QuizParticipantRequest,
    QuizParticipantStatsResponse,
    QuizReplyResponse,
    QuizResetResponse,
    RuleCandidateResponse,
    RuleConflictResponse,
    RuleConflictsReportResponse,
    RuleMatchRequest,
    RuleMatchResponse,
    RuleSuggestionResponse,
)

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/internal/quiz", tags=["internal-quiz"])


def _reply_response(reply: QuizReply) -> QuizReplyResponse:
    return QuizReplyResponse(
        session_id=reply.session_id,
        text=reply.text,
        status=reply.status.value if reply.status is not None else None,
        accepted=reply.accepted,
        question_id=reply.question.id if reply.question is not None else None,
        question_number=reply.question_number,
        total_questions=reply.total_questions,
        score=reply.score,
        error_code=reply.error_code,
    )


def _candidate_response(candidate: RuleCandidate) -> RuleCandidateResponse:
    return RuleCandidateResponse(
        rule_id=candidate.rule.id,
        priority=candidate.rule.priority,
        confidence=round(candidate.confidence, 4),
        matched_pattern=candidate.matched_pattern,
    )


def _invalid_participant() -> HTTPException:
    return HTTPException(status_code=422, detail={"code": "E_INVALID_PARTICIPANT"})


@router.post("/answer", response_model=QuizReplyResponse)
async def submit_quiz_answer(payload: QuizAnswerRequest) -> QuizReplyResponse:
    try:
        reply = await get_quiz_session_service().handle_answer(payload.participant_id, payload.message)
    except InvalidParticipantError as exc:
        raise _invalid_participant() from exc
    except SessionNotFoundError as exc:
        raise HTTPException(status_code=404, detail={"code": "E_SESSION_NOT_FOUND"}) from exc
    return _reply_response(reply)


@router.post("/sessions/end", response_model=QuizReplyResponse)
async def end_quiz_session(payload: QuizParticipantRequest) -> QuizReplyResponse:
    try:
        reply = await get_quiz_session_service().end_session(payload.participant_id)
    except InvalidParticipantError as exc:
        raise _invalid_participant() from exc
    return _reply_response(reply)


@router.post("/sessions/reset", response_model=QuizResetResponse)
async def reset_quiz_sessions(payload: QuizParticipantRequest) -> QuizResetResponse:
    try:
        result = await get_quiz_session_service().admin_reset_session(payload.participant_id)
    except InvalidParticipantError as exc:
        raise _invalid_participant() from exc
    except (LockUnavailableError, ConcurrentModificationError) as exc:
        raise HTTPException(status_code=409, detail={"code": "E_SESSION_BUSY"}) from exc
    return QuizResetResponse(
        participant_id=result.participant_id,
        reset_session_id=result.reset_session_id,
        cleared_answers=result.cleared_answers,
        released_leases=result.released_leases,
    )


@router.get("/participants/{participant_id}/stats", response_model=QuizParticipantStatsResponse)
async def get_participant_stats(participant_id: str) -> QuizParticipantStatsResponse:
    try:
        stats = await get_quiz_session_service().participant_statistics(participant_id)
    except InvalidParticipantError as exc:
        raise _invalid_participant() from exc
    return QuizParticipantStatsResponse(
        participant_id=stats.participant_id,
        total_sessions=stats.total_sessions,
        completed_sessions=stats.completed_sessions,
        abandoned_sessions=stats.abandoned_sessions,
        interrupted_sessions=stats.interrupted_sessions,
        active_sessions=stats.active_sessions,
        average_score=stats.average_score,
        average_engagement_score=stats.average_engagement_score,
        average_completion_seconds=stats.average_completion_seconds,
        completion_rate=stats.completion_rate,
        drop_off_points=[
            QuizDropOffPointResponse(question_index=point.question_index, drop_off_rate=point.drop_off_rate)
            for point in stats.drop_off_points
        ],
    )


@router.post("/rules/match", response_model=RuleMatchResponse)
async def match_reply_rule(payload: RuleMatchRequest) -> RuleMatchResponse:
    rules = await load_active_rules()
    now_utc = datetime.now(timezone.utc)
    now_local = now_utc.astimezone(ZoneInfo(get_settings().quiz_rules_timezone))
    match = match_rule(payload.message, rules, now_local=now_local)
    if match.selected is not None:
        await record_rule_usage(match.selected.rule.id, used_at=now_utc)
    return RuleMatchResponse(
        selected=_candidate_response(match.selected) if match.selected is not None else None,
        response=match.response,
        conflicting=[_candidate_response(candidate) for candidate in match.conflicting],
    )


@router.get("/rules/conflicts", response_model=RuleConflictsReportResponse)
async def get_rule_conflicts() -> RuleConflictsReportResponse:
    rules = await load_active_rules()
    conflicts = detect_conflicts(rules)
    suggestions = suggest_resolutions(conflicts)
    if conflicts:
        logger.warning("auto_reply_rule_conflicts_detected", conflicts_total=len(conflicts))
    return RuleConflictsReportResponse(
        generated_at=datetime.now(timezone.utc),
        rules_checked=len(rules),
        conflicts=[
            RuleConflictResponse(
                rule_ids=list(conflict.rule_ids),
                conflict_type=conflict.conflict_type.value,
                severity=conflict.severity.value,
                description=conflict.description,
                shared_patterns=list(conflict.shared_patterns),
            )
            for conflict in conflicts
        ],
        suggestions=[
            RuleSuggestionResponse(
                rule_ids=list(suggestion.rule_ids),
                conflict_type=suggestion.conflict_type.value,
                action=suggestion.action,
                description=suggestion.description,
            )
            for suggestion in suggestions
        ],
    )
