from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from quizflow.db.models.quiz_answers import QuizAnswer
from quizflow.db.models.quiz_questions import QuizQuestion
from quizflow.db.models.quiz_sessions import QuizSession
from quizflow.db.models.response_rules import ResponseRuleRow
from quizflow.game.questions.types import (
    ConditionalLogic,
    PersonalQuestion,
    PreferenceQuestion,
    Question,
    QuestionType,
    TrueFalseQuestion,
    YesNoQuestion,
)
from quizflow.game.questions.validation import is_web_participant
from quizflow.game.rules.types import ActiveTimeWindow, ResponseRule
from quizflow.game.sessions.types import (
    AnswerRecord,
    EngagementMetadata,
    QuizSessionState,
    SessionStatus,
)


def participant_columns(participant_id: str) -> dict[str, str | None]:
    if is_web_participant(participant_id):
        return {"phone_number": None, "web_user_id": participant_id}
    return {"phone_number": participant_id, "web_user_id": None}


def engagement_to_json(engagement: EngagementMetadata) -> dict[str, Any]:
    return {
        "time_spent_ms": engagement.time_spent_ms,
        "question_times_ms": dict(engagement.question_times_ms),
        "engagement_score": engagement.engagement_score,
        "difficulty_adjustments": list(engagement.difficulty_adjustments),
        "questions_skipped": engagement.questions_skipped,
    }


def engagement_from_json(payload: dict[str, Any] | None) -> EngagementMetadata:
    payload = payload or {}
    return EngagementMetadata(
        time_spent_ms=int(payload.get("time_spent_ms", 0)),
        question_times_ms={
            str(question_id): int(elapsed)
            for question_id, elapsed in (payload.get("question_times_ms") or {}).items()
        },
        engagement_score=int(payload.get("engagement_score", 0)),
        difficulty_adjustments=[str(item) for item in payload.get("difficulty_adjustments") or []],
        questions_skipped=int(payload.get("questions_skipped", 0)),
    )


def session_values(state: QuizSessionState) -> dict[str, Any]:
    """Column values for a session row, answers excluded."""
    return {
        "id": state.id,
        **participant_columns(state.participant_id),
        "status": state.status.value,
        "current_question_index": state.current_question_index,
        "score": state.score,
        "current_streak": state.current_streak,
        "best_streak": state.best_streak,
        "engagement": engagement_to_json(state.engagement),
        "version": state.version,
        "started_at": state.started_at,
        "last_activity_at": state.last_activity_at,
        "completed_at": state.completed_at,
    }


def answer_from_row(row: QuizAnswer) -> AnswerRecord:
    return AnswerRecord(
        question_id=row.question_id,
        raw_answer=row.raw_answer,
        value=row.answer_value,
        is_correct=row.is_correct,
        points_awarded=row.points_awarded,
        time_spent_ms=row.time_spent_ms,
        answered_at=row.answered_at,
        graded=row.is_graded,
    )


def session_from_row(row: QuizSession, answers: Iterable[QuizAnswer]) -> QuizSessionState:
    participant_id = row.web_user_id if row.web_user_id is not None else row.phone_number
    return QuizSessionState(
        id=row.id,
        participant_id=participant_id or "",
        status=SessionStatus(row.status),
        started_at=row.started_at,
        last_activity_at=row.last_activity_at,
        version=row.version,
        current_question_index=row.current_question_index,
        score=row.score,
        answers={answer.question_id: answer_from_row(answer) for answer in answers},
        engagement=engagement_from_json(row.engagement),
        current_streak=row.current_streak,
        best_streak=row.best_streak,
        completed_at=row.completed_at,
    )


def question_from_row(row: QuizQuestion) -> Question:
    conditional_logic = None
    if row.depends_on_question_id is not None and row.required_answer_value is not None:
        conditional_logic = ConditionalLogic(
            depends_on_question_id=row.depends_on_question_id,
            required_answer_value=row.required_answer_value,
        )
    common: dict[str, Any] = {
        "id": row.id,
        "text": row.question_text,
        "order_index": row.order_index,
        "required": row.required,
        "category": row.category,
        "conditional_logic": conditional_logic,
    }
    question_type = QuestionType(row.question_type)
    if question_type == QuestionType.TRUE_FALSE:
        return TrueFalseQuestion(correct_answer=bool(row.correct_answer), points=row.points, **common)
    if question_type == QuestionType.YES_NO:
        return YesNoQuestion(correct_answer=bool(row.correct_answer), points=row.points, **common)
    if question_type == QuestionType.PREFERENCE:
        return PreferenceQuestion(options=tuple(row.options or ()), **common)
    return PersonalQuestion(**common)


def question_values(question: Question) -> dict[str, Any]:
    logic = question.conditional_logic
    return {
        "id": question.id,
        "question_type": question.question_type.value,
        "question_text": question.text,
        "order_index": question.order_index,
        "required": question.required,
        "correct_answer": getattr(question, "correct_answer", None),
        "points": getattr(question, "points", None),
        "options": list(getattr(question, "options", ())),
        "category": question.category,
        "depends_on_question_id": logic.depends_on_question_id if logic is not None else None,
        "required_answer_value": logic.required_answer_value if logic is not None else None,
        "is_active": True,
    }


def rule_from_row(row: ResponseRuleRow) -> ResponseRule:
    window = None
    if row.active_from is not None and row.active_until is not None:
        window = ActiveTimeWindow(start=row.active_from, end=row.active_until)
    return ResponseRule(
        id=row.id,
        trigger_patterns=tuple(row.trigger_patterns or ()),
        response=row.response,
        priority=row.priority,
        uses_regex=row.uses_regex,
        pattern_flags=row.pattern_flags,
        is_active=row.is_active,
        active_time_window=window,
        created_at=row.created_at,
    )
