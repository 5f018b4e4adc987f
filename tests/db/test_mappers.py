from __future__ import annotations

from datetime import datetime, time, timezone
from uuid import uuid4

from quizflow.db.mappers import (
    engagement_from_json,
    engagement_to_json,
    participant_columns,
    question_from_row,
    question_values,
    rule_from_row,
    session_from_row,
    session_values,
)
from quizflow.db.models import QuizAnswer, QuizQuestion, QuizSession, ResponseRuleRow
from quizflow.game.questions.types import PreferenceQuestion, QuestionType, TrueFalseQuestion
from quizflow.game.sessions.types import EngagementMetadata, SessionStatus
from tests.game.quiz_fixtures import PHONE, WEB_USER, branching_questions

UTC = timezone.utc
NOW = datetime(2026, 3, 2, 9, 0, tzinfo=UTC)


def test_participant_columns_split_phone_and_web_users() -> None:
    assert participant_columns(PHONE) == {"phone_number": PHONE, "web_user_id": None}
    assert participant_columns(WEB_USER) == {"phone_number": None, "web_user_id": WEB_USER}


def test_engagement_json_tolerates_missing_keys() -> None:
    assert engagement_from_json(None) == EngagementMetadata()
    assert engagement_from_json({"engagement_score": 42}).engagement_score == 42

    engagement = EngagementMetadata(
        time_spent_ms=30_000,
        question_times_ms={"q1": 30_000},
        engagement_score=70,
        difficulty_adjustments=["increase"],
        questions_skipped=1,
    )
    assert engagement_from_json(engagement_to_json(engagement)) == engagement


def test_session_row_maps_to_state_with_answers() -> None:
    session_id = uuid4()
    row = QuizSession(
        id=session_id,
        phone_number=None,
        web_user_id=WEB_USER,
        status="COMPLETED",
        current_question_index=2,
        score=13,
        current_streak=1,
        best_streak=1,
        engagement={"time_spent_ms": 20_000, "engagement_score": 68},
        version=4,
        started_at=NOW,
        last_activity_at=NOW,
        completed_at=NOW,
    )
    answer = QuizAnswer(
        session_id=session_id,
        question_id="q1",
        raw_answer="Vrai",
        answer_value=True,
        is_correct=True,
        is_graded=True,
        points_awarded=10,
        time_spent_ms=12_000,
        answered_at=NOW,
    )

    state = session_from_row(row, [answer])

    assert state.participant_id == WEB_USER
    assert state.status == SessionStatus.COMPLETED
    assert state.version == 4
    assert state.answers["q1"].value is True
    assert state.answers["q1"].graded is True
    assert state.engagement.engagement_score == 68

    values = session_values(state)
    assert values["status"] == "COMPLETED"
    assert values["web_user_id"] == WEB_USER
    assert values["phone_number"] is None
    assert values["engagement"]["time_spent_ms"] == 20_000


def test_question_values_and_rows_agree() -> None:
    for question in branching_questions():
        values = question_values(question)
        row = QuizQuestion(**values, created_at=NOW, updated_at=NOW)
        assert question_from_row(row) == question


def test_question_from_row_builds_typed_questions() -> None:
    row = QuizQuestion(
        id="pref",
        question_type="PREFERENCE",
        question_text="Mer ou montagne ?",
        order_index=4,
        required=True,
        correct_answer=None,
        points=None,
        options=["Mer", "Montagne"],
        category="Voyage",
        depends_on_question_id=None,
        required_answer_value=None,
        is_active=True,
        created_at=NOW,
        updated_at=NOW,
    )

    question = question_from_row(row)

    assert isinstance(question, PreferenceQuestion)
    assert question.question_type == QuestionType.PREFERENCE
    assert question.options == ("Mer", "Montagne")
    assert question.conditional_logic is None

    true_false = TrueFalseQuestion(id="tf", text="Vrai ou faux ?", order_index=0, correct_answer=False)
    graded = question_from_row(QuizQuestion(**question_values(true_false)))
    assert isinstance(graded, TrueFalseQuestion)
    assert graded.correct_answer is False
    assert graded.points is None


def test_rule_row_maps_time_window() -> None:
    row = ResponseRuleRow(
        id="night",
        trigger_patterns=["help"],
        uses_regex=False,
        pattern_flags="i",
        priority=2,
        response="Nous répondrons demain.",
        is_active=True,
        active_from=time(22, 0),
        active_until=time(6, 0),
        usage_count=0,
        last_used_at=None,
        created_at=NOW,
    )

    rule = rule_from_row(row)

    assert rule.trigger_patterns == ("help",)
    assert rule.active_time_window is not None
    assert rule.active_time_window.contains(time(23, 0))
    assert rule.created_at == NOW
