from __future__ import annotations

from sqlalchemy import CheckConstraint

from quizflow.db.models import (  # noqa: F401
    QuizAnswer,
    QuizQuestion,
    QuizSession,
    ResponseRuleRow,
    SessionLease,
)
from quizflow.db.models.base import Base


def test_all_quiz_tables_registered() -> None:
    expected_tables = {
        "quiz_sessions",
        "quiz_answers",
        "quiz_questions",
        "session_leases",
        "response_rules",
    }
    assert expected_tables.issubset(set(Base.metadata.tables))


def _check_names(table_name: str) -> set[str]:
    table = Base.metadata.tables[table_name]
    return {constraint.name for constraint in table.constraints if isinstance(constraint, CheckConstraint)}


def test_critical_constraints_present() -> None:
    quiz_sessions = Base.metadata.tables["quiz_sessions"]
    quiz_sessions_indexes = {index.name: index for index in quiz_sessions.indexes}
    assert quiz_sessions_indexes["uq_quiz_sessions_active_phone"].unique
    assert quiz_sessions_indexes["uq_quiz_sessions_active_web_user"].unique
    assert "idx_quiz_sessions_active_last_activity" in quiz_sessions_indexes
    assert {
        "ck_quiz_sessions_status",
        "ck_quiz_sessions_single_participant",
        "ck_quiz_sessions_version_positive",
        "ck_quiz_sessions_terminal_completed_at",
    }.issubset(_check_names("quiz_sessions"))

    quiz_answers = Base.metadata.tables["quiz_answers"]
    assert {column.name for column in quiz_answers.primary_key.columns} == {"session_id", "question_id"}
    (foreign_key,) = quiz_answers.c.session_id.foreign_keys
    assert foreign_key.ondelete == "CASCADE"

    session_leases = Base.metadata.tables["session_leases"]
    assert [column.name for column in session_leases.primary_key.columns] == ["session_id"]
    assert "ck_session_leases_expiry_after_acquire" in _check_names("session_leases")
    assert "idx_session_leases_expires_at" in {index.name for index in session_leases.indexes}

    assert "ck_quiz_questions_graded_correct_answer" in _check_names("quiz_questions")
    assert "ck_response_rules_window_complete" in _check_names("response_rules")
