"""m1_quiz_session_core

Revision ID: 5d1e2f3a4b6c
Revises:
Create Date: 2026-10-16 09:00:00.000000
"""
from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "5d1e2f3a4b6c"
down_revision: str | None = None
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "quiz_questions",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("question_type", sa.String(16), nullable=False),
        sa.Column("question_text", sa.Text(), nullable=False),
        sa.Column("order_index", sa.Integer(), nullable=False),
        sa.Column("required", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("correct_answer", sa.Boolean(), nullable=True),
        sa.Column("points", sa.Integer(), nullable=True),
        sa.Column("options", postgresql.JSONB(), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("category", sa.String(128), nullable=True),
        sa.Column("depends_on_question_id", sa.String(64), nullable=True),
        sa.Column("required_answer_value", postgresql.JSONB(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.CheckConstraint(
            "question_type IN ('PERSONAL','PREFERENCE','TRUE_FALSE','YES_NO')",
            name="ck_quiz_questions_type",
        ),
        sa.CheckConstraint("order_index >= 0", name="ck_quiz_questions_order_non_negative"),
        sa.CheckConstraint("points IS NULL OR points >= 0", name="ck_quiz_questions_points_non_negative"),
        sa.CheckConstraint(
            "question_type NOT IN ('TRUE_FALSE','YES_NO') OR correct_answer IS NOT NULL",
            name="ck_quiz_questions_graded_correct_answer",
        ),
        sa.CheckConstraint(
            "(depends_on_question_id IS NULL) = (required_answer_value IS NULL)",
            name="ck_quiz_questions_condition_complete",
        ),
    )
    op.create_index("idx_quiz_questions_active_order", "quiz_questions", ["is_active", "order_index"])

    op.create_table(
        "quiz_sessions",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("phone_number", sa.String(32), nullable=True),
        sa.Column("web_user_id", sa.String(64), nullable=True),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("current_question_index", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("score", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("current_streak", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("best_streak", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("engagement", postgresql.JSONB(), nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column("version", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("last_activity_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint(
            "status IN ('ACTIVE','COMPLETED','ABANDONED','INTERRUPTED')",
            name="ck_quiz_sessions_status",
        ),
        sa.CheckConstraint(
            "(phone_number IS NULL) <> (web_user_id IS NULL)",
            name="ck_quiz_sessions_single_participant",
        ),
        sa.CheckConstraint(
            "current_question_index >= 0",
            name="ck_quiz_sessions_question_index_non_negative",
        ),
        sa.CheckConstraint("score >= 0", name="ck_quiz_sessions_score_non_negative"),
        sa.CheckConstraint("version >= 1", name="ck_quiz_sessions_version_positive"),
        sa.CheckConstraint(
            "(status = 'ACTIVE') OR completed_at IS NOT NULL",
            name="ck_quiz_sessions_terminal_completed_at",
        ),
    )
    op.create_index("idx_quiz_sessions_phone_started", "quiz_sessions", ["phone_number", "started_at"])
    op.create_index("idx_quiz_sessions_web_user_started", "quiz_sessions", ["web_user_id", "started_at"])
    op.create_index(
        "idx_quiz_sessions_active_last_activity",
        "quiz_sessions",
        ["last_activity_at"],
        postgresql_where=sa.text("status = 'ACTIVE'"),
    )
    op.create_index(
        "uq_quiz_sessions_active_phone",
        "quiz_sessions",
        ["phone_number"],
        unique=True,
        postgresql_where=sa.text("status = 'ACTIVE' AND phone_number IS NOT NULL"),
    )
    op.create_index(
        "uq_quiz_sessions_active_web_user",
        "quiz_sessions",
        ["web_user_id"],
        unique=True,
        postgresql_where=sa.text("status = 'ACTIVE' AND web_user_id IS NOT NULL"),
    )

    op.create_table(
        "quiz_answers",
        sa.Column("session_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("question_id", sa.String(64), nullable=False),
        sa.Column("raw_answer", sa.Text(), nullable=False),
        sa.Column("answer_value", postgresql.JSONB(), nullable=False),
        sa.Column("is_correct", sa.Boolean(), nullable=False),
        sa.Column("is_graded", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("points_awarded", sa.Integer(), nullable=False),
        sa.Column("time_spent_ms", sa.Integer(), nullable=False),
        sa.Column("answered_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("points_awarded >= 0", name="ck_quiz_answers_points_non_negative"),
        sa.CheckConstraint("time_spent_ms >= 0", name="ck_quiz_answers_time_spent_non_negative"),
        sa.ForeignKeyConstraint(["session_id"], ["quiz_sessions.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("session_id", "question_id"),
    )
    op.create_index("idx_quiz_answers_answered_at", "quiz_answers", ["answered_at"])

    op.create_table(
        "session_leases",
        sa.Column("session_id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("lease_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("holder", sa.String(64), nullable=False),
        sa.Column("acquired_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("expires_at > acquired_at", name="ck_session_leases_expiry_after_acquire"),
    )
    op.create_index("idx_session_leases_expires_at", "session_leases", ["expires_at"])

    op.create_table(
        "response_rules",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("trigger_patterns", postgresql.JSONB(), nullable=False),
        sa.Column("uses_regex", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("pattern_flags", sa.String(8), nullable=False, server_default=sa.text("'i'")),
        sa.Column("priority", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("response", sa.Text(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("active_from", sa.Time(), nullable=True),
        sa.Column("active_until", sa.Time(), nullable=True),
        sa.Column("usage_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("last_used_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.CheckConstraint("usage_count >= 0", name="ck_response_rules_usage_non_negative"),
        sa.CheckConstraint(
            "(active_from IS NULL) = (active_until IS NULL)",
            name="ck_response_rules_window_complete",
        ),
    )
    op.create_index("idx_response_rules_active_priority", "response_rules", ["is_active", "priority"])


def downgrade() -> None:
    op.drop_index("idx_response_rules_active_priority", table_name="response_rules")
    op.drop_table("response_rules")
    op.drop_index("idx_session_leases_expires_at", table_name="session_leases")
    op.drop_table("session_leases")
    op.drop_index("idx_quiz_answers_answered_at", table_name="quiz_answers")
    op.drop_table("quiz_answers")
    op.drop_index("uq_quiz_sessions_active_web_user", table_name="quiz_sessions")
    op.drop_index("uq_quiz_sessions_active_phone", table_name="quiz_sessions")
    op.drop_index("idx_quiz_sessions_active_last_activity", table_name="quiz_sessions")
    op.drop_index("idx_quiz_sessions_web_user_started", table_name="quiz_sessions")
    op.drop_index("idx_quiz_sessions_phone_started", table_name="quiz_sessions")
    op.drop_table("quiz_sessions")
    op.drop_index("idx_quiz_questions_active_order", table_name="quiz_questions")
    op.drop_table("quiz_questions")
