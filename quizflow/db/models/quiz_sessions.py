from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import CheckConstraint, DateTime, Index, Integer, String, text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.orm import Mapped, mapped_column

from quizflow.db.models.base import Base


class QuizSession(Base):
    __tablename__ = "quiz_sessions"
    __table_args__ = (
        CheckConstraint(
            "status IN ('ACTIVE','COMPLETED','ABANDONED','INTERRUPTED')",
            name="ck_quiz_sessions_status",
        ),
        CheckConstraint(
            "(phone_number IS NULL) <> (web_user_id IS NULL)",
            name="ck_quiz_sessions_single_participant",
        ),
        CheckConstraint(
            "current_question_index >= 0",
            name="ck_quiz_sessions_question_index_non_negative",
        ),
        CheckConstraint("score >= 0", name="ck_quiz_sessions_score_non_negative"),
        CheckConstraint("version >= 1", name="ck_quiz_sessions_version_positive"),
        CheckConstraint(
            "(status = 'ACTIVE') OR completed_at IS NOT NULL",
            name="ck_quiz_sessions_terminal_completed_at",
        ),
        Index("idx_quiz_sessions_phone_started", "phone_number", "started_at"),
        Index("idx_quiz_sessions_web_user_started", "web_user_id", "started_at"),
        Index(
            "idx_quiz_sessions_active_last_activity",
            "last_activity_at",
            postgresql_where=text("status = 'ACTIVE'"),
        ),
        Index(
            "uq_quiz_sessions_active_phone",
            "phone_number",
            unique=True,
            postgresql_where=text("status = 'ACTIVE' AND phone_number IS NOT NULL"),
        ),
        Index(
            "uq_quiz_sessions_active_web_user",
            "web_user_id",
            unique=True,
            postgresql_where=text("status = 'ACTIVE' AND web_user_id IS NOT NULL"),
        ),
    )

    id: Mapped[UUID] = mapped_column(PG_UUID(as_uuid=True), primary_key=True)
    phone_number: Mapped[str | None] = mapped_column(String(32), nullable=True)
    web_user_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False)
    current_question_index: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    current_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    best_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    engagement: Mapped[dict[str, Any]] = mapped_column(JSONB, nullable=False, default=dict)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    last_activity_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
