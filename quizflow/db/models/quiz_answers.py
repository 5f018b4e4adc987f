from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import Boolean, CheckConstraint, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.orm import Mapped, mapped_column

from quizflow.db.models.base import Base


class QuizAnswer(Base):
    __tablename__ = "quiz_answers"
    __table_args__ = (
        CheckConstraint("points_awarded >= 0", name="ck_quiz_answers_points_non_negative"),
        CheckConstraint("time_spent_ms >= 0", name="ck_quiz_answers_time_spent_non_negative"),
        Index("idx_quiz_answers_answered_at", "answered_at"),
    )

    session_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("quiz_sessions.id", ondelete="CASCADE"),
        primary_key=True,
    )
    question_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    raw_answer: Mapped[str] = mapped_column(Text, nullable=False)
    answer_value: Mapped[Any] = mapped_column(JSONB, nullable=False)
    is_correct: Mapped[bool] = mapped_column(Boolean, nullable=False)
    is_graded: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    points_awarded: Mapped[int] = mapped_column(Integer, nullable=False)
    time_spent_ms: Mapped[int] = mapped_column(Integer, nullable=False)
    answered_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
