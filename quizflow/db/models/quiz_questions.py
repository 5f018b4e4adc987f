from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import Boolean, CheckConstraint, DateTime, Index, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from quizflow.db.models.base import Base


class QuizQuestion(Base):
    __tablename__ = "quiz_questions"
    __table_args__ = (
        CheckConstraint(
            "question_type IN ('PERSONAL','PREFERENCE','TRUE_FALSE','YES_NO')",
            name="ck_quiz_questions_type",
        ),
        CheckConstraint("order_index >= 0", name="ck_quiz_questions_order_non_negative"),
        CheckConstraint("points IS NULL OR points >= 0", name="ck_quiz_questions_points_non_negative"),
        CheckConstraint(
            "question_type NOT IN ('TRUE_FALSE','YES_NO') OR correct_answer IS NOT NULL",
            name="ck_quiz_questions_graded_correct_answer",
        ),
        CheckConstraint(
            "(depends_on_question_id IS NULL) = (required_answer_value IS NULL)",
            name="ck_quiz_questions_condition_complete",
        ),
        Index("idx_quiz_questions_active_order", "is_active", "order_index"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    question_type: Mapped[str] = mapped_column(String(16), nullable=False)
    question_text: Mapped[str] = mapped_column(Text, nullable=False)
    order_index: Mapped[int] = mapped_column(Integer, nullable=False)
    required: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    correct_answer: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    points: Mapped[int | None] = mapped_column(Integer, nullable=True)
    options: Mapped[list[str]] = mapped_column(JSONB, nullable=False, default=list)
    category: Mapped[str | None] = mapped_column(String(128), nullable=True)
    depends_on_question_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    required_answer_value: Mapped[Any] = mapped_column(JSONB, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
