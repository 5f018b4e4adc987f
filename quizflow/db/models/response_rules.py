from __future__ import annotations

from datetime import datetime, time

from sqlalchemy import Boolean, CheckConstraint, DateTime, Index, Integer, String, Text, Time
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from quizflow.db.models.base import Base


class ResponseRuleRow(Base):
    __tablename__ = "response_rules"
    __table_args__ = (
        CheckConstraint("usage_count >= 0", name="ck_response_rules_usage_non_negative"),
        CheckConstraint(
            "(active_from IS NULL) = (active_until IS NULL)",
            name="ck_response_rules_window_complete",
        ),
        Index("idx_response_rules_active_priority", "is_active", "priority"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    trigger_patterns: Mapped[list[str]] = mapped_column(JSONB, nullable=False)
    uses_regex: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    pattern_flags: Mapped[str] = mapped_column(String(8), nullable=False, default="i")
    priority: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    response: Mapped[str] = mapped_column(Text, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    active_from: Mapped[time | None] = mapped_column(Time, nullable=True)
    active_until: Mapped[time | None] = mapped_column(Time, nullable=True)
    usage_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_used_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
