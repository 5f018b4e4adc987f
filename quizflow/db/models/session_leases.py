from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import CheckConstraint, DateTime, Index, String
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.orm import Mapped, mapped_column

from quizflow.db.models.base import Base


class SessionLease(Base):
    __tablename__ = "session_leases"
    __table_args__ = (
        CheckConstraint("expires_at > acquired_at", name="ck_session_leases_expiry_after_acquire"),
        Index("idx_session_leases_expires_at", "expires_at"),
    )

    session_id: Mapped[UUID] = mapped_column(PG_UUID(as_uuid=True), primary_key=True)
    lease_id: Mapped[UUID] = mapped_column(PG_UUID(as_uuid=True), nullable=False)
    holder: Mapped[str] = mapped_column(String(64), nullable=False)
    acquired_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
