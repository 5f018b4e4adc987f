from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.ext.asyncio import AsyncSession

from quizflow.db.models.quiz_sessions import QuizSession


def _participant_filter(*, phone_number: str | None, web_user_id: str | None):
    if web_user_id is not None:
        return QuizSession.web_user_id == web_user_id
    return QuizSession.phone_number == phone_number


class QuizSessionsRepo:
    @staticmethod
    async def get_by_id(session: AsyncSession, session_id: UUID) -> QuizSession | None:
        stmt = select(QuizSession).where(QuizSession.id == session_id)
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def get_latest_active(
        session: AsyncSession,
        *,
        phone_number: str | None,
        web_user_id: str | None,
    ) -> QuizSession | None:
        stmt = (
            select(QuizSession)
            .where(
                _participant_filter(phone_number=phone_number, web_user_id=web_user_id),
                QuizSession.status == "ACTIVE",
            )
            .order_by(QuizSession.started_at.desc(), QuizSession.id.desc())
            .limit(1)
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def list_for_participant(
        session: AsyncSession,
        *,
        phone_number: str | None,
        web_user_id: str | None,
    ) -> list[QuizSession]:
        stmt = (
            select(QuizSession)
            .where(_participant_filter(phone_number=phone_number, web_user_id=web_user_id))
            .order_by(QuizSession.started_at.asc(), QuizSession.id.asc())
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def try_insert_active(session: AsyncSession, *, values: dict[str, Any]) -> UUID | None:
        stmt = (
            postgresql_insert(QuizSession)
            .values(**values)
            .on_conflict_do_nothing()
            .returning(QuizSession.id)
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def compare_and_set(
        session: AsyncSession,
        *,
        session_id: UUID,
        expected_version: int,
        values: dict[str, Any],
    ) -> bool:
        stmt = (
            update(QuizSession)
            .where(
                QuizSession.id == session_id,
                QuizSession.version == expected_version,
            )
            .values(**values)
            .returning(QuizSession.id)
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none() is not None

    @staticmethod
    async def list_stale_active_ids(
        session: AsyncSession,
        *,
        idle_before_utc: datetime,
        limit: int,
    ) -> list[UUID]:
        stmt = (
            select(QuizSession.id)
            .where(
                QuizSession.status == "ACTIVE",
                QuizSession.last_activity_at < idle_before_utc,
            )
            .order_by(QuizSession.last_activity_at.asc(), QuizSession.id.asc())
            .limit(max(1, int(limit)))
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def count_by_status(session: AsyncSession) -> dict[str, int]:
        stmt = select(QuizSession.status, func.count(QuizSession.id)).group_by(QuizSession.status)
        result = await session.execute(stmt)
        return {str(status): int(count) for status, count in result.all()}

