from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.ext.asyncio import AsyncSession

from quizflow.db.models.session_leases import SessionLease


class SessionLeasesRepo:
    @staticmethod
    async def get_by_session_id(session: AsyncSession, session_id: UUID) -> SessionLease | None:
        return await session.get(SessionLease, session_id)

    @staticmethod
    async def try_acquire(
        session: AsyncSession,
        *,
        session_id: UUID,
        lease_id: UUID,
        holder: str,
        acquired_at: datetime,
        expires_at: datetime,
    ) -> bool:
        insert_stmt = postgresql_insert(SessionLease).values(
            session_id=session_id,
            lease_id=lease_id,
            holder=holder,
            acquired_at=acquired_at,
            expires_at=expires_at,
        )
        stmt = insert_stmt.on_conflict_do_update(
            index_elements=[SessionLease.session_id],
            set_={
                "lease_id": insert_stmt.excluded.lease_id,
                "holder": insert_stmt.excluded.holder,
                "acquired_at": insert_stmt.excluded.acquired_at,
                "expires_at": insert_stmt.excluded.expires_at,
            },
            where=SessionLease.expires_at <= insert_stmt.excluded.acquired_at,
        ).returning(SessionLease.lease_id)
        result = await session.execute(stmt)
        return result.scalar_one_or_none() == lease_id

    @staticmethod
    async def release(session: AsyncSession, *, session_id: UUID, lease_id: UUID) -> bool:
        stmt = (
            delete(SessionLease)
            .where(
                SessionLease.session_id == session_id,
                SessionLease.lease_id == lease_id,
            )
            .returning(SessionLease.session_id)
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none() is not None

    @staticmethod
    async def force_release(session: AsyncSession, *, session_id: UUID) -> bool:
        stmt = (
            delete(SessionLease)
            .where(SessionLease.session_id == session_id)
            .returning(SessionLease.session_id)
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none() is not None

    @staticmethod
    async def delete_expired(session: AsyncSession, *, now_utc: datetime, limit: int) -> int:
        candidate_ids = (
            select(SessionLease.session_id)
            .where(SessionLease.expires_at <= now_utc)
            .order_by(SessionLease.expires_at.asc())
            .limit(max(1, int(limit)))
            .scalar_subquery()
        )
        stmt = (
            delete(SessionLease)
            .where(
                SessionLease.session_id.in_(candidate_ids),
                SessionLease.expires_at <= now_utc,
            )
            .returning(SessionLease.session_id)
        )
        result = await session.execute(stmt)
        return len(list(result.scalars()))
