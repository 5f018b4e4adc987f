from __future__ import annotations

from datetime import datetime, timedelta
from uuid import UUID, uuid4

import structlog

from quizflow.game.sessions.store import SessionStore
from quizflow.game.sessions.types import Lease

logger = structlog.get_logger(__name__)

DEFAULT_LEASE_TTL_SECONDS = 30


def _clamp_ttl_seconds(value: int) -> int:
    return max(1, min(3600, int(value)))


class LockManager:
    def __init__(self, store: SessionStore, *, ttl_seconds: int = DEFAULT_LEASE_TTL_SECONDS) -> None:
        self._store = store
        self._ttl_seconds = _clamp_ttl_seconds(ttl_seconds)

    @property
    def ttl_seconds(self) -> int:
        return self._ttl_seconds

    async def acquire(
        self,
        session_id: UUID,
        holder: str,
        *,
        now_utc: datetime,
        ttl_seconds: int | None = None,
    ) -> Lease | None:
        """Try to take the lease on a session once, without waiting.

        An expired lease left behind by a crashed holder is taken over in the
        same conditional write.
        """
        resolved_ttl = self._ttl_seconds if ttl_seconds is None else _clamp_ttl_seconds(ttl_seconds)
        lease = Lease(
            session_id=session_id,
            lease_id=uuid4(),
            holder=holder,
            acquired_at=now_utc,
            expires_at=now_utc + timedelta(seconds=resolved_ttl),
        )
        if not await self._store.try_acquire_lease(lease):
            return None
        return lease

    async def release(self, session_id: UUID, lease_id: UUID) -> bool:
        released = await self._store.release_lease(session_id=session_id, lease_id=lease_id)
        if not released:
            logger.warning(
                "quiz_lease_release_missed",
                session_id=str(session_id),
                lease_id=str(lease_id),
            )
        return released

    async def force_release(self, session_id: UUID) -> bool:
        released = await self._store.force_release_lease(session_id=session_id)
        if released:
            logger.info("quiz_lease_force_released", session_id=str(session_id))
        return released

    async def sweep_expired(self, *, now_utc: datetime, limit: int) -> int:
        return await self._store.delete_expired_leases(now_utc=now_utc, limit=limit)
