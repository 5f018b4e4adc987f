from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timedelta
from uuid import UUID, uuid4

import structlog

from quizflow.game.sessions.errors import (
    ConcurrentModificationError,
    LockUnavailableError,
    SessionNotFoundError,
)
from quizflow.game.sessions.locks import LockManager
from quizflow.game.sessions.store import SessionStore
from quizflow.game.sessions.transactions import TransactionExecutor
from quizflow.game.sessions.types import (
    EngagementMetadata,
    QuizSessionState,
    ResolvedSession,
    SessionStatus,
)

logger = structlog.get_logger(__name__)

DEFAULT_STALE_AFTER_MINUTES = 1440

OPERATION_RESTART = "session_restart"
OPERATION_INTERRUPT = "session_interrupt"
OPERATION_ABANDON = "session_abandon"


def new_session_state(participant_id: str, *, now_utc: datetime) -> QuizSessionState:
    return QuizSessionState(
        id=uuid4(),
        participant_id=participant_id,
        status=SessionStatus.ACTIVE,
        started_at=now_utc,
        last_activity_at=now_utc,
        version=1,
    )


def reset_session_state(session: QuizSessionState, *, now_utc: datetime) -> QuizSessionState:
    return replace(
        session,
        status=SessionStatus.ACTIVE,
        current_question_index=0,
        score=0,
        answers={},
        engagement=EngagementMetadata(),
        current_streak=0,
        best_streak=0,
        started_at=now_utc,
        last_activity_at=now_utc,
        completed_at=None,
    )


def terminate_session_state(
    session: QuizSessionState,
    *,
    status: SessionStatus,
    now_utc: datetime,
) -> QuizSessionState | None:
    if session.status != SessionStatus.ACTIVE:
        return None
    return replace(session, status=status, completed_at=now_utc, last_activity_at=now_utc)


class SessionRecoveryService:
    def __init__(
        self,
        store: SessionStore,
        executor: TransactionExecutor,
        lock_manager: LockManager,
        *,
        stale_after_minutes: int = DEFAULT_STALE_AFTER_MINUTES,
    ) -> None:
        self._store = store
        self._executor = executor
        self._locks = lock_manager
        self._stale_after = timedelta(minutes=max(1, int(stale_after_minutes)))

    def is_stale(self, session: QuizSessionState, *, now_utc: datetime) -> bool:
        return now_utc - session.last_activity_at > self._stale_after

    async def resolve(
        self,
        participant_id: str,
        *,
        now_utc: datetime,
        restart: bool = False,
    ) -> ResolvedSession:
        """Find the participant's session to continue, or start a new one.

        The latest ACTIVE session is resumed as is. One idle past the stale
        threshold is marked INTERRUPTED and replaced. With `restart` the
        active session is reset in place after its lease is force-released.
        """
        existing = await self._store.get_latest_active_session(participant_id)
        interrupted_session_id: UUID | None = None

        if existing is not None and self.is_stale(existing, now_utc=now_utc):
            await self.mark_interrupted(existing.id, now_utc=now_utc, reason="stale")
            interrupted_session_id = existing.id
            existing = await self._store.get_latest_active_session(participant_id)

        if existing is not None:
            if not restart:
                return ResolvedSession(
                    session=existing,
                    created=False,
                    interrupted_session_id=interrupted_session_id,
                )
            await self._locks.force_release(existing.id)
            result = await self._executor.execute(
                existing.id,
                OPERATION_RESTART,
                lambda current: self._restart(current, now_utc=now_utc),
            )
            logger.info(
                "quiz_session_restarted",
                session_id=str(existing.id),
                participant_id=participant_id,
                version=result.session.version,
            )
            return ResolvedSession(
                session=result.session,
                created=False,
                restarted=True,
                interrupted_session_id=interrupted_session_id,
            )

        candidate = new_session_state(participant_id, now_utc=now_utc)
        stored = await self._store.insert_session_if_no_active(candidate)
        created = stored.id == candidate.id
        if created:
            logger.info(
                "quiz_session_created",
                session_id=str(stored.id),
                participant_id=participant_id,
            )
        return ResolvedSession(
            session=stored,
            created=created,
            restarted=restart and not created,
            interrupted_session_id=interrupted_session_id,
        )

    @staticmethod
    async def _restart(
        current: QuizSessionState,
        *,
        now_utc: datetime,
    ) -> tuple[QuizSessionState, None]:
        return reset_session_state(current, now_utc=now_utc), None

    async def _terminate(
        self,
        session_id: UUID,
        *,
        status: SessionStatus,
        operation_name: str,
        now_utc: datetime,
    ) -> bool:
        async def _apply(current: QuizSessionState) -> tuple[QuizSessionState | None, bool]:
            next_state = terminate_session_state(current, status=status, now_utc=now_utc)
            return next_state, next_state is not None

        result = await self._executor.execute(session_id, operation_name, _apply)
        return result.result

    async def mark_interrupted(
        self,
        session_id: UUID,
        *,
        now_utc: datetime,
        reason: str = "error",
    ) -> bool:
        changed = await self._terminate(
            session_id,
            status=SessionStatus.INTERRUPTED,
            operation_name=OPERATION_INTERRUPT,
            now_utc=now_utc,
        )
        if changed:
            logger.warning("quiz_session_interrupted", session_id=str(session_id), reason=reason)
        return changed

    async def mark_abandoned(self, session_id: UUID, *, now_utc: datetime) -> bool:
        changed = await self._terminate(
            session_id,
            status=SessionStatus.ABANDONED,
            operation_name=OPERATION_ABANDON,
            now_utc=now_utc,
        )
        if changed:
            logger.info("quiz_session_abandoned", session_id=str(session_id))
        return changed

    async def interrupt_stale_sessions(self, *, now_utc: datetime, limit: int) -> dict[str, int]:
        stale_ids = await self._store.list_stale_active_session_ids(
            idle_before_utc=now_utc - self._stale_after,
            limit=limit,
        )
        interrupted = 0
        skipped = 0
        for session_id in stale_ids:
            try:
                changed = await self.mark_interrupted(session_id, now_utc=now_utc, reason="stale")
            except (SessionNotFoundError, LockUnavailableError, ConcurrentModificationError) as exc:
                logger.info(
                    "quiz_stale_session_skipped",
                    session_id=str(session_id),
                    error_type=type(exc).__name__,
                )
                changed = False
            if changed:
                interrupted += 1
            else:
                skipped += 1
        return {"candidates": len(stale_ids), "interrupted": interrupted, "skipped": skipped}
