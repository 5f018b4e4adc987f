from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Generic, TypeVar
from uuid import UUID

import structlog

from quizflow.game.sessions.errors import (
    ConcurrentModificationError,
    LockUnavailableError,
    SessionNotFoundError,
)
from quizflow.game.sessions.locks import LockManager
from quizflow.game.sessions.store import SessionStore
from quizflow.game.sessions.types import QuizSessionState

logger = structlog.get_logger(__name__)

T = TypeVar("T")

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BASE_DELAY_MS = 100

TransactionFn = Callable[[QuizSessionState], Awaitable[tuple[QuizSessionState | None, T]]]
Clock = Callable[[], datetime]
Sleep = Callable[[float], Awaitable[None]]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True)
class TransactionResult(Generic[T]):
    session: QuizSessionState
    result: T
    attempts: int
    persisted: bool


class TransactionExecutor:
    """Runs a read-modify-write step on one session under a lease.

    The session is always read fresh after the lease is taken, and the write
    is a version compare-and-set. Lease contention and version conflicts are
    retried with a linear backoff; everything `fn` raises propagates as is.
    """

    def __init__(
        self,
        store: SessionStore,
        lock_manager: LockManager,
        *,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        base_delay_ms: int = DEFAULT_BASE_DELAY_MS,
        clock: Clock = utc_now,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._store = store
        self._locks = lock_manager
        self._max_attempts = max(1, int(max_attempts))
        self._base_delay_seconds = max(0, int(base_delay_ms)) / 1000
        self._clock = clock
        self._sleep = sleep

    async def execute(
        self,
        session_id: UUID,
        operation_name: str,
        fn: TransactionFn[T],
        *,
        max_attempts: int | None = None,
    ) -> TransactionResult[T]:
        attempts_allowed = self._max_attempts if max_attempts is None else max(1, int(max_attempts))
        last_failure: str | None = None

        for attempt in range(1, attempts_allowed + 1):
            lease = await self._locks.acquire(session_id, operation_name, now_utc=self._clock())
            if lease is None:
                last_failure = "lease_unavailable"
                logger.info(
                    "quiz_transaction_lease_busy",
                    session_id=str(session_id),
                    operation=operation_name,
                    attempt=attempt,
                )
                await self._backoff(attempt, attempts_allowed)
                continue

            try:
                current = await self._store.get_session(session_id)
                if current is None:
                    raise SessionNotFoundError(f"session {session_id} does not exist")

                next_state, result = await fn(current)
                if next_state is None:
                    return TransactionResult(
                        session=current,
                        result=result,
                        attempts=attempt,
                        persisted=False,
                    )

                persisted_state = replace(next_state, version=current.version + 1)
                stored = await self._store.compare_and_set_session(
                    persisted_state,
                    expected_version=current.version,
                )
                if stored:
                    return TransactionResult(
                        session=persisted_state,
                        result=result,
                        attempts=attempt,
                        persisted=True,
                    )

                last_failure = "version_conflict"
                logger.warning(
                    "quiz_transaction_conflict",
                    session_id=str(session_id),
                    operation=operation_name,
                    attempt=attempt,
                    expected_version=current.version,
                )
            finally:
                await self._locks.release(session_id, lease.lease_id)

            await self._backoff(attempt, attempts_allowed)

        logger.warning(
            "quiz_transaction_exhausted",
            session_id=str(session_id),
            operation=operation_name,
            attempts=attempts_allowed,
            reason=last_failure,
        )
        if last_failure == "version_conflict":
            raise ConcurrentModificationError(
                f"session {session_id} changed concurrently during {operation_name}"
            )
        raise LockUnavailableError(f"session {session_id} is busy, {operation_name} not applied")

    async def _backoff(self, attempt: int, attempts_allowed: int) -> None:
        if attempt >= attempts_allowed or self._base_delay_seconds <= 0:
            return
        await self._sleep(attempt * self._base_delay_seconds)
