from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from typing import Protocol
from uuid import UUID

from quizflow.game.questions.types import Question
from quizflow.game.sessions.types import Lease, QuizSessionState, SessionStatus


class SessionStore(Protocol):
    """Persistence contract used by the lock manager, executor and recovery.

    Every method is a single atomic operation from the caller's perspective.
    """

    async def try_acquire_lease(self, lease: Lease) -> bool: ...

    async def release_lease(self, *, session_id: UUID, lease_id: UUID) -> bool: ...

    async def force_release_lease(self, *, session_id: UUID) -> bool: ...

    async def delete_expired_leases(self, *, now_utc: datetime, limit: int) -> int: ...

    async def get_session(self, session_id: UUID) -> QuizSessionState | None: ...

    async def get_latest_active_session(self, participant_id: str) -> QuizSessionState | None: ...

    async def list_participant_sessions(self, participant_id: str) -> list[QuizSessionState]: ...

    async def insert_session_if_no_active(self, session: QuizSessionState) -> QuizSessionState:
        """Insert `session` unless the participant already has an ACTIVE one.

        Returns whichever session is ACTIVE after the call.
        """
        ...

    async def compare_and_set_session(
        self,
        session: QuizSessionState,
        *,
        expected_version: int,
    ) -> bool: ...

    async def list_stale_active_session_ids(
        self,
        *,
        idle_before_utc: datetime,
        limit: int,
    ) -> list[UUID]: ...

    async def list_active_questions(self) -> Sequence[Question]: ...

    async def count_sessions_by_status(self) -> dict[SessionStatus, int]: ...
