from __future__ import annotations

import copy
import threading
from collections.abc import Iterable, Sequence
from datetime import datetime
from uuid import UUID

from quizflow.game.questions.types import Question
from quizflow.game.sessions.types import Lease, QuizSessionState, SessionStatus


class InMemorySessionStore:
    """Process-local SessionStore for single-node deployments and tests.

    All maps are guarded by one lock and snapshots are deep-copied in and out,
    so callers can never mutate stored state without going through the store.
    """

    def __init__(self, questions: Iterable[Question] = ()) -> None:
        self._guard = threading.Lock()
        self._sessions: dict[UUID, QuizSessionState] = {}
        self._leases: dict[UUID, Lease] = {}
        self._questions: tuple[Question, ...] = tuple(questions)

    def set_questions(self, questions: Iterable[Question]) -> None:
        with self._guard:
            self._questions = tuple(questions)

    def lease_for(self, session_id: UUID) -> Lease | None:
        with self._guard:
            return self._leases.get(session_id)

    async def try_acquire_lease(self, lease: Lease) -> bool:
        with self._guard:
            existing = self._leases.get(lease.session_id)
            if existing is not None and existing.expires_at > lease.acquired_at:
                return False
            self._leases[lease.session_id] = lease
            return True

    async def release_lease(self, *, session_id: UUID, lease_id: UUID) -> bool:
        with self._guard:
            existing = self._leases.get(session_id)
            if existing is None or existing.lease_id != lease_id:
                return False
            del self._leases[session_id]
            return True

    async def force_release_lease(self, *, session_id: UUID) -> bool:
        with self._guard:
            return self._leases.pop(session_id, None) is not None

    async def delete_expired_leases(self, *, now_utc: datetime, limit: int) -> int:
        with self._guard:
            expired = [
                session_id
                for session_id, lease in self._leases.items()
                if lease.expires_at <= now_utc
            ][: max(1, int(limit))]
            for session_id in expired:
                del self._leases[session_id]
            return len(expired)

    async def get_session(self, session_id: UUID) -> QuizSessionState | None:
        with self._guard:
            session = self._sessions.get(session_id)
            return copy.deepcopy(session) if session is not None else None

    def _latest_active_locked(self, participant_id: str) -> QuizSessionState | None:
        active = [
            session
            for session in self._sessions.values()
            if session.participant_id == participant_id and session.status == SessionStatus.ACTIVE
        ]
        if not active:
            return None
        return max(active, key=lambda session: session.started_at)

    async def get_latest_active_session(self, participant_id: str) -> QuizSessionState | None:
        with self._guard:
            session = self._latest_active_locked(participant_id)
            return copy.deepcopy(session) if session is not None else None

    async def list_participant_sessions(self, participant_id: str) -> list[QuizSessionState]:
        with self._guard:
            sessions = [
                copy.deepcopy(session)
                for session in self._sessions.values()
                if session.participant_id == participant_id
            ]
        return sorted(sessions, key=lambda session: session.started_at)

    async def insert_session_if_no_active(self, session: QuizSessionState) -> QuizSessionState:
        with self._guard:
            existing = self._latest_active_locked(session.participant_id)
            if existing is not None:
                return copy.deepcopy(existing)
            self._sessions[session.id] = copy.deepcopy(session)
            return copy.deepcopy(session)

    async def compare_and_set_session(
        self,
        session: QuizSessionState,
        *,
        expected_version: int,
    ) -> bool:
        with self._guard:
            current = self._sessions.get(session.id)
            if current is None or current.version != expected_version:
                return False
            self._sessions[session.id] = copy.deepcopy(session)
            return True

    async def list_stale_active_session_ids(
        self,
        *,
        idle_before_utc: datetime,
        limit: int,
    ) -> list[UUID]:
        with self._guard:
            stale = sorted(
                (
                    session
                    for session in self._sessions.values()
                    if session.status == SessionStatus.ACTIVE
                    and session.last_activity_at < idle_before_utc
                ),
                key=lambda session: session.last_activity_at,
            )
            return [session.id for session in stale[: max(1, int(limit))]]

    async def list_active_questions(self) -> Sequence[Question]:
        with self._guard:
            return self._questions

    async def count_sessions_by_status(self) -> dict[SessionStatus, int]:
        counts = {status: 0 for status in SessionStatus}
        with self._guard:
            for session in self._sessions.values():
                counts[session.status] += 1
        return counts
