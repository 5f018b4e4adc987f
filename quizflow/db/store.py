from __future__ import annotations

from collections import defaultdict
from collections.abc import Sequence
from datetime import datetime
from uuid import UUID

from quizflow.db.mappers import (
    participant_columns,
    question_from_row,
    question_values,
    rule_from_row,
    session_from_row,
    session_values,
)
from quizflow.db.repo.quiz_answers_repo import QuizAnswersRepo
from quizflow.db.repo.quiz_questions_repo import QuizQuestionsRepo
from quizflow.db.repo.quiz_sessions_repo import QuizSessionsRepo
from quizflow.db.repo.response_rules_repo import ResponseRulesRepo
from quizflow.db.repo.session_leases_repo import SessionLeasesRepo
from quizflow.db.session import SessionLocal
from quizflow.game.questions.types import Question
from quizflow.game.questions.validation import validate_questions
from quizflow.game.rules.types import ResponseRule
from quizflow.game.sessions.types import Lease, QuizSessionState, SessionStatus


class SqlSessionStore:
    """PostgreSQL SessionStore; every method runs in its own transaction."""

    async def try_acquire_lease(self, lease: Lease) -> bool:
        async with SessionLocal.begin() as session:
            return await SessionLeasesRepo.try_acquire(
                session,
                session_id=lease.session_id,
                lease_id=lease.lease_id,
                holder=lease.holder,
                acquired_at=lease.acquired_at,
                expires_at=lease.expires_at,
            )

    async def release_lease(self, *, session_id: UUID, lease_id: UUID) -> bool:
        async with SessionLocal.begin() as session:
            return await SessionLeasesRepo.release(session, session_id=session_id, lease_id=lease_id)

    async def force_release_lease(self, *, session_id: UUID) -> bool:
        async with SessionLocal.begin() as session:
            return await SessionLeasesRepo.force_release(session, session_id=session_id)

    async def delete_expired_leases(self, *, now_utc: datetime, limit: int) -> int:
        async with SessionLocal.begin() as session:
            return await SessionLeasesRepo.delete_expired(session, now_utc=now_utc, limit=limit)

    async def get_session(self, session_id: UUID) -> QuizSessionState | None:
        async with SessionLocal.begin() as session:
            row = await QuizSessionsRepo.get_by_id(session, session_id)
            if row is None:
                return None
            answers = await QuizAnswersRepo.list_for_sessions(session, session_ids=[row.id])
            return session_from_row(row, answers)

    async def get_latest_active_session(self, participant_id: str) -> QuizSessionState | None:
        async with SessionLocal.begin() as session:
            row = await QuizSessionsRepo.get_latest_active(session, **participant_columns(participant_id))
            if row is None:
                return None
            answers = await QuizAnswersRepo.list_for_sessions(session, session_ids=[row.id])
            return session_from_row(row, answers)

    async def list_participant_sessions(self, participant_id: str) -> list[QuizSessionState]:
        async with SessionLocal.begin() as session:
            rows = await QuizSessionsRepo.list_for_participant(
                session,
                **participant_columns(participant_id),
            )
            answers = await QuizAnswersRepo.list_for_sessions(
                session,
                session_ids=[row.id for row in rows],
            )
        answers_by_session = defaultdict(list)
        for answer in answers:
            answers_by_session[answer.session_id].append(answer)
        return [session_from_row(row, answers_by_session[row.id]) for row in rows]

    async def insert_session_if_no_active(self, session: QuizSessionState) -> QuizSessionState:
        async with SessionLocal.begin() as db_session:
            inserted_id = await QuizSessionsRepo.try_insert_active(
                db_session,
                values=session_values(session),
            )
        if inserted_id is not None:
            return session
        existing = await self.get_latest_active_session(session.participant_id)
        if existing is None:
            raise RuntimeError(
                f"session insert for {session.participant_id!r} conflicted without an active session"
            )
        return existing

    async def compare_and_set_session(
        self,
        session: QuizSessionState,
        *,
        expected_version: int,
    ) -> bool:
        values = session_values(session)
        values.pop("id")
        async with SessionLocal.begin() as db_session:
            updated = await QuizSessionsRepo.compare_and_set(
                db_session,
                session_id=session.id,
                expected_version=expected_version,
                values=values,
            )
            if not updated:
                return False
            await QuizAnswersRepo.delete_except(
                db_session,
                session_id=session.id,
                keep_question_ids=list(session.answers),
            )
            for record in session.answers.values():
                await QuizAnswersRepo.upsert(
                    db_session,
                    session_id=session.id,
                    question_id=record.question_id,
                    raw_answer=record.raw_answer,
                    answer_value=record.value,
                    is_correct=record.is_correct,
                    is_graded=record.graded,
                    points_awarded=record.points_awarded,
                    time_spent_ms=record.time_spent_ms,
                    answered_at=record.answered_at,
                )
            return True

    async def list_stale_active_session_ids(
        self,
        *,
        idle_before_utc: datetime,
        limit: int,
    ) -> list[UUID]:
        async with SessionLocal.begin() as session:
            return await QuizSessionsRepo.list_stale_active_ids(
                session,
                idle_before_utc=idle_before_utc,
                limit=limit,
            )

    async def list_active_questions(self) -> Sequence[Question]:
        async with SessionLocal.begin() as session:
            rows = await QuizQuestionsRepo.list_active(session)
        return [question_from_row(row) for row in rows]

    async def count_sessions_by_status(self) -> dict[SessionStatus, int]:
        async with SessionLocal.begin() as session:
            raw_counts = await QuizSessionsRepo.count_by_status(session)
        return {status: raw_counts.get(status.value, 0) for status in SessionStatus}


async def save_questions(questions: Sequence[Question], *, now_utc: datetime) -> int:
    validate_questions(questions)
    async with SessionLocal.begin() as session:
        for question in questions:
            await QuizQuestionsRepo.upsert(session, values=question_values(question), now_utc=now_utc)
    return len(questions)


async def load_active_rules() -> list[ResponseRule]:
    async with SessionLocal.begin() as session:
        rows = await ResponseRulesRepo.list_active(session)
    return [rule_from_row(row) for row in rows]


async def record_rule_usage(rule_id: str, *, used_at: datetime) -> bool:
    async with SessionLocal.begin() as session:
        return await ResponseRulesRepo.record_usage(session, rule_id=rule_id, used_at=used_at)
