from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.ext.asyncio import AsyncSession

from quizflow.db.models.quiz_answers import QuizAnswer


class QuizAnswersRepo:
    @staticmethod
    async def list_for_sessions(session: AsyncSession, *, session_ids: list[UUID]) -> list[QuizAnswer]:
        if not session_ids:
            return []
        stmt = (
            select(QuizAnswer)
            .where(QuizAnswer.session_id.in_(session_ids))
            .order_by(QuizAnswer.session_id.asc(), QuizAnswer.answered_at.asc())
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def upsert(
        session: AsyncSession,
        *,
        session_id: UUID,
        question_id: str,
        raw_answer: str,
        answer_value: Any,
        is_correct: bool,
        is_graded: bool,
        points_awarded: int,
        time_spent_ms: int,
        answered_at: datetime,
    ) -> None:
        values = {
            "raw_answer": raw_answer,
            "answer_value": answer_value,
            "is_correct": is_correct,
            "is_graded": is_graded,
            "points_awarded": points_awarded,
            "time_spent_ms": time_spent_ms,
            "answered_at": answered_at,
        }
        stmt = (
            postgresql_insert(QuizAnswer)
            .values(session_id=session_id, question_id=question_id, **values)
            .on_conflict_do_update(
                index_elements=[QuizAnswer.session_id, QuizAnswer.question_id],
                set_=values,
            )
        )
        await session.execute(stmt)

    @staticmethod
    async def delete_except(
        session: AsyncSession,
        *,
        session_id: UUID,
        keep_question_ids: list[str],
    ) -> int:
        stmt = delete(QuizAnswer).where(QuizAnswer.session_id == session_id)
        if keep_question_ids:
            stmt = stmt.where(QuizAnswer.question_id.not_in(keep_question_ids))
        result = await session.execute(stmt.returning(QuizAnswer.question_id))
        return len(list(result.scalars()))
