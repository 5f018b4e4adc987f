from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.ext.asyncio import AsyncSession

from quizflow.db.models.quiz_questions import QuizQuestion


class QuizQuestionsRepo:
    @staticmethod
    async def list_active(session: AsyncSession) -> list[QuizQuestion]:
        stmt = (
            select(QuizQuestion)
            .where(QuizQuestion.is_active.is_(True))
            .order_by(QuizQuestion.order_index.asc(), QuizQuestion.id.asc())
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def upsert(session: AsyncSession, *, values: dict[str, Any], now_utc: datetime) -> None:
        update_values = {key: value for key, value in values.items() if key != "id"}
        update_values["updated_at"] = now_utc
        stmt = (
            postgresql_insert(QuizQuestion)
            .values(**values, created_at=now_utc, updated_at=now_utc)
            .on_conflict_do_update(index_elements=[QuizQuestion.id], set_=update_values)
        )
        await session.execute(stmt)
