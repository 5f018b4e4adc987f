from __future__ import annotations

from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from quizflow.db.models.response_rules import ResponseRuleRow


class ResponseRulesRepo:
    @staticmethod
    async def list_active(session: AsyncSession) -> list[ResponseRuleRow]:
        stmt = (
            select(ResponseRuleRow)
            .where(ResponseRuleRow.is_active.is_(True))
            .order_by(ResponseRuleRow.priority.desc(), ResponseRuleRow.id.asc())
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def record_usage(session: AsyncSession, *, rule_id: str, used_at: datetime) -> bool:
        stmt = (
            update(ResponseRuleRow)
            .where(ResponseRuleRow.id == rule_id)
            .values(
                usage_count=ResponseRuleRow.usage_count + 1,
                last_used_at=used_at,
            )
            .returning(ResponseRuleRow.id)
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none() is not None
