from __future__ import annotations

import pytest
from sqlalchemy import text

from quizflow.core.integration_db_safety import assert_safe_integration_db
from quizflow.db.session import engine

TRUNCATE_TABLES = (
    "quiz_answers",
    "quiz_sessions",
    "session_leases",
    "quiz_questions",
    "response_rules",
)

TRUNCATE_SQL = f"TRUNCATE TABLE {', '.join(TRUNCATE_TABLES)} CASCADE"


@pytest.fixture(autouse=True)
async def cleanup_db() -> None:
    # Fresh pool per test: asyncpg connections are bound to the loop that opened them.
    await engine.dispose()

    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as exc:  # pragma: no cover - environment-dependent
        pytest.skip(f"Postgres is required for integration tests: {exc}")

    assert_safe_integration_db(engine.url.render_as_string(hide_password=True))

    async with engine.begin() as conn:
        await conn.execute(text(TRUNCATE_SQL))

    yield

    await engine.dispose()
