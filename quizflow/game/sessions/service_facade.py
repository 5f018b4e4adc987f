from __future__ import annotations

from functools import lru_cache

from quizflow.db.store import SqlSessionStore
from quizflow.game.sessions.service import QuizSessionService


@lru_cache(maxsize=1)
def get_quiz_session_service() -> QuizSessionService:
    """Process-wide service bound to the PostgreSQL store."""
    return QuizSessionService.from_settings(SqlSessionStore())
