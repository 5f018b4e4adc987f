from __future__ import annotations

from datetime import datetime, timedelta, timezone

from quizflow.core.config import Settings
from quizflow.game.questions.types import (
    ConditionalLogic,
    PersonalQuestion,
    PreferenceQuestion,
    TrueFalseQuestion,
    YesNoQuestion,
)
from quizflow.game.sessions.memory_store import InMemorySessionStore
from quizflow.game.sessions.service import QuizSessionService

UTC = timezone.utc
PHONE = "+33612345678"
WEB_USER = "web_abcdef123456"


class FakeClock:
    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 3, 2, 9, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


def branching_questions() -> list:
    return [
        TrueFalseQuestion(
            id="q1",
            text="Le soleil est une étoile ?",
            order_index=1,
            correct_answer=True,
            points=10,
        ),
        PreferenceQuestion(
            id="q2",
            text="Quel moment préférez-vous ?",
            order_index=2,
            options=("Matin", "Soir"),
        ),
        PersonalQuestion(
            id="q3",
            text="Pourquoi aimez-vous l'astronomie ?",
            order_index=3,
            conditional_logic=ConditionalLogic(depends_on_question_id="q1", required_answer_value=True),
        ),
    ]


def mixed_questions() -> list:
    return [
        TrueFalseQuestion(id="tf", text="La Terre est plate ?", order_index=0, correct_answer=False, points=4),
        YesNoQuestion(id="yn", text="Paris est en France ?", order_index=1, correct_answer=True, points=6),
        PersonalQuestion(id="city", text="Dans quelle ville vivez-vous ?", order_index=2, required=False),
        PreferenceQuestion(id="pet", text="Chat ou chien ?", order_index=3, options=("Chat", "Chien")),
    ]


def quiz_settings(**overrides: object) -> Settings:
    values: dict[str, object] = {
        "QUIZ_LEASE_TTL_SECONDS": 30,
        "QUIZ_TX_MAX_ATTEMPTS": 3,
        "QUIZ_TX_BASE_DELAY_MS": 0,
        "QUIZ_SESSION_STALE_AFTER_MINUTES": 60,
    }
    values.update(overrides)
    return Settings(**values)


def make_service(
    questions: list | None = None,
    *,
    clock: FakeClock | None = None,
    **settings_overrides: object,
) -> tuple[QuizSessionService, InMemorySessionStore, FakeClock]:
    store = InMemorySessionStore(branching_questions() if questions is None else questions)
    resolved_clock = clock or FakeClock()
    service = QuizSessionService.from_settings(
        store,
        settings=quiz_settings(**settings_overrides),
        clock=resolved_clock,
    )
    return service, store, resolved_clock
