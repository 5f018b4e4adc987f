from __future__ import annotations

import pytest

from quizflow.game.questions.flow import QuestionFlowEngine
from quizflow.game.sessions import messages
from quizflow.game.sessions.errors import InvalidParticipantError
from quizflow.game.sessions.service import (
    ERROR_CODE_BUSY,
    ERROR_CODE_INVALID_ANSWER,
    ERROR_CODE_NO_QUESTIONS,
)
from quizflow.game.sessions.types import DropOffPoint, SessionStatus
from tests.game.quiz_fixtures import PHONE, WEB_USER, make_service


async def test_first_message_starts_session_with_first_question() -> None:
    service, store, _ = make_service()

    reply = await service.handle_answer(PHONE, "Bonjour")

    assert reply.accepted is True
    assert reply.question is not None and reply.question.id == "q1"
    assert (reply.question_number, reply.total_questions) == (1, 2)
    assert reply.text.startswith("Question 1/2")
    assert (await store.get_session(reply.session_id)).version == 1


async def test_full_quiz_reaches_completion_and_feeds_statistics() -> None:
    service, store, clock = make_service()
    await service.handle_answer(PHONE, "Bonjour")

    clock.advance(seconds=10)
    second = await service.handle_answer(PHONE, "faux")
    assert second.question.id == "q2"
    assert second.score == 0

    clock.advance(seconds=10)
    done = await service.handle_answer(PHONE, "2")

    assert done.status == SessionStatus.COMPLETED
    assert done.question is None
    assert done.score == 3
    assert "3 points" in done.text

    stored = await store.get_session(done.session_id)
    assert stored.version == 3
    assert stored.answers["q1"].time_spent_ms == 10_000
    assert stored.answers["q2"].value == "Soir"

    stats = await service.participant_statistics(PHONE)
    assert stats.total_sessions == 1
    assert stats.completed_sessions == 1
    assert stats.average_score == 3.0
    assert stats.average_completion_seconds == 20.0
    assert stats.completion_rate == 1.0


async def test_invalid_answer_returns_clarification_without_mutation() -> None:
    service, store, clock = make_service()
    started = await service.handle_answer(PHONE, "Bonjour")

    clock.advance(seconds=5)
    reply = await service.handle_answer(PHONE, "peut-être")

    assert reply.accepted is False
    assert reply.error_code == ERROR_CODE_INVALID_ANSWER
    assert "Vrai" in reply.text
    assert reply.question.id == "q1"
    stored = await store.get_session(started.session_id)
    assert stored.version == 1
    assert stored.answers == {}


async def test_stop_keyword_abandons_and_next_message_starts_over() -> None:
    service, store, clock = make_service()
    started = await service.handle_answer(WEB_USER, "Bonjour")

    clock.advance(seconds=5)
    stopped = await service.handle_answer(WEB_USER, "STOP")
    assert stopped.status == SessionStatus.ABANDONED
    assert stopped.text == messages.TEXT_SESSION_ENDED
    assert (await store.get_session(started.session_id)).status == SessionStatus.ABANDONED

    again = await service.handle_answer(WEB_USER, "stop")
    assert again.session_id is None
    assert again.text == messages.TEXT_NO_ACTIVE_SESSION

    clock.advance(seconds=5)
    fresh = await service.handle_answer(WEB_USER, "vrai")
    assert fresh.session_id != started.session_id
    assert fresh.question.id == "q1"


async def test_restart_keyword_resets_progress_on_same_session() -> None:
    service, store, clock = make_service()
    started = await service.handle_answer(PHONE, "Bonjour")
    clock.advance(seconds=5)
    await service.handle_answer(PHONE, "vrai")

    clock.advance(seconds=5)
    reply = await service.handle_answer(PHONE, " Recommencer ")

    assert reply.session_id == started.session_id
    assert reply.question.id == "q1"
    stored = await store.get_session(started.session_id)
    assert stored.score == 0
    assert stored.answers == {}
    assert stored.version == 3


async def test_busy_session_gets_retry_reply() -> None:
    service, store, clock = make_service()
    started = await service.handle_answer(PHONE, "Bonjour")
    assert await service.lock_manager.acquire(started.session_id, "other-worker", now_utc=clock()) is not None

    reply = await service.handle_answer(PHONE, "vrai")

    assert reply.accepted is False
    assert reply.error_code == ERROR_CODE_BUSY
    assert reply.text == messages.TEXT_RETRY_SHORTLY
    assert (await store.get_session(started.session_id)).version == 1


async def test_unexpected_failure_interrupts_session_and_propagates(monkeypatch) -> None:
    service, store, clock = make_service()
    started = await service.handle_answer(PHONE, "Bonjour")

    def _explode(self, session, **kwargs):
        raise RuntimeError("scoring backend down")

    monkeypatch.setattr(QuestionFlowEngine, "submit_answer", _explode)
    clock.advance(seconds=5)

    with pytest.raises(RuntimeError):
        await service.handle_answer(PHONE, "vrai")

    stored = await store.get_session(started.session_id)
    assert stored.status == SessionStatus.INTERRUPTED
    assert store.lease_for(started.session_id) is None


async def test_empty_catalog_reports_no_questions() -> None:
    service, _, _ = make_service(questions=[])

    reply = await service.handle_answer(PHONE, "Bonjour")

    assert reply.accepted is False
    assert reply.error_code == ERROR_CODE_NO_QUESTIONS
    assert reply.text == messages.TEXT_NO_QUESTIONS


async def test_invalid_participant_is_rejected() -> None:
    service, store, _ = make_service()

    with pytest.raises(InvalidParticipantError):
        await service.handle_answer("web_bad", "Bonjour")

    assert await store.count_sessions_by_status() == {status: 0 for status in SessionStatus}


async def _complete_quiz(service, clock, participant_id: str):
    await service.handle_answer(participant_id, "Bonjour")
    clock.advance(seconds=10)
    await service.handle_answer(participant_id, "faux")
    clock.advance(seconds=10)
    return await service.handle_answer(participant_id, "2")


async def test_admin_reset_clears_active_session_and_keeps_history() -> None:
    service, store, clock = make_service()
    finished = await _complete_quiz(service, clock, PHONE)
    active = await service.handle_answer(PHONE, "Bonjour")
    clock.advance(seconds=5)
    await service.handle_answer(PHONE, "vrai")
    assert await service.lock_manager.acquire(active.session_id, "stuck", now_utc=clock()) is not None

    result = await service.admin_reset_session("+33 6 12 34 56 78")

    assert result.participant_id == PHONE
    assert result.reset_session_id == active.session_id
    assert result.cleared_answers == 1
    assert result.released_leases == 1
    assert store.lease_for(active.session_id) is None

    reset = await store.get_session(active.session_id)
    assert reset.status == SessionStatus.ACTIVE
    assert (reset.current_question_index, reset.score, reset.answers) == (0, 0, {})
    assert reset.version == 3
    assert (await store.get_session(finished.session_id)).status == SessionStatus.COMPLETED

    stats = await service.participant_statistics(PHONE)
    assert stats.total_sessions == 2
    assert stats.completed_sessions == 1
    assert stats.active_sessions == 1


async def test_admin_reset_without_active_session_leaves_history_untouched() -> None:
    service, store, clock = make_service()
    finished = await _complete_quiz(service, clock, PHONE)

    result = await service.admin_reset_session(PHONE)

    assert result.reset_session_id is None
    assert (result.cleared_answers, result.released_leases) == (0, 0)
    stored = await store.get_session(finished.session_id)
    assert stored.status == SessionStatus.COMPLETED
    assert stored.version == 3
    assert stored.score == 3

    stats = await service.participant_statistics(PHONE)
    assert (stats.total_sessions, stats.completed_sessions) == (1, 1)


async def test_statistics_report_drop_off_by_question_index() -> None:
    service, _, clock = make_service()
    await _complete_quiz(service, clock, PHONE)
    await service.handle_answer(PHONE, "Bonjour")
    clock.advance(seconds=10)
    await service.handle_answer(PHONE, "faux")
    await service.handle_answer(PHONE, "stop")
    await service.handle_answer(PHONE, "Bonjour")

    stats = await service.participant_statistics(PHONE)

    assert (stats.total_sessions, stats.abandoned_sessions, stats.active_sessions) == (3, 1, 1)
    assert stats.drop_off_points == [DropOffPoint(question_index=1, drop_off_rate=50.0)]
