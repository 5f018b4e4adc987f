from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime

import structlog

from quizflow.core.config import Settings, get_settings, parse_keywords
from quizflow.game.questions.flow import QuestionFlowEngine
from quizflow.game.questions.types import FlowCompleted, QuestionPrompt
from quizflow.game.questions.validation import sanitize_answer_text, validate_participant_id
from quizflow.game.sessions import messages
from quizflow.game.sessions.errors import (
    ConcurrentModificationError,
    InvalidAnswerFormatError,
    LockUnavailableError,
    NoVisibleQuestionsError,
    SessionNotActiveError,
    SessionNotFoundError,
    UnexpectedQuestionError,
)
from quizflow.game.sessions.locks import LockManager
from quizflow.game.sessions.recovery import (
    SessionRecoveryService,
    reset_session_state,
    terminate_session_state,
)
from quizflow.game.sessions.store import SessionStore
from quizflow.game.sessions.transactions import Clock, TransactionExecutor, utc_now
from quizflow.game.sessions.types import (
    AdminResetResult,
    AnswerOutcome,
    DropOffPoint,
    ParticipantStatistics,
    QuizReply,
    QuizSessionState,
    SessionStatus,
)

logger = structlog.get_logger(__name__)

OPERATION_SUBMIT_ANSWER = "submit_answer"
OPERATION_COMPLETE_EXHAUSTED = "complete_exhausted"
OPERATION_ADMIN_RESET = "admin_reset"

ERROR_CODE_INVALID_ANSWER = "E_INVALID_ANSWER"
ERROR_CODE_BUSY = "E_SESSION_BUSY"
ERROR_CODE_NO_QUESTIONS = "E_NO_VISIBLE_QUESTIONS"
ERROR_CODE_STALE_QUESTION = "E_UNEXPECTED_QUESTION"


def _elapsed_ms(since: datetime, now_utc: datetime) -> int:
    return max(0, int((now_utc - since).total_seconds() * 1000))


def _session_reply(
    session: QuizSessionState,
    flow: QuestionPrompt | FlowCompleted,
    *,
    text: str | None = None,
    accepted: bool = True,
    error_code: str | None = None,
) -> QuizReply:
    if isinstance(flow, FlowCompleted):
        return QuizReply(
            session_id=session.id,
            text=text or messages.format_completion(score=session.score, total_questions=flow.total),
            status=session.status,
            score=session.score,
            total_questions=flow.total,
            accepted=accepted,
            error_code=error_code,
        )
    return QuizReply(
        session_id=session.id,
        text=text or messages.format_prompt(flow),
        status=session.status,
        question=flow.question,
        question_number=flow.number,
        total_questions=flow.total,
        score=session.score,
        accepted=accepted,
        error_code=error_code,
    )


class QuizSessionService:
    """Entry points for inbound participant messages and administrative actions."""

    def __init__(
        self,
        store: SessionStore,
        *,
        lock_manager: LockManager,
        executor: TransactionExecutor,
        recovery: SessionRecoveryService,
        start_keywords: frozenset[str],
        stop_keywords: frozenset[str],
        clock: Clock = utc_now,
    ) -> None:
        self._store = store
        self._locks = lock_manager
        self._executor = executor
        self._recovery = recovery
        self._start_keywords = start_keywords
        self._stop_keywords = stop_keywords
        self._clock = clock

    @classmethod
    def from_settings(
        cls,
        store: SessionStore,
        *,
        settings: Settings | None = None,
        clock: Clock = utc_now,
    ) -> QuizSessionService:
        resolved = settings or get_settings()
        lock_manager = LockManager(store, ttl_seconds=resolved.quiz_lease_ttl_seconds)
        executor = TransactionExecutor(
            store,
            lock_manager,
            max_attempts=resolved.quiz_tx_max_attempts,
            base_delay_ms=resolved.quiz_tx_base_delay_ms,
            clock=clock,
        )
        recovery = SessionRecoveryService(
            store,
            executor,
            lock_manager,
            stale_after_minutes=resolved.quiz_session_stale_after_minutes,
        )
        return cls(
            store,
            lock_manager=lock_manager,
            executor=executor,
            recovery=recovery,
            start_keywords=parse_keywords(resolved.quiz_start_keywords),
            stop_keywords=parse_keywords(resolved.quiz_stop_keywords),
            clock=clock,
        )

    @property
    def recovery(self) -> SessionRecoveryService:
        return self._recovery

    @property
    def lock_manager(self) -> LockManager:
        return self._locks

    async def handle_answer(
        self,
        participant_id: str,
        message_text: str,
        *,
        now_utc: datetime | None = None,
    ) -> QuizReply:
        participant_id = validate_participant_id(participant_id)
        now_utc = now_utc or self._clock()
        keyword = sanitize_answer_text(message_text).casefold()

        if keyword in self._stop_keywords:
            return await self.end_session(participant_id, now_utc=now_utc)

        restart = keyword in self._start_keywords
        engine = QuestionFlowEngine(await self._store.list_active_questions())

        try:
            resolved = await self._recovery.resolve(participant_id, now_utc=now_utc, restart=restart)
        except (LockUnavailableError, ConcurrentModificationError):
            logger.warning("quiz_resolve_busy", participant_id=participant_id, restart=restart)
            return QuizReply(
                session_id=None,
                text=messages.TEXT_RETRY_SHORTLY,
                status=None,
                accepted=False,
                error_code=ERROR_CODE_BUSY,
            )

        session = resolved.session
        if resolved.created or resolved.restarted or restart:
            return self._prompt_reply(engine, session)

        expected = engine.current_question(session)
        if expected is None:
            return await self._complete_exhausted(engine, session, now_utc=now_utc)

        return await self._submit(
            engine,
            session,
            question_id=expected.id,
            message_text=message_text,
            now_utc=now_utc,
        )

    def _prompt_reply(
        self,
        engine: QuestionFlowEngine,
        session: QuizSessionState,
        *,
        accepted: bool = True,
    ) -> QuizReply:
        try:
            flow = engine.next_prompt(session)
        except NoVisibleQuestionsError:
            logger.error("quiz_no_visible_questions", session_id=str(session.id))
            return QuizReply(
                session_id=session.id,
                text=messages.TEXT_NO_QUESTIONS,
                status=session.status,
                accepted=False,
                error_code=ERROR_CODE_NO_QUESTIONS,
            )
        return _session_reply(session, flow, accepted=accepted)

    async def _submit(
        self,
        engine: QuestionFlowEngine,
        session: QuizSessionState,
        *,
        question_id: str,
        message_text: str,
        now_utc: datetime,
    ) -> QuizReply:
        async def _apply(current: QuizSessionState) -> tuple[QuizSessionState, AnswerOutcome]:
            return engine.submit_answer(
                current,
                question_id=question_id,
                raw_answer=message_text,
                time_spent_ms=_elapsed_ms(current.last_activity_at, now_utc),
                now_utc=now_utc,
            )

        try:
            result = await self._executor.execute(session.id, OPERATION_SUBMIT_ANSWER, _apply)
        except InvalidAnswerFormatError as exc:
            flow = engine.next_prompt(session)
            if isinstance(flow, FlowCompleted):
                return _session_reply(session, flow, accepted=False)
            return _session_reply(
                session,
                flow,
                text=messages.format_clarification(exc.guidance, flow),
                accepted=False,
                error_code=ERROR_CODE_INVALID_ANSWER,
            )
        except (UnexpectedQuestionError, SessionNotActiveError) as exc:
            logger.info(
                "quiz_answer_superseded",
                session_id=str(session.id),
                question_id=question_id,
                error_type=type(exc).__name__,
            )
            return await self._current_state_reply(engine, session)
        except (LockUnavailableError, ConcurrentModificationError):
            return QuizReply(
                session_id=session.id,
                text=messages.TEXT_RETRY_SHORTLY,
                status=session.status,
                accepted=False,
                error_code=ERROR_CODE_BUSY,
            )
        except NoVisibleQuestionsError:
            return self._prompt_reply(engine, session, accepted=False)
        except SessionNotFoundError:
            logger.error("quiz_session_missing", session_id=str(session.id))
            raise
        except Exception:
            logger.exception("quiz_answer_failed", session_id=str(session.id), question_id=question_id)
            await self._interrupt_after_failure(session, now_utc=now_utc)
            raise

        outcome = result.result
        logger.info(
            "quiz_answer_applied",
            session_id=str(session.id),
            question_id=outcome.question_id,
            is_correct=outcome.is_correct,
            points_awarded=outcome.points_awarded,
            skipped=outcome.skipped,
            completed=outcome.completed,
            version=result.session.version,
            attempts=result.attempts,
        )
        return self._prompt_reply(engine, result.session)

    async def _current_state_reply(
        self,
        engine: QuestionFlowEngine,
        session: QuizSessionState,
    ) -> QuizReply:
        fresh = await self._store.get_session(session.id)
        if fresh is None:
            raise SessionNotFoundError(f"session {session.id} does not exist")
        if fresh.status not in {SessionStatus.ACTIVE, SessionStatus.COMPLETED}:
            return QuizReply(
                session_id=fresh.id,
                text=messages.TEXT_NO_ACTIVE_SESSION,
                status=fresh.status,
                accepted=False,
            )
        reply = self._prompt_reply(engine, fresh, accepted=False)
        if reply.error_code is None and fresh.status == SessionStatus.ACTIVE:
            reply.error_code = ERROR_CODE_STALE_QUESTION
        return reply

    async def _complete_exhausted(
        self,
        engine: QuestionFlowEngine,
        session: QuizSessionState,
        *,
        now_utc: datetime,
    ) -> QuizReply:
        async def _apply(current: QuizSessionState) -> tuple[QuizSessionState | None, None]:
            if current.status != SessionStatus.ACTIVE or engine.current_question(current) is not None:
                return None, None
            return terminate_session_state(current, status=SessionStatus.COMPLETED, now_utc=now_utc), None

        try:
            result = await self._executor.execute(session.id, OPERATION_COMPLETE_EXHAUSTED, _apply)
        except (LockUnavailableError, ConcurrentModificationError):
            return QuizReply(
                session_id=session.id,
                text=messages.TEXT_RETRY_SHORTLY,
                status=session.status,
                accepted=False,
                error_code=ERROR_CODE_BUSY,
            )
        return self._prompt_reply(engine, result.session)

    async def _interrupt_after_failure(self, session: QuizSessionState, *, now_utc: datetime) -> None:
        try:
            await self._recovery.mark_interrupted(session.id, now_utc=now_utc, reason="error")
        except Exception:
            logger.exception("quiz_session_interrupt_failed", session_id=str(session.id))

    async def end_session(
        self,
        participant_id: str,
        *,
        now_utc: datetime | None = None,
    ) -> QuizReply:
        participant_id = validate_participant_id(participant_id)
        now_utc = now_utc or self._clock()
        active = await self._store.get_latest_active_session(participant_id)
        if active is None:
            return QuizReply(session_id=None, text=messages.TEXT_NO_ACTIVE_SESSION, status=None)

        try:
            await self._recovery.mark_abandoned(active.id, now_utc=now_utc)
        except (LockUnavailableError, ConcurrentModificationError):
            return QuizReply(
                session_id=active.id,
                text=messages.TEXT_RETRY_SHORTLY,
                status=active.status,
                accepted=False,
                error_code=ERROR_CODE_BUSY,
            )
        return QuizReply(
            session_id=active.id,
            text=messages.TEXT_SESSION_ENDED,
            status=SessionStatus.ABANDONED,
            score=active.score,
        )

    async def admin_reset_session(self, participant_id: str) -> AdminResetResult:
        """Reset the participant's active session to its initial state.

        Its lease is force-released first, so a stuck holder cannot block the
        reset. Answers are cleared in the same write. Completed, abandoned and
        interrupted sessions are kept as history.
        """
        participant_id = validate_participant_id(participant_id)
        now_utc = self._clock()
        active = await self._store.get_latest_active_session(participant_id)
        if active is None:
            logger.info("quiz_admin_reset_no_active_session", participant_id=participant_id)
            return AdminResetResult(
                participant_id=participant_id,
                reset_session_id=None,
                cleared_answers=0,
                released_leases=0,
            )

        released = await self._locks.force_release(active.id)

        async def _apply(current: QuizSessionState) -> tuple[QuizSessionState | None, int]:
            if current.status != SessionStatus.ACTIVE:
                return None, 0
            return reset_session_state(current, now_utc=now_utc), len(current.answers)

        result = await self._executor.execute(active.id, OPERATION_ADMIN_RESET, _apply)
        reset_applied = result.persisted
        logger.info(
            "quiz_admin_reset",
            participant_id=participant_id,
            session_id=str(active.id),
            reset_applied=reset_applied,
            cleared_answers=result.result,
            released_leases=int(released),
            version=result.session.version,
        )
        return AdminResetResult(
            participant_id=participant_id,
            reset_session_id=active.id if reset_applied else None,
            cleared_answers=result.result,
            released_leases=int(released),
        )

    async def participant_statistics(self, participant_id: str) -> ParticipantStatistics:
        participant_id = validate_participant_id(participant_id)
        sessions = await self._store.list_participant_sessions(participant_id)
        return summarize_sessions(participant_id, sessions)


def drop_off_points(sessions: Sequence[QuizSessionState]) -> list[DropOffPoint]:
    """Share of finished sessions that stopped at each question index, in percent.

    Active sessions are still in progress and are left out. Indexes nobody
    dropped at are omitted; the worst drop-off comes first.
    """
    reached: dict[int, int] = {}
    passed: dict[int, int] = {}
    for session in sessions:
        if session.status == SessionStatus.ACTIVE:
            continue
        for index in range(session.current_question_index + 1):
            reached[index] = reached.get(index, 0) + 1
            if index < session.current_question_index or session.status == SessionStatus.COMPLETED:
                passed[index] = passed.get(index, 0) + 1

    points = [
        DropOffPoint(
            question_index=index,
            drop_off_rate=round((count - passed.get(index, 0)) / count * 100, 2),
        )
        for index, count in reached.items()
    ]
    return sorted(
        (point for point in points if point.drop_off_rate > 0),
        key=lambda point: (-point.drop_off_rate, point.question_index),
    )


def summarize_sessions(
    participant_id: str,
    sessions: Sequence[QuizSessionState],
) -> ParticipantStatistics:
    by_status = {status: 0 for status in SessionStatus}
    for session in sessions:
        by_status[session.status] += 1

    completed = [session for session in sessions if session.status == SessionStatus.COMPLETED]
    completion_seconds = [
        (session.completed_at - session.started_at).total_seconds()
        for session in completed
        if session.completed_at is not None
    ]
    total = len(sessions)
    return ParticipantStatistics(
        participant_id=participant_id,
        total_sessions=total,
        completed_sessions=by_status[SessionStatus.COMPLETED],
        abandoned_sessions=by_status[SessionStatus.ABANDONED],
        interrupted_sessions=by_status[SessionStatus.INTERRUPTED],
        active_sessions=by_status[SessionStatus.ACTIVE],
        average_score=(
            round(sum(session.score for session in completed) / len(completed), 2) if completed else 0.0
        ),
        average_engagement_score=(
            round(
                sum(session.engagement.engagement_score for session in completed) / len(completed),
                2,
            )
            if completed
            else 0.0
        ),
        average_completion_seconds=(
            round(sum(completion_seconds) / len(completion_seconds), 2) if completion_seconds else 0.0
        ),
        completion_rate=round(len(completed) / total, 4) if total else 0.0,
        drop_off_points=drop_off_points(sessions),
    )

