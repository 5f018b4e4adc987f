from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import replace
from datetime import datetime

from quizflow.game.questions.types import (
    FlowCompleted,
    PersonalQuestion,
    PreferenceQuestion,
    Question,
    QuestionPrompt,
    is_graded,
)
from quizflow.game.questions.validation import answer_values_equal, is_skip_answer, parse_answer
from quizflow.game.sessions.engagement import record_answer_telemetry, record_skip
from quizflow.game.sessions.errors import (
    InvalidAnswerFormatError,
    NoVisibleQuestionsError,
    SessionNotActiveError,
    UnexpectedQuestionError,
)
from quizflow.game.sessions.types import (
    AnswerOutcome,
    AnswerRecord,
    QuizSessionState,
    SessionStatus,
)

PERSONAL_ANSWER_POINTS = 5
PREFERENCE_ANSWER_POINTS = 3


def _is_visible(question: Question, answers: Mapping[str, AnswerRecord]) -> bool:
    logic = question.conditional_logic
    if logic is None:
        return True
    dependency = answers.get(logic.depends_on_question_id)
    if dependency is None:
        return False
    return answer_values_equal(dependency.value, logic.required_answer_value)


def visible_questions(
    questions: Sequence[Question],
    answers: Mapping[str, AnswerRecord],
) -> list[Question]:
    ordered = sorted(questions, key=lambda question: (question.order_index, question.id))
    return [question for question in ordered if _is_visible(question, answers)]


def current_question(
    questions: Sequence[Question],
    session: QuizSessionState,
) -> Question | None:
    visible = visible_questions(questions, session.answers)
    if session.current_question_index >= len(visible):
        return None
    return visible[session.current_question_index]


def next_prompt(
    questions: Sequence[Question],
    session: QuizSessionState,
) -> QuestionPrompt | FlowCompleted:
    visible = visible_questions(questions, session.answers)
    if not visible:
        raise NoVisibleQuestionsError("no question is visible for this session")
    if session.status != SessionStatus.ACTIVE or session.current_question_index >= len(visible):
        return FlowCompleted(total=len(visible))
    return QuestionPrompt(
        question=visible[session.current_question_index],
        number=session.current_question_index + 1,
        total=len(visible),
    )


def _grade(question: Question, value: object) -> tuple[bool, int]:
    if isinstance(question, PersonalQuestion):
        return True, PERSONAL_ANSWER_POINTS
    if isinstance(question, PreferenceQuestion):
        return True, PREFERENCE_ANSWER_POINTS
    is_correct = value == question.correct_answer
    return is_correct, (question.points or 0) if is_correct else 0


def _update_streaks(
    session: QuizSessionState,
    *,
    question: Question,
    is_correct: bool,
) -> tuple[int, int]:
    if not is_graded(question):
        return session.current_streak, session.best_streak
    current_streak = session.current_streak + 1 if is_correct else 0
    return current_streak, max(session.best_streak, current_streak)


def _finish_step(
    questions: Sequence[Question],
    session: QuizSessionState,
    *,
    now_utc: datetime,
) -> QuizSessionState:
    next_index = session.current_question_index + 1
    visible = visible_questions(questions, session.answers)
    if next_index >= len(visible):
        return replace(
            session,
            current_question_index=next_index,
            status=SessionStatus.COMPLETED,
            completed_at=now_utc,
            last_activity_at=now_utc,
        )
    return replace(session, current_question_index=next_index, last_activity_at=now_utc)


def submit_answer(
    questions: Sequence[Question],
    session: QuizSessionState,
    *,
    question_id: str,
    raw_answer: str,
    time_spent_ms: int,
    now_utc: datetime,
) -> tuple[QuizSessionState, AnswerOutcome]:
    """Apply one answer to a session snapshot and return the next snapshot.

    The input snapshot is never mutated. Version bookkeeping belongs to the
    transaction executor, so the returned state keeps the input version.
    """
    if session.status != SessionStatus.ACTIVE:
        raise SessionNotActiveError(f"session {session.id} is {session.status.value}")

    visible = visible_questions(questions, session.answers)
    if not visible:
        raise NoVisibleQuestionsError("no question is visible for this session")
    expected = (
        visible[session.current_question_index]
        if session.current_question_index < len(visible)
        else None
    )
    if expected is None or expected.id != question_id:
        raise UnexpectedQuestionError(
            expected_question_id=expected.id if expected is not None else None,
            received_question_id=question_id,
        )

    if is_skip_answer(raw_answer) and not is_graded(expected):
        if expected.required:
            raise InvalidAnswerFormatError("Cette question est obligatoire, merci d'y répondre.")
        skipped = replace(session, engagement=record_skip(session.engagement))
        next_state = _finish_step(questions, skipped, now_utc=now_utc)
        return next_state, AnswerOutcome(
            question_id=question_id,
            accepted_value=None,
            is_correct=False,
            points_awarded=0,
            skipped=True,
            completed=next_state.status == SessionStatus.COMPLETED,
        )

    sanitized_answer, value = parse_answer(expected, raw_answer)
    is_correct, points_awarded = _grade(expected, value)
    record = AnswerRecord(
        question_id=question_id,
        raw_answer=sanitized_answer,
        value=value,
        is_correct=is_correct,
        points_awarded=points_awarded,
        time_spent_ms=max(0, int(time_spent_ms)),
        answered_at=now_utc,
        graded=is_graded(expected),
    )
    answers = dict(session.answers)
    answers[question_id] = record
    current_streak, best_streak = _update_streaks(session, question=expected, is_correct=is_correct)

    answered = replace(
        session,
        answers=answers,
        score=sum(answer.points_awarded for answer in answers.values()),
        current_streak=current_streak,
        best_streak=best_streak,
        engagement=record_answer_telemetry(
            session.engagement,
            answers=answers,
            question_id=question_id,
            time_spent_ms=record.time_spent_ms,
        ),
    )
    next_state = _finish_step(questions, answered, now_utc=now_utc)
    return next_state, AnswerOutcome(
        question_id=question_id,
        accepted_value=value,
        is_correct=is_correct,
        points_awarded=points_awarded,
        skipped=False,
        completed=next_state.status == SessionStatus.COMPLETED,
    )


class QuestionFlowEngine:
    """Stateless facade over the flow functions bound to one question catalog."""

    def __init__(self, questions: Sequence[Question]) -> None:
        self._questions = tuple(questions)

    @property
    def questions(self) -> tuple[Question, ...]:
        return self._questions

    def visible_questions(self, answers: Mapping[str, AnswerRecord]) -> list[Question]:
        return visible_questions(self._questions, answers)

    def current_question(self, session: QuizSessionState) -> Question | None:
        return current_question(self._questions, session)

    def next_prompt(self, session: QuizSessionState) -> QuestionPrompt | FlowCompleted:
        return next_prompt(self._questions, session)

    def submit_answer(
        self,
        session: QuizSessionState,
        *,
        question_id: str,
        raw_answer: str,
        time_spent_ms: int,
        now_utc: datetime,
    ) -> tuple[QuizSessionState, AnswerOutcome]:
        return submit_answer(
            self._questions,
            session,
            question_id=question_id,
            raw_answer=raw_answer,
            time_spent_ms=time_spent_ms,
            now_utc=now_utc,
        )
