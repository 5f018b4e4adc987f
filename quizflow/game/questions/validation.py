from __future__ import annotations

import html
import re
from collections.abc import Mapping, Sequence

from quizflow.game.questions.errors import InvalidQuestionDefinitionError
from quizflow.game.questions.types import (
    AnswerValue,
    PersonalQuestion,
    PreferenceQuestion,
    Question,
    TrueFalseQuestion,
    YesNoQuestion,
    is_graded,
)
from quizflow.game.sessions.errors import InvalidAnswerFormatError, InvalidParticipantError

TRUE_FALSE_VALUES: dict[str, bool] = {"vrai": True, "true": True, "faux": False, "false": False}
YES_NO_VALUES: dict[str, bool] = {"oui": True, "yes": True, "non": False, "no": False}
SKIP_WORDS = frozenset({"skip", "passer"})

PERSONAL_ANSWER_MAX_LENGTH = 500
QUESTION_TEXT_MIN_LENGTH = 5
QUESTION_TEXT_MAX_LENGTH = 1000
PREFERENCE_MIN_OPTIONS = 2

_HTML_TAG_RE = re.compile(r"<[^>]*>")
_WHITESPACE_RE = re.compile(r"\s+")
_WEB_USER_ID_RE = re.compile(r"^web_[a-zA-Z0-9\-_]{8,50}$")
_PHONE_NUMBER_RE = re.compile(r"^\+?[0-9]{6,20}$")


def sanitize_answer_text(raw_answer: str) -> str:
    without_tags = _HTML_TAG_RE.sub("", raw_answer)
    unescaped = html.unescape(without_tags)
    return _WHITESPACE_RE.sub(" ", unescaped).strip()


def is_skip_answer(raw_answer: str) -> bool:
    return sanitize_answer_text(raw_answer).casefold() in SKIP_WORDS


def _parse_boolean(answer: str, values: dict[str, bool], guidance: str) -> bool:
    normalized = answer.casefold()
    if normalized not in values:
        raise InvalidAnswerFormatError(guidance)
    return values[normalized]


def _canonical_preference(question: PreferenceQuestion, answer: str) -> str:
    normalized = answer.casefold()
    for option in question.options:
        if option.casefold() == normalized:
            return option
    if answer.isdigit():
        option_number = int(answer)
        if 1 <= option_number <= len(question.options):
            return question.options[option_number - 1]
    return answer


def parse_answer(question: Question, raw_answer: str) -> tuple[str, AnswerValue]:
    """Validate a participant answer against the question type.

    Returns the sanitized text and the canonical value stored on the answer
    record. Raises InvalidAnswerFormatError with participant-facing guidance.
    """
    answer = sanitize_answer_text(raw_answer)
    if not answer:
        raise InvalidAnswerFormatError("Merci de répondre à la question pour continuer.")

    if isinstance(question, TrueFalseQuestion):
        return answer, _parse_boolean(
            answer,
            TRUE_FALSE_VALUES,
            "Veuillez répondre par 'Vrai' ou 'Faux'.",
        )
    if isinstance(question, YesNoQuestion):
        return answer, _parse_boolean(
            answer,
            YES_NO_VALUES,
            "Veuillez répondre par 'Oui' ou 'Non'.",
        )

    if answer.casefold() in SKIP_WORDS:
        raise InvalidAnswerFormatError("Merci de donner une réponse avant de continuer.")

    if isinstance(question, PersonalQuestion):
        if len(answer) > PERSONAL_ANSWER_MAX_LENGTH:
            raise InvalidAnswerFormatError(
                f"Votre réponse est trop longue (maximum {PERSONAL_ANSWER_MAX_LENGTH} caractères)."
            )
        return answer, answer

    return answer, _canonical_preference(question, answer)


def answer_values_equal(left: AnswerValue, right: AnswerValue) -> bool:
    if isinstance(left, bool) or isinstance(right, bool):
        return _as_bool(left) is not None and _as_bool(left) == _as_bool(right)
    return str(left).strip().casefold() == str(right).strip().casefold()


def _as_bool(value: AnswerValue) -> bool | None:
    if isinstance(value, bool):
        return value
    normalized = str(value).strip().casefold()
    if normalized in TRUE_FALSE_VALUES:
        return TRUE_FALSE_VALUES[normalized]
    if normalized in YES_NO_VALUES:
        return YES_NO_VALUES[normalized]
    return None


def validate_participant_id(participant_id: str) -> str:
    normalized = participant_id.strip()
    if normalized.startswith("web_"):
        if _WEB_USER_ID_RE.fullmatch(normalized) is None:
            raise InvalidParticipantError(f"invalid web user id: {normalized!r}")
        return normalized
    compact = normalized.replace(" ", "")
    if _PHONE_NUMBER_RE.fullmatch(compact) is None:
        raise InvalidParticipantError(f"invalid participant id: {normalized!r}")
    return compact


def is_web_participant(participant_id: str) -> bool:
    return participant_id.startswith("web_")


def question_problems(question: Question, *, question_orders: Mapping[str, int]) -> list[str]:
    problems: list[str] = []
    text = question.text.strip()
    if len(text) < QUESTION_TEXT_MIN_LENGTH:
        problems.append(f"text must be at least {QUESTION_TEXT_MIN_LENGTH} characters")
    if len(text) > QUESTION_TEXT_MAX_LENGTH:
        problems.append(f"text must be at most {QUESTION_TEXT_MAX_LENGTH} characters")
    if question.order_index < 0:
        problems.append("order_index must be non-negative")

    if is_graded(question):
        if question.correct_answer is None:
            problems.append("graded questions need a correct_answer")
        if question.points is not None and question.points < 0:
            problems.append("points must be non-negative")

    if isinstance(question, PreferenceQuestion):
        options = [option.strip() for option in question.options if option.strip()]
        if len(options) < PREFERENCE_MIN_OPTIONS:
            problems.append(f"preference questions need at least {PREFERENCE_MIN_OPTIONS} options")

    logic = question.conditional_logic
    if logic is not None:
        if not logic.depends_on_question_id:
            problems.append("conditional logic needs depends_on_question_id")
        elif logic.depends_on_question_id == question.id:
            problems.append("a question cannot depend on itself")
        elif logic.depends_on_question_id not in question_orders:
            problems.append(
                f"conditional logic references unknown question {logic.depends_on_question_id!r}"
            )
        elif question_orders[logic.depends_on_question_id] >= question.order_index:
            problems.append("conditional question must be ordered after the question it depends on")
        if logic.required_answer_value is None or logic.required_answer_value == "":
            problems.append("conditional logic needs required_answer_value")
    return problems


def validate_questions(questions: Sequence[Question]) -> None:
    question_orders = {question.id: question.order_index for question in questions}
    seen: set[str] = set()
    for question in questions:
        problems = question_problems(question, question_orders=question_orders)
        if question.id in seen:
            problems.append("duplicate question id")
        seen.add(question.id)
        if problems:
            raise InvalidQuestionDefinitionError(question.id, problems)
