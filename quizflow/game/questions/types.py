from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Union


class QuestionType(str, Enum):
    PERSONAL = "PERSONAL"
    PREFERENCE = "PREFERENCE"
    TRUE_FALSE = "TRUE_FALSE"
    YES_NO = "YES_NO"


AnswerValue = Union[bool, str]


@dataclass(frozen=True, slots=True)
class ConditionalLogic:
    depends_on_question_id: str
    required_answer_value: AnswerValue


@dataclass(frozen=True, slots=True, kw_only=True)
class PersonalQuestion:
    id: str
    text: str
    order_index: int
    required: bool = True
    category: str | None = None
    conditional_logic: ConditionalLogic | None = None
    question_type: QuestionType = field(default=QuestionType.PERSONAL, init=False)


@dataclass(frozen=True, slots=True, kw_only=True)
class PreferenceQuestion:
    id: str
    text: str
    order_index: int
    options: tuple[str, ...]
    required: bool = True
    category: str | None = None
    conditional_logic: ConditionalLogic | None = None
    question_type: QuestionType = field(default=QuestionType.PREFERENCE, init=False)


@dataclass(frozen=True, slots=True, kw_only=True)
class TrueFalseQuestion:
    id: str
    text: str
    order_index: int
    correct_answer: bool
    points: int | None = None
    required: bool = True
    category: str | None = None
    conditional_logic: ConditionalLogic | None = None
    question_type: QuestionType = field(default=QuestionType.TRUE_FALSE, init=False)


@dataclass(frozen=True, slots=True, kw_only=True)
class YesNoQuestion:
    id: str
    text: str
    order_index: int
    correct_answer: bool
    points: int | None = None
    required: bool = True
    category: str | None = None
    conditional_logic: ConditionalLogic | None = None
    question_type: QuestionType = field(default=QuestionType.YES_NO, init=False)


Question = Union[PersonalQuestion, PreferenceQuestion, TrueFalseQuestion, YesNoQuestion]
GradedQuestion = Union[TrueFalseQuestion, YesNoQuestion]


def is_graded(question: Question) -> bool:
    return isinstance(question, (TrueFalseQuestion, YesNoQuestion))


@dataclass(slots=True)
class QuestionPrompt:
    question: Question
    number: int
    total: int


@dataclass(slots=True)
class FlowCompleted:
    total: int
