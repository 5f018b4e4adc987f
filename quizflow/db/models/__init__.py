from quizflow.db.models.quiz_answers import QuizAnswer
from quizflow.db.models.quiz_questions import QuizQuestion
from quizflow.db.models.quiz_sessions import QuizSession
from quizflow.db.models.response_rules import ResponseRuleRow
from quizflow.db.models.session_leases import SessionLease

__all__ = [
    "QuizAnswer",
    "QuizQuestion",
    "QuizSession",
    "ResponseRuleRow",
    "SessionLease",
]
