from quizflow.db.repo.quiz_answers_repo import QuizAnswersRepo
from quizflow.db.repo.quiz_questions_repo import QuizQuestionsRepo
from quizflow.db.repo.quiz_sessions_repo import QuizSessionsRepo
from quizflow.db.repo.response_rules_repo import ResponseRulesRepo
from quizflow.db.repo.session_leases_repo import SessionLeasesRepo

__all__ = [
    "QuizAnswersRepo",
    "QuizQuestionsRepo",
    "QuizSessionsRepo",
    "ResponseRulesRepo",
    "SessionLeasesRepo",
]
