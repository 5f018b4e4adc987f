from quizflow.workers.tasks.quiz_messages import process_quiz_message
from quizflow.workers.tasks.session_maintenance import run_session_maintenance

__all__ = [
    "process_quiz_message",
    "run_session_maintenance",
]
