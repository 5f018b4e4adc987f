from __future__ import annotations

import structlog

from quizflow.game.sessions.errors import InvalidParticipantError
from quizflow.game.sessions.service_facade import get_quiz_session_service
from quizflow.workers.asyncio_runner import run_async_job
from quizflow.workers.celery_app import celery_app

logger = structlog.get_logger(__name__)

RESULT_INVALID_PARTICIPANT = "invalid_participant"


async def process_quiz_message_async(
    *,
    participant_id: str,
    message_text: str,
    task_id: str | None = None,
) -> dict[str, object]:
    try:
        reply = await get_quiz_session_service().handle_answer(participant_id, message_text)
    except InvalidParticipantError:
        logger.warning("quiz_message_invalid_participant", task_id=task_id)
        return {"result": RESULT_INVALID_PARTICIPANT}

    result: dict[str, object] = {
        "result": "processed" if reply.accepted else "rejected",
        "session_id": str(reply.session_id) if reply.session_id is not None else None,
        "status": reply.status.value if reply.status is not None else None,
        "reply_text": reply.text,
        "error_code": reply.error_code,
    }
    logger.info(
        "quiz_message_processed",
        task_id=task_id,
        session_id=result["session_id"],
        status=result["status"],
        accepted=reply.accepted,
        error_code=reply.error_code,
    )
    return result


@celery_app.task(bind=True, name="quizflow.workers.tasks.quiz_messages.process_quiz_message")
def process_quiz_message(self, *, participant_id: str, message_text: str) -> dict[str, object]:
    return run_async_job(
        process_quiz_message_async(
            participant_id=participant_id,
            message_text=message_text,
            task_id=getattr(self.request, "id", None),
        )
    )
