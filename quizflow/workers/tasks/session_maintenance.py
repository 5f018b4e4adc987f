from __future__ import annotations

from datetime import datetime, timezone
from time import perf_counter

import structlog

from quizflow.core.config import get_settings
from quizflow.game.sessions.service_facade import get_quiz_session_service
from quizflow.workers.asyncio_runner import run_async_job
from quizflow.workers.celery_app import celery_app

logger = structlog.get_logger(__name__)


def _clamp_batch_size(value: int) -> int:
    return max(1, min(50000, int(value)))


def _clamp_schedule_seconds(value: int) -> int:
    return max(30, min(86400, int(value)))


async def run_session_maintenance_async(*, now_utc: datetime | None = None) -> dict[str, object]:
    """Evict expired leases and interrupt sessions idle past the stale threshold."""
    settings = get_settings()
    now_utc = now_utc or datetime.now(timezone.utc)
    batch_size = _clamp_batch_size(settings.quiz_maintenance_batch_size)
    service = get_quiz_session_service()
    started_at = perf_counter()
    error_count = 0

    try:
        leases_deleted = await service.lock_manager.sweep_expired(now_utc=now_utc, limit=batch_size)
    except Exception:
        error_count += 1
        leases_deleted = 0
        logger.exception("quiz_maintenance_lease_sweep_failed")

    try:
        stale = await service.recovery.interrupt_stale_sessions(now_utc=now_utc, limit=batch_size)
    except Exception:
        error_count += 1
        stale = {"candidates": 0, "interrupted": 0, "skipped": 0}
        logger.exception("quiz_maintenance_stale_sweep_failed")

    result: dict[str, object] = {
        "generated_at": now_utc.isoformat(),
        "batch_size": batch_size,
        "expired_leases_deleted": leases_deleted,
        "stale_sessions_candidates": stale["candidates"],
        "stale_sessions_interrupted": stale["interrupted"],
        "stale_sessions_skipped": stale["skipped"],
        "duration_ms": int((perf_counter() - started_at) * 1000),
        "error_count": error_count,
    }
    if error_count > 0:
        logger.warning("quiz_maintenance_finished_with_errors", **result)
    else:
        logger.info("quiz_maintenance_finished", **result)
    return result


@celery_app.task(name="quizflow.workers.tasks.session_maintenance.run_session_maintenance")
def run_session_maintenance() -> dict[str, object]:
    return run_async_job(run_session_maintenance_async())


celery_app.conf.beat_schedule = celery_app.conf.beat_schedule or {}
settings = get_settings()
celery_app.conf.beat_schedule.update(
    {
        "quiz-session-maintenance": {
            "task": "quizflow.workers.tasks.session_maintenance.run_session_maintenance",
            "schedule": _clamp_schedule_seconds(settings.quiz_maintenance_schedule_seconds),
            "options": {"queue": "q_low"},
        },
    }
)
