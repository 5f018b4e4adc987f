from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

import structlog
from fastapi import APIRouter, status
from fastapi.responses import JSONResponse
from redis.asyncio import Redis

from quizflow.core.config import get_settings
from quizflow.db.store import SqlSessionStore
from quizflow.game.sessions.types import SessionStatus
from quizflow.workers.celery_app import celery_app

logger = structlog.get_logger(__name__)

router = APIRouter(tags=["health"])

HealthCheck = Callable[[], Awaitable[dict[str, Any]]]


def _ok_check(extra: dict[str, Any] | None = None) -> dict[str, Any]:
    payload: dict[str, Any] = {"status": "ok"}
    if extra:
        payload.update(extra)
    return payload


def _failed_check(error: str) -> dict[str, str]:
    return {"status": "failed", "error": error}


async def _check_database() -> dict[str, Any]:
    counts = await SqlSessionStore().count_sessions_by_status()
    return _ok_check(
        {
            "active_sessions": counts[SessionStatus.ACTIVE],
            "interrupted_sessions": counts[SessionStatus.INTERRUPTED],
        }
    )


async def _check_redis() -> dict[str, Any]:
    redis_client = Redis.from_url(get_settings().redis_url)
    try:
        if await redis_client.ping() is not True:
            return _failed_check("redis_unexpected_ping")
        return _ok_check()
    finally:
        await redis_client.aclose()


def _check_celery_worker_sync() -> dict[str, Any]:
    inspector = celery_app.control.inspect(timeout=1.0)
    if inspector is None:
        return _failed_check("celery_unavailable")
    replies = inspector.ping() or {}
    if not replies:
        return _failed_check("celery_no_workers")
    return _ok_check({"workers": len(replies)})


async def _check_celery_worker() -> dict[str, Any]:
    return await asyncio.to_thread(_check_celery_worker_sync)


async def _run_check(name: str, check: HealthCheck) -> dict[str, Any]:
    # Exception text can carry DSNs or broker credentials.
    try:
        return await check()
    except Exception as exc:
        logger.warning("health_check_failed", check=name, error_type=type(exc).__name__)
        return _failed_check(f"{name}_unavailable")


async def _collect_checks(*, include_celery: bool) -> dict[str, dict[str, Any]]:
    checks: dict[str, HealthCheck] = {"database": _check_database, "redis": _check_redis}
    if include_celery:
        checks["celery"] = _check_celery_worker
    results = await asyncio.gather(*(_run_check(name, check) for name, check in checks.items()))
    return dict(zip(checks, results))


def _checks_response(checks: dict[str, dict[str, Any]], *, ok_status: str, failed_status: str) -> JSONResponse:
    is_ok = all(check.get("status") == "ok" for check in checks.values())
    return JSONResponse(
        status_code=status.HTTP_200_OK if is_ok else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"status": ok_status if is_ok else failed_status, "checks": checks},
    )


@router.get("/health")
async def health() -> JSONResponse:
    checks = await _collect_checks(include_celery=True)
    return _checks_response(checks, ok_status="ok", failed_status="degraded")


@router.get("/ready")
async def ready() -> JSONResponse:
    checks = await _collect_checks(include_celery=False)
    return _checks_response(checks, ok_status="ready", failed_status="not_ready")


@router.get("/live")
async def live() -> dict[str, str]:
    return {"status": "live"}
