import pytest
from fastapi.testclient import TestClient

from quizflow.api.routes import health as health_routes
from quizflow.game.sessions.types import SessionStatus
from quizflow.main import app


async def _ok_check() -> dict[str, str]:
    return {"status": "ok"}


def test_health_ok(monkeypatch) -> None:
    monkeypatch.setattr(health_routes, "_check_database", _ok_check)
    monkeypatch.setattr(health_routes, "_check_redis", _ok_check)
    monkeypatch.setattr(health_routes, "_check_celery_worker", _ok_check)

    client = TestClient(app)
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {
        "status": "ok",
        "checks": {
            "database": {"status": "ok"},
            "redis": {"status": "ok"},
            "celery": {"status": "ok"},
        },
    }


def test_live_ok() -> None:
    client = TestClient(app)
    response = client.get("/live")
    assert response.status_code == 200
    assert response.json() == {"status": "live"}


def test_health_returns_503_when_dependency_failed(monkeypatch) -> None:
    async def _failed_redis() -> dict[str, str]:
        return {"status": "failed", "error": "redis_unavailable"}

    monkeypatch.setattr(health_routes, "_check_database", _ok_check)
    monkeypatch.setattr(health_routes, "_check_redis", _failed_redis)
    monkeypatch.setattr(health_routes, "_check_celery_worker", _ok_check)

    client = TestClient(app)
    response = client.get("/health")

    assert response.status_code == 503
    payload = response.json()
    assert payload["status"] == "degraded"
    assert payload["checks"]["redis"] == {"status": "failed", "error": "redis_unavailable"}


def test_ready_skips_celery_check(monkeypatch) -> None:
    async def _unexpected_celery() -> dict[str, str]:
        raise AssertionError("ready must not probe celery")

    monkeypatch.setattr(health_routes, "_check_database", _ok_check)
    monkeypatch.setattr(health_routes, "_check_redis", _ok_check)
    monkeypatch.setattr(health_routes, "_check_celery_worker", _unexpected_celery)

    client = TestClient(app)
    response = client.get("/ready")

    assert response.status_code == 200
    assert response.json() == {
        "status": "ready",
        "checks": {
            "database": {"status": "ok"},
            "redis": {"status": "ok"},
        },
    }


def test_ready_returns_503_when_database_failed(monkeypatch) -> None:
    async def _failed_database() -> dict[str, str]:
        return {"status": "failed", "error": "database_unavailable"}

    monkeypatch.setattr(health_routes, "_check_database", _failed_database)
    monkeypatch.setattr(health_routes, "_check_redis", _ok_check)

    client = TestClient(app)
    response = client.get("/ready")

    assert response.status_code == 503
    assert response.json()["status"] == "not_ready"


@pytest.mark.asyncio
async def test_database_check_reports_session_counts(monkeypatch) -> None:
    class _Store:
        async def count_sessions_by_status(self) -> dict[SessionStatus, int]:
            counts = {status: 0 for status in SessionStatus}
            counts[SessionStatus.ACTIVE] = 3
            counts[SessionStatus.INTERRUPTED] = 1
            return counts

    monkeypatch.setattr(health_routes, "SqlSessionStore", _Store)

    result = await health_routes._check_database()
    assert result == {"status": "ok", "active_sessions": 3, "interrupted_sessions": 1}


@pytest.mark.asyncio
async def test_database_check_sanitizes_exception(monkeypatch) -> None:
    class _BrokenStore:
        async def count_sessions_by_status(self) -> dict[SessionStatus, int]:
            raise RuntimeError("password=secret")

    monkeypatch.setattr(health_routes, "SqlSessionStore", _BrokenStore)

    result = await health_routes._run_check("database", health_routes._check_database)
    assert result == {"status": "failed", "error": "database_unavailable"}


@pytest.mark.asyncio
async def test_celery_check_sanitizes_exception(monkeypatch) -> None:
    class _BrokenControl:
        def inspect(self, timeout: float):
            raise RuntimeError("broker-url=redis://secret")

    monkeypatch.setattr(health_routes.celery_app, "control", _BrokenControl())

    result = await health_routes._run_check("celery", health_routes._check_celery_worker)
    assert result == {"status": "failed", "error": "celery_unavailable"}


def test_celery_check_reports_missing_workers(monkeypatch) -> None:
    class _SilentInspector:
        def ping(self):
            return None

    class _Control:
        def inspect(self, timeout: float):
            return _SilentInspector()

    monkeypatch.setattr(health_routes.celery_app, "control", _Control())

    result = health_routes._check_celery_worker_sync()
    assert result == {"status": "failed", "error": "celery_no_workers"}
