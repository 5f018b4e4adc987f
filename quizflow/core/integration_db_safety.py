from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.engine import make_url

LOCAL_TEST_HOSTS = frozenset({"localhost", "127.0.0.1", "::1", "postgres", "quizflow_postgres"})


@dataclass(frozen=True, slots=True)
class IntegrationDbTarget:
    database_name: str
    host: str
    refusal: str | None = None

    @property
    def is_safe(self) -> bool:
        return self.refusal is None


def inspect_integration_db(database_url: str) -> IntegrationDbTarget:
    """Decide whether a database may be wiped by the integration test fixtures."""
    parsed = make_url(database_url)
    database_name = (parsed.database or "").strip()
    host = (parsed.host or "").strip().lower()

    refusal: str | None = None
    if parsed.get_backend_name() != "postgresql":
        refusal = "only PostgreSQL databases are supported"
    elif "test" not in database_name.lower():
        refusal = "database name must contain 'test'"
    elif host not in LOCAL_TEST_HOSTS:
        refusal = f"host {host!r} is not a local test host"
    return IntegrationDbTarget(database_name=database_name, host=host, refusal=refusal)


def assert_safe_integration_db(database_url: str) -> None:
    target = inspect_integration_db(database_url)
    if target.is_safe:
        return
    raise RuntimeError(
        "Refusing to truncate quiz tables for integration tests: "
        f"{target.refusal} (database={target.database_name!r}, host={target.host!r}). "
        "Point DATABASE_URL at a local database such as 'quizflow_test'."
    )
