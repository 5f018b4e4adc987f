from __future__ import annotations

import asyncio
from dataclasses import replace
from datetime import datetime, timezone

import pytest

from quizflow.game.sessions.errors import (
    ConcurrentModificationError,
    LockUnavailableError,
    SessionNotFoundError,
)
from quizflow.game.sessions.locks import LockManager
from quizflow.game.sessions.memory_store import InMemorySessionStore
from quizflow.game.sessions.recovery import new_session_state
from quizflow.game.sessions.transactions import TransactionExecutor
from tests.game.quiz_fixtures import PHONE

UTC = timezone.utc
NOW = datetime(2026, 3, 2, 9, 0, tzinfo=UTC)


def _executor(store: InMemorySessionStore, **kwargs) -> TransactionExecutor:
    return TransactionExecutor(
        store,
        LockManager(store, ttl_seconds=30),
        clock=lambda: NOW,
        **kwargs,
    )


async def _seed(store: InMemorySessionStore):
    return await store.insert_session_if_no_active(new_session_state(PHONE, now_utc=NOW))


async def _increment_score(current):
    return replace(current, score=current.score + 1), current.score + 1


async def test_mutation_bumps_version_and_releases_lease() -> None:
    store = InMemorySessionStore()
    session = await _seed(store)

    result = await _executor(store).execute(session.id, "increment", _increment_score)

    assert result.persisted is True
    assert result.session.version == 2
    assert (await store.get_session(session.id)).score == 1
    assert store.lease_for(session.id) is None


async def test_no_op_result_skips_persistence() -> None:
    store = InMemorySessionStore()
    session = await _seed(store)

    async def _noop(current):
        return None, "unchanged"

    result = await _executor(store).execute(session.id, "noop", _noop)

    assert result.persisted is False
    assert result.result == "unchanged"
    assert (await store.get_session(session.id)).version == 1


async def test_operation_error_propagates_and_releases_lease() -> None:
    store = InMemorySessionStore()
    session = await _seed(store)

    async def _boom(current):
        raise ValueError("boom")

    with pytest.raises(ValueError):
        await _executor(store).execute(session.id, "boom", _boom)

    assert store.lease_for(session.id) is None
    assert (await store.get_session(session.id)).version == 1


async def test_missing_session_raises_not_found() -> None:
    store = InMemorySessionStore()
    session = new_session_state(PHONE, now_utc=NOW)

    with pytest.raises(SessionNotFoundError):
        await _executor(store).execute(session.id, "increment", _increment_score)
    assert store.lease_for(session.id) is None


async def test_busy_lease_exhausts_attempts_with_linear_backoff() -> None:
    store = InMemorySessionStore()
    session = await _seed(store)
    locks = LockManager(store, ttl_seconds=30)
    assert await locks.acquire(session.id, "other-worker", now_utc=NOW) is not None
    sleeps: list[float] = []

    async def _record_sleep(seconds: float) -> None:
        sleeps.append(seconds)

    executor = TransactionExecutor(
        store,
        locks,
        max_attempts=3,
        base_delay_ms=100,
        clock=lambda: NOW,
        sleep=_record_sleep,
    )

    with pytest.raises(LockUnavailableError):
        await executor.execute(session.id, "increment", _increment_score)

    assert sleeps == [0.1, 0.2]
    assert (await store.get_session(session.id)).score == 0


async def test_version_conflict_is_retried_then_surfaced() -> None:
    store = InMemorySessionStore()
    session = await _seed(store)

    async def _concurrent_writer(current):
        intruder = replace(current, version=current.version + 1, score=99)
        assert await store.compare_and_set_session(intruder, expected_version=current.version)
        return replace(current, score=1), None

    with pytest.raises(ConcurrentModificationError):
        await _executor(store, max_attempts=2, base_delay_ms=0).execute(
            session.id,
            "increment",
            _concurrent_writer,
        )

    stored = await store.get_session(session.id)
    assert stored.score == 99
    assert stored.version == 3
    assert store.lease_for(session.id) is None


async def test_concurrent_mutations_never_lose_updates() -> None:
    store = InMemorySessionStore()
    session = await _seed(store)
    executor = _executor(store, max_attempts=50, base_delay_ms=1)

    async def _slow_increment(current):
        await asyncio.sleep(0.002)
        return replace(current, score=current.score + 1), None

    outcomes = await asyncio.gather(
        *(executor.execute(session.id, "increment", _slow_increment) for _ in range(10)),
        return_exceptions=True,
    )

    applied = [outcome for outcome in outcomes if not isinstance(outcome, Exception)]
    stored = await store.get_session(session.id)
    assert stored.score == len(applied)
    assert stored.version == 1 + len(applied)
    assert all(isinstance(outcome, LockUnavailableError) for outcome in outcomes if isinstance(outcome, Exception))
