# tests/test_retry.py: Fixed-delay retry
import asyncio

import pytest

from datasync_api.services.orchestration.retry import retry


@pytest.fixture
def sleeps(monkeypatch):
    recorded = []

    async def fake_sleep(delay):
        recorded.append(delay)

    monkeypatch.setattr(asyncio, "sleep", fake_sleep)
    return recorded


def _flaky(failures: int):
    calls = []

    async def operation():
        calls.append(len(calls) + 1)
        if len(calls) <= failures:
            raise RuntimeError(f"attempt {len(calls)} failed")
        return "ok"

    return operation, calls


@pytest.mark.asyncio
async def test_first_success_does_not_sleep(sleeps):
    operation, calls = _flaky(0)

    assert await retry(6, 0, 5, operation) == "ok"
    assert calls == [1]
    assert sleeps == []


@pytest.mark.asyncio
async def test_waits_initial_delay_then_fixed_step(sleeps):
    operation, calls = _flaky(2)

    assert await retry(3, 1, 5, operation) == "ok"
    assert calls == [1, 2, 3]
    assert sleeps == [1, 5, 5]


@pytest.mark.asyncio
async def test_reraises_last_error_when_exhausted(sleeps):
    operation, calls = _flaky(10)

    with pytest.raises(RuntimeError, match="attempt 3 failed"):
        await retry(3, 0, 5, operation)

    assert calls == [1, 2, 3]
    assert sleeps == [5, 5]


@pytest.mark.asyncio
async def test_attempts_must_be_positive(sleeps):
    operation, calls = _flaky(0)

    with pytest.raises(ValueError):
        await retry(0, 0, 5, operation)

    assert calls == []
