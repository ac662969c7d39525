# tests/test_rollback.py: LIFO compensating actions
import pytest

from datasync_api.services.orchestration.rollback import RollbackManager


def _action(log, name, fail=False):
    async def run():
        log.append(name)
        if fail:
            raise RuntimeError(f"{name} failed")

    return run


@pytest.mark.asyncio
async def test_runs_newest_first():
    log = []
    rollback = RollbackManager()
    rollback.add("first", _action(log, "first"))
    rollback.add("second", _action(log, "second"))
    rollback.add("third", _action(log, "third"))

    assert await rollback.run() == 0
    assert log == ["third", "second", "first"]


@pytest.mark.asyncio
async def test_failure_does_not_stop_remaining_actions():
    log = []
    rollback = RollbackManager()
    rollback.add("first", _action(log, "first"))
    rollback.add("second", _action(log, "second", fail=True))

    assert await rollback.run() == 1
    assert log == ["second", "first"]


@pytest.mark.asyncio
async def test_actions_run_at_most_once():
    log = []
    rollback = RollbackManager()
    rollback.add("only", _action(log, "only"))

    await rollback.run()
    assert len(rollback) == 0
    assert await rollback.run() == 0
    assert log == ["only"]


@pytest.mark.asyncio
async def test_empty_rollback_is_a_noop():
    assert await RollbackManager().run() == 0
