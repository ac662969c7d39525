# tests/test_task_store.py: In-process async task records
import pytest

from datasync_api.models.tasks import TaskState
from datasync_api.services.errors import ApiError, ErrorCode
from datasync_api.services.task_store import TaskStore


@pytest.mark.asyncio
async def test_lifecycle():
    store = TaskStore()
    task = await store.new_task()
    assert task.status == TaskState.CREATED

    await store.start(task.id)
    await store.log(task.id, "step one")
    await store.check_in(task.id)
    await store.complete(task.id)

    done = await store.get(task.id)
    assert done.status == TaskState.COMPLETE
    assert done.events == ["step one"]
    assert done.checkin_at is not None
    assert done.completed_at is not None


@pytest.mark.asyncio
async def test_terminal_state_is_final():
    store = TaskStore()
    task = await store.new_task()

    await store.fail(task.id, "boom")
    await store.complete(task.id)
    await store.fail(task.id, "again")

    failed = await store.get(task.id)
    assert failed.status == TaskState.FAILED
    assert failed.failure == "boom"


@pytest.mark.asyncio
async def test_unknown_task_is_not_found():
    store = TaskStore()

    with pytest.raises(ApiError) as excinfo:
        await store.get("nope")
    assert excinfo.value.code == ErrorCode.NOT_FOUND


@pytest.mark.asyncio
async def test_get_returns_a_copy():
    store = TaskStore()
    task = await store.new_task()

    snapshot = await store.get(task.id)
    snapshot.events.append("tampered")

    assert (await store.get(task.id)).events == []


@pytest.mark.asyncio
async def test_records_expire_after_ttl():
    now = [1000.0]
    store = TaskStore(ttl_seconds=60, clock=lambda: now[0])
    old = await store.new_task()

    now[0] += 30
    await store.log(old.id, "still here")
    now[0] += 45
    assert (await store.get(old.id)).events == ["still here"]

    now[0] += 61
    with pytest.raises(ApiError):
        await store.get(old.id)
    assert old.id not in store
