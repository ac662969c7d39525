# tests/test_task_tracker.py: Progress reporting for background sequences
import pytest

from datasync_api.models.tasks import TaskState
from datasync_api.services.orchestration.task_tracker import TaskTracker
from datasync_api.services.task_store import TaskStore


@pytest.mark.asyncio
async def test_progress_is_recorded_before_returning():
    store = TaskStore()
    task = await store.new_task()
    tracker = TaskTracker(store, task.id)
    tracker.start()

    await tracker.progress("step one")
    current = await store.get(task.id)
    assert current.status == TaskState.RUNNING
    assert current.events == ["step one"]

    await tracker.progress("step two")
    await tracker.finish()

    done = await store.get(task.id)
    assert done.status == TaskState.COMPLETE
    assert done.events == ["step one", "step two"]


@pytest.mark.asyncio
async def test_failure_wins_over_finish():
    store = TaskStore()
    task = await store.new_task()
    tracker = TaskTracker(store, task.id)
    tracker.start()

    await tracker.progress("step one")
    await tracker.fail("step two broke")
    await tracker.progress("ignored")
    await tracker.finish()

    failed = await store.get(task.id)
    assert failed.status == TaskState.FAILED
    assert failed.failure == "step two broke"
    assert failed.events == ["step one"]


@pytest.mark.asyncio
async def test_store_errors_do_not_reach_the_sequence():
    store = TaskStore()
    tracker = TaskTracker(store, "missing")
    tracker.start()

    await tracker.progress("step one")
    await tracker.fail("broke")
    await tracker.finish()

    assert "missing" not in store


@pytest.mark.asyncio
async def test_start_twice_is_an_error():
    store = TaskStore()
    task = await store.new_task()
    tracker = TaskTracker(store, task.id)
    tracker.start()

    with pytest.raises(RuntimeError):
        tracker.start()

    await tracker.finish()
