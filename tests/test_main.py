# tests/test_main.py: Application lifespan and shutdown of in-flight creates
import asyncio

import pytest

from datasync_api.main import app, lifespan
from datasync_api.models.movers import DatamoverCreateRequest, DatamoverLocationInput, S3LocationInput
from datasync_api.models.tasks import TaskState
from datasync_api.services.orchestration.mover_orchestrator import DatasyncOrchestrator

from .conftest import ORG


@pytest.fixture
def env(monkeypatch):
    monkeypatch.setenv("DATASYNC_ORG", ORG)
    monkeypatch.setenv("DATASYNC_SESSION_ROLE_NAME", "SpinupDataSync")
    return monkeypatch


@pytest.mark.asyncio
async def test_lifespan_sets_up_app_state(env):
    async with lifespan(app):
        assert len(app.state.task_store) == 0
        assert app.state.background_tasks == set()


@pytest.mark.asyncio
async def test_shutdown_cancels_in_flight_creates(env, datasync, iam, tagging):
    entered = asyncio.Event()

    async def blocked_create_task(**kwargs):
        entered.set()
        await asyncio.Event().wait()

    env.setattr(datasync, "create_task", blocked_create_task)

    async with lifespan(app):
        store = app.state.task_store
        background = app.state.background_tasks
        orchestrator = DatasyncOrchestrator(
            org=ORG,
            datasync=datasync,
            iam=iam,
            tagging=tagging,
            tasks=store,
            background=background,
            location_retry_attempts=1,
            location_retry_delay_seconds=0,
        )
        request = DatamoverCreateRequest(
            name="mover1",
            source=DatamoverLocationInput(type="S3", s3=S3LocationInput(bucket_arn="arn:aws:s3:::src-bucket")),
            destination=DatamoverLocationInput(type="S3", s3=S3LocationInput(bucket_arn="arn:aws:s3:::dst-bucket")),
        )
        task = await orchestrator.create("grp", request)
        await asyncio.wait_for(entered.wait(), timeout=1)
        work = list(background)

    assert work and all(running.cancelled() for running in work)
    assert not background

    finished = await store.get(task.id)
    assert finished.status == TaskState.FAILED
    assert finished.failure == "failed to create datasync task: cancelled"
    assert datasync.locations == {}
    assert iam.roles == {}
