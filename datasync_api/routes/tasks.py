from __future__ import annotations

from fastapi import APIRouter, Depends, Path

from datasync_api.models.tasks import AsyncTask
from datasync_api.services.dependencies import get_task_store
from datasync_api.services.task_store import TaskStore

router = APIRouter(prefix="/v1/datasync/tasks", tags=["tasks"])


@router.get("/{task_id}", response_model=AsyncTask)
async def get_task(
    task_id: str = Path(..., description="Id returned in the X-Task-Id header of a create request"),
    store: TaskStore = Depends(get_task_store),
) -> AsyncTask:
    return await store.get(task_id)
