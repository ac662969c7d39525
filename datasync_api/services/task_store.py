from __future__ import annotations

import asyncio
import logging
import time
import uuid
from datetime import datetime, timezone
from typing import Callable

from datasync_api.models.tasks import AsyncTask, TaskState
from datasync_api.services.errors import not_found


logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TaskStore:
    """In-process store for tracked background tasks.

    Records expire `ttl_seconds` after their last update. The store is the source
    of truth polled by `GET /v1/datasync/tasks/{task_id}`.
    """

    def __init__(self, *, ttl_seconds: float = 86400.0, clock: Callable[[], float] = time.monotonic) -> None:
        self._ttl_seconds = ttl_seconds
        self._clock = clock
        self._tasks: dict[str, AsyncTask] = {}
        self._touched: dict[str, float] = {}
        self._lock = asyncio.Lock()

    def _purge_expired(self) -> None:
        deadline = self._clock() - self._ttl_seconds
        for task_id in [k for k, t in self._touched.items() if t < deadline]:
            self._tasks.pop(task_id, None)
            self._touched.pop(task_id, None)

    def _get(self, task_id: str) -> AsyncTask:
        task = self._tasks.get(task_id)
        if task is None:
            raise not_found(f"task {task_id} not found")
        return task

    def _touch(self, task_id: str) -> None:
        self._touched[task_id] = self._clock()

    async def new_task(self) -> AsyncTask:
        async with self._lock:
            self._purge_expired()
            task = AsyncTask(id=uuid.uuid4().hex, created_at=_utcnow())
            self._tasks[task.id] = task
            self._touch(task.id)
            return task.model_copy(deep=True)

    async def get(self, task_id: str) -> AsyncTask:
        async with self._lock:
            self._purge_expired()
            return self._get(task_id).model_copy(deep=True)

    async def start(self, task_id: str) -> None:
        async with self._lock:
            task = self._get(task_id)
            task.status = TaskState.RUNNING
            task.checkin_at = _utcnow()
            self._touch(task_id)

    async def check_in(self, task_id: str) -> None:
        async with self._lock:
            self._get(task_id).checkin_at = _utcnow()
            self._touch(task_id)

    async def log(self, task_id: str, message: str) -> None:
        async with self._lock:
            self._get(task_id).events.append(message)
            self._touch(task_id)

    async def fail(self, task_id: str, message: str) -> None:
        async with self._lock:
            task = self._get(task_id)
            if task.is_terminal:
                logger.warning("task %s already %s, not marking failed", task_id, task.status.value)
                return
            task.status = TaskState.FAILED
            task.failure = message
            task.completed_at = _utcnow()
            self._touch(task_id)

    async def complete(self, task_id: str) -> None:
        async with self._lock:
            task = self._get(task_id)
            if task.is_terminal:
                logger.warning("task %s already %s, not marking complete", task_id, task.status.value)
                return
            task.status = TaskState.COMPLETE
            task.completed_at = _utcnow()
            self._touch(task_id)

    def __len__(self) -> int:
        return len(self._tasks)

    def __contains__(self, task_id: object) -> bool:
        return task_id in self._tasks
