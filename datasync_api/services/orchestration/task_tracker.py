from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Optional

from datasync_api.services.task_store import TaskStore


logger = logging.getLogger(__name__)


class TaskTracker:
    """Reports the progress of one background sequence to the task store.

    The sequence talks to the tracker over two rendezvous channels: `progress()`
    and `fail()` only return once the control loop has consumed the message.
    `finish()` closes the sequence; the task is marked complete unless a failure
    was reported first. Store writes are best-effort and never raise into the
    sequence.

        tracker = TaskTracker(store, task_id)
        tracker.start()
        try:
            await tracker.progress("did a thing")
        except Exception as exc:
            await tracker.fail(str(exc))
        finally:
            await tracker.finish()
    """

    def __init__(self, store: TaskStore, task_id: str) -> None:
        self._store = store
        self._task_id = task_id
        self._progress: asyncio.Queue[str] = asyncio.Queue(maxsize=1)
        self._errors: asyncio.Queue[str] = asyncio.Queue(maxsize=1)
        self._done = asyncio.Event()
        self._loop_task: Optional[asyncio.Task[None]] = None

    def start(self) -> None:
        if self._loop_task is not None:
            raise RuntimeError(f"tracker for task {self._task_id} already started")
        self._loop_task = asyncio.create_task(self._run(), name=f"task-tracker-{self._task_id}")

    async def progress(self, message: str) -> None:
        await self._send(self._progress, message)

    async def fail(self, message: str) -> None:
        await self._send(self._errors, message)

    async def finish(self) -> None:
        self._done.set()
        if self._loop_task is not None:
            await self._loop_task

    async def _send(self, queue: asyncio.Queue[str], message: str) -> None:
        loop_task = self._loop_task
        if loop_task is None or loop_task.done():
            logger.warning("task %s is not tracked, dropping message: %s", self._task_id, message)
            return

        await queue.put(message)
        joined = asyncio.ensure_future(queue.join())
        await asyncio.wait({joined, loop_task}, return_when=asyncio.FIRST_COMPLETED)
        if not joined.done():
            joined.cancel()

    async def _best_effort(self, action: str, write: Awaitable[Any]) -> None:
        try:
            await write
        except Exception as exc:
            logger.error("failed to %s task %s: %s", action, self._task_id, exc)

    async def _run(self) -> None:
        await self._best_effort("start", self._store.start(self._task_id))

        while True:
            waiters: dict[asyncio.Future[Any], str] = {
                asyncio.ensure_future(self._progress.get()): "progress",
                asyncio.ensure_future(self._errors.get()): "error",
                asyncio.ensure_future(self._done.wait()): "done",
            }
            finished, pending = await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)
            for waiter in pending:
                waiter.cancel()

            received = {waiters[w]: w.result() for w in finished}

            if "progress" in received:
                message = received["progress"]
                logger.info("task %s: %s", self._task_id, message)
                await self._best_effort("check in", self._store.check_in(self._task_id))
                await self._best_effort("log message for", self._store.log(self._task_id, message))
                self._progress.task_done()

            if "error" in received:
                message = received["error"]
                logger.error("task %s failed: %s", self._task_id, message)
                await self._best_effort("fail", self._store.fail(self._task_id, message))
                self._errors.task_done()
                return

            if "done" in received:
                logger.info("marking task %s complete", self._task_id)
                await self._best_effort("complete", self._store.complete(self._task_id))
                return
