from __future__ import annotations

import asyncio
import logging
import re
from functools import partial
from typing import Optional

from prometheus_client import Counter

from datasync_api.models.movers import (
    DatamoverCreateRequest,
    DatamoverLocationInput,
    DatamoverResponse,
    DatamoverRun,
)
from datasync_api.models.tags import Tag
from datasync_api.models.tasks import AsyncTask
from datasync_api.services.arns import last_segment, resource_parts
from datasync_api.services.datasync_service import DataSyncService
from datasync_api.services.errors import bad_request, conflict
from datasync_api.services.iam_service import IamService
from datasync_api.services.orchestration.access_roles import AccessRoleManager
from datasync_api.services.orchestration.locations import LocationProvisioner
from datasync_api.services.orchestration.resource_index import ResourceIndex
from datasync_api.services.orchestration.rollback import RollbackManager
from datasync_api.services.orchestration.task_tracker import TaskTracker
from datasync_api.services.tagging_service import TaggingService
from datasync_api.services.tags import normalize, to_aws_tags
from datasync_api.services.task_store import TaskStore


logger = logging.getLogger(__name__)

NAME_PATTERN = re.compile(r"^[A-Za-z0-9-]+$")

mover_creates_total = Counter(
    "datasync_mover_creates_total",
    "Data mover create sequences by outcome",
    ["status"],
)

# eventually we may allow for customizing these
TASK_OPTIONS = {
    "PreserveDeletedFiles": "PRESERVE",
    "TransferMode": "CHANGED",
    "VerifyMode": "ONLY_FILES_TRANSFERRED",
}


def validate_create_request(
    request: DatamoverCreateRequest,
) -> tuple[str, DatamoverLocationInput, DatamoverLocationInput]:
    """Reject malformed create requests before any work is started.

    Returns:
        The validated name, source and destination.
    """

    if not request.name:
        raise bad_request("name is a required field")

    if not NAME_PATTERN.fullmatch(request.name):
        raise bad_request(f"name doesn't match regex {NAME_PATTERN.pattern}")

    if (
        request.source is None
        or request.destination is None
        or not request.source.type
        or not request.destination.type
    ):
        raise bad_request("source and destination are required")

    return request.name, request.source, request.destination


class DatasyncOrchestrator:
    """Creates, deletes and inspects data movers in one account.

    A data mover is a DataSync task plus its source and destination locations
    (and, for S3 locations, a bucket access role). Creation runs in the
    background and is reported through the task store; everything else runs
    within the caller's request.

    One orchestrator is built per request from a scoped session; it is not meant
    to be shared between concurrent requests.
    """

    def __init__(
        self,
        *,
        org: str,
        datasync: DataSyncService,
        iam: IamService,
        tagging: TaggingService,
        tasks: TaskStore,
        background: Optional[set[asyncio.Task[None]]] = None,
        location_retry_attempts: int = 6,
        location_retry_delay_seconds: float = 5.0,
    ) -> None:
        self._org = org
        self._datasync = datasync
        self._tasks = tasks
        self._background = background if background is not None else set()
        self._roles = AccessRoleManager(iam)
        self._locations = LocationProvisioner(
            org=org,
            datasync=datasync,
            roles=self._roles,
            retry_attempts=location_retry_attempts,
            retry_delay_seconds=location_retry_delay_seconds,
        )
        self._index = ResourceIndex(org=org, datasync=datasync, tagging=tagging)

    # -----------------
    # Create / delete
    # -----------------

    async def create(self, group: str, request: DatamoverCreateRequest) -> AsyncTask:
        """Start creating a data mover and return the task tracking it.

        The task is returned before any resource is provisioned; progress and the
        final outcome are only visible through the task store.
        """

        name, source, destination = validate_create_request(request)

        logger.info(
            "creating data mover %s with source %s and destination %s",
            name,
            source.type,
            destination.type,
        )

        tags = normalize(request.tags, self._org, group)
        task = await self._tasks.new_task()

        work = asyncio.create_task(
            self._create_mover(task.id, group, name, source, destination, tags),
            name=f"create-mover-{name}",
        )
        self._background.add(work)
        work.add_done_callback(self._background.discard)

        return task

    async def _create_mover(
        self,
        task_id: str,
        group: str,
        name: str,
        source: DatamoverLocationInput,
        destination: DatamoverLocationInput,
        tags: list[Tag],
    ) -> None:
        tracker = TaskTracker(self._tasks, task_id)
        tracker.start()
        rollback = RollbackManager()

        failure = "failed to create source location"
        try:
            await tracker.progress("requested creation of source location")
            src_arn = await self._locations.create(mover=name, group=group, location=source, tags=tags)
            rollback.add(
                f"deleting source location {src_arn}",
                partial(self._locations.delete, mover=name, location_arn=src_arn, location_type=source.type),
            )

            failure = "failed to create destination location"
            await tracker.progress("requested creation of destination location")
            dst_arn = await self._locations.create(mover=name, group=group, location=destination, tags=tags)
            rollback.add(
                f"deleting destination location {dst_arn}",
                partial(self._locations.delete, mover=name, location_arn=dst_arn, location_type=destination.type),
            )

            failure = "failed to create datasync task"
            await tracker.progress(f"requested creation of datasync task {name}")
            task_arn = await self._datasync.create_task(
                name=name,
                source_location_arn=src_arn,
                destination_location_arn=dst_arn,
                options=TASK_OPTIONS,
                tags=to_aws_tags(tags),
            )

            failure = f"failed to parse datasync task id {task_arn}"
            _, moniker = resource_parts(task_arn)

            await tracker.progress(f"created data mover '{name}': {moniker}")
            mover_creates_total.labels(status="complete").inc()
        except asyncio.CancelledError:
            await self._abort(tracker, rollback, f"{failure}: cancelled")
            raise
        except Exception as exc:
            await self._abort(tracker, rollback, f"{failure}: {exc}")
        finally:
            await tracker.finish()

    @staticmethod
    async def _abort(tracker: TaskTracker, rollback: RollbackManager, message: str) -> None:
        await tracker.fail(message)
        mover_creates_total.labels(status="failed").inc()
        logger.error("recovering from error: %s, executing %d rollback tasks", message, len(rollback))
        await rollback.run()

    async def delete(self, group: str, name: str) -> None:
        """Delete a data mover: its task, then both locations and their roles.

        Not compensable; the first failure is raised and the remaining steps are
        skipped.
        """

        logger.info("deleting data mover %s", name)

        mover = await self.describe(group, name)

        await self._datasync.delete_task(task_arn=mover.task.task_arn)

        await self._locations.delete(
            mover=name,
            location_arn=mover.task.source_location_arn,
            location_type=mover.source.type if mover.source else None,
        )

        await self._locations.delete(
            mover=name,
            location_arn=mover.task.destination_location_arn,
            location_type=mover.destination.type if mover.destination else None,
        )

    # -----------------
    # Read
    # -----------------

    async def describe(self, group: str, name: str) -> DatamoverResponse:
        task, tags = await self._index.find_task(group=group, name=name)

        # DataSync can't tell the type of a single location, only list them all
        location_types = await self._index.location_types()

        src_type = location_types.get(task.source_location_arn or "")
        if src_type is None:
            logger.warning("unable to determine source location type")

        dst_type = location_types.get(task.destination_location_arn or "")
        if dst_type is None:
            logger.warning("unable to determine destination location type")

        source, destination = await asyncio.gather(
            self._locations.describe(location_type=src_type, location_arn=task.source_location_arn),
            self._locations.describe(location_type=dst_type, location_arn=task.destination_location_arn),
        )

        return DatamoverResponse(task=task, source=source, destination=destination, tags=tags)

    async def list(self, group: str = "") -> list[str]:
        return await self._index.list_names(group)

    # -----------------
    # Runs
    # -----------------

    async def run_list(self, group: str, name: str) -> list[str]:
        task, _ = await self._index.find_task(group=group, name=name)

        executions = await self._datasync.list_task_executions(task_arn=task.task_arn)
        return [last_segment(e) for e in executions]

    async def run_describe(self, group: str, name: str, run_id: str) -> DatamoverRun:
        if not run_id:
            raise bad_request("invalid run id")

        task, _ = await self._index.find_task(group=group, name=name)

        execution = await self._datasync.describe_task_execution(
            execution_arn=f"{task.task_arn}/execution/{run_id}",
        )
        return DatamoverRun.from_datasync(execution)

    async def start_run(self, group: str, name: str) -> str:
        """Start a transfer and return its run id."""

        if not group or not name:
            raise bad_request("group and name are required")

        # looking the task up describes it, so the status is current; a run
        # started by someone else in between is not guarded against
        task, _ = await self._index.find_task(group=group, name=name)
        if task.is_running:
            raise conflict(f"data mover {name} is already running")

        execution_arn = await self._datasync.start_task_execution(task_arn=task.task_arn)
        logger.info("started run %s of data mover %s", execution_arn, name)
        return last_segment(execution_arn)

    async def stop_run(self, group: str, name: str) -> None:
        if not group or not name:
            raise bad_request("group and name are required")

        task, _ = await self._index.find_task(group=group, name=name)
        if not task.is_running or not task.current_task_execution_arn:
            raise conflict(f"data mover {name} is not running")

        await self._datasync.cancel_task_execution(execution_arn=task.current_task_execution_arn)
        logger.info("stopped run %s of data mover %s", task.current_task_execution_arn, name)
