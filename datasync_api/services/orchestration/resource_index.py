from __future__ import annotations

import logging

from datasync_api.models.movers import DatamoverTask
from datasync_api.models.tags import Tag
from datasync_api.services.arns import resource_parts
from datasync_api.services.datasync_service import DataSyncService
from datasync_api.services.errors import bad_request, internal_error, not_found
from datasync_api.services.tagging_service import TaggingService
from datasync_api.services.tags import from_aws_tags, identity_filters, in_group, in_org


logger = logging.getLogger(__name__)


class ResourceIndex:
    """Finds data movers through their identity tags.

    DataSync cannot filter tasks by owner, so ownership lives in tags and is
    looked up through the tagging API. The index is eventually consistent: a
    mover created a moment ago may not be listed yet.
    """

    def __init__(self, *, org: str, datasync: DataSyncService, tagging: TaggingService) -> None:
        self._org = org
        self._datasync = datasync
        self._tagging = tagging

    async def list_names(self, group: str = "") -> list[str]:
        """Names of all movers in `group`, or in every group when `group` is empty."""

        if group:
            logger.debug("listing data movers in group %s", group)
        else:
            logger.debug("listing all data movers")

        resources = await self._tagging.get_resources(
            resource_types=["datasync"],
            tag_filters=identity_filters(self._org, group or None),
        )

        names: list[str] = []
        for resource in resources:
            arn = str(resource.get("ResourceARN"))
            kind, _ = resource_parts(arn)
            # locations carry the same tags; only tasks are movers
            if kind != "task":
                continue
            names.append(await self.name_from_arn(arn))

        return names

    async def name_from_arn(self, task_arn: str) -> str:
        if not task_arn:
            raise bad_request("invalid input")

        task = await self._datasync.describe_task(task_arn=task_arn)
        name = task.get("Name")
        if not name:
            raise internal_error("unable to determine datamover name")
        return str(name)

    async def find_task(self, *, group: str, name: str) -> tuple[DatamoverTask, list[Tag]]:
        """Return the task named `name` owned by our org and `group`, with its tags."""

        if not group or not name:
            raise bad_request("invalid input")

        resources = await self._tagging.get_resources(
            resource_types=["datasync:task"],
            tag_filters=identity_filters(self._org, group),
        )

        for resource in resources:
            tags = from_aws_tags(resource.get("Tags"))
            if not (in_org(tags, self._org) and in_group(tags, group)):
                logger.warning("skipping %s, identity tags do not match", resource.get("ResourceARN"))
                continue

            task = await self._datasync.describe_task(task_arn=str(resource.get("ResourceARN")))
            if task.get("Name") == name:
                return DatamoverTask.from_datasync(task), tags

        raise not_found("datasync mover not found")

    async def location_types(self) -> dict[str, str]:
        """Map of every location ARN to its type."""

        return await self._datasync.list_locations()
