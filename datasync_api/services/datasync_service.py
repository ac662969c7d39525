from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

import aioboto3

from datasync_api.services.arns import is_arn
from datasync_api.services.errors import ErrorCode, bad_request, from_client_error


logger = logging.getLogger(__name__)


DATASYNC_ERROR_CODES: Mapping[str, ErrorCode] = {
    # thrown when the client submits a malformed request
    "InvalidRequestException": ErrorCode.BAD_REQUEST,
    # thrown when an error occurs in the DataSync service
    "InternalException": ErrorCode.INTERNAL_ERROR,
}


class DataSyncService:
    """Thin async wrapper around the DataSync API.

    Every call opens a short-lived client from the (assumed role) session and maps
    AWS failures into ApiError.
    """

    def __init__(self, session: aioboto3.Session, *, region_name: Optional[str] = None) -> None:
        self._session = session
        self._region_name = region_name

    def _client(self) -> Any:
        return self._session.client("datasync", region_name=self._region_name)

    async def _call(self, operation: str, message: str, **kwargs: Any) -> dict[str, Any]:
        try:
            client_cm: Any = self._client()
            async with client_cm as client:
                return await getattr(client, operation)(**kwargs)
        except Exception as exc:
            raise from_client_error(message, exc, DATASYNC_ERROR_CODES) from exc

    async def _paginate(self, operation: str, message: str, result_key: str, **kwargs: Any) -> list[dict[str, Any]]:
        items: list[dict[str, Any]] = []
        try:
            client_cm: Any = self._client()
            async with client_cm as client:
                paginator = client.get_paginator(operation)
                async for page in paginator.paginate(**kwargs):
                    items.extend(page.get(result_key) or [])
        except Exception as exc:
            raise from_client_error(message, exc, DATASYNC_ERROR_CODES) from exc
        return items

    @staticmethod
    def _require_arn(value: str, what: str) -> None:
        if not is_arn(value):
            raise bad_request(f"invalid {what} arn")

    async def list_locations(self) -> dict[str, str]:
        """Return a map of location ARN to location type ("S3", "EFS", "SMB", "NFS", ...).

        DataSync has no per-location type field; the type is the scheme of the
        location URI, e.g. "s3://bucket/prefix/".
        """

        logger.info("listing datasync locations")

        locations: dict[str, str] = {}
        for item in await self._paginate("list_locations", "failed to list locations", "Locations"):
            uri = item.get("LocationUri") or ""
            locations[str(item.get("LocationArn"))] = uri.split(":", 1)[0].upper()

        logger.debug("listing datasync locations output: %s", locations)
        return locations

    async def list_task_executions(self, *, task_arn: str) -> list[str]:
        if not task_arn:
            raise bad_request()

        logger.info("listing datasync task executions for %s", task_arn)

        execs = await self._paginate(
            "list_task_executions",
            "failed to list task executions",
            "TaskExecutions",
            TaskArn=task_arn,
        )
        return [str(e.get("TaskExecutionArn")) for e in execs]

    async def describe_task_execution(self, *, execution_arn: str) -> dict[str, Any]:
        if not execution_arn:
            raise bad_request()

        logger.info("describing datasync task execution %s", execution_arn)

        return await self._call(
            "describe_task_execution",
            "failed to describe task execution",
            TaskExecutionArn=execution_arn,
        )

    async def create_location_s3(
        self,
        *,
        bucket_arn: str,
        bucket_access_role_arn: str,
        storage_class: Optional[str] = None,
        subdirectory: Optional[str] = None,
        tags: Optional[list[dict[str, str]]] = None,
    ) -> str:
        """Create an S3 location and return its ARN."""

        logger.info("creating S3 location for %s", bucket_arn)

        kwargs: dict[str, Any] = {
            "S3BucketArn": bucket_arn,
            "S3Config": {"BucketAccessRoleArn": bucket_access_role_arn},
        }
        if storage_class:
            kwargs["S3StorageClass"] = storage_class
        if subdirectory:
            kwargs["Subdirectory"] = subdirectory
        if tags:
            kwargs["Tags"] = tags

        out = await self._call("create_location_s3", "failed to create location", **kwargs)
        return str(out.get("LocationArn"))

    async def create_task(
        self,
        *,
        name: str,
        source_location_arn: str,
        destination_location_arn: str,
        options: Optional[dict[str, str]] = None,
        tags: Optional[list[dict[str, str]]] = None,
    ) -> str:
        """Create a task binding two locations and return its ARN."""

        logger.info("creating task %s", name)

        kwargs: dict[str, Any] = {
            "Name": name,
            "SourceLocationArn": source_location_arn,
            "DestinationLocationArn": destination_location_arn,
        }
        if options:
            kwargs["Options"] = options
        if tags:
            kwargs["Tags"] = tags

        out = await self._call("create_task", "failed to create task", **kwargs)
        logger.debug("creating task output: %s", out)
        return str(out.get("TaskArn"))

    async def delete_location(self, *, location_arn: str) -> None:
        if not location_arn:
            raise bad_request()

        logger.info("deleting location %s", location_arn)
        await self._call("delete_location", "failed to delete location", LocationArn=location_arn)

    async def delete_task(self, *, task_arn: str) -> None:
        if not task_arn:
            raise bad_request()

        logger.info("deleting task %s", task_arn)
        await self._call("delete_task", "failed to delete task", TaskArn=task_arn)

    async def describe_task(self, *, task_arn: str) -> dict[str, Any]:
        self._require_arn(task_arn, "task")

        logger.info("describing datasync task %s", task_arn)

        out = await self._call("describe_task", "failed to describe task", TaskArn=task_arn)
        logger.debug("describing datasync task output: %s", out)
        return out

    async def describe_location(self, *, location_type: str, location_arn: str) -> dict[str, Any]:
        """Describe a location using the type-specific DescribeLocation* call."""

        self._require_arn(location_arn, "location")

        operation = {
            "S3": "describe_location_s3",
            "EFS": "describe_location_efs",
            "SMB": "describe_location_smb",
            "NFS": "describe_location_nfs",
        }.get(location_type.upper())
        if operation is None:
            raise bad_request(f"unsupported location type {location_type}")

        logger.info("describing datasync location (%s) %s", location_type, location_arn)

        out = await self._call(operation, "failed to describe location", LocationArn=location_arn)
        logger.debug("describing datasync %s location output: %s", location_type, out)
        return out

    async def start_task_execution(self, *, task_arn: str) -> str:
        """Start an execution of the task and return the execution ARN."""

        if not task_arn:
            raise bad_request()

        logger.info("starting datasync task execution for %s", task_arn)

        out = await self._call("start_task_execution", "failed to start task execution", TaskArn=task_arn)
        return str(out.get("TaskExecutionArn"))

    async def cancel_task_execution(self, *, execution_arn: str) -> None:
        if not execution_arn:
            raise bad_request()

        logger.info("cancelling datasync task execution %s", execution_arn)

        await self._call(
            "cancel_task_execution",
            "failed to cancel task execution",
            TaskExecutionArn=execution_arn,
        )
