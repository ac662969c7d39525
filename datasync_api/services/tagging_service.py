from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

import aioboto3

from datasync_api.services.errors import ErrorCode, from_client_error


logger = logging.getLogger(__name__)


TAGGING_ERROR_CODES: Mapping[str, ErrorCode] = {
    "InvalidParameterException": ErrorCode.BAD_REQUEST,
    "PaginationTokenExpiredException": ErrorCode.BAD_REQUEST,
    "ThrottledException": ErrorCode.LIMIT_EXCEEDED,
    "InternalServiceException": ErrorCode.SERVICE_UNAVAILABLE,
}


class TaggingService:
    """Tag index backed by the Resource Groups Tagging API."""

    def __init__(self, session: aioboto3.Session, *, region_name: Optional[str] = None) -> None:
        self._session = session
        self._region_name = region_name

    def _client(self) -> Any:
        return self._session.client("resourcegroupstaggingapi", region_name=self._region_name)

    async def get_resources(
        self,
        *,
        resource_types: list[str],
        tag_filters: list[dict[str, Any]],
    ) -> list[dict[str, Any]]:
        """Return every resource mapping ({"ResourceARN", "Tags"}) matching the filters.

        Args:
            resource_types: ResourceTypeFilters, e.g. ["datasync"] or ["datasync:task"].
            tag_filters: TagFilters, e.g. [{"Key": "spinup:org", "Values": ["myorg"]}].
        """

        logger.debug("getting resources of type %s with tags %s", resource_types, tag_filters)

        resources: list[dict[str, Any]] = []
        try:
            client_cm: Any = self._client()
            async with client_cm as client:
                paginator = client.get_paginator("get_resources")
                async for page in paginator.paginate(
                    ResourceTypeFilters=resource_types,
                    TagFilters=tag_filters,
                ):
                    resources.extend(page.get("ResourceTagMappingList") or [])
        except Exception as exc:
            raise from_client_error("failed to get resources with tags", exc, TAGGING_ERROR_CODES) from exc

        logger.debug("found %d resources", len(resources))
        return resources
