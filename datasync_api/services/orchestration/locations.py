from __future__ import annotations

import logging
from typing import Any, Callable, Mapping, Optional

from datasync_api.models.movers import (
    DatamoverLocationInput,
    DatamoverLocationOutput,
    EfsLocationOutput,
    LocationType,
    NfsLocationOutput,
    S3LocationInput,
    S3LocationOutput,
    SmbLocationOutput,
)
from datasync_api.models.tags import Tag
from datasync_api.services.arns import is_arn, parse_arn
from datasync_api.services.datasync_service import DataSyncService
from datasync_api.services.errors import bad_request, internal_error
from datasync_api.services.orchestration.access_roles import AccessRoleManager
from datasync_api.services.orchestration.retry import retry
from datasync_api.services.tags import to_aws_tags


logger = logging.getLogger(__name__)


_OUTPUT_PARSERS: Mapping[LocationType, Callable[[dict[str, Any]], DatamoverLocationOutput]] = {
    LocationType.S3: S3LocationOutput.from_datasync,
    LocationType.EFS: EfsLocationOutput.from_datasync,
    LocationType.SMB: SmbLocationOutput.from_datasync,
    LocationType.NFS: NfsLocationOutput.from_datasync,
}


class LocationProvisioner:
    """Creates, deletes and describes DataSync locations.

    All four location types can be described; only S3 locations can be created
    or deleted, anything else is rejected as an invalid location type.
    """

    def __init__(
        self,
        *,
        org: str,
        datasync: DataSyncService,
        roles: AccessRoleManager,
        retry_attempts: int = 6,
        retry_delay_seconds: float = 5.0,
    ) -> None:
        self._org = org
        self._datasync = datasync
        self._roles = roles
        self._retry_attempts = retry_attempts
        self._retry_delay_seconds = retry_delay_seconds

    async def create(
        self,
        *,
        mover: str,
        group: str,
        location: Optional[DatamoverLocationInput],
        tags: list[Tag],
    ) -> str:
        """Create the location described by `location` and return its ARN."""

        if location is None:
            raise bad_request("invalid input")

        logger.debug("creating data mover %s location type %s", mover, location.type)

        if LocationType.parse(location.type) is LocationType.S3:
            return await self._create_s3(mover=mover, group=group, s3=location.s3, tags=tags)

        logger.warning("type %s didn't match any supported location types", location.type)
        raise bad_request("invalid location type")

    async def _create_s3(self, *, mover: str, group: str, s3: Optional[S3LocationInput], tags: list[Tag]) -> str:
        if s3 is None or not is_arn(s3.bucket_arn):
            raise bad_request("a valid s3 bucket_arn is required for S3 locations")

        bucket = parse_arn(s3.bucket_arn)["resource"]

        # access to S3 locations goes through a bucket access role, which has to
        # exist before the location can be created
        path = f"/spinup/{self._org}/{group}/"
        role_name = f"{mover}-{bucket}"
        role_arn = await self._roles.ensure_role(
            path=path,
            role_name=role_name,
            target_arn=s3.bucket_arn,
            tags=tags,
        )

        async def _create() -> str:
            logger.info("trying to create datasync location for %s", s3.bucket_arn)
            return await self._datasync.create_location_s3(
                bucket_arn=s3.bucket_arn,
                bucket_access_role_arn=role_arn,
                storage_class=s3.storage_class,
                subdirectory=s3.subdirectory,
                tags=to_aws_tags(tags),
            )

        # a role created a moment ago may not be visible to DataSync yet
        try:
            location_arn = await retry(self._retry_attempts, 0, self._retry_delay_seconds, _create)
        except Exception as exc:
            logger.info("failed to create location, timeout retrying: %s", exc)
            try:
                await self._roles.delete_role(role_arn)
            except Exception as cleanup_exc:
                logger.warning("failed deleting role %s: %s", role_arn, cleanup_exc)
            raise

        logger.info("created location successfully: %s", location_arn)
        return location_arn

    async def describe(
        self,
        *,
        location_type: Optional[str],
        location_arn: Optional[str],
    ) -> Optional[DatamoverLocationOutput]:
        if not location_type or not location_arn:
            return None

        logger.debug("location %s is type %s", location_arn, location_type)

        parsed_type = LocationType.parse(location_type)
        if parsed_type is None:
            logger.warning("type %s didn't match any supported location types", location_type)
            raise internal_error(f"unknown datasync location type {location_type}")

        out = await self._datasync.describe_location(location_type=parsed_type.value, location_arn=location_arn)
        return _OUTPUT_PARSERS[parsed_type](out)

    async def delete(
        self,
        *,
        mover: str,
        location_arn: Optional[str],
        location_type: Optional[str],
    ) -> None:
        """Delete a location together with its bucket access role, if it has one."""

        if not mover or not location_type or not location_arn:
            raise bad_request("invalid input")

        logger.debug("deleting data mover %s location type %s", mover, location_type)

        if LocationType.parse(location_type) is not LocationType.S3:
            logger.warning("type %s didn't match any supported location types", location_type)
            raise bad_request("invalid location type")

        location = await self.describe(location_type=location_type, location_arn=location_arn)

        await self._datasync.delete_location(location_arn=location_arn)

        if isinstance(location, S3LocationOutput) and location.bucket_access_role_arn:
            await self._roles.delete_role(location.bucket_access_role_arn)
