from __future__ import annotations

import json
import logging
from typing import Optional

from datasync_api.models.tags import Tag
from datasync_api.services.arns import last_segment, parse_arn
from datasync_api.services.errors import ApiError, ErrorCode, bad_request, internal_error
from datasync_api.services.iam_service import IamService
from datasync_api.services.policies import (
    BUCKET_ACCESS_POLICY_NAME,
    assume_role_policy,
    bucket_access_policy,
    policy_deep_equal,
)
from datasync_api.services.tags import to_aws_tags


logger = logging.getLogger(__name__)


class AccessRoleManager:
    """Creates or reconciles the IAM role DataSync uses to reach a bucket.

    The inline policy of an existing role is compared structurally with the
    generated one and overwritten in place when it drifted; the role itself is
    never recreated, so anything already holding it keeps working.
    """

    def __init__(self, iam: IamService) -> None:
        self._iam = iam

    async def ensure_role(
        self,
        *,
        path: str,
        role_name: str,
        target_arn: str,
        tags: Optional[list[Tag]] = None,
    ) -> str:
        """Make sure `role_name` exists with an up to date access policy for `target_arn`.

        Returns:
            The role ARN.
        """

        if not path or not role_name:
            raise bad_request("invalid path")

        logger.info("generating bucket access role %s%s if it doesn't exist", path, role_name)

        expected_policy = bucket_access_policy(target_arn)

        try:
            role = await self._iam.get_role(role_name=role_name)
        except ApiError as exc:
            if exc.code != ErrorCode.NOT_FOUND:
                raise

            logger.debug("unable to find role %s%s, creating", path, role_name)
            role_arn = await self._iam.create_role(
                path=path,
                role_name=role_name,
                assume_role_policy=assume_role_policy(),
                description="DataSync bucket access role",
            )
            logger.info("created role %s%s with ARN: %s", path, role_name, role_arn)
        else:
            role_arn = str(role.get("Arn"))
            logger.info("role %s exists with ARN: %s", role_name, role_arn)

            if await self._policy_up_to_date(role_name=role_name, expected_policy=expected_policy):
                logger.debug("inline policy for role %s%s is up to date", path, role_name)
                return role_arn

        await self._iam.put_role_policy(
            role_name=role_name,
            policy_name=BUCKET_ACCESS_POLICY_NAME,
            policy_document=json.dumps(expected_policy),
        )

        if tags:
            await self._iam.tag_role(role_name=role_name, tags=to_aws_tags(tags))

        return role_arn

    async def _policy_up_to_date(self, *, role_name: str, expected_policy: dict) -> bool:
        try:
            current = await self._iam.get_role_policy(role_name=role_name, policy_name=BUCKET_ACCESS_POLICY_NAME)
        except ApiError as exc:
            if exc.code != ErrorCode.NOT_FOUND:
                raise
            logger.info("inline policy for role %s is not found, updating", role_name)
            return False

        try:
            up_to_date = policy_deep_equal(expected_policy, current)
        except (TypeError, ValueError) as exc:
            raise internal_error(f"failed to parse inline policy of role {role_name}", exc) from exc

        if not up_to_date:
            logger.info("inline policy for role %s is out of date, updating", role_name)
        return up_to_date

    async def delete_role(self, role_arn: str) -> None:
        """Delete a bucket access role; a role that is already gone counts as deleted."""

        if not role_arn:
            raise bad_request("invalid role arn")

        role_name = last_segment(parse_arn(role_arn)["resource"])

        try:
            await self._iam.delete_role(role_name=role_name)
        except ApiError as exc:
            if exc.code != ErrorCode.NOT_FOUND:
                raise
            logger.info("role %s is already deleted", role_name)
