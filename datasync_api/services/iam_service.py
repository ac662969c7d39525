from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

import aioboto3

from datasync_api.services.errors import ErrorCode, bad_request, from_client_error


logger = logging.getLogger(__name__)


IAM_ERROR_CODES: Mapping[str, ErrorCode] = {
    "NoSuchEntity": ErrorCode.NOT_FOUND,
    "EntityAlreadyExists": ErrorCode.CONFLICT,
    "DeleteConflict": ErrorCode.CONFLICT,
    "ConcurrentModification": ErrorCode.CONFLICT,
    "InvalidInput": ErrorCode.BAD_REQUEST,
    "MalformedPolicyDocument": ErrorCode.BAD_REQUEST,
    "UnmodifiableEntity": ErrorCode.BAD_REQUEST,
    "ServiceFailure": ErrorCode.SERVICE_UNAVAILABLE,
}


class IamService:
    """Role store: the handful of IAM calls needed to manage bucket access roles."""

    def __init__(self, session: aioboto3.Session) -> None:
        self._session = session

    def _client(self) -> Any:
        return self._session.client("iam")

    async def _call(self, operation: str, message: str, **kwargs: Any) -> dict[str, Any]:
        try:
            client_cm: Any = self._client()
            async with client_cm as client:
                return await getattr(client, operation)(**kwargs)
        except Exception as exc:
            raise from_client_error(message, exc, IAM_ERROR_CODES) from exc

    async def _paginate(self, operation: str, message: str, result_key: str, **kwargs: Any) -> list[Any]:
        items: list[Any] = []
        try:
            client_cm: Any = self._client()
            async with client_cm as client:
                paginator = client.get_paginator(operation)
                async for page in paginator.paginate(**kwargs):
                    items.extend(page.get(result_key) or [])
        except Exception as exc:
            raise from_client_error(message, exc, IAM_ERROR_CODES) from exc
        return items

    async def get_role(self, *, role_name: str) -> dict[str, Any]:
        if not role_name:
            raise bad_request("invalid role name")

        out = await self._call("get_role", f"failed to get role {role_name}", RoleName=role_name)
        return out.get("Role") or {}

    async def create_role(
        self,
        *,
        path: str,
        role_name: str,
        assume_role_policy: str,
        description: Optional[str] = None,
    ) -> str:
        """Create a role and return its ARN."""

        if not role_name:
            raise bad_request("invalid role name")

        logger.info("creating role %s%s", path, role_name)

        kwargs: dict[str, Any] = {
            "Path": path,
            "RoleName": role_name,
            "AssumeRolePolicyDocument": assume_role_policy,
        }
        if description:
            kwargs["Description"] = description

        out = await self._call("create_role", f"failed to create role {role_name}", **kwargs)
        return str((out.get("Role") or {}).get("Arn"))

    async def get_role_policy(self, *, role_name: str, policy_name: str) -> Any:
        """Return the inline policy document (boto3 hands back the decoded document)."""

        out = await self._call(
            "get_role_policy",
            f"failed to get policy {policy_name} for role {role_name}",
            RoleName=role_name,
            PolicyName=policy_name,
        )
        return out.get("PolicyDocument")

    async def put_role_policy(self, *, role_name: str, policy_name: str, policy_document: str) -> None:
        logger.info("putting inline policy %s on role %s", policy_name, role_name)

        await self._call(
            "put_role_policy",
            f"failed to put policy {policy_name} for role {role_name}",
            RoleName=role_name,
            PolicyName=policy_name,
            PolicyDocument=policy_document,
        )

    async def tag_role(self, *, role_name: str, tags: list[dict[str, str]]) -> None:
        if not tags:
            return

        await self._call("tag_role", f"failed to tag role {role_name}", RoleName=role_name, Tags=tags)

    async def delete_role(self, *, role_name: str) -> None:
        """Delete a role after removing its inline and attached policies."""

        if not role_name:
            raise bad_request("invalid role name")

        logger.info("deleting role %s", role_name)

        inline = await self._paginate(
            "list_role_policies",
            f"failed to list policies for role {role_name}",
            "PolicyNames",
            RoleName=role_name,
        )
        for policy_name in inline:
            await self._call(
                "delete_role_policy",
                f"failed to delete policy {policy_name} from role {role_name}",
                RoleName=role_name,
                PolicyName=policy_name,
            )

        attached = await self._paginate(
            "list_attached_role_policies",
            f"failed to list attached policies for role {role_name}",
            "AttachedPolicies",
            RoleName=role_name,
        )
        for policy in attached:
            await self._call(
                "detach_role_policy",
                f"failed to detach policy from role {role_name}",
                RoleName=role_name,
                PolicyArn=policy["PolicyArn"],
            )

        await self._call("delete_role", f"failed to delete role {role_name}", RoleName=role_name)
