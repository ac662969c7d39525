from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

import aioboto3

from datasync_api.services.config import DatasyncConfig
from datasync_api.services.errors import ErrorCode, from_client_error


logger = logging.getLogger(__name__)


STS_ERROR_CODES: Mapping[str, ErrorCode] = {
    "MalformedPolicyDocument": ErrorCode.BAD_REQUEST,
    "PackedPolicyTooLarge": ErrorCode.BAD_REQUEST,
    "RegionDisabledException": ErrorCode.FORBIDDEN,
    "ExpiredTokenException": ErrorCode.FORBIDDEN,
}


@dataclass(frozen=True)
class PermissionSet:
    """What an orchestrator session is allowed to do in the target account."""

    policy_arns: tuple[str, ...] = ()
    inline_policy: Optional[str] = None


@dataclass
class SessionService:
    """Identity provider: assumes the per-account role with a scoped-down policy."""

    config: DatasyncConfig
    session: aioboto3.Session = field(default_factory=aioboto3.Session)

    def role_arn(self, account: str) -> str:
        return f"arn:aws:iam::{account}:role/{self.config.session_role_name}"

    async def assume_role(self, *, account: str, permissions: PermissionSet) -> aioboto3.Session:
        """Return a session with temporary credentials for `account`."""

        role_arn = self.role_arn(account)
        logger.debug("assuming role %s with policies %s", role_arn, permissions.policy_arns)

        kwargs: dict[str, Any] = {
            "RoleArn": role_arn,
            "RoleSessionName": f"datasync-api-{uuid.uuid4().hex[:16]}",
            "DurationSeconds": self.config.session_duration_seconds,
        }
        if self.config.external_id:
            kwargs["ExternalId"] = self.config.external_id
        if permissions.inline_policy:
            kwargs["Policy"] = permissions.inline_policy
        if permissions.policy_arns:
            kwargs["PolicyArns"] = [{"arn": a} for a in permissions.policy_arns]

        try:
            client_cm: Any = self.session.client("sts", region_name=self.config.region_name)
            async with client_cm as sts:
                out = await sts.assume_role(**kwargs)
        except Exception as exc:
            raise from_client_error(f"failed to assume role {role_arn}", exc, STS_ERROR_CODES) from exc

        creds = out["Credentials"]
        return aioboto3.Session(
            aws_access_key_id=creds["AccessKeyId"],
            aws_secret_access_key=creds["SecretAccessKey"],
            aws_session_token=creds["SessionToken"],
            region_name=self.config.region_name,
        )
