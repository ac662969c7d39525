from __future__ import annotations

import os
from dataclasses import dataclass
from typing import ClassVar, Optional


@dataclass(frozen=True)
class DatasyncConfig:
    """Runtime configuration for the data mover orchestrator.

    `org` scopes every resource we create (IAM role paths, identity tags) and
    `session_role_name` is the role assumed in the target account, e.g.
    "arn:aws:iam::<account>:role/<session_role_name>".
    """

    org: str
    session_role_name: str
    region_name: Optional[str] = None
    external_id: Optional[str] = None
    _DEFAULT_SESSION_DURATION_SECONDS: ClassVar[int] = 900
    _DEFAULT_LOCATION_RETRY_ATTEMPTS: ClassVar[int] = 6
    _DEFAULT_LOCATION_RETRY_DELAY_SECONDS: ClassVar[float] = 5.0
    _DEFAULT_TASK_TTL_SECONDS: ClassVar[float] = 86400.0
    session_duration_seconds: int = _DEFAULT_SESSION_DURATION_SECONDS
    location_retry_attempts: int = _DEFAULT_LOCATION_RETRY_ATTEMPTS
    location_retry_delay_seconds: float = _DEFAULT_LOCATION_RETRY_DELAY_SECONDS
    task_ttl_seconds: float = _DEFAULT_TASK_TTL_SECONDS
    version: str = "0.0.0"

    @staticmethod
    def _number_from_env(name: str, default: float, cast: type) -> float:
        raw = os.getenv(name)
        if not raw:
            return default
        try:
            value = cast(raw)
        except ValueError as exc:
            raise ValueError(f"Invalid {name}; must be a number") from exc
        if value < 0:
            raise ValueError(f"Invalid {name}; must not be negative")
        return value

    @staticmethod
    def from_env() -> "DatasyncConfig":
        org = os.getenv("DATASYNC_ORG")
        if not org:
            raise ValueError("Missing required environment variable: DATASYNC_ORG")

        session_role_name = os.getenv("DATASYNC_SESSION_ROLE_NAME")
        if not session_role_name:
            raise ValueError("Missing required environment variable: DATASYNC_SESSION_ROLE_NAME")

        region_name = os.getenv("AWS_REGION") or os.getenv("AWS_DEFAULT_REGION")

        return DatasyncConfig(
            org=org,
            session_role_name=session_role_name,
            region_name=region_name,
            external_id=os.getenv("DATASYNC_EXTERNAL_ID") or None,
            session_duration_seconds=int(
                DatasyncConfig._number_from_env(
                    "DATASYNC_SESSION_DURATION_SECONDS",
                    DatasyncConfig._DEFAULT_SESSION_DURATION_SECONDS,
                    int,
                )
            ),
            location_retry_attempts=int(
                DatasyncConfig._number_from_env(
                    "DATASYNC_LOCATION_RETRY_ATTEMPTS",
                    DatasyncConfig._DEFAULT_LOCATION_RETRY_ATTEMPTS,
                    int,
                )
            ),
            location_retry_delay_seconds=DatasyncConfig._number_from_env(
                "DATASYNC_LOCATION_RETRY_DELAY_SECONDS",
                DatasyncConfig._DEFAULT_LOCATION_RETRY_DELAY_SECONDS,
                float,
            ),
            task_ttl_seconds=DatasyncConfig._number_from_env(
                "DATASYNC_TASK_TTL_SECONDS",
                DatasyncConfig._DEFAULT_TASK_TTL_SECONDS,
                float,
            ),
            version=os.getenv("DATASYNC_VERSION", "0.0.0"),
        )
