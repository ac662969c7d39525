# tests/conftest.py: In-memory fakes of the AWS wrappers and shared fixtures
import asyncio
import json
from datetime import datetime, timezone
from typing import Any, Optional

import pytest

from datasync_api.services.errors import ApiError, ErrorCode, bad_request, not_found
from datasync_api.services.orchestration.mover_orchestrator import DatasyncOrchestrator
from datasync_api.services.task_store import TaskStore

ACCOUNT = "123456789012"
REGION = "us-east-1"
ORG = "myorg"


class FakeIam:
    """Role store keeping roles and their inline policies in dicts."""

    def __init__(self):
        self.roles: dict[str, dict[str, Any]] = {}
        self.policies: dict[str, dict[str, str]] = {}
        self.tags: dict[str, list[dict[str, str]]] = {}
        self.calls: list[tuple[str, str]] = []

    def count(self, operation: str, role_name: Optional[str] = None) -> int:
        return sum(1 for op, name in self.calls if op == operation and (role_name is None or name == role_name))

    async def get_role(self, *, role_name):
        self.calls.append(("get_role", role_name))
        if role_name not in self.roles:
            raise not_found(f"failed to get role {role_name}")
        return dict(self.roles[role_name])

    async def create_role(self, *, path, role_name, assume_role_policy, description=None):
        self.calls.append(("create_role", role_name))
        if role_name in self.roles:
            raise ApiError(ErrorCode.CONFLICT, f"failed to create role {role_name}")
        arn = f"arn:aws:iam::{ACCOUNT}:role{path}{role_name}"
        self.roles[role_name] = {
            "RoleName": role_name,
            "Path": path,
            "Arn": arn,
            "AssumeRolePolicyDocument": json.loads(assume_role_policy),
        }
        self.policies[role_name] = {}
        return arn

    async def get_role_policy(self, *, role_name, policy_name):
        self.calls.append(("get_role_policy", role_name))
        document = self.policies.get(role_name, {}).get(policy_name)
        if document is None:
            raise not_found(f"failed to get policy {policy_name} for role {role_name}")
        return json.loads(document)

    async def put_role_policy(self, *, role_name, policy_name, policy_document):
        self.calls.append(("put_role_policy", role_name))
        if role_name not in self.roles:
            raise not_found(f"failed to put policy {policy_name} for role {role_name}")
        self.policies[role_name][policy_name] = policy_document

    async def tag_role(self, *, role_name, tags):
        self.calls.append(("tag_role", role_name))
        self.tags[role_name] = list(tags)

    async def delete_role(self, *, role_name):
        self.calls.append(("delete_role", role_name))
        if role_name not in self.roles:
            raise not_found(f"failed to delete role {role_name}")
        del self.roles[role_name]
        self.policies.pop(role_name, None)
        self.tags.pop(role_name, None)


class FakeDataSync:
    """DataSync stand-in; tags of every resource are exposed to FakeTagging."""

    def __init__(self):
        self.locations: dict[str, dict[str, Any]] = {}
        self.tasks: dict[str, dict[str, Any]] = {}
        self.executions: dict[str, dict[str, Any]] = {}
        self.tags: dict[str, list[dict[str, str]]] = {}
        # bucket ARN -> number of create attempts that fail before one succeeds
        self.location_failures: dict[str, int] = {}
        self.calls: list[tuple[str, str]] = []
        self._seq = 0

    def _next_id(self) -> str:
        self._seq += 1
        return f"{self._seq:017x}"

    def count(self, operation: str) -> int:
        return sum(1 for op, _ in self.calls if op == operation)

    async def list_locations(self):
        self.calls.append(("list_locations", ""))
        return {arn: loc["LocationUri"].split(":", 1)[0].upper() for arn, loc in self.locations.items()}

    async def create_location_s3(
        self,
        *,
        bucket_arn,
        bucket_access_role_arn,
        storage_class=None,
        subdirectory=None,
        tags=None,
    ):
        self.calls.append(("create_location_s3", bucket_arn))
        remaining = self.location_failures.get(bucket_arn, 0)
        if remaining > 0:
            self.location_failures[bucket_arn] = remaining - 1
            raise ApiError(
                ErrorCode.BAD_REQUEST,
                "failed to create location",
                RuntimeError("unable to assume bucket access role"),
            )

        arn = f"arn:aws:datasync:{REGION}:{ACCOUNT}:location/loc-{self._next_id()}"
        bucket = bucket_arn.rsplit(":", 1)[-1]
        self.locations[arn] = {
            "LocationArn": arn,
            "LocationUri": f"s3://{bucket}/{(subdirectory or '').lstrip('/')}",
            "S3StorageClass": storage_class or "STANDARD",
            "S3Config": {"BucketAccessRoleArn": bucket_access_role_arn},
            "CreationTime": datetime(2024, 1, 1, tzinfo=timezone.utc),
        }
        self.tags[arn] = list(tags or [])
        return arn

    def add_location(self, uri: str, **extra) -> str:
        arn = f"arn:aws:datasync:{REGION}:{ACCOUNT}:location/loc-{self._next_id()}"
        self.locations[arn] = {"LocationArn": arn, "LocationUri": uri, **extra}
        return arn

    async def create_task(self, *, name, source_location_arn, destination_location_arn, options=None, tags=None):
        self.calls.append(("create_task", name))
        arn = f"arn:aws:datasync:{REGION}:{ACCOUNT}:task/task-{self._next_id()}"
        self.tasks[arn] = {
            "TaskArn": arn,
            "Name": name,
            "Status": "AVAILABLE",
            "SourceLocationArn": source_location_arn,
            "DestinationLocationArn": destination_location_arn,
            "Options": dict(options or {}),
            "CreationTime": datetime(2024, 1, 1, tzinfo=timezone.utc),
        }
        self.tags[arn] = list(tags or [])
        return arn

    async def delete_location(self, *, location_arn):
        self.calls.append(("delete_location", location_arn))
        if location_arn not in self.locations:
            raise not_found("failed to delete location")
        del self.locations[location_arn]
        self.tags.pop(location_arn, None)

    async def delete_task(self, *, task_arn):
        self.calls.append(("delete_task", task_arn))
        if task_arn not in self.tasks:
            raise not_found("failed to delete task")
        del self.tasks[task_arn]
        self.tags.pop(task_arn, None)

    async def describe_task(self, *, task_arn):
        self.calls.append(("describe_task", task_arn))
        if task_arn not in self.tasks:
            raise not_found("failed to describe task")
        return dict(self.tasks[task_arn])

    async def describe_location(self, *, location_type, location_arn):
        self.calls.append(("describe_location", location_arn))
        if location_type.upper() not in ("S3", "EFS", "SMB", "NFS"):
            raise bad_request(f"unsupported location type {location_type}")
        if location_arn not in self.locations:
            raise not_found("failed to describe location")
        return dict(self.locations[location_arn])

    async def list_task_executions(self, *, task_arn):
        self.calls.append(("list_task_executions", task_arn))
        return [arn for arn in self.executions if arn.startswith(f"{task_arn}/execution/")]

    async def describe_task_execution(self, *, execution_arn):
        self.calls.append(("describe_task_execution", execution_arn))
        if execution_arn not in self.executions:
            raise not_found("failed to describe task execution")
        return dict(self.executions[execution_arn])

    async def start_task_execution(self, *, task_arn):
        self.calls.append(("start_task_execution", task_arn))
        execution_arn = f"{task_arn}/execution/exec-{self._next_id()}"
        self.executions[execution_arn] = {
            "TaskExecutionArn": execution_arn,
            "Status": "LAUNCHING",
            "StartTime": datetime(2024, 1, 2, tzinfo=timezone.utc),
            "BytesTransferred": 0,
        }
        self.tasks[task_arn]["Status"] = "RUNNING"
        self.tasks[task_arn]["CurrentTaskExecutionArn"] = execution_arn
        return execution_arn

    async def cancel_task_execution(self, *, execution_arn):
        self.calls.append(("cancel_task_execution", execution_arn))
        task_arn = execution_arn.split("/execution/", 1)[0]
        self.executions[execution_arn]["Status"] = "ERROR"
        self.tasks[task_arn]["Status"] = "AVAILABLE"
        self.tasks[task_arn].pop("CurrentTaskExecutionArn", None)


class FakeTagging:
    """Tag index answering from the FakeDataSync resource tags."""

    def __init__(self, datasync: FakeDataSync):
        self._datasync = datasync
        self.calls: list[list[str]] = []

    async def get_resources(self, *, resource_types, tag_filters):
        self.calls.append(list(resource_types))
        found = []
        for arn, tags in self._datasync.tags.items():
            kind = arn.split(":", 5)[5].split("/", 1)[0]
            if "datasync" not in resource_types and f"datasync:{kind}" not in resource_types:
                continue
            values = {t["Key"]: t["Value"] for t in tags}
            if all(values.get(f["Key"]) in f["Values"] for f in tag_filters):
                found.append({"ResourceARN": arn, "Tags": list(tags)})
        return found


async def drain(background: set) -> None:
    """Wait for every background create sequence to finish."""

    while background:
        await asyncio.gather(*list(background), return_exceptions=True)


@pytest.fixture
def iam():
    return FakeIam()


@pytest.fixture
def datasync():
    return FakeDataSync()


@pytest.fixture
def tagging(datasync):
    return FakeTagging(datasync)


@pytest.fixture
def store():
    return TaskStore()


@pytest.fixture
def background():
    return set()


@pytest.fixture
def orchestrator(datasync, iam, tagging, store, background):
    return DatasyncOrchestrator(
        org=ORG,
        datasync=datasync,
        iam=iam,
        tagging=tagging,
        tasks=store,
        background=background,
        location_retry_attempts=2,
        location_retry_delay_seconds=0,
    )
