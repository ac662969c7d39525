from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, Field

from datasync_api.models.tags import Tag


class LocationType(str, Enum):
    S3 = "S3"
    EFS = "EFS"
    SMB = "SMB"
    NFS = "NFS"

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["LocationType"]:
        """Case-insensitive lookup; returns None for unknown or empty values."""

        if not value:
            return None
        try:
            return cls(value.strip().upper())
        except ValueError:
            return None


class TaskStatus(str, Enum):
    AVAILABLE = "AVAILABLE"
    CREATING = "CREATING"
    QUEUED = "QUEUED"
    RUNNING = "RUNNING"
    UNAVAILABLE = "UNAVAILABLE"


class S3LocationInput(BaseModel):
    bucket_arn: str = Field(..., description="ARN of the S3 bucket, e.g. arn:aws:s3:::my-bucket")
    # One of STANDARD, STANDARD_IA, ONEZONE_IA, INTELLIGENT_TIERING, GLACIER, DEEP_ARCHIVE, OUTPOSTS
    storage_class: Optional[str] = None
    subdirectory: Optional[str] = None


class DatamoverLocationInput(BaseModel):
    """A location to create. Only S3 locations can be created."""

    type: Optional[str] = None
    s3: Optional[S3LocationInput] = None


class DatamoverCreateRequest(BaseModel):
    name: Optional[str] = None
    source: Optional[DatamoverLocationInput] = None
    destination: Optional[DatamoverLocationInput] = None
    tags: list[Tag] = Field(default_factory=list)


class S3LocationOutput(BaseModel):
    type: Literal[LocationType.S3] = LocationType.S3
    location_arn: str
    location_uri: Optional[str] = None
    storage_class: Optional[str] = None
    bucket_access_role_arn: Optional[str] = None
    creation_time: Optional[datetime] = None

    @staticmethod
    def from_datasync(obj: dict[str, Any]) -> "S3LocationOutput":
        s3_config = obj.get("S3Config") or {}
        return S3LocationOutput(
            location_arn=str(obj.get("LocationArn")),
            location_uri=obj.get("LocationUri"),
            storage_class=obj.get("S3StorageClass"),
            bucket_access_role_arn=s3_config.get("BucketAccessRoleArn"),
            creation_time=obj.get("CreationTime"),
        )


class EfsLocationOutput(BaseModel):
    type: Literal[LocationType.EFS] = LocationType.EFS
    location_arn: str
    location_uri: Optional[str] = None
    subnet_arn: Optional[str] = None
    security_group_arns: list[str] = Field(default_factory=list)
    creation_time: Optional[datetime] = None

    @staticmethod
    def from_datasync(obj: dict[str, Any]) -> "EfsLocationOutput":
        ec2_config = obj.get("Ec2Config") or {}
        return EfsLocationOutput(
            location_arn=str(obj.get("LocationArn")),
            location_uri=obj.get("LocationUri"),
            subnet_arn=ec2_config.get("SubnetArn"),
            security_group_arns=ec2_config.get("SecurityGroupArns") or [],
            creation_time=obj.get("CreationTime"),
        )


class SmbLocationOutput(BaseModel):
    type: Literal[LocationType.SMB] = LocationType.SMB
    location_arn: str
    location_uri: Optional[str] = None
    agent_arns: list[str] = Field(default_factory=list)
    user: Optional[str] = None
    domain: Optional[str] = None
    mount_version: Optional[str] = None
    creation_time: Optional[datetime] = None

    @staticmethod
    def from_datasync(obj: dict[str, Any]) -> "SmbLocationOutput":
        return SmbLocationOutput(
            location_arn=str(obj.get("LocationArn")),
            location_uri=obj.get("LocationUri"),
            agent_arns=obj.get("AgentArns") or [],
            user=obj.get("User"),
            domain=obj.get("Domain"),
            mount_version=(obj.get("MountOptions") or {}).get("Version"),
            creation_time=obj.get("CreationTime"),
        )


class NfsLocationOutput(BaseModel):
    type: Literal[LocationType.NFS] = LocationType.NFS
    location_arn: str
    location_uri: Optional[str] = None
    agent_arns: list[str] = Field(default_factory=list)
    mount_version: Optional[str] = None
    creation_time: Optional[datetime] = None

    @staticmethod
    def from_datasync(obj: dict[str, Any]) -> "NfsLocationOutput":
        return NfsLocationOutput(
            location_arn=str(obj.get("LocationArn")),
            location_uri=obj.get("LocationUri"),
            agent_arns=(obj.get("OnPremConfig") or {}).get("AgentArns") or [],
            mount_version=(obj.get("MountOptions") or {}).get("Version"),
            creation_time=obj.get("CreationTime"),
        )


DatamoverLocationOutput = Annotated[
    Union[S3LocationOutput, EfsLocationOutput, SmbLocationOutput, NfsLocationOutput],
    Field(discriminator="type"),
]


class DatamoverTask(BaseModel):
    task_arn: str
    name: Optional[str] = None
    status: Optional[str] = None
    source_location_arn: Optional[str] = None
    destination_location_arn: Optional[str] = None
    current_task_execution_arn: Optional[str] = None
    options: dict[str, Any] = Field(default_factory=dict)
    creation_time: Optional[datetime] = None
    error_code: Optional[str] = None
    error_detail: Optional[str] = None

    @property
    def is_running(self) -> bool:
        return self.status == TaskStatus.RUNNING

    @staticmethod
    def from_datasync(obj: dict[str, Any]) -> "DatamoverTask":
        return DatamoverTask(
            task_arn=str(obj.get("TaskArn")),
            name=obj.get("Name"),
            status=obj.get("Status"),
            source_location_arn=obj.get("SourceLocationArn"),
            destination_location_arn=obj.get("DestinationLocationArn"),
            current_task_execution_arn=obj.get("CurrentTaskExecutionArn"),
            options=obj.get("Options") or {},
            creation_time=obj.get("CreationTime"),
            error_code=obj.get("ErrorCode"),
            error_detail=obj.get("ErrorDetail"),
        )


class DatamoverResponse(BaseModel):
    task: DatamoverTask
    source: Optional[DatamoverLocationOutput] = None
    destination: Optional[DatamoverLocationOutput] = None
    tags: list[Tag] = Field(default_factory=list)


class DatamoverRun(BaseModel):
    bytes_transferred: Optional[int] = None
    bytes_written: Optional[int] = None
    estimated_bytes_to_transfer: Optional[int] = None
    estimated_files_to_transfer: Optional[int] = None
    files_transferred: Optional[int] = None
    start_time: Optional[datetime] = None
    status: Optional[str] = None
    result: dict[str, Any] = Field(default_factory=dict)

    @staticmethod
    def from_datasync(obj: dict[str, Any]) -> "DatamoverRun":
        return DatamoverRun(
            bytes_transferred=obj.get("BytesTransferred"),
            bytes_written=obj.get("BytesWritten"),
            estimated_bytes_to_transfer=obj.get("EstimatedBytesToTransfer"),
            estimated_files_to_transfer=obj.get("EstimatedFilesToTransfer"),
            files_transferred=obj.get("FilesTransferred"),
            start_time=obj.get("StartTime"),
            status=obj.get("Status"),
            result=obj.get("Result") or {},
        )


class RunStartResponse(BaseModel):
    id: str
