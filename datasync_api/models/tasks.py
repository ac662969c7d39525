from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class TaskState(str, Enum):
    CREATED = "created"
    RUNNING = "running"
    FAILED = "failed"
    COMPLETE = "complete"


class AsyncTask(BaseModel):
    """Tracked background work started by a create request."""

    id: str
    status: TaskState = TaskState.CREATED
    events: list[str] = Field(default_factory=list)
    failure: Optional[str] = None
    created_at: datetime
    checkin_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in (TaskState.FAILED, TaskState.COMPLETE)
