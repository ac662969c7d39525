from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class Tag(BaseModel):
    key: str = Field(..., min_length=1, description="Tag key")
    value: str = Field("", description="Tag value")

    @staticmethod
    def from_aws(obj: dict[str, Any]) -> "Tag":
        return Tag(key=str(obj.get("Key")), value=str(obj.get("Value") or ""))
