from __future__ import annotations

from typing import Any

from botocore.utils import ArnParser, InvalidArnException

from datasync_api.services.errors import internal_error


_parser = ArnParser()


def is_arn(value: str) -> bool:
    if not value:
        return False
    try:
        _parser.parse_arn(value)
    except InvalidArnException:
        return False
    return True


def parse_arn(value: str) -> dict[str, Any]:
    """Parse an ARN into partition/service/region/account/resource.

    Raises an InternalError ApiError for anything that is not an ARN; callers only
    parse identifiers handed back by AWS.
    """

    try:
        return _parser.parse_arn(value)
    except InvalidArnException as exc:
        raise internal_error(f"failed to parse ARN {value}", exc) from exc


def resource_parts(value: str) -> tuple[str, str]:
    """Split the resource of e.g. "arn:aws:datasync:...:task/task-0123" into ("task", "task-0123")."""

    resource = parse_arn(value)["resource"]
    kind, sep, rest = resource.partition("/")
    if not sep or not rest:
        raise internal_error(f"failed to parse ARN {value}")
    return kind, rest


def last_segment(value: str) -> str:
    return value.rsplit("/", 1)[-1]
