from __future__ import annotations

from typing import Any, Iterable, Optional

from datasync_api.models.tags import Tag


ORG_TAG = "spinup:org"
GROUP_TAG = "spinup:spaceid"
TYPE_TAG = "spinup:type"
FLAVOR_TAG = "spinup:flavor"

RESOURCE_TYPE = "storage"
RESOURCE_FLAVOR = "datamover"

RESERVED_KEYS = frozenset({ORG_TAG, GROUP_TAG, TYPE_TAG, FLAVOR_TAG, "yale:org"})
RESERVED_PREFIXES = ("aws:",)


def _is_reserved(key: str) -> bool:
    return key in RESERVED_KEYS or key.lower().startswith(RESERVED_PREFIXES)


def identity_tags(org: str, group: Optional[str] = None) -> list[Tag]:
    tags = [
        Tag(key=ORG_TAG, value=org),
        Tag(key=TYPE_TAG, value=RESOURCE_TYPE),
        Tag(key=FLAVOR_TAG, value=RESOURCE_FLAVOR),
    ]
    if group:
        tags.append(Tag(key=GROUP_TAG, value=group))
    return tags


def normalize(tags: Iterable[Tag], org: str, group: Optional[str] = None) -> list[Tag]:
    """Return the identity tags followed by the user's non-reserved tags.

    User tags keep their first position; a repeated key keeps the last value.
    """

    user_tags: dict[str, str] = {}
    for t in tags:
        if _is_reserved(t.key):
            continue
        user_tags[t.key] = t.value

    return identity_tags(org, group) + [Tag(key=k, value=v) for k, v in user_tags.items()]


def in_org(tags: Iterable[Tag], org: str) -> bool:
    return any(t.key == ORG_TAG and t.value == org for t in tags)


def in_group(tags: Iterable[Tag], group: str) -> bool:
    return any(t.key == GROUP_TAG and t.value == group for t in tags)


def to_aws_tags(tags: Iterable[Tag]) -> list[dict[str, str]]:
    """Key/Value list accepted by the DataSync and IAM APIs."""

    return [{"Key": t.key, "Value": t.value} for t in tags]


def from_aws_tags(aws_tags: Optional[Iterable[dict[str, Any]]]) -> list[Tag]:
    return [Tag.from_aws(t) for t in aws_tags or []]


def identity_filters(org: str, group: Optional[str] = None) -> list[dict[str, Any]]:
    """TagFilters for the Resource Groups Tagging API."""

    return [{"Key": t.key, "Values": [t.value]} for t in identity_tags(org, group)]
