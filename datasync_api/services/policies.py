from __future__ import annotations

import json
import logging
import threading
from typing import Any, Callable, Optional, Union
from urllib.parse import unquote


logger = logging.getLogger(__name__)

POLICY_VERSION = "2012-10-17"
BUCKET_ACCESS_POLICY_NAME = "DataSyncBucketAccessPolicy"
DATASYNC_SERVICE_PRINCIPAL = "datasync.amazonaws.com"

DATASYNC_FULL_ACCESS = "arn:aws:iam::aws:policy/AWSDataSyncFullAccess"
DATASYNC_READ_ONLY_ACCESS = "arn:aws:iam::aws:policy/AWSDataSyncReadOnlyAccess"
TAG_EDITOR_READ_ONLY_ACCESS = "arn:aws:iam::aws:policy/ResourceGroupsandTagEditorReadOnlyAccess"

PolicyDocument = dict[str, Any]


class _LazyDocument:
    """Write-once JSON document, built on first access."""

    def __init__(self, factory: Callable[[], PolicyDocument]) -> None:
        self._factory = factory
        self._lock = threading.Lock()
        self._value: Optional[str] = None

    def get(self) -> str:
        if self._value is None:
            with self._lock:
                if self._value is None:
                    self._value = json.dumps(self._factory())
        return self._value


def _assume_role_document() -> PolicyDocument:
    return {
        "Version": POLICY_VERSION,
        "Statement": [
            {
                "Effect": "Allow",
                "Action": ["sts:AssumeRole"],
                "Principal": {"Service": [DATASYNC_SERVICE_PRINCIPAL]},
            }
        ],
    }


_ASSUME_ROLE_POLICY = _LazyDocument(_assume_role_document)


def assume_role_policy() -> str:
    """Trust policy allowing the DataSync service to assume a bucket access role."""

    return _ASSUME_ROLE_POLICY.get()


def bucket_access_policy(bucket_arn: str) -> PolicyDocument:
    """Inline policy granting DataSync access to exactly one bucket and its objects."""

    logger.debug("generating bucket access policy for %s", bucket_arn)

    return {
        "Version": POLICY_VERSION,
        "Statement": [
            {
                "Sid": "ListBucket",
                "Effect": "Allow",
                "Action": [
                    "s3:GetBucketLocation",
                    "s3:ListBucket",
                    "s3:ListBucketMultipartUploads",
                ],
                "Resource": [bucket_arn],
            },
            {
                "Sid": "GetBucketObjects",
                "Effect": "Allow",
                "Action": [
                    "s3:AbortMultipartUpload",
                    "s3:DeleteObject",
                    "s3:GetObject",
                    "s3:ListMultipartUploadParts",
                    "s3:GetObjectTagging",
                    "s3:PutObjectTagging",
                    "s3:PutObject",
                ],
                "Resource": [f"{bucket_arn}/*"],
            },
        ],
    }


def _role_resource(org: str) -> str:
    return f"arn:aws:iam::*:role/spinup/{org}/*"


def mover_create_policy(org: str) -> str:
    """Inline session policy used while creating a mover."""

    return json.dumps(
        {
            "Version": POLICY_VERSION,
            "Statement": [
                {
                    "Sid": "CreateRole",
                    "Effect": "Allow",
                    "Action": [
                        "iam:CreateRole",
                        "iam:GetRole",
                        "iam:GetRolePolicy",
                        "iam:ListAttachedRolePolicies",
                        "iam:ListRolePolicies",
                        "iam:AttachRolePolicy",
                        "iam:PutRolePolicy",
                        "iam:TagRole",
                        "iam:UntagRole",
                        "iam:PassRole",
                    ],
                    "Resource": [_role_resource(org)],
                },
                {
                    # rollback needs to remove roles created earlier in the same request
                    "Sid": "DeleteRole",
                    "Effect": "Allow",
                    "Action": [
                        "iam:DeleteRole",
                        "iam:DetachRolePolicy",
                        "iam:DeleteRolePolicy",
                    ],
                    "Resource": [_role_resource(org)],
                },
            ],
        }
    )


def mover_delete_policy(org: str) -> str:
    """Inline session policy used while deleting a mover."""

    return json.dumps(
        {
            "Version": POLICY_VERSION,
            "Statement": [
                {
                    "Sid": "DeleteRole",
                    "Effect": "Allow",
                    "Action": [
                        "iam:DeleteRole",
                        "iam:GetRole",
                        "iam:GetRolePolicy",
                        "iam:ListAttachedRolePolicies",
                        "iam:ListRolePolicies",
                        "iam:DetachRolePolicy",
                        "iam:DeleteRolePolicy",
                    ],
                    "Resource": [_role_resource(org)],
                }
            ],
        }
    )


# Keys whose values are plain scalars; everything else may be given as a string
# or a list of strings and means the same thing.
_SCALAR_KEYS = frozenset({"Version", "Id", "Sid", "Effect"})


def _canonical(value: Any, key: Optional[str] = None) -> Any:
    if isinstance(value, dict):
        return {
            k: _canonical(v, k)
            for k, v in value.items()
            if v not in (None, "", [], {})
        }
    if isinstance(value, list):
        items = [_canonical(v) for v in value]
        return sorted(items, key=lambda i: json.dumps(i, sort_keys=True))
    if key is not None and key not in _SCALAR_KEYS:
        return [value]
    return value


def parse_policy(document: Union[str, PolicyDocument]) -> PolicyDocument:
    """Accept a policy as returned by IAM (dict, JSON or URL-encoded JSON)."""

    if isinstance(document, dict):
        return document
    text = document.strip()
    if not text.startswith("{"):
        text = unquote(text)
    return json.loads(text)


def _with_statement_list(document: Union[str, PolicyDocument]) -> PolicyDocument:
    doc = dict(parse_policy(document))
    statements = doc.get("Statement", [])
    doc["Statement"] = statements if isinstance(statements, list) else [statements]
    return doc


def policy_deep_equal(a: Union[str, PolicyDocument], b: Union[str, PolicyDocument]) -> bool:
    """Semantic comparison of two IAM policy documents.

    Statement order, action/resource order and the string vs single-item list
    spelling of a value do not matter.
    """

    return _canonical(_with_statement_list(a)) == _canonical(_with_statement_list(b))
