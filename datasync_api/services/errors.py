from __future__ import annotations

import logging
from enum import Enum
from typing import Mapping, Optional

from botocore.exceptions import ClientError


logger = logging.getLogger(__name__)


class ErrorCode(str, Enum):
    BAD_REQUEST = "BadRequest"
    NOT_FOUND = "NotFound"
    CONFLICT = "Conflict"
    FORBIDDEN = "Forbidden"
    LIMIT_EXCEEDED = "LimitExceeded"
    SERVICE_UNAVAILABLE = "ServiceUnavailable"
    INTERNAL_ERROR = "InternalError"


class ApiError(RuntimeError):
    """Service-layer failure tagged with an error kind.

    Routes never see botocore exceptions directly; every AWS failure is wrapped
    into an ApiError at the client boundary (see `from_client_error`) so the
    exception handler in `datasync_api.main` can pick an HTTP status.
    """

    def __init__(self, code: ErrorCode, message: str, cause: Optional[BaseException] = None) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.cause = cause

    def __str__(self) -> str:
        if self.cause is None:
            return self.message
        return f"{self.message}: {self.cause}"


def bad_request(message: str = "invalid input") -> ApiError:
    return ApiError(ErrorCode.BAD_REQUEST, message)


def not_found(message: str) -> ApiError:
    return ApiError(ErrorCode.NOT_FOUND, message)


def conflict(message: str) -> ApiError:
    return ApiError(ErrorCode.CONFLICT, message)


def internal_error(message: str, cause: Optional[BaseException] = None) -> ApiError:
    return ApiError(ErrorCode.INTERNAL_ERROR, message, cause)


# Codes shared by every AWS service we talk to.
COMMON_ERROR_CODES: Mapping[str, ErrorCode] = {
    "AccessDenied": ErrorCode.FORBIDDEN,
    "AccessDeniedException": ErrorCode.FORBIDDEN,
    "Forbidden": ErrorCode.FORBIDDEN,
    "UnauthorizedOperation": ErrorCode.FORBIDDEN,
    "LimitExceeded": ErrorCode.LIMIT_EXCEEDED,
    "LimitExceededException": ErrorCode.LIMIT_EXCEEDED,
    "Throttling": ErrorCode.LIMIT_EXCEEDED,
    "ThrottlingException": ErrorCode.LIMIT_EXCEEDED,
    "NotFound": ErrorCode.NOT_FOUND,
    "ServiceUnavailable": ErrorCode.SERVICE_UNAVAILABLE,
    "ServiceUnavailableException": ErrorCode.SERVICE_UNAVAILABLE,
}


def _is_client_fault(exc: ClientError) -> bool:
    error = exc.response.get("Error") or {}
    if error.get("Type") == "Sender":
        return True
    status = (exc.response.get("ResponseMetadata") or {}).get("HTTPStatusCode")
    return isinstance(status, int) and 400 <= status < 500


def from_client_error(
    message: str,
    exc: BaseException,
    codes: Optional[Mapping[str, ErrorCode]] = None,
) -> ApiError:
    """Translate an AWS SDK exception into an ApiError.

    Args:
        message: Human readable context (e.g. "failed to create location").
        exc: The exception raised by the aioboto3 client.
        codes: Service-specific AWS error codes, consulted before the common ones.

    Returns:
        An ApiError with the mapped kind. Unmapped AWS codes become BadRequest when
        the service reported a client-side fault and InternalError otherwise; any
        non-AWS exception is an InternalError.
    """

    if isinstance(exc, ApiError):
        return exc

    if isinstance(exc, ClientError):
        aws_code = (exc.response.get("Error") or {}).get("Code", "")
        if codes and aws_code in codes:
            return ApiError(codes[aws_code], message, exc)
        if aws_code in COMMON_ERROR_CODES:
            return ApiError(COMMON_ERROR_CODES[aws_code], message, exc)
        if _is_client_fault(exc):
            return ApiError(ErrorCode.BAD_REQUEST, message, exc)
        return ApiError(ErrorCode.INTERNAL_ERROR, message, exc)

    logger.warning("uncaught error: %s, returning internal error", exc)
    return ApiError(ErrorCode.INTERNAL_ERROR, message, exc)
