from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


class ErrorKind(str, Enum):
    """Why an application-layer operation did not succeed."""

    VALIDATION = "validation"
    CONFLICT = "conflict"
    CREDENTIAL = "credential"
    NOT_FOUND = "not_found"
    STORAGE = "storage"


@dataclass
class OperationResult(Generic[T]):
    """
    Result of an application-layer operation.

    On success `value` holds the payload, which may legitimately be None
    (e.g. looking up a message that does not exist). On failure `error`
    says what went wrong and `error_message` is safe to show a caller.
    """

    success: bool
    value: Optional[T] = None
    error: Optional[ErrorKind] = None
    error_message: Optional[str] = None


def ok(value: Optional[T] = None) -> OperationResult[T]:
    return OperationResult(success=True, value=value)


def failure(error: ErrorKind, message: str) -> OperationResult:
    return OperationResult(success=False, error=error, error_message=message)


# How a transport layer is expected to render each failure.
HTTP_STATUS_BY_ERROR = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.CONFLICT: 400,
    ErrorKind.CREDENTIAL: 401,
    ErrorKind.NOT_FOUND: 204,
    ErrorKind.STORAGE: 500,
}


def http_status_for(result: OperationResult) -> int:
    if result.success:
        return 200
    return HTTP_STATUS_BY_ERROR[result.error]
