"""Failure taxonomy shared by the gateway and its clients.

Backend errors are classified exactly once, where they are caught, into a
:class:`FailureKind`. Callers branch on the kind carried by a
:class:`DownloadResult` instead of catching exception types.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import TYPE_CHECKING

from botocore.exceptions import (
    ClientError,
    HTTPClientError,
    IncompleteReadError,
    ResponseStreamingError,
)
from botocore.exceptions import ConnectionError as BotoConnectionError

if TYPE_CHECKING:
    from .models import ObjectSpecification

NOT_FOUND_CODES = frozenset({"404", "NoSuchKey", "NotFound", "NoSuchBucket"})

RETRYABLE_CODES = frozenset(
    {
        "Throttling",
        "ThrottlingException",
        "ThrottledException",
        "RequestThrottled",
        "RequestThrottledException",
        "TooManyRequestsException",
        "SlowDown",
        "RequestTimeout",
        "RequestTimeoutException",
        "InternalError",
        "ServiceUnavailable",
        "PriorRequestNotComplete",
    }
)


class FailureKind(enum.Enum):
    NOT_FOUND = "not_found"
    MALFORMED = "malformed"
    RETRYABLE = "retryable"
    PERMANENT = "permanent"
    INVALID_RANGE = "invalid_range"

    @property
    def retryable(self) -> bool:
        return self is FailureKind.RETRYABLE


def error_code(error: ClientError) -> str | None:
    return error.response.get("Error", {}).get("Code")


def status_code(error: ClientError) -> int | None:
    status = error.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
    return int(status) if status is not None else None


def is_not_found(error: BaseException) -> bool:
    if not isinstance(error, ClientError):
        return False
    return error_code(error) in NOT_FOUND_CODES or status_code(error) == 404


def classify_error(error: BaseException) -> FailureKind:
    """Classify a backend error as not-found, retryable or permanent."""
    if isinstance(error, ClientError):
        if is_not_found(error):
            return FailureKind.NOT_FOUND
        status = status_code(error)
        if error_code(error) in RETRYABLE_CODES:
            return FailureKind.RETRYABLE
        if status is not None and (status == 429 or status >= 500):
            return FailureKind.RETRYABLE
        return FailureKind.PERMANENT
    if isinstance(
        error,
        (BotoConnectionError, HTTPClientError, IncompleteReadError, ResponseStreamingError),
    ):
        return FailureKind.RETRYABLE
    return FailureKind.PERMANENT


class DownloadFailedError(Exception):
    """Raised by callers that turn a failed :class:`DownloadResult` into an error."""

    def __init__(self, kind: FailureKind, message: str):
        super().__init__(message)
        self.kind = kind
        self.message = message

    @property
    def retryable(self) -> bool:
        return self.kind.retryable


@dataclass(frozen=True)
class DownloadResult:
    """Either a resolved specification or a classified failure."""

    specification: ObjectSpecification | None = None
    kind: FailureKind | None = None
    message: str = ""

    @classmethod
    def success(cls, specification: ObjectSpecification) -> DownloadResult:
        return cls(specification=specification)

    @classmethod
    def failure(cls, kind: FailureKind, message: str) -> DownloadResult:
        return cls(kind=kind, message=message)

    @property
    def ok(self) -> bool:
        return self.kind is None

    @property
    def retryable(self) -> bool:
        return self.kind is not None and self.kind.retryable

    def unwrap(self) -> ObjectSpecification:
        if self.kind is not None:
            raise DownloadFailedError(self.kind, self.message)
        assert self.specification is not None
        return self.specification
