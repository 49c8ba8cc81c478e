"""
Canonical status codes and typed errors for callspine.

Every failed remote call is eventually reported as exactly one ``ApiError``.
The error carries the canonical status code that classified it, the raw
transport status when one was known, and the original failure as its cause.
Callers branch on failure kinds by catching a specific subclass
(``UnavailableError``, ``FailedPreconditionError``, ...) instead of parsing
messages.

Manifesto:
    - **Closed hierarchy:** One error type per canonical code, nothing else
    - **Transport-agnostic codes:** HTTP statuses and RPC statuses collapse
      onto the same ``Code`` enum
    - **Cause preserved:** The exact failure object is reachable as ``cause``
      and ``__cause__``, never a copy or a re-stringified version
    - **Serializable:** ``to_dict()`` for structured logging

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────────┐
        │                         ApiError                                 │
        │        (message, status_code, cause, retryable)                  │
        ├─────────────────────────────────────────────────────────────────┤
        │  CancelledError          UnknownError        InvalidArgumentError│
        │  DeadlineExceededError   NotFoundError       AlreadyExistsError  │
        │  PermissionDeniedError   ResourceExhaustedError                  │
        │  FailedPreconditionError AbortedError        OutOfRangeError     │
        │  UnimplementedError      InternalError       UnavailableError    │
        │  DataLossError           UnauthenticatedError                    │
        └─────────────────────────────────────────────────────────────────┘

        StatusCode(code=Code.UNAVAILABLE, transport_code=503)
                 │
                 └── ERROR_TYPES[Code.UNAVAILABLE] → UnavailableError

Examples:
    Creating an error from a failed attempt:

    >>> failure = ConnectionResetError("peer reset")
    >>> error = create_error("peer reset", failure, StatusCode(Code.UNAVAILABLE, 503))
    >>> type(error).__name__
    'UnavailableError'
    >>> error.cause is failure
    True
    >>> error.status_code.transport_code
    503

Guardrails:
    ❌ DON'T: Raise ``ApiError`` directly for a known code
    ✅ DO: Use ``create_error`` so the subclass matches the code

    ❌ DON'T: Wrap the failure in a new exception before passing it as cause
    ✅ DO: Pass the original failure object

Tags:
    error-handling, status-codes, exception-hierarchy, retry-logic, callspine

Doc-Types:
    - API Reference
    - Error Handling Guide
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum
from typing import Any


class Code(str, Enum):
    """Canonical status codes shared by every transport."""

    OK = "OK"
    CANCELLED = "CANCELLED"
    UNKNOWN = "UNKNOWN"
    INVALID_ARGUMENT = "INVALID_ARGUMENT"
    DEADLINE_EXCEEDED = "DEADLINE_EXCEEDED"
    NOT_FOUND = "NOT_FOUND"
    ALREADY_EXISTS = "ALREADY_EXISTS"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    RESOURCE_EXHAUSTED = "RESOURCE_EXHAUSTED"
    FAILED_PRECONDITION = "FAILED_PRECONDITION"
    ABORTED = "ABORTED"
    OUT_OF_RANGE = "OUT_OF_RANGE"
    UNIMPLEMENTED = "UNIMPLEMENTED"
    INTERNAL = "INTERNAL"
    UNAVAILABLE = "UNAVAILABLE"
    DATA_LOSS = "DATA_LOSS"
    UNAUTHENTICATED = "UNAUTHENTICATED"


@dataclass(frozen=True)
class StatusCode:
    """A canonical code paired with the raw transport status, if known.

    Attributes:
        code: Canonical status code
        transport_code: Raw numeric status from the transport (e.g. HTTP 503)
    """

    code: Code
    transport_code: int | None = None

    def __str__(self) -> str:
        if self.transport_code is None:
            return self.code.value
        return f"{self.code.value} ({self.transport_code})"


# =============================================================================
# BASE ERROR
# =============================================================================


class ApiError(Exception):
    """
    Base class for every terminal failure of a resilient call.

    Subclasses pin ``default_code``; the constructor only accepts a status
    whose code matches it, so ``type(error)`` and ``error.code`` never
    disagree.

    Attributes:
        message: Human-readable description
        status_code: Canonical code plus optional transport status
        cause: The original failure, by identity
        retryable: Whether the code was configured as retryable when raised
    """

    default_code: Code = Code.UNKNOWN

    def __init__(
        self,
        message: str,
        *,
        cause: BaseException | None = None,
        status_code: StatusCode | None = None,
        retryable: bool = False,
    ):
        super().__init__(message)
        status_code = status_code or StatusCode(self.default_code)
        if status_code.code is not self.default_code:
            raise ValueError(
                f"{self.__class__.__name__} requires code {self.default_code.value}, "
                f"got {status_code.code.value}"
            )
        self.message = message
        self.status_code = status_code
        self.cause = cause
        self.retryable = retryable

        if cause is not None:
            self.__cause__ = cause

    @property
    def code(self) -> Code:
        """Shortcut for ``status_code.code``."""
        return self.status_code.code

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result: dict[str, Any] = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "code": self.code.value,
            "retryable": self.retryable,
        }
        if self.status_code.transport_code is not None:
            result["transport_code"] = self.status_code.transport_code
        if self.cause is not None:
            result["cause"] = repr(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, status={self.status_code})"


# =============================================================================
# ONE ERROR TYPE PER CANONICAL CODE
# =============================================================================


class CancelledError(ApiError):
    """The operation was cancelled by the server or an intermediary."""

    default_code = Code.CANCELLED


class UnknownError(ApiError):
    """The failure could not be mapped to a known status."""

    default_code = Code.UNKNOWN


class InvalidArgumentError(ApiError):
    default_code = Code.INVALID_ARGUMENT


class DeadlineExceededError(ApiError):
    """The deadline expired before the operation could complete."""

    default_code = Code.DEADLINE_EXCEEDED


class NotFoundError(ApiError):
    default_code = Code.NOT_FOUND


class AlreadyExistsError(ApiError):
    default_code = Code.ALREADY_EXISTS


class PermissionDeniedError(ApiError):
    default_code = Code.PERMISSION_DENIED


class ResourceExhaustedError(ApiError):
    """Quota or rate limit exhausted."""

    default_code = Code.RESOURCE_EXHAUSTED


class FailedPreconditionError(ApiError):
    """The system is not in a state required for the operation."""

    default_code = Code.FAILED_PRECONDITION


class AbortedError(ApiError):
    default_code = Code.ABORTED


class OutOfRangeError(ApiError):
    default_code = Code.OUT_OF_RANGE


class UnimplementedError(ApiError):
    default_code = Code.UNIMPLEMENTED


class InternalError(ApiError):
    default_code = Code.INTERNAL


class UnavailableError(ApiError):
    """The service is currently unavailable; usually transient."""

    default_code = Code.UNAVAILABLE


class DataLossError(ApiError):
    default_code = Code.DATA_LOSS


class UnauthenticatedError(ApiError):
    default_code = Code.UNAUTHENTICATED


ERROR_TYPES: dict[Code, type[ApiError]] = {
    cls.default_code: cls
    for cls in (
        CancelledError,
        UnknownError,
        InvalidArgumentError,
        DeadlineExceededError,
        NotFoundError,
        AlreadyExistsError,
        PermissionDeniedError,
        ResourceExhaustedError,
        FailedPreconditionError,
        AbortedError,
        OutOfRangeError,
        UnimplementedError,
        InternalError,
        UnavailableError,
        DataLossError,
        UnauthenticatedError,
    )
}


# =============================================================================
# TRANSPORT FAILURES
# =============================================================================


class TransportError(Exception):
    """A raw failure reported by a transport before classification.

    Transports raise this (or any exception exposing the same attributes)
    from an attempt; the classifier turns it into an ``ApiError``.

    Attributes:
        status_code: Raw numeric transport status (e.g. HTTP 503)
        reason: Structured reason string, e.g. ``"FAILED_PRECONDITION"``
        body: Raw response body, if any
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        reason: str | None = None,
        body: str | bytes | None = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.reason = reason
        self.body = body


# =============================================================================
# CONFIGURATION ERRORS
# =============================================================================


class InvalidConfigError(ValueError):
    """Configuration value is invalid. Raised at construction, never at call time."""

    def __init__(self, key: str, value: Any, message: str | None = None):
        self.key = key
        self.value = value
        super().__init__(message or f"Invalid value for {key}: {value!r}")


# =============================================================================
# HELPERS
# =============================================================================


def error_type_for(code: Code) -> type[ApiError]:
    """Return the error type registered for ``code``.

    Raises:
        ValueError: For ``Code.OK``, which has no error type
    """
    try:
        return ERROR_TYPES[code]
    except KeyError:
        raise ValueError(f"No error type for status code {code.value}") from None


def create_error(
    message: str,
    cause: BaseException | None,
    status_code: StatusCode,
    retryable: bool = False,
) -> ApiError:
    """Build the ``ApiError`` subclass matching ``status_code``."""
    error_cls = error_type_for(status_code.code)
    return error_cls(message, cause=cause, status_code=status_code, retryable=retryable)


def status_of(error: BaseException) -> StatusCode | None:
    """Return the status carried by an ``ApiError``, else None."""
    if isinstance(error, ApiError):
        return error.status_code
    return None


def is_retryable(error: BaseException, retryable_codes: Iterable[Code]) -> bool:
    """Check whether an already-classified error's code is in ``retryable_codes``."""
    status = status_of(error)
    return status is not None and status.code in set(retryable_codes)


__all__ = [
    "Code",
    "StatusCode",
    "ApiError",
    "CancelledError",
    "UnknownError",
    "InvalidArgumentError",
    "DeadlineExceededError",
    "NotFoundError",
    "AlreadyExistsError",
    "PermissionDeniedError",
    "ResourceExhaustedError",
    "FailedPreconditionError",
    "AbortedError",
    "OutOfRangeError",
    "UnimplementedError",
    "InternalError",
    "UnavailableError",
    "DataLossError",
    "UnauthenticatedError",
    "ERROR_TYPES",
    "TransportError",
    "InvalidConfigError",
    "error_type_for",
    "create_error",
    "status_of",
    "is_retryable",
]
