"""Failure classification: any exception → (StatusCode, ApiError).

The retry loop never inspects raw failures itself. It asks the classifier
for a canonical code, checks that code against the retryable set, and
surfaces the classifier's typed error when the call ends.

Resolution order:
    1. Already an ``ApiError``          → returned unchanged
    2. Transport status + known reason  → reason table (message keeps the reason)
    3. Transport status with a default  → status table
    4. Anything else                    → UNKNOWN, message = str(failure)

A failure exposes its transport status either directly
(``failure.status_code`` / ``failure.reason``, as ``TransportError`` does) or
through a ``failure.response`` object (``status_code`` plus ``reason`` or
``reason_phrase``, as requests/httpx style errors do). When no explicit reason
is given, a JSON error body of the form
``{"error": {"status": "...", "errors": [{"reason": "..."}]}}`` is consulted.

Classification is pure: the same failure always yields the same code and an
equivalent error.

Tags:
    error-handling, classification, status-codes, retry-logic, callspine

Doc-Types:
    api-reference
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any

from callspine.core.errors import ApiError, Code, StatusCode, create_error

# Structured reasons recognized verbatim: the canonical code names.
REASON_CODES: Mapping[str, Code] = {code.value: code for code in Code if code is not Code.OK}

DEFAULT_TRANSPORT_CODES: Mapping[int, Code] = {
    400: Code.FAILED_PRECONDITION,
    401: Code.UNAUTHENTICATED,
    403: Code.PERMISSION_DENIED,
    404: Code.NOT_FOUND,
    408: Code.DEADLINE_EXCEEDED,
    409: Code.ABORTED,
    412: Code.FAILED_PRECONDITION,
    416: Code.OUT_OF_RANGE,
    429: Code.RESOURCE_EXHAUSTED,
    499: Code.CANCELLED,
    500: Code.INTERNAL,
    501: Code.UNIMPLEMENTED,
    502: Code.UNAVAILABLE,
    503: Code.UNAVAILABLE,
    504: Code.DEADLINE_EXCEEDED,
}


def _as_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    return None


def _as_str(value: Any) -> str | None:
    if isinstance(value, str) and value:
        return value
    return None


def _reason_from_body(body: Any) -> str | None:
    """Pull a structured reason out of a JSON error body, if present."""
    if isinstance(body, bytes):
        try:
            body = body.decode("utf-8")
        except UnicodeDecodeError:
            return None
    if not isinstance(body, str) or not body.strip():
        return None
    try:
        payload = json.loads(body)
    except ValueError:
        return None
    if not isinstance(payload, dict) or not isinstance(payload.get("error"), dict):
        return None

    error = payload["error"]
    status = _as_str(error.get("status"))
    if status and status.upper() in REASON_CODES:
        return status
    for item in error.get("errors") or []:
        if isinstance(item, dict):
            reason = _as_str(item.get("reason"))
            if reason and reason.upper() in REASON_CODES:
                return reason
    return None


def transport_details(failure: BaseException) -> tuple[int | None, str | None]:
    """Extract ``(transport_status, reason)`` from a failure, when it has them."""
    status = _as_int(getattr(failure, "status_code", None))
    reason = _as_str(getattr(failure, "reason", None))
    body = getattr(failure, "body", None)

    response = getattr(failure, "response", None)
    if response is not None:
        if status is None:
            status = _as_int(getattr(response, "status_code", None))
        if reason is None:
            reason = _as_str(getattr(response, "reason", None)) or _as_str(
                getattr(response, "reason_phrase", None)
            )
        if body is None:
            body = getattr(response, "text", None)

    if status is not None and (reason is None or reason.upper() not in REASON_CODES):
        reason = _reason_from_body(body) or reason
    return status, reason


class ErrorClassifier:
    """Maps failures to canonical status codes and typed errors.

    Stateless; one instance can be shared by every callable.

    Example:
        >>> from callspine.core.errors import TransportError
        >>> failure = TransportError("bad", status_code=400, reason="FAILED_PRECONDITION")
        >>> status, error = ErrorClassifier().classify(failure)
        >>> status
        StatusCode(code=<Code.FAILED_PRECONDITION: 'FAILED_PRECONDITION'>, transport_code=400)
    """

    def __init__(
        self,
        transport_codes: Mapping[int, Code] | None = None,
        reason_codes: Mapping[str, Code] | None = None,
    ):
        self._transport_codes = dict(
            DEFAULT_TRANSPORT_CODES if transport_codes is None else transport_codes
        )
        self._reason_codes = dict(REASON_CODES if reason_codes is None else reason_codes)

    def status_for(self, failure: BaseException) -> tuple[StatusCode, str | None]:
        """Resolve the status of ``failure`` and the reason string that matched."""
        if isinstance(failure, ApiError):
            return failure.status_code, None

        transport_code, reason = transport_details(failure)
        if transport_code is not None:
            if reason is not None and reason.upper() in self._reason_codes:
                return StatusCode(self._reason_codes[reason.upper()], transport_code), reason
            if transport_code in self._transport_codes:
                return StatusCode(self._transport_codes[transport_code], transport_code), None
            return StatusCode(Code.UNKNOWN, transport_code), None
        return StatusCode(Code.UNKNOWN), None

    def classify(
        self, failure: BaseException, retryable: bool = False
    ) -> tuple[StatusCode, ApiError]:
        """Classify ``failure``.

        Args:
            failure: The exception an attempt failed with
            retryable: Recorded on the created error

        Returns:
            The status code and the typed error whose ``cause`` is ``failure``
        """
        status, reason = self.status_for(failure)
        if isinstance(failure, ApiError):
            return status, failure

        message = str(failure)
        if reason is not None and reason not in message:
            message = f"{reason}: {message}" if message else reason
        return status, create_error(message, failure, status, retryable=retryable)


__all__ = [
    "DEFAULT_TRANSPORT_CODES",
    "REASON_CODES",
    "ErrorClassifier",
    "transport_details",
]
