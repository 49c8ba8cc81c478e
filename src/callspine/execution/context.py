"""Per-call context handed to every attempt.

A ``CallContext`` is immutable. The retry loop derives a fresh context for
each attempt with ``with_timeout`` / ``with_attempt`` so the attempt sees its
own deadline while the caller's context stays untouched.

Attributes carried:
    timeout         Deadline for one attempt, seconds (None = transport default)
    metadata        Request headers/metadata forwarded by the transport
    attempt_number  1-based attempt counter, set by the retry loop
    retry_settings  Optional per-call override of the callable's RetrySettings
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from callspine.execution.retry import RetrySettings


@dataclass(frozen=True)
class CallContext:
    """Immutable options for a single call or attempt."""

    timeout: float | None = None
    metadata: Mapping[str, str] = field(default_factory=dict)
    attempt_number: int = 0
    retry_settings: RetrySettings | None = None

    def __post_init__(self) -> None:
        if self.timeout is not None and self.timeout < 0:
            raise ValueError(f"Timeout must be non-negative, got {self.timeout}")
        object.__setattr__(self, "metadata", MappingProxyType(dict(self.metadata)))

    def __hash__(self) -> int:
        return hash(
            (
                self.timeout,
                frozenset(self.metadata.items()),
                self.attempt_number,
                self.retry_settings,
            )
        )

    def with_timeout(self, seconds: float | None) -> CallContext:
        """Return a copy carrying ``seconds`` as the attempt deadline."""
        return replace(self, timeout=seconds)

    def with_attempt(self, attempt_number: int) -> CallContext:
        return replace(self, attempt_number=attempt_number)

    def with_metadata(self, **headers: str) -> CallContext:
        """Return a copy with ``headers`` merged over the existing metadata."""
        return replace(self, metadata={**self.metadata, **headers})

    def with_retry_settings(self, settings: RetrySettings | None) -> CallContext:
        return replace(self, retry_settings=settings)

    def to_dict(self) -> dict[str, Any]:
        return {
            "timeout": self.timeout,
            "metadata": dict(self.metadata),
            "attempt_number": self.attempt_number,
        }


__all__ = ["CallContext"]
