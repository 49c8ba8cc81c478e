"""Retrying calls with exponential backoff, attempt deadlines and a total budget.

``RetryingCallable`` wraps a single-attempt ``UnaryCallable`` and turns it into
a resilient call. Each failure is classified into a canonical code; retryable
codes are re-attempted after an exponentially growing delay until the call
succeeds, the attempt budget runs out, or the total time budget runs out.

Example:
    >>> from callspine.core.errors import Code
    >>> from callspine.execution.retry import RetrySettings, RetryingCallable
    >>>
    >>> settings = RetrySettings(
    ...     initial_retry_delay=0.1, retry_delay_multiplier=2.0, max_retry_delay=5.0,
    ...     initial_rpc_timeout=1.0, rpc_timeout_multiplier=1.5, max_rpc_timeout=10.0,
    ...     total_timeout=30.0, retryable_codes={Code.UNAVAILABLE},
    ... )
    >>> resilient = RetryingCallable(transport_stub, settings, scheduler=scheduler)
    >>> resilient.call(request)              # blocks, raises ApiError on failure
    >>> future = resilient.future_call(request)
    >>> future.cancel()                      # stops the in-flight attempt and any timer

Attempt loop::

    attempt 1 ──► future_call(request, ctx.with_timeout(rpc_timeout))
        │
        ├── success ─────────────────────────────► resolve(result)
        │
        └── failure ─► classify ─► code not retryable ─► fail(typed error)
                         │
                         ├── elapsed ≥ total / attempts spent ─► fail(typed error)
                         │
                         └── scheduler.schedule(next attempt, min(delay, max_delay))
                                  delay *= delay_multiplier
                                  rpc_timeout = min(rpc_timeout * multiplier, max)

Tags:
    retry, backoff, deadline, resilience, execution, callspine

Doc-Types:
    api-reference
"""

from __future__ import annotations

import asyncio
import math
import random
import threading
from collections.abc import Callable, Iterable
from concurrent.futures import Future
from dataclasses import dataclass, field, replace
from typing import Any, Generic, TypeVar

from callspine.core.clock import Clock, SystemClock, to_nanos, to_seconds
from callspine.core.errors import CancelledError, Code, InvalidConfigError
from callspine.core.logging import get_logger
from callspine.execution.callables import UnaryCallable, failed_future
from callspine.execution.classifier import ErrorClassifier
from callspine.execution.context import CallContext
from callspine.execution.scheduler import Cancellable, Scheduler, ThreadPoolScheduler

logger = get_logger(__name__)

RequestT = TypeVar("RequestT")
ResponseT = TypeVar("ResponseT")


def _coerce_codes(codes: Iterable[Code | str]) -> frozenset[Code]:
    return frozenset(code if isinstance(code, Code) else Code(code) for code in codes)


@dataclass(frozen=True)
class RetrySettings:
    """Immutable retry policy, validated at construction.

    Durations are seconds.

    Attributes:
        initial_retry_delay: Delay before the second attempt
        retry_delay_multiplier: Growth factor of the delay per retry (≥ 1)
        max_retry_delay: Cap applied to the delay (≥ initial_retry_delay)
        initial_rpc_timeout: Deadline of the first attempt
        rpc_timeout_multiplier: Growth factor of the attempt deadline (≥ 1)
        max_rpc_timeout: Cap applied to the attempt deadline (≥ initial_rpc_timeout)
        total_timeout: Budget for the whole call, measured from the first attempt
        max_attempts: Attempt limit; 0 means unbounded
        retryable_codes: Canonical codes that are retried; empty means never retry
        jittered: Draw each delay uniformly from [0, delay]
    """

    initial_retry_delay: float = 0.1
    retry_delay_multiplier: float = 1.3
    max_retry_delay: float = 60.0
    initial_rpc_timeout: float = 20.0
    rpc_timeout_multiplier: float = 1.0
    max_rpc_timeout: float = 20.0
    total_timeout: float = 600.0
    max_attempts: int = 0
    retryable_codes: frozenset[Code] = field(default_factory=frozenset)
    jittered: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "retryable_codes", _coerce_codes(self.retryable_codes))

        for name in (
            "initial_retry_delay",
            "max_retry_delay",
            "initial_rpc_timeout",
            "max_rpc_timeout",
            "total_timeout",
        ):
            value = getattr(self, name)
            if not math.isfinite(value) or value < 0:
                raise InvalidConfigError(
                    name, value, f"{name} must be finite and non-negative, got {value}"
                )

        for name in ("retry_delay_multiplier", "rpc_timeout_multiplier"):
            value = getattr(self, name)
            if not math.isfinite(value) or value < 1:
                raise InvalidConfigError(
                    name, value, f"{name} must be finite and >= 1, got {value}"
                )

        if self.max_retry_delay < self.initial_retry_delay:
            raise InvalidConfigError(
                "max_retry_delay",
                self.max_retry_delay,
                f"max_retry_delay ({self.max_retry_delay}) must be >= "
                f"initial_retry_delay ({self.initial_retry_delay})",
            )
        if self.max_rpc_timeout < self.initial_rpc_timeout:
            raise InvalidConfigError(
                "max_rpc_timeout",
                self.max_rpc_timeout,
                f"max_rpc_timeout ({self.max_rpc_timeout}) must be >= "
                f"initial_rpc_timeout ({self.initial_rpc_timeout})",
            )
        if self.max_attempts < 0:
            raise InvalidConfigError(
                "max_attempts", self.max_attempts, "max_attempts must be >= 0 (0 = unbounded)"
            )

    @classmethod
    def no_retry(cls, timeout: float) -> RetrySettings:
        """A single attempt with ``timeout`` as both attempt and total deadline."""
        return cls(
            initial_retry_delay=0.0,
            retry_delay_multiplier=1.0,
            max_retry_delay=0.0,
            initial_rpc_timeout=timeout,
            rpc_timeout_multiplier=1.0,
            max_rpc_timeout=timeout,
            total_timeout=timeout,
            max_attempts=1,
        )

    def with_changes(self, **changes: Any) -> RetrySettings:
        """Return a validated copy with ``changes`` applied."""
        return replace(self, **changes)

    def is_retryable(self, code: Code) -> bool:
        return code in self.retryable_codes


@dataclass
class CallAttemptState:
    """Mutable progress of one resilient call. Owned by a single RetryingFuture."""

    attempt_number: int
    first_attempt_start: int
    rpc_timeout: float
    retry_delay: float
    last_failure: BaseException | None = None

    @classmethod
    def first(cls, settings: RetrySettings, now_nanos: int) -> CallAttemptState:
        return cls(
            attempt_number=1,
            first_attempt_start=now_nanos,
            rpc_timeout=settings.initial_rpc_timeout,
            retry_delay=settings.initial_retry_delay,
        )

    def elapsed_nanos(self, now_nanos: int) -> int:
        return now_nanos - self.first_attempt_start

    def advance(self, settings: RetrySettings) -> None:
        """Move to the next attempt: grow the delay, grow and cap the attempt deadline."""
        self.retry_delay = self.retry_delay * settings.retry_delay_multiplier
        self.rpc_timeout = min(
            self.rpc_timeout * settings.rpc_timeout_multiplier, settings.max_rpc_timeout
        )
        self.attempt_number += 1


class RetryingFuture(Future):
    """Outer future of one resilient call.

    Drives the attempt loop through done-callbacks and scheduled
    continuations. ``_lock`` guards only the call's bookkeeping (the in-flight
    attempt, the armed timer, the ``_settled`` flag); the inner callable,
    the scheduler and the future's own done-callbacks always run outside it.
    Whoever flips ``_settled`` first (a result, a terminal error, or
    ``cancel()``) is the only one allowed to complete the future.
    """

    def __init__(
        self,
        inner: UnaryCallable[Any, ResponseT],
        request: Any,
        context: CallContext,
        settings: RetrySettings,
        clock: Clock,
        scheduler: Scheduler,
        classifier: ErrorClassifier,
    ):
        super().__init__()
        self._inner = inner
        self._request = request
        self._context = context
        self._settings = settings
        self._clock = clock
        self._scheduler = scheduler
        self._classifier = classifier
        self._lock = threading.RLock()
        self._attempt = CallAttemptState.first(settings, clock.nanos())
        self._attempt_future: Future | None = None
        self._timer: Cancellable | None = None
        self._settled = False

    @property
    def attempt_count(self) -> int:
        """Attempts issued so far."""
        return self._attempt.attempt_number

    @property
    def settings(self) -> RetrySettings:
        return self._settings

    def start(self) -> RetryingFuture[ResponseT]:
        self._guarded(self._issue_attempt)
        return self

    def cancel(self) -> bool:
        with self._lock:
            if self._settled:
                return self.cancelled()
            self._settled = True
            attempt, timer = self._attempt_future, self._timer
            self._attempt_future = self._timer = None
        super().cancel()
        if timer is not None:
            timer.cancel()
        if attempt is not None:
            attempt.cancel()
        logger.info("call_cancelled", attempt=self._attempt.attempt_number)
        return True

    # ── completion ───────────────────────────────────────────────

    def _settle(self) -> bool:
        """Claim the right to complete the future. False if already claimed."""
        with self._lock:
            if self._settled:
                return False
            self._settled = True
            timer, self._timer = self._timer, None
        if timer is not None:
            timer.cancel()
        return True

    def _guarded(self, step: Callable[..., None], *args: Any) -> None:
        """Run a loop step; an unexpected error becomes the call's outcome."""
        try:
            step(*args)
        except Exception as e:
            if not self._settle():
                raise
            self.set_exception(e)
            logger.error("retry_loop_failed", error=repr(e))

    def _fail(self, failure: BaseException, retryable: bool, event: str, **fields: Any) -> None:
        _, error = self._classifier.classify(failure, retryable=retryable)
        if self._settle():
            self.set_exception(error)
            logger.warning(
                event,
                attempts=self._attempt.attempt_number,
                code=error.code.value,
                **fields,
            )

    # ── attempt loop ─────────────────────────────────────────────

    def _attempt_timeout(self) -> float:
        remaining = self._settings.total_timeout - to_seconds(
            self._attempt.elapsed_nanos(self._clock.nanos())
        )
        return max(0.0, min(self._attempt.rpc_timeout, remaining))

    def _issue_attempt(self) -> None:
        with self._lock:
            if self._settled:
                return
            self._timer = None
            context = self._context.with_timeout(self._attempt_timeout()).with_attempt(
                self._attempt.attempt_number
            )
        try:
            attempt = self._inner.future_call(self._request, context)
        except Exception as e:
            attempt = failed_future(e)
        with self._lock:
            stale = self._settled
            if not stale:
                self._attempt_future = attempt
        if stale:
            attempt.cancel()
            return
        attempt.add_done_callback(self._on_attempt_done)

    def _on_attempt_done(self, attempt: Future) -> None:
        self._guarded(self._handle_outcome, attempt)

    def _handle_outcome(self, attempt: Future) -> None:
        with self._lock:
            if self._settled or attempt is not self._attempt_future:
                return
            self._attempt_future = None

        if attempt.cancelled():
            failure: BaseException | None = CancelledError("Attempt was cancelled")
        else:
            failure = attempt.exception()
        if failure is None:
            if self._settle():
                self.set_result(attempt.result())
            return

        state = self._attempt
        state.last_failure = failure
        status, _ = self._classifier.status_for(failure)
        retryable = self._settings.is_retryable(status.code)
        logger.debug(
            "attempt_failed",
            attempt=state.attempt_number,
            code=status.code.value,
            retryable=retryable,
            error=str(failure),
        )

        if not retryable:
            self._fail(failure, retryable=False, event="call_failed")
            return

        delay = self._next_delay()
        if self._budget_exhausted(delay):
            self._fail(
                failure,
                retryable=True,
                event="retry_exhausted",
                elapsed=to_seconds(state.elapsed_nanos(self._clock.nanos())),
            )
            return

        logger.debug("retry_scheduled", attempt=state.attempt_number, delay=delay)
        self._arm(delay)

    def _arm(self, delay: float) -> None:
        try:
            timer = self._scheduler.schedule(
                self._on_timer, delay, on_cancel=self._on_timer_cancelled
            )
        except RuntimeError:
            # scheduler already shut down
            self._fail(self._attempt.last_failure, retryable=True, event="retry_abandoned")
            return
        with self._lock:
            stale = self._settled
            # an inline scheduler may already have armed the next timer
            if not stale and self._timer is None and not timer.cancelled:
                self._timer = timer
        if stale:
            timer.cancel()

    def _next_delay(self) -> float:
        delay = min(self._attempt.retry_delay, self._settings.max_retry_delay)
        if self._settings.jittered:
            delay = random.uniform(0, delay)
        return delay

    def _budget_exhausted(self, delay: float) -> bool:
        settings, state = self._settings, self._attempt
        if settings.max_attempts > 0 and state.attempt_number >= settings.max_attempts:
            return True
        elapsed = state.elapsed_nanos(self._clock.nanos())
        total = to_nanos(settings.total_timeout)
        return elapsed >= total or elapsed + to_nanos(delay) > total

    def _on_timer(self) -> None:
        self._guarded(self._fire)

    def _on_timer_cancelled(self) -> None:
        # scheduler dropped the timer (e.g. shutdown); surface the last failure
        if self._attempt.last_failure is not None:
            self._guarded(
                self._fail, self._attempt.last_failure, True, "retry_abandoned"
            )

    def _fire(self) -> None:
        with self._lock:
            if self._settled:
                return
            late = self._attempt.elapsed_nanos(self._clock.nanos()) > to_nanos(
                self._settings.total_timeout
            )
            if not late:
                self._attempt.advance(self._settings)
        if late:
            self._fail(self._attempt.last_failure, retryable=True, event="retry_exhausted")
            return
        self._issue_attempt()


class RetryingCallable(Generic[RequestT, ResponseT]):
    """A ``UnaryCallable`` that retries its inner callable.

    Clock and scheduler are shared collaborators: pass the same instances to
    every callable of a client. When no scheduler is given the callable owns a
    private ``ThreadPoolScheduler`` and releases it in ``close()``.

    Args:
        inner: Single-attempt callable
        settings: Retry policy; a ``CallContext.retry_settings`` overrides it per call
        clock: Time source (default: SystemClock)
        scheduler: Runs delayed re-attempts
        classifier: Maps failures to canonical codes
    """

    def __init__(
        self,
        inner: UnaryCallable[RequestT, ResponseT],
        settings: RetrySettings,
        *,
        clock: Clock | None = None,
        scheduler: Scheduler | None = None,
        classifier: ErrorClassifier | None = None,
    ):
        self.inner = inner
        self.settings = settings
        self.clock = clock or SystemClock()
        self._owns_scheduler = scheduler is None
        self.scheduler = scheduler or ThreadPoolScheduler(clock=self.clock)
        self.classifier = classifier or ErrorClassifier()

    def future_call(
        self, request: RequestT, context: CallContext | None = None
    ) -> RetryingFuture[ResponseT]:
        """Start a resilient call and return its future immediately.

        The future resolves to the result or fails with exactly one
        ``ApiError``. Cancelling it stops the in-flight attempt and any
        armed backoff timer.
        """
        context = context or CallContext()
        settings = context.retry_settings or self.settings
        future: RetryingFuture[ResponseT] = RetryingFuture(
            self.inner,
            request,
            context,
            settings,
            self.clock,
            self.scheduler,
            self.classifier,
        )
        return future.start()

    def call(self, request: RequestT, context: CallContext | None = None) -> ResponseT:
        """Blocking form of ``future_call``.

        Raises:
            ApiError: The typed error of the terminal failure
        """
        return self.future_call(request, context).result()

    async def acall(self, request: RequestT, context: CallContext | None = None) -> ResponseT:
        """Awaitable form of ``future_call``. Cancelling the task cancels the call."""
        return await asyncio.wrap_future(self.future_call(request, context))

    def close(self) -> None:
        if self._owns_scheduler and isinstance(self.scheduler, ThreadPoolScheduler):
            self.scheduler.shutdown()

    def __enter__(self) -> RetryingCallable[RequestT, ResponseT]:
        return self

    def __exit__(self, *args) -> None:
        self.close()

    def __repr__(self) -> str:
        codes = sorted(code.value for code in self.settings.retryable_codes)
        return f"RetryingCallable({self.inner!r}, retryable={codes})"


__all__ = [
    "RetrySettings",
    "CallAttemptState",
    "RetryingFuture",
    "RetryingCallable",
]
