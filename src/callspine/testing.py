"""Test harness: deterministic doubles for resilient calls and channels.

Manifesto:
Retry behavior depends on time. Tests that sleep are slow and flaky, so
callspine ships doubles that make time explicit: a ``FakeClock`` that only
moves when told to, a scheduler that advances it by exactly the requested
delay, and a callable that fails or succeeds on a script.

ARCHITECTURE
────────────
::

    Test doubles:
      ScriptedCallable          → outcomes per attempt (value, exception, PENDING)
      RecordingScheduler        → records delays, advances a FakeClock, runs inline
      FakeMtlsProvider          → fixed certificate policy, optional OSError

    Re-exported:
      FakeClock                 → from callspine.core.clock

Example::

    from callspine.core.errors import Code, TransportError
    from callspine.testing import FakeClock, RecordingScheduler, ScriptedCallable

    def test_retries_until_success():
        clock = FakeClock()
        inner = ScriptedCallable([TransportError("down", status_code=503), 2], clock=clock)
        resilient = RetryingCallable(
            inner, settings, clock=clock, scheduler=RecordingScheduler(clock)
        )
        assert resilient.call(1) == 2
        assert inner.call_count == 2

Tags:
    callspine, testing, harness, fake-clock, mocks

Doc-Types:
    api-reference
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from concurrent.futures import Future
from dataclasses import dataclass
from typing import Any

from callspine.core.clock import FakeClock, to_nanos
from callspine.execution.callables import completed_future, failed_future
from callspine.execution.context import CallContext
from callspine.execution.scheduler import ScheduledTask
from callspine.mtls.provider import KeyStore, MtlsEndpointUsagePolicy

# Script marker: the attempt never completes on its own.
PENDING = object()


@dataclass(frozen=True)
class RecordedCall:
    """One attempt seen by a ``ScriptedCallable``."""

    request: Any
    context: CallContext
    at_nanos: int


# ---------------------------------------------------------------------------
# Callables
# ---------------------------------------------------------------------------


class ScriptedCallable:
    """Returns pre-configured outcomes, one per attempt.

    Exceptions in the script fail the attempt, ``PENDING`` leaves it
    incomplete, anything else is the result. Once the script runs out the
    last outcome repeats.

    Args:
        outcomes: Script of outcomes
        clock: Records attempt times when given
        latency: Seconds the clock advances during each attempt
    """

    def __init__(
        self,
        outcomes: Iterable[Any],
        clock: FakeClock | None = None,
        latency: float = 0.0,
    ) -> None:
        self.outcomes = list(outcomes)
        if not self.outcomes:
            raise ValueError("ScriptedCallable needs at least one outcome")
        self.clock = clock
        self.latency = latency
        self.calls: list[RecordedCall] = []
        self.pending: list[Future] = []

    @property
    def call_count(self) -> int:
        return len(self.calls)

    @property
    def attempt_times(self) -> list[int]:
        """Clock readings (nanoseconds) at which attempts were issued."""
        return [call.at_nanos for call in self.calls]

    @property
    def attempt_timeouts(self) -> list[float | None]:
        return [call.context.timeout for call in self.calls]

    def future_call(self, request: Any, context: CallContext | None = None) -> Future:
        now = self.clock.nanos() if self.clock is not None else 0
        self.calls.append(RecordedCall(request, context or CallContext(), now))
        index = min(len(self.calls), len(self.outcomes)) - 1
        outcome = self.outcomes[index]

        if outcome is PENDING:
            future: Future = Future()
            self.pending.append(future)
            return future
        if self.clock is not None and self.latency:
            self.clock.advance(self.latency)
        if isinstance(outcome, BaseException):
            return failed_future(outcome)
        return completed_future(outcome)


# ---------------------------------------------------------------------------
# Scheduler
# ---------------------------------------------------------------------------


class RecordingScheduler:
    """Scheduler for a ``FakeClock``.

    With ``auto_run`` (the default) a scheduled task advances the clock by
    its delay and runs inline, so a whole retry sequence completes inside
    ``future_call``. Without it, tasks queue until ``run_pending()``.
    """

    def __init__(self, clock: FakeClock, auto_run: bool = True) -> None:
        self.clock = clock
        self.auto_run = auto_run
        self.delays: list[float] = []
        self.tasks: list[ScheduledTask] = []

    def execute(self, fn: Callable[[], None]) -> None:
        fn()

    def schedule(
        self,
        fn: Callable[[], None],
        delay: float,
        on_cancel: Callable[[], None] | None = None,
    ) -> ScheduledTask:
        self.delays.append(delay)
        task = ScheduledTask(fn, self.clock.nanos() + to_nanos(delay), on_cancel)
        self.tasks.append(task)
        if self.auto_run:
            self._run(task)
        return task

    @property
    def pending(self) -> list[ScheduledTask]:
        return [task for task in self.tasks if not task.done]

    def run_pending(self) -> int:
        """Run queued tasks in due order, advancing the clock. Returns the count run."""
        ran = 0
        while self.pending:
            task = min(self.pending, key=lambda t: t.due_nanos)
            self._run(task)
            ran += 1
        return ran

    def _run(self, task: ScheduledTask) -> None:
        lag = task.due_nanos - self.clock.nanos()
        if lag > 0:
            self.clock.advance_nanos(lag)
        task.run()


# ---------------------------------------------------------------------------
# mTLS
# ---------------------------------------------------------------------------


class FakeMtlsProvider:
    """Fixed ``MtlsProvider`` for channel tests."""

    def __init__(
        self,
        use_client_certificate: bool,
        endpoint_usage_policy: MtlsEndpointUsagePolicy = MtlsEndpointUsagePolicy.AUTO,
        key_store: KeyStore | None = None,
        endpoint: str = "service.example.com:443",
        throw_on_get_key_store: bool = False,
        mtls_endpoint: str | None = None,
    ) -> None:
        self.use_client_certificate = use_client_certificate
        self.endpoint_usage_policy = endpoint_usage_policy
        self.key_store = key_store
        self.endpoint = endpoint
        self.mtls_endpoint = mtls_endpoint
        self.throw_on_get_key_store = throw_on_get_key_store
        self.get_key_store_calls = 0

    def get_key_store(self) -> KeyStore | None:
        self.get_key_store_calls += 1
        if self.throw_on_get_key_store:
            raise OSError("getKeyStore throws exception")
        return self.key_store


__all__ = [
    "PENDING",
    "FakeClock",
    "RecordedCall",
    "ScriptedCallable",
    "RecordingScheduler",
    "FakeMtlsProvider",
]
