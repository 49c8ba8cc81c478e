"""callspine.execution -- the resilient call runtime.

Architecture::

    context.py      CallContext (attempt deadline, metadata, per-call override)
    callables.py    UnaryCallable protocol, FunctionCallable adapter
    classifier.py   ErrorClassifier: failure → (StatusCode, ApiError)
    scheduler.py    Scheduler protocol, ThreadPoolScheduler
    retry.py        RetrySettings, CallAttemptState, RetryingCallable
"""

from callspine.execution.callables import (
    FunctionCallable,
    UnaryCallable,
    completed_future,
    failed_future,
)
from callspine.execution.classifier import ErrorClassifier
from callspine.execution.context import CallContext
from callspine.execution.retry import (
    CallAttemptState,
    RetryingCallable,
    RetryingFuture,
    RetrySettings,
)
from callspine.execution.scheduler import (
    Cancellable,
    ScheduledTask,
    Scheduler,
    ThreadPoolScheduler,
)

__all__ = [
    "FunctionCallable",
    "UnaryCallable",
    "completed_future",
    "failed_future",
    "ErrorClassifier",
    "CallContext",
    "CallAttemptState",
    "RetryingCallable",
    "RetryingFuture",
    "RetrySettings",
    "Cancellable",
    "ScheduledTask",
    "Scheduler",
    "ThreadPoolScheduler",
]
