"""The single-attempt call capability consumed by the retry loop.

Anything with ``future_call(request, context) -> Future`` can sit underneath a
``RetryingCallable``: a transport stub, a test double, or another
``RetryingCallable``. The attempt must produce exactly one outcome per
invocation and should honor ``context.timeout`` on a best-effort basis.
"""

from __future__ import annotations

from collections.abc import Callable
from concurrent.futures import Future
from typing import Any, Generic, Protocol, TypeVar, runtime_checkable

from callspine.execution.context import CallContext

RequestT = TypeVar("RequestT")
ResponseT = TypeVar("ResponseT")
T = TypeVar("T")


@runtime_checkable
class UnaryCallable(Protocol[RequestT, ResponseT]):
    """One request in, one future out."""

    def future_call(
        self, request: RequestT, context: CallContext | None = None
    ) -> Future[ResponseT]:
        ...


def completed_future(value: T) -> Future[T]:
    """Return a future already resolved with ``value``."""
    future: Future[T] = Future()
    future.set_result(value)
    return future


def failed_future(error: BaseException) -> Future[Any]:
    """Return a future already failed with ``error``."""
    future: Future[Any] = Future()
    future.set_exception(error)
    return future


class FunctionCallable(Generic[RequestT, ResponseT]):
    """Adapts a plain ``fn(request, context)`` into a ``UnaryCallable``.

    The function runs inline on the calling thread; its return value or
    exception becomes the outcome of the returned future.

    Example:
        >>> def get_price(request, context):
        ...     return transport.post("/price", request, timeout=context.timeout)
        >>> attempt = FunctionCallable(get_price)
    """

    def __init__(self, fn: Callable[[RequestT, CallContext], ResponseT]):
        self.fn = fn

    def future_call(
        self, request: RequestT, context: CallContext | None = None
    ) -> Future[ResponseT]:
        try:
            return completed_future(self.fn(request, context or CallContext()))
        except Exception as e:
            return failed_future(e)

    def __repr__(self) -> str:
        return f"FunctionCallable({getattr(self.fn, '__name__', self.fn)!r})"


__all__ = [
    "UnaryCallable",
    "FunctionCallable",
    "completed_future",
    "failed_future",
]
