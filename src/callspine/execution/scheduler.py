"""Schedulers that run retry continuations now or after a delay.

A resilient call never sleeps between attempts. When an attempt fails with a
retryable code, the retry loop hands the next attempt to a ``Scheduler`` as a
delayed work item and returns; the worker that observed the failure is free
immediately.

┌──────────────────────────────────────────────────────────────────────────────┐
│  THREAD POOL SCHEDULER                                                       │
│                                                                              │
│   schedule(fn, delay)                                                        │
│      │                                                                       │
│      ▼                                                                       │
│   heap[(due_nanos, seq, task)]  ◄──── one timer thread waits on a Condition  │
│      │                                 until the earliest item is due        │
│      ▼                                                                       │
│   ThreadPoolExecutor.submit(task.run)                                        │
│                                                                              │
│   ScheduledTask.cancel()  ─ marks the item, runs its on_cancel hook          │
│   shutdown()              ─ cancels pending items, joins timer, drains pool  │
└──────────────────────────────────────────────────────────────────────────────┘

Many resilient calls share one scheduler. Work items are independent; the
scheduler holds no per-call state.

Tags:
    scheduler, timers, thread-pool, retry, callspine

Doc-Types:
    api-reference
"""

from __future__ import annotations

import heapq
import itertools
import threading
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from typing import Protocol, runtime_checkable

from callspine.core.clock import Clock, SystemClock, to_nanos, to_seconds
from callspine.core.logging import get_logger

logger = get_logger(__name__)


@runtime_checkable
class Cancellable(Protocol):
    """Handle for a scheduled work item."""

    def cancel(self) -> bool:
        """Prevent the item from running. Returns False if it already ran."""
        ...

    @property
    def cancelled(self) -> bool:
        ...


@runtime_checkable
class Scheduler(Protocol):
    """Runs callbacks immediately or after a delay measured on a Clock."""

    def execute(self, fn: Callable[[], None]) -> None:
        """Run ``fn`` as soon as possible."""
        ...

    def schedule(
        self,
        fn: Callable[[], None],
        delay: float,
        on_cancel: Callable[[], None] | None = None,
    ) -> Cancellable:
        """Run ``fn`` once ``delay`` seconds have elapsed.

        ``on_cancel`` runs instead of ``fn`` if the item is cancelled before it
        starts, including when the scheduler shuts down.
        """
        ...


class ScheduledTask:
    """A delayed work item. Runs at most once; cancellation wins races."""

    def __init__(
        self,
        fn: Callable[[], None],
        due_nanos: int,
        on_cancel: Callable[[], None] | None = None,
    ):
        self.fn = fn
        self.due_nanos = due_nanos
        self.on_cancel = on_cancel
        self._lock = threading.Lock()
        self._state = "pending"

    @property
    def cancelled(self) -> bool:
        return self._state == "cancelled"

    @property
    def done(self) -> bool:
        return self._state != "pending"

    def cancel(self) -> bool:
        with self._lock:
            if self._state != "pending":
                return self._state == "cancelled"
            self._state = "cancelled"
        if self.on_cancel is not None:
            self.on_cancel()
        return True

    def claim(self) -> bool:
        """Mark the task as started. False if it was cancelled first."""
        with self._lock:
            if self._state != "pending":
                return False
            self._state = "started"
            return True

    def run(self) -> None:
        if self.claim():
            self.fn()

    def __repr__(self) -> str:
        return f"ScheduledTask(due_nanos={self.due_nanos}, state={self._state})"


class ThreadPoolScheduler:
    """Production scheduler: one timer thread plus a worker pool.

    Example:
        >>> scheduler = ThreadPoolScheduler(max_workers=4)
        >>> handle = scheduler.schedule(lambda: print("retry"), delay=0.25)
        >>> scheduler.shutdown()
    """

    def __init__(
        self,
        max_workers: int = 4,
        clock: Clock | None = None,
        thread_name_prefix: str = "callspine",
    ):
        self.clock = clock or SystemClock()
        self.pool = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix=thread_name_prefix
        )
        self._heap: list[tuple[int, int, ScheduledTask]] = []
        self._seq = itertools.count()
        self._cond = threading.Condition()
        self._shutdown = False
        self._timer = threading.Thread(
            target=self._loop, daemon=True, name=f"{thread_name_prefix}-timer"
        )
        self._timer.start()

    def execute(self, fn: Callable[[], None]) -> None:
        if self._shutdown:
            raise RuntimeError("Scheduler has been shut down")
        self.pool.submit(self._run_safely, fn)

    def schedule(
        self,
        fn: Callable[[], None],
        delay: float,
        on_cancel: Callable[[], None] | None = None,
    ) -> ScheduledTask:
        if delay < 0:
            raise ValueError(f"Delay must be non-negative, got {delay}")
        task = ScheduledTask(fn, self.clock.nanos() + to_nanos(delay), on_cancel)
        with self._cond:
            if self._shutdown:
                raise RuntimeError("Scheduler has been shut down")
            heapq.heappush(self._heap, (task.due_nanos, next(self._seq), task))
            self._cond.notify()
        return task

    @property
    def pending(self) -> int:
        """Number of armed, not yet cancelled, delayed items."""
        with self._cond:
            return sum(1 for _, _, task in self._heap if not task.done)

    def shutdown(self, wait: bool = True) -> None:
        """Cancel armed timers, stop the timer thread and drain the pool."""
        with self._cond:
            if self._shutdown:
                return
            self._shutdown = True
            armed = [task for _, _, task in self._heap]
            self._heap.clear()
            self._cond.notify_all()
        # cancel hooks may call back into schedule(); run them unlocked
        for task in armed:
            task.cancel()
        self._timer.join(timeout=5.0)
        if self._timer.is_alive():
            logger.warning("scheduler_timer_not_stopped")
        self.pool.shutdown(wait=wait)

    def _loop(self) -> None:
        while True:
            with self._cond:
                while not self._shutdown:
                    if not self._heap:
                        self._cond.wait()
                        continue
                    due, _, task = self._heap[0]
                    if task.done:
                        heapq.heappop(self._heap)
                        continue
                    remaining = due - self.clock.nanos()
                    if remaining <= 0:
                        heapq.heappop(self._heap)
                        break
                    self._cond.wait(timeout=to_seconds(remaining))
                else:
                    return
            try:
                self.pool.submit(self._run_safely, task.run)
            except RuntimeError:
                task.cancel()
                return

    @staticmethod
    def _run_safely(fn: Callable[[], None]) -> None:
        try:
            fn()
        except Exception:
            logger.exception("scheduled_task_failed")

    def __enter__(self) -> ThreadPoolScheduler:
        return self

    def __exit__(self, *args) -> None:
        self.shutdown()


__all__ = [
    "Cancellable",
    "Scheduler",
    "ScheduledTask",
    "ThreadPoolScheduler",
]
