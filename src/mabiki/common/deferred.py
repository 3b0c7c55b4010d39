from __future__ import annotations

import asyncio
import heapq
import itertools
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Protocol

from loguru import logger

from .clock import ManualClock

Callback = Callable[[], None]


class DeferredExecutor(Protocol):
    """Run a callback once after a delay, with a cancelable handle."""

    def schedule(self, callback: Callback, delay_ms: float) -> Any: ...

    def cancel(self, handle: Any) -> None: ...


class ThreadingTimerExecutor:
    """Fire callbacks from daemon ``threading.Timer`` threads."""

    def schedule(self, callback: Callback, delay_ms: float) -> threading.Timer:
        timer = threading.Timer(max(delay_ms, 0.0) / 1000.0, callback)
        timer.daemon = True
        timer.start()
        return timer

    def cancel(self, handle: threading.Timer) -> None:
        handle.cancel()


class AsyncioExecutor:
    """Fire callbacks on an asyncio loop with ``call_later``.

    Must be used from the loop's own thread.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop if loop is not None else asyncio.get_running_loop()

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        return self._loop

    def schedule(self, callback: Callback, delay_ms: float) -> asyncio.TimerHandle:
        return self._loop.call_later(max(delay_ms, 0.0) / 1000.0, callback)

    def cancel(self, handle: asyncio.Handle) -> None:
        handle.cancel()


class FrameExecutor(AsyncioExecutor):
    """Fire callbacks on the next loop iteration, ignoring the delay.

    Used when no explicit wait was requested and a loop is running, so bursts
    within one loop iteration collapse into a single call.
    """

    def schedule(self, callback: Callback, delay_ms: float) -> asyncio.Handle:
        return self._loop.call_soon(callback)


@dataclass(order=True)
class _ManualTask:
    due_ms: float
    seq: int
    callback: Callback = field(compare=False)
    cancelled: bool = field(default=False, compare=False)


class ManualExecutor:
    """Virtual-time executor driven by a ``ManualClock``.

    Nothing fires until ``advance``, ``run_due`` or ``run_all`` is called.
    Callbacks run in due-time order, ties broken by scheduling order, and the
    clock reads each callback's due time while it runs.
    """

    def __init__(self, clock: ManualClock | None = None) -> None:
        self.clock = clock if clock is not None else ManualClock()
        self._queue: list[_ManualTask] = []
        self._seq = itertools.count(1)

    @property
    def scheduled_count(self) -> int:
        return sum(1 for task in self._queue if not task.cancelled)

    def next_due(self) -> float | None:
        self._drop_cancelled()
        return self._queue[0].due_ms if self._queue else None

    def schedule(self, callback: Callback, delay_ms: float) -> _ManualTask:
        task = _ManualTask(
            due_ms=self.clock.now() + max(delay_ms, 0.0),
            seq=next(self._seq),
            callback=callback,
        )
        heapq.heappush(self._queue, task)
        return task

    def cancel(self, handle: _ManualTask) -> None:
        handle.cancelled = True

    def run_due(self) -> int:
        """Run every callback due at or before the current virtual time."""
        return self._run_until(self.clock.now())

    def advance(self, delta_ms: float) -> int:
        """Move the clock forward, firing due callbacks along the way."""
        if delta_ms < 0:
            raise ValueError("delta_ms must be >= 0")
        target = self.clock.now() + delta_ms
        executed = self._run_until(target)
        self.clock.set(max(self.clock.now(), target))
        return executed

    def run_all(self, limit: int = 10_000) -> int:
        """Advance to each pending due time until nothing is scheduled."""
        executed = 0
        while executed < limit:
            due = self.next_due()
            if due is None:
                break
            executed += self._run_until(
                max(due, self.clock.now()), budget=limit - executed
            )
        else:
            if self.next_due() is not None:
                logger.warning(
                    f"ManualExecutor.run_all stopped after {limit} callbacks"
                )
        return executed

    def _run_until(self, target_ms: float, budget: int | None = None) -> int:
        executed = 0
        while budget is None or executed < budget:
            self._drop_cancelled()
            if not self._queue or self._queue[0].due_ms > target_ms:
                return executed
            task = heapq.heappop(self._queue)
            if task.due_ms > self.clock.now():
                self.clock.set(task.due_ms)
            task.callback()
            executed += 1
        return executed

    def _drop_cancelled(self) -> None:
        while self._queue and self._queue[0].cancelled:
            heapq.heappop(self._queue)


def select_executor(wait_ms: float | None) -> DeferredExecutor:
    """Pick a deferred strategy for the current thread.

    With a running asyncio loop, an omitted wait selects next-iteration
    scheduling and an explicit wait selects ``call_later``. Without a loop,
    timers run on daemon threads.
    """
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        return ThreadingTimerExecutor()
    if wait_ms is None:
        return FrameExecutor(loop)
    return AsyncioExecutor(loop)
