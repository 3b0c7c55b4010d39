"""Debounce timer state machine.

A scheduler is either idle (no timer armed) or armed (one timer armed, a call
may be pending). Every call attempt decides whether to invoke now, arm a timer
for later, or just return the last result. All real invocations go through
``_perform_call`` so the invocation count, the last result and the last
invocation time always agree.
"""

from __future__ import annotations

import asyncio
import threading
from dataclasses import dataclass, field
from typing import Any, Callable

from loguru import logger

from .common.clock import Clock, MonotonicClock
from .common.config_service import DebounceOptions, coerce_ms, resolve_options
from .common.deferred import DeferredExecutor, ThreadingTimerExecutor
from .errors import InvalidArgument

NO_RECEIVER: Any = object()


@dataclass
class PendingCall:
    args: tuple = ()
    kwargs: dict = field(default_factory=dict)
    receiver: Any = NO_RECEIVER


class DebounceScheduler:
    """Own the debounce state for one wrapped callable."""

    def __init__(
        self,
        func: Callable[..., Any],
        wait_ms: float | None = 0,
        options: object = None,
        *,
        clock: Clock | None = None,
        executor: DeferredExecutor | None = None,
    ) -> None:
        if not callable(func):
            raise InvalidArgument("Expected a callable", value=func)

        self._func = func
        self._name = getattr(func, "__qualname__", None) or repr(func)
        self._wait_ms = coerce_ms(wait_ms)
        self._options = resolve_options(options)
        self._max_wait_ms = (
            max(self._options.max_wait_ms, self._wait_ms)
            if self._options.max_wait_ms is not None
            else None
        )
        self._clock = clock if clock is not None else MonotonicClock()
        self._executor = executor if executor is not None else ThreadingTimerExecutor()
        self._lock = threading.RLock()

        self._pending: PendingCall | None = None
        self._last_result: Any = None
        self._last_call_time: float | None = None
        self._last_invoke_time = 0.0
        self._timer: Any = None
        self._timer_token: object | None = None
        self._invoke_count = 0

        if self._options.call_immediately and not self._budget_spent():
            with self._lock:
                self._pending = PendingCall()
                logger.debug(f"Calling {self._name} immediately on construction")
                self._perform_call(self._clock.now())

    @property
    def wait_ms(self) -> float:
        return self._wait_ms

    @property
    def max_wait_ms(self) -> float | None:
        return self._max_wait_ms

    @property
    def options(self) -> DebounceOptions:
        return self._options

    @property
    def invoke_count(self) -> int:
        return self._invoke_count

    @property
    def last_result(self) -> Any:
        return self._last_result

    def invoke(
        self,
        args: tuple = (),
        kwargs: dict | None = None,
        receiver: Any = NO_RECEIVER,
    ) -> Any:
        with self._lock:
            if self._budget_spent():
                logger.trace(
                    f"{self._name} reached max_calls={self._options.max_calls}"
                )
                return self._last_result

            now = self._clock.now()
            invoking = self._should_invoke(now)
            self._pending = PendingCall(args, dict(kwargs or {}), receiver)
            self._last_call_time = now

            if invoking:
                if self._timer is None:
                    return self._leading_edge(now)
                if self._max_wait_ms is not None:
                    logger.debug(
                        f"{self._name} waited {self._max_wait_ms}ms, forcing a call"
                    )
                    self._start_timer(self._wait_ms)
                    return self._perform_call(now)

            if self._timer is None:
                self._start_timer(self._wait_ms)
            logger.trace(f"{self._name} call absorbed")
            return self._last_result

    def cancel(self) -> None:
        with self._lock:
            if self._timer is not None:
                logger.debug(f"Cancelling pending call of {self._name}")
            self._cancel_timer()
            self._pending = None
            self._last_call_time = None
            self._last_invoke_time = 0.0
            self._invoke_count = 0

    def flush(self) -> Any:
        with self._lock:
            if self._timer is None:
                return self._last_result
            return self._trailing_edge(self._clock.now())

    def pending(self) -> bool:
        return self._timer is not None

    def _budget_spent(self) -> bool:
        max_calls = self._options.max_calls
        return max_calls is not None and self._invoke_count >= max_calls

    def _should_invoke(self, now: float) -> bool:
        if self._last_call_time is None:
            return True

        since_last_call = now - self._last_call_time
        since_last_invoke = now - self._last_invoke_time
        return (
            since_last_call >= self._wait_ms
            or since_last_call < 0
            or (
                self._max_wait_ms is not None
                and since_last_invoke >= self._max_wait_ms
            )
        )

    def _remaining_wait(self, now: float) -> float:
        if self._last_call_time is None:
            return 0.0

        waiting = self._wait_ms - (now - self._last_call_time)
        if self._max_wait_ms is None:
            return waiting
        return min(waiting, self._max_wait_ms - (now - self._last_invoke_time))

    def _leading_edge(self, now: float) -> Any:
        # recorded even without a leading call; max_wait counts from here
        self._last_invoke_time = now
        self._start_timer(self._wait_ms)
        if self._options.leading:
            logger.debug(f"Leading call of {self._name}")
            return self._perform_call(now)
        return self._last_result

    def _trailing_edge(self, now: float) -> Any:
        self._cancel_timer()
        if self._options.trailing and self._pending is not None:
            logger.debug(f"Trailing call of {self._name}")
            return self._perform_call(now)
        self._pending = None
        return self._last_result

    def _timer_expired(self, token: object) -> None:
        with self._lock:
            if token is not self._timer_token:
                return
            now = self._clock.now()
            if not self._should_invoke(now):
                self._start_timer(self._remaining_wait(now))
                return
            try:
                self._trailing_edge(now)
            except Exception:
                logger.exception(f"Trailing call of {self._name} failed")

    def _start_timer(self, delay_ms: float) -> None:
        self._cancel_timer()
        token = object()
        self._timer_token = token
        self._timer = self._executor.schedule(
            lambda: self._timer_expired(token), delay_ms
        )

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._executor.cancel(self._timer)
        self._timer = None
        self._timer_token = None

    def _perform_call(self, now: float) -> Any:
        call = self._pending or PendingCall()
        self._pending = None
        self._last_invoke_time = now
        self._invoke_count += 1

        if call.receiver is NO_RECEIVER:
            result = self._func(*call.args, **call.kwargs)
        else:
            result = self._func(call.receiver, *call.args, **call.kwargs)
        self._last_result = self._adopt(result)
        return self._last_result

    @staticmethod
    def _adopt(result: Any) -> Any:
        if not asyncio.iscoroutine(result):
            return result
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning(
                f"No running event loop, {result!r} is stored unawaited"
            )
            return result
        return loop.create_task(result)
