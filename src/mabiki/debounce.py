from __future__ import annotations

import functools
from typing import Any, Callable

from .common.clock import Clock
from .common.config_service import resolve_options
from .common.deferred import DeferredExecutor, select_executor
from .scheduler import NO_RECEIVER, DebounceScheduler


class DebouncedFunction:
    """Callable wrapper that routes every call through a ``DebounceScheduler``.

    Stored as a class attribute it behaves like a method: the instance is
    passed as the first argument of the wrapped function. All instances share
    the one scheduler, so the receiver of the latest call wins.
    """

    def __init__(
        self,
        func: Callable[..., Any],
        wait_ms: float | None = None,
        options: object = None,
        *,
        clock: Clock | None = None,
        executor: DeferredExecutor | None = None,
    ) -> None:
        # copy metadata first, it also copies the wrapped object's __dict__
        functools.update_wrapper(self, func)
        if executor is None:
            executor = select_executor(wait_ms)
        self._scheduler = DebounceScheduler(
            func, wait_ms, options, clock=clock, executor=executor
        )

    @property
    def scheduler(self) -> DebounceScheduler:
        return self._scheduler

    @property
    def invoke_count(self) -> int:
        return self._scheduler.invoke_count

    def __call__(self, *args: Any, **kwargs: Any) -> Any:
        return self._scheduler.invoke(args, kwargs)

    def call_with(self, receiver: Any, *args: Any, **kwargs: Any) -> Any:
        """Call with an explicit receiver passed ahead of ``args``."""
        return self._scheduler.invoke(args, kwargs, receiver)

    def cancel(self) -> None:
        self._scheduler.cancel()

    def flush(self) -> Any:
        return self._scheduler.flush()

    def pending(self) -> bool:
        return self._scheduler.pending()

    def __get__(self, instance: Any, owner: type | None = None) -> Any:
        if instance is None:
            return self
        return BoundDebounced(self, instance)

    def __repr__(self) -> str:
        name = getattr(self, "__qualname__", None) or "function"
        return f"<DebouncedFunction {name} wait_ms={self._scheduler.wait_ms}>"


class BoundDebounced:
    """A ``DebouncedFunction`` bound to one receiver."""

    __slots__ = ("_debounced", "_receiver")

    def __init__(self, debounced: DebouncedFunction, receiver: Any) -> None:
        self._debounced = debounced
        self._receiver = receiver

    def __call__(self, *args: Any, **kwargs: Any) -> Any:
        return self._debounced.call_with(self._receiver, *args, **kwargs)

    def cancel(self) -> None:
        self._debounced.cancel()

    def flush(self) -> Any:
        return self._debounced.flush()

    def pending(self) -> bool:
        return self._debounced.pending()


def debounce(
    func: Callable[..., Any] | None = None,
    wait_ms: float | None = None,
    options: object = None,
    *,
    clock: Clock | None = None,
    executor: DeferredExecutor | None = None,
    leading: bool | None = None,
    trailing: bool | None = None,
    max_wait_ms: float | None = None,
    call_immediately: bool | None = None,
    max_calls: int | None = None,
) -> Any:
    """Debounce ``func`` so a burst of calls results in one real call.

    Works as a plain call, ``debounce(save, 250, leading=True)``, or as a
    decorator, ``@debounce(wait_ms=250)``. Keyword option fields override the
    ones in ``options``.

    When ``executor`` is omitted the deferred strategy is picked for the
    calling thread, see ``select_executor``.

    A coroutine function only runs when its call happens on a thread with a
    running asyncio loop, where it is started as a task. Trailing calls fired
    from a timer thread have no loop, so debounce coroutine functions from
    inside the loop.
    """
    resolved = resolve_options(
        options,
        leading=leading,
        trailing=trailing,
        max_wait_ms=max_wait_ms,
        call_immediately=call_immediately,
        max_calls=max_calls,
    )

    def wrap(target: Callable[..., Any]) -> DebouncedFunction:
        return DebouncedFunction(
            target, wait_ms, resolved, clock=clock, executor=executor
        )

    if func is None:
        return wrap
    return wrap(func)


__all__ = ["BoundDebounced", "DebouncedFunction", "NO_RECEIVER", "debounce"]
