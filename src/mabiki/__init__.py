from .common.clock import Clock, ManualClock, MonotonicClock, WallClock
from .common.config_service import DebounceOptions, is_options_like, resolve_options
from .common.deferred import (
    AsyncioExecutor,
    DeferredExecutor,
    FrameExecutor,
    ManualExecutor,
    ThreadingTimerExecutor,
    select_executor,
)
from .debounce import BoundDebounced, DebouncedFunction, debounce
from .errors import InvalidArgument
from .scheduler import DebounceScheduler

__all__ = [
    "AsyncioExecutor",
    "BoundDebounced",
    "Clock",
    "DebounceOptions",
    "DebounceScheduler",
    "DebouncedFunction",
    "DeferredExecutor",
    "FrameExecutor",
    "InvalidArgument",
    "ManualClock",
    "ManualExecutor",
    "MonotonicClock",
    "ThreadingTimerExecutor",
    "WallClock",
    "debounce",
    "is_options_like",
    "resolve_options",
]
