"""Deterministic replay of call timelines against a debounced function.

A timeline is a list of tokens such as ``"0:a"``, ``"10:b"``, ``"50:!flush"``
or ``"90:!cancel"``; several tokens may share one string separated by commas.
The replay runs on virtual time, so results are exact and instant.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Iterable

from loguru import logger

from .common.clock import ManualClock
from .common.deferred import ManualExecutor
from .debounce import DebouncedFunction
from .errors import InvalidArgument

ACTIONS = ("call", "flush", "cancel")


@dataclass(frozen=True)
class TimelineEvent:
    at_ms: float
    action: str = "call"
    value: str | None = None


@dataclass(frozen=True)
class TimelineRecord:
    at_ms: float
    kind: str
    argument: Any
    returned: Any
    invoke_count: int
    pending: bool


@dataclass
class SimulationResult:
    records: list[TimelineRecord] = field(default_factory=list)
    invocations: list[tuple[float, Any]] = field(default_factory=list)

    @property
    def invoke_count(self) -> int:
        return len(self.invocations)

    @property
    def final_result(self) -> Any:
        return self.invocations[-1][1] if self.invocations else None


def parse_event(token: str) -> TimelineEvent:
    at, sep, value = token.strip().partition(":")
    if not sep:
        raise InvalidArgument(f"Expected '<ms>:<value>', got {token!r}", value=token)
    try:
        at_ms = float(at)
    except ValueError:
        raise InvalidArgument(f"Invalid event time in {token!r}", value=token)
    if not math.isfinite(at_ms):
        raise InvalidArgument(f"Event time must be finite in {token!r}", value=token)
    if at_ms < 0:
        raise InvalidArgument(f"Event time must be >= 0 in {token!r}", value=token)

    if value.startswith("!"):
        action = value[1:].lower()
        if action not in ("flush", "cancel"):
            raise InvalidArgument(f"Unknown action in {token!r}", value=token)
        return TimelineEvent(at_ms=at_ms, action=action)
    return TimelineEvent(at_ms=at_ms, action="call", value=value)


def parse_timeline(tokens: Iterable[str | TimelineEvent]) -> list[TimelineEvent]:
    """Parse tokens into events sorted by time, keeping the given order on ties."""
    events: list[TimelineEvent] = []
    for token in tokens:
        if isinstance(token, TimelineEvent):
            events.append(token)
            continue
        for part in token.split(","):
            if part.strip():
                events.append(parse_event(part))
    return sorted(events, key=lambda event: event.at_ms)


def simulate(
    events: Iterable[str | TimelineEvent],
    wait_ms: float = 0,
    options: object = None,
    horizon_ms: float | None = None,
) -> SimulationResult:
    """Replay ``events`` and record every call, operation and real invocation.

    After the last event the virtual clock keeps running until no timer is
    armed, or up to ``horizon_ms`` when given.
    """
    timeline = parse_timeline(events)
    if horizon_ms is not None and not math.isfinite(horizon_ms):
        raise InvalidArgument("Horizon must be finite", value=horizon_ms)
    clock = ManualClock()
    executor = ManualExecutor(clock)
    result = SimulationResult()
    debounced: DebouncedFunction | None = None

    def target(value: Any = None) -> Any:
        # call_immediately runs before the wrapper exists
        ready = debounced is not None
        result.invocations.append((clock.now(), value))
        result.records.append(
            TimelineRecord(
                at_ms=clock.now(),
                kind="invoke",
                argument=value,
                returned=value,
                invoke_count=debounced.invoke_count if ready else 1,
                pending=debounced.pending() if ready else False,
            )
        )
        return value

    target.__qualname__ = "simulated_target"
    debounced = DebouncedFunction(
        target, wait_ms, options, clock=clock, executor=executor
    )

    for event in timeline:
        executor.advance(max(event.at_ms - clock.now(), 0.0))
        if event.action == "call":
            returned = debounced(event.value)
        elif event.action == "flush":
            returned = debounced.flush()
        else:
            debounced.cancel()
            returned = None
        result.records.append(
            TimelineRecord(
                at_ms=clock.now(),
                kind=event.action,
                argument=event.value,
                returned=returned,
                invoke_count=debounced.invoke_count,
                pending=debounced.pending(),
            )
        )

    if horizon_ms is not None:
        executor.advance(max(horizon_ms - clock.now(), 0.0))
    else:
        executor.run_all()

    logger.debug(
        f"Simulated {len(timeline)} events, {result.invoke_count} invocations"
    )
    return result
