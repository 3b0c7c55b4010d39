from __future__ import annotations

import json
import math
import os
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Mapping

from loguru import logger

LOG_LEVEL_ENV = "MABIKI_LOG_LEVEL"

# accepted spellings for option keys, snake_case and the camelCase names
_OPTION_ALIASES = {
    "leading": "leading",
    "trailing": "trailing",
    "max_wait_ms": "max_wait_ms",
    "max_wait": "max_wait_ms",
    "maxWait": "max_wait_ms",
    "call_immediately": "call_immediately",
    "callImmediately": "call_immediately",
    "max_calls": "max_calls",
    "maxCalls": "max_calls",
}

_PRIMITIVES = (bool, int, float, complex, str, bytes, bytearray)


@dataclass(frozen=True)
class DebounceOptions:
    leading: bool = False
    trailing: bool = True
    max_wait_ms: float | None = None
    call_immediately: bool = False
    max_calls: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def is_options_like(value: object) -> bool:
    """Return True for values that can carry option fields.

    Mappings and arbitrary objects qualify; None and primitives do not.
    """
    return value is not None and not isinstance(value, _PRIMITIVES)


def coerce_ms(value: object) -> float:
    """Coerce a duration to a finite, non-negative number of milliseconds."""
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        number = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        logger.debug(f"Ignoring non-numeric duration {value!r}")
        return 0.0
    if not math.isfinite(number) or number < 0:
        return 0.0
    return number


def _coerce_max_calls(value: object) -> int | None:
    if isinstance(value, bool):
        logger.warning(f"Ignoring max_calls={value!r}: expected a non-negative integer")
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if isinstance(value, int) and value >= 0:
        return value
    logger.warning(f"Ignoring max_calls={value!r}: expected a non-negative integer")
    return None


def _collect_fields(options: object) -> dict[str, Any]:
    if isinstance(options, DebounceOptions):
        return {
            key: value for key, value in options.to_dict().items() if value is not None
        }
    if not is_options_like(options):
        return {}
    if isinstance(options, Mapping):
        raw = dict(options)
    else:
        raw = {
            name: getattr(options, name)
            for name in _OPTION_ALIASES
            if hasattr(options, name)
        }

    collected: dict[str, Any] = {}
    for key, value in raw.items():
        name = _OPTION_ALIASES.get(key) if isinstance(key, str) else None
        if name is None:
            logger.debug(f"Ignoring unknown debounce option {key!r}")
            continue
        if value is None:
            continue
        collected[name] = value
    return collected


def resolve_options(options: object = None, **overrides: Any) -> DebounceOptions:
    """Merge an options value and keyword overrides into ``DebounceOptions``.

    ``options`` may be a ``DebounceOptions``, a mapping or any attribute
    bearing object; values that are not options-like are ignored. Overrides
    win over ``options``; None values count as "not given".
    """
    merged = _collect_fields(options)
    merged.update(_collect_fields(overrides))

    max_wait = merged.get("max_wait_ms")
    max_calls = merged.get("max_calls")
    return DebounceOptions(
        leading=bool(merged.get("leading", False)),
        trailing=bool(merged.get("trailing", True)),
        max_wait_ms=coerce_ms(max_wait) if max_wait is not None else None,
        call_immediately=bool(merged.get("call_immediately", False)),
        max_calls=_coerce_max_calls(max_calls) if max_calls is not None else None,
    )


class ConfigService:
    """Handle the options file location, persistence and log level."""

    def __init__(self, base_path: Path | None = None):
        self._base_path = Path(base_path) if base_path is not None else Path.cwd()

    @property
    def base_path(self) -> Path:
        return self._base_path

    @property
    def options_path(self) -> Path:
        return self._base_path / "debounce.json"

    @property
    def log_level(self) -> str:
        return os.getenv(LOG_LEVEL_ENV, "INFO").upper()

    def set_working_path(self, new_path: Path | None) -> Path:
        self._base_path = Path(new_path) if new_path is not None else Path.cwd()
        return self._base_path

    def load_raw(self) -> dict:
        path = self.options_path
        if path.is_file():
            try:
                data = json.loads(path.read_text())
                if isinstance(data, dict):
                    return data
                logger.warning(
                    f"{path.name} does not contain an object; using default options"
                )
            except json.JSONDecodeError:
                logger.warning(f"Failed to decode {path.name}; using default options")
        return {}

    def load_options(self, **overrides: Any) -> DebounceOptions:
        raw = self.load_raw()
        raw.pop("wait_ms", None)
        raw.pop("wait", None)
        return resolve_options(raw, **overrides)

    def load_wait_ms(self, default: float | None = None) -> float | None:
        raw = self.load_raw()
        for key in ("wait_ms", "wait"):
            if key in raw:
                return coerce_ms(raw[key])
        return default

    def save_options(
        self, options: DebounceOptions, wait_ms: float | None = None
    ) -> dict:
        payload = {
            field.name: getattr(options, field.name) for field in fields(options)
        }
        if wait_ms is not None:
            payload["wait_ms"] = coerce_ms(wait_ms)
        self.options_path.parent.mkdir(parents=True, exist_ok=True)
        self.options_path.write_text(json.dumps(payload, indent=4))
        return payload
