from __future__ import annotations

import json
from types import SimpleNamespace

import pytest
from loguru import logger

from mabiki.common.config_service import (
    LOG_LEVEL_ENV,
    ConfigService,
    DebounceOptions,
    coerce_ms,
    is_options_like,
    resolve_options,
)


@pytest.fixture
def warnings():
    messages: list[str] = []
    sink_id = logger.add(messages.append, level="WARNING")
    yield messages
    logger.remove(sink_id)


@pytest.mark.parametrize(
    "value, expected",
    [
        (None, False),
        (0, False),
        (1.5, False),
        (True, False),
        ("leading", False),
        (b"bytes", False),
        ({}, True),
        ({"leading": True}, True),
        (DebounceOptions(), True),
        (SimpleNamespace(leading=True), True),
        (lambda: None, True),
    ],
)
def test_is_options_like(value, expected):
    assert is_options_like(value) is expected


def test_resolve_options_defaults():
    assert resolve_options() == DebounceOptions(
        leading=False,
        trailing=True,
        max_wait_ms=None,
        call_immediately=False,
        max_calls=None,
    )


def test_resolve_options_ignores_primitives():
    assert resolve_options(32) == DebounceOptions()
    assert resolve_options("leading") == DebounceOptions()


def test_resolve_options_accepts_camel_case_keys():
    options = resolve_options(
        {"leading": 1, "maxWait": "64", "callImmediately": True, "maxCalls": 3}
    )
    assert options.leading is True
    assert options.max_wait_ms == 64.0
    assert options.call_immediately is True
    assert options.max_calls == 3


def test_resolve_options_reads_attributes():
    options = resolve_options(SimpleNamespace(trailing=False, max_wait=10))
    assert options.trailing is False
    assert options.max_wait_ms == 10.0


def test_resolve_options_overrides_win_and_none_means_unset():
    base = DebounceOptions(leading=True, max_wait_ms=100)
    options = resolve_options(base, leading=None, trailing=False, max_calls=None)
    assert options.leading is True
    assert options.trailing is False
    assert options.max_wait_ms == 100
    assert options.max_calls is None


def test_resolve_options_skips_unknown_keys():
    assert resolve_options({"delay": 5, 3: "x"}) == DebounceOptions()


def test_resolve_options_max_wait_is_coerced():
    assert resolve_options({"maxWait": "soon"}).max_wait_ms == 0.0
    assert resolve_options({"maxWait": -4}).max_wait_ms == 0.0


@pytest.mark.parametrize("value", [-1, 1.5, "two", True])
def test_invalid_max_calls_is_ignored_with_warning(value, warnings):
    assert resolve_options(max_calls=value).max_calls is None
    assert any("max_calls" in message for message in warnings)


def test_integral_float_max_calls_is_accepted():
    assert resolve_options(max_calls=2.0).max_calls == 2


@pytest.mark.parametrize(
    "value, expected",
    [
        (None, 0.0),
        (False, 0.0),
        ("12.5", 12.5),
        (-3, 0.0),
        (float("inf"), 0.0),
        ([], 0.0),
    ],
)
def test_coerce_ms(value, expected):
    assert coerce_ms(value) == expected


def test_default_base_path_uses_cwd(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    service = ConfigService()
    assert service.base_path == tmp_path
    assert service.options_path == tmp_path / "debounce.json"


def test_set_working_path_updates_paths(tmp_path):
    service = ConfigService()
    new_path = service.set_working_path(tmp_path)
    assert new_path == tmp_path
    assert service.options_path == tmp_path / "debounce.json"


def test_load_options_handles_missing_file(tmp_path):
    service = ConfigService(tmp_path)
    assert service.load_options() == DebounceOptions()
    assert service.load_wait_ms() is None
    assert service.load_wait_ms(default=5.0) == 5.0


def test_load_options_handles_invalid_json(tmp_path, warnings):
    (tmp_path / "debounce.json").write_text("{not-json]")
    service = ConfigService(tmp_path)
    assert service.load_options() == DebounceOptions()
    assert any("debounce.json" in message for message in warnings)


def test_load_options_handles_non_object(tmp_path, warnings):
    (tmp_path / "debounce.json").write_text(json.dumps([1, 2, 3]))
    service = ConfigService(tmp_path)
    assert service.load_options() == DebounceOptions()
    assert warnings


def test_save_and_load_options(tmp_path):
    service = ConfigService(tmp_path)
    saved = service.save_options(
        DebounceOptions(leading=True, max_wait_ms=64, max_calls=2), wait_ms=32
    )
    assert saved["wait_ms"] == 32.0
    assert json.loads(service.options_path.read_text()) == saved

    assert service.load_options() == DebounceOptions(
        leading=True, max_wait_ms=64, max_calls=2
    )
    assert service.load_wait_ms() == 32.0


def test_load_options_applies_overrides(tmp_path):
    (tmp_path / "debounce.json").write_text(
        json.dumps({"wait": 10, "leading": True, "maxWait": 40})
    )
    service = ConfigService(tmp_path)
    assert service.load_wait_ms() == 10.0
    options = service.load_options(leading=False)
    assert options.leading is False
    assert options.max_wait_ms == 40.0


def test_log_level_reads_environment(monkeypatch):
    monkeypatch.delenv(LOG_LEVEL_ENV, raising=False)
    assert ConfigService().log_level == "INFO"
    monkeypatch.setenv(LOG_LEVEL_ENV, "debug")
    assert ConfigService().log_level == "DEBUG"
