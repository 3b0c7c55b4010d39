import json

from typer.testing import CliRunner

from mabiki import cli

runner = CliRunner()


def test_simulate_prints_summary(tmp_path):
    result = runner.invoke(
        cli.app,
        ["--wrk-dir", str(tmp_path), "simulate", "0:a", "0:b", "0:c", "--wait", "32"],
    )
    assert result.exit_code == 0, result.output
    assert "1 invocation(s), last result: c" in result.output


def test_simulate_with_leading_and_max_calls(tmp_path):
    result = runner.invoke(
        cli.app,
        [
            "--wrk-dir",
            str(tmp_path),
            "simulate",
            "0:a,50:b,100:c",
            "--wait",
            "10",
            "--leading",
            "--no-trailing",
            "--max-calls",
            "2",
        ],
    )
    assert result.exit_code == 0, result.output
    assert "2 invocation(s), last result: b" in result.output


def test_simulate_rejects_bad_timeline(tmp_path):
    result = runner.invoke(
        cli.app, ["--wrk-dir", str(tmp_path), "simulate", "soon:a"]
    )
    assert result.exit_code == 2
    assert "Invalid timeline" in result.output


def test_simulate_rejects_infinite_event_time(tmp_path):
    result = runner.invoke(
        cli.app,
        ["--wrk-dir", str(tmp_path), "simulate", "0:a", "inf:b", "--wait", "10"],
    )
    assert result.exit_code == 2
    assert "finite" in result.output


def test_options_save_then_show(tmp_path):
    saved = runner.invoke(
        cli.app,
        [
            "--wrk-dir",
            str(tmp_path),
            "options",
            "save",
            "--wait",
            "32",
            "--max-wait",
            "64",
            "--leading",
        ],
    )
    assert saved.exit_code == 0, saved.output
    stored = json.loads((tmp_path / "debounce.json").read_text())
    assert stored["wait_ms"] == 32.0
    assert stored["max_wait_ms"] == 64.0
    assert stored["leading"] is True

    shown = runner.invoke(cli.app, ["--wrk-dir", str(tmp_path), "options", "show"])
    assert shown.exit_code == 0, shown.output
    payload = json.loads(shown.output)
    assert payload["wait_ms"] == 32.0
    assert payload["leading"] is True


def test_simulate_uses_config_file(tmp_path):
    (tmp_path / "debounce.json").write_text(
        json.dumps({"wait_ms": 32, "maxWait": 64})
    )
    result = runner.invoke(
        cli.app,
        [
            "--wrk-dir",
            str(tmp_path),
            "simulate",
            "0:x",
            "0:y",
            "128:z",
            "--use-config",
        ],
    )
    assert result.exit_code == 0, result.output
    assert "2 invocation(s), last result: z" in result.output


def test_log_file_option(tmp_path):
    log_file = tmp_path / "mabiki.log"
    result = runner.invoke(
        cli.app,
        [
            "--wrk-dir",
            str(tmp_path),
            "--log-level",
            "debug",
            "--log-file",
            str(log_file),
            "simulate",
            "0:a",
        ],
    )
    assert result.exit_code == 0, result.output
    cli.logger.complete()
    assert log_file.exists()
