import json
import os
import sys
from pathlib import Path

import typer
from loguru import logger
from rich.console import Console
from rich.table import Table
from typing_extensions import Annotated

from .common.config_service import (
    LOG_LEVEL_ENV,
    ConfigService,
    DebounceOptions,
    resolve_options,
)
from .errors import InvalidArgument
from .simulation import SimulationResult, simulate

# remove the default stderr sink and add one at INFO so library debug
# output stays quiet unless asked for
logger.remove()
logger.add(sys.stderr, level="INFO")

app = typer.Typer()
config = ConfigService()
console = Console()

options_app = typer.Typer()
app.add_typer(
    options_app, name="options", help="Inspect or write the debounce.json file"
)


@app.callback()
def main(
    wrk_dir: Annotated[
        Path, typer.Option(help="Working directory, default is current directory")
    ] = Path.cwd(),
    log_level: Annotated[
        str | None,
        typer.Option(help=f"Log level, default taken from {LOG_LEVEL_ENV} or INFO"),
    ] = None,
    log_file: Annotated[
        Path | None,
        typer.Option(help="Log to file instead of stderr (enables rotation)"),
    ] = None,
):
    """
    Replay call timelines through a debounced function.

    Use --wrk-dir to pick the directory holding debounce.json.

    Use --log-level to set the log level.
    """
    level = (log_level or config.log_level).upper()
    logger.remove()
    if log_file:
        logger.add(
            log_file,
            level=level,
            rotation="10 MB",
            retention="30 days",
            compression="gz",
            enqueue=True,
            format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}",
        )
    else:
        logger.add(sys.stderr, level=level)
    os.environ[LOG_LEVEL_ENV] = level
    config.set_working_path(wrk_dir)


def _render(result: SimulationResult, title: str) -> None:
    table = Table(title=title)
    table.add_column("t (ms)", justify="right")
    table.add_column("event")
    table.add_column("argument")
    table.add_column("returned")
    table.add_column("count", justify="right")
    table.add_column("pending")
    for record in result.records:
        table.add_row(
            f"{record.at_ms:g}",
            record.kind,
            "" if record.argument is None else str(record.argument),
            "" if record.returned is None else str(record.returned),
            str(record.invoke_count),
            "yes" if record.pending else "no",
        )
    console.print(table)
    typer.echo(
        f"{result.invoke_count} invocation(s), last result: {result.final_result}"
    )


@app.command("simulate")
def simulate_command(
    events: Annotated[
        list[str],
        typer.Argument(
            help="Timeline tokens like 0:a 10:b 50:!flush 90:!cancel (ms:value)"
        ),
    ],
    wait: Annotated[
        float | None, typer.Option(help="Debounce window in milliseconds")
    ] = None,
    max_wait: Annotated[
        float | None,
        typer.Option(help="Force a call after this many milliseconds of bursting"),
    ] = None,
    leading: Annotated[
        bool | None,
        typer.Option("--leading/--no-leading", help="Call on the leading edge"),
    ] = None,
    trailing: Annotated[
        bool | None,
        typer.Option("--trailing/--no-trailing", help="Call on the trailing edge"),
    ] = None,
    max_calls: Annotated[
        int | None, typer.Option(help="Cap on real calls until cancelled")
    ] = None,
    call_immediately: Annotated[
        bool, typer.Option("--call-immediately", help="Call once on construction")
    ] = False,
    horizon: Annotated[
        float | None,
        typer.Option(help="Stop the replay at this time instead of when idle"),
    ] = None,
    use_config: Annotated[
        bool,
        typer.Option("--use-config", help="Start from debounce.json in wrk-dir"),
    ] = False,
):
    """Replay a call timeline on virtual time and print what happened."""
    base = config.load_options() if use_config else DebounceOptions()
    wait_ms = wait
    if wait_ms is None and use_config:
        wait_ms = config.load_wait_ms()
    options = resolve_options(
        base,
        leading=leading,
        trailing=trailing,
        max_wait_ms=max_wait,
        max_calls=max_calls,
        call_immediately=call_immediately or None,
    )
    logger.debug(f"Simulating with wait={wait_ms} options={options}")

    try:
        result = simulate(events, wait_ms or 0, options, horizon_ms=horizon)
    except InvalidArgument as exc:
        typer.echo(f"Invalid timeline: {exc.detail}", err=True)
        raise typer.Exit(code=2)

    _render(result, title=f"debounce wait={wait_ms or 0:g}ms")


@options_app.command("show")
def options_show():
    """Show the options resolved from debounce.json."""
    options = config.load_options()
    payload = options.to_dict()
    payload["wait_ms"] = config.load_wait_ms(default=0.0)
    typer.echo(json.dumps(payload, indent=4))


@options_app.command("save")
def options_save(
    wait: Annotated[float, typer.Option(help="Debounce window in milliseconds")] = 0,
    max_wait: Annotated[float | None, typer.Option(help="Max wait in ms")] = None,
    leading: Annotated[bool, typer.Option("--leading/--no-leading")] = False,
    trailing: Annotated[bool, typer.Option("--trailing/--no-trailing")] = True,
    max_calls: Annotated[int | None, typer.Option(help="Cap on real calls")] = None,
    call_immediately: Annotated[bool, typer.Option("--call-immediately")] = False,
):
    """Write debounce.json in the working directory."""
    options = resolve_options(
        leading=leading,
        trailing=trailing,
        max_wait_ms=max_wait,
        max_calls=max_calls,
        call_immediately=call_immediately,
    )
    config.save_options(options, wait_ms=wait)
    logger.info(f"Options written to {config.options_path}")
    typer.echo(str(config.options_path))
