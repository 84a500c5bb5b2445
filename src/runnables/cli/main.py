"""CLI entrypoints for runnables."""

from __future__ import annotations

import json
import signal as signals
from pathlib import Path
from typing import List, Optional

import typer

from runnables.config import RunnablesConfig, config_to_dict, load_config, update_defaults
from runnables.execution.base import (
    NonZeroExit,
    RunError,
    RunOptions,
    RunResult,
    SignalTermination,
    SpawnFailure,
    StreamMode,
)
from runnables.execution.local_exec import LocalExecutor
from runnables.execution.presets import PRESETS, with_preset
from runnables.util.logging import configure_logging
from runnables.util.observability import create_observability_manager

SPAWN_FAILURE_EXIT_CODE = 127

app = typer.Typer(help="Run a command, capturing and mirroring its output.")


@app.callback()
def main(
    ctx: typer.Context,
    log_level: Optional[str] = typer.Option(
        None,
        "--log-level",
        help="Logging level (e.g., DEBUG, INFO, WARNING). Defaults to the configured level.",
    ),
) -> None:
    """Configure CLI-level options."""

    ctx.obj = {"log_level": log_level}


def _load_config_or_exit(ctx: typer.Context, config_path: Path | None) -> RunnablesConfig:
    """Load configuration, then configure logging from the CLI or the config."""

    try:
        config = load_config(config_path)
    except (OSError, ValueError, RuntimeError) as exc:
        typer.echo(f"Error: {exc}")
        raise typer.Exit(code=1) from exc
    cli_level = (ctx.obj or {}).get("log_level")
    configure_logging(cli_level or config.log_level)
    return config


@app.command(
    "run",
    context_settings={"allow_interspersed_args": False},
)
def run_command(
    ctx: typer.Context,
    command: List[str] = typer.Argument(..., help="Command and arguments to run."),
    preset: Optional[str] = typer.Option(
        None,
        "--preset",
        "-p",
        help="Stream preset: tee|quiet|backticks. Defaults to the configured modes.",
    ),
    stdout: Optional[StreamMode] = typer.Option(
        None, "--stdout", help="Override stdout handling: capture|tee"
    ),
    stderr: Optional[StreamMode] = typer.Option(
        None, "--stderr", help="Override stderr handling: capture|tee"
    ),
    cwd: Optional[Path] = typer.Option(None, "--cwd", help="Working directory for the command."),
    config_path: Optional[Path] = typer.Option(
        None, "--config", "-c", help="Path to a configuration file or directory."
    ),
    as_json: bool = typer.Option(False, "--json", help="Print the run result as JSON."),
) -> None:
    """Run COMMAND once and exit with its status."""

    if preset is not None and preset not in PRESETS:
        typer.echo(f"Error: unknown preset '{preset}' (choose from {', '.join(PRESETS)})")
        raise typer.Exit(code=2)

    config = _load_config_or_exit(ctx, config_path)

    observability = create_observability_manager()
    options = RunOptions(stdout=stdout, stderr=stderr)
    if preset is not None:
        options = with_preset(PRESETS[preset], options)
    config = update_defaults(config, options)
    executor = LocalExecutor(
        config.defaults,
        observability=observability,
        merge_env=config.merge_env,
    )
    spawn_options = {"cwd": cwd} if cwd is not None else None

    try:
        result = executor.run(command, spawn_options=spawn_options)
    except SpawnFailure as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=SPAWN_FAILURE_EXIT_CODE) from exc
    except RunError as exc:
        if as_json:
            _echo_result(exc.run_result)
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=_exit_code_for(exc)) from exc
    except ValueError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=2) from exc

    if as_json:
        _echo_result(result)


@app.command("show-config")
def show_config_command(
    ctx: typer.Context,
    config_path: Optional[Path] = typer.Option(
        None, "--config", "-c", help="Path to a configuration file or directory."
    ),
) -> None:
    """Print the resolved configuration as JSON."""

    config = _load_config_or_exit(ctx, config_path)
    typer.echo(json.dumps(config_to_dict(config), indent=2))


def _echo_result(result: RunResult) -> None:
    typer.echo(json.dumps(result.to_dict(), indent=2))


def _exit_code_for(exc: RunError) -> int:
    """Mirror shell conventions: the child's code, or 128 + signal number."""

    if isinstance(exc, SignalTermination) and exc.signal is not None:
        try:
            return 128 + int(signals.Signals[exc.signal])
        except KeyError:
            return 1
    if isinstance(exc, NonZeroExit) and exc.err_code:
        return exc.err_code
    return 1
