"""Named stream-handling presets over a shared :class:`LocalExecutor`.

Each preset only supplies defaults: options passed by the caller still win
field by field, so ``run_quietly(cmd, {"stderr": "tee"})`` captures stdout
silently while mirroring stderr.
"""

from __future__ import annotations

from typing import Any, Mapping, Sequence

from runnables.execution.base import (
    CommandExecutor,
    RunOptions,
    RunOptionsLike,
    RunResult,
    StreamMode,
)
from runnables.execution.local_exec import LocalExecutor

QUIET = RunOptions(stdout=StreamMode.CAPTURE, stderr=StreamMode.CAPTURE)
BACKTICKS = RunOptions(stdout=StreamMode.CAPTURE, stderr=StreamMode.TEE)
TEE = RunOptions(stdout=StreamMode.TEE, stderr=StreamMode.TEE)

PRESETS: dict[str, RunOptions] = {
    "quiet": QUIET,
    "backticks": BACKTICKS,
    "tee": TEE,
}

_default_executor: CommandExecutor = LocalExecutor()


def get_default_executor() -> CommandExecutor:
    """Return the executor used by the module-level run functions."""

    return _default_executor


def set_default_executor(executor: CommandExecutor) -> CommandExecutor:
    """Replace the module-level executor, returning the previous one."""

    global _default_executor
    previous = _default_executor
    _default_executor = executor
    return previous


def with_preset(preset: RunOptions, run_options: RunOptionsLike) -> RunOptions:
    """Layer caller options over a preset without modifying either."""

    return preset.merged(run_options)


def run(
    command: Sequence[str],
    run_options: RunOptionsLike = None,
    spawn_options: Mapping[str, Any] | None = None,
) -> RunResult:
    """Run a command, teeing both streams unless told otherwise.

    Output is mirrored to the caller's stdout and stderr and also captured;
    the command's stdin starts out closed. A non-zero exit or death by signal
    raises a :class:`~runnables.execution.base.RunError` carrying the result.
    """

    return _default_executor.run(command, run_options, spawn_options)


def run_quietly(
    command: Sequence[str],
    run_options: RunOptionsLike = None,
    spawn_options: Mapping[str, Any] | None = None,
) -> RunResult:
    """Run a command without sending anything to the caller's streams."""

    return _default_executor.run(command, with_preset(QUIET, run_options), spawn_options)


def run_backticks(
    command: Sequence[str],
    run_options: RunOptionsLike = None,
    spawn_options: Mapping[str, Any] | None = None,
) -> RunResult:
    """Run a command like shell backticks: stdout captured, stderr mirrored.

    Both streams are still available on the result.
    """

    return _default_executor.run(command, with_preset(BACKTICKS, run_options), spawn_options)


def run_tee(
    command: Sequence[str],
    run_options: RunOptionsLike = None,
    spawn_options: Mapping[str, Any] | None = None,
) -> RunResult:
    """Run a command mirroring and capturing both streams."""

    return _default_executor.run(command, with_preset(TEE, run_options), spawn_options)


async def run_async(
    command: Sequence[str],
    run_options: RunOptionsLike = None,
    spawn_options: Mapping[str, Any] | None = None,
) -> RunResult:
    return await _default_executor.run_async(command, run_options, spawn_options)


async def run_quietly_async(
    command: Sequence[str],
    run_options: RunOptionsLike = None,
    spawn_options: Mapping[str, Any] | None = None,
) -> RunResult:
    return await _default_executor.run_async(
        command, with_preset(QUIET, run_options), spawn_options
    )


async def run_backticks_async(
    command: Sequence[str],
    run_options: RunOptionsLike = None,
    spawn_options: Mapping[str, Any] | None = None,
) -> RunResult:
    return await _default_executor.run_async(
        command, with_preset(BACKTICKS, run_options), spawn_options
    )


async def run_tee_async(
    command: Sequence[str],
    run_options: RunOptionsLike = None,
    spawn_options: Mapping[str, Any] | None = None,
) -> RunResult:
    return await _default_executor.run_async(
        command, with_preset(TEE, run_options), spawn_options
    )
