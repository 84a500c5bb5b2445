"""Execution engine package."""

from runnables.execution.base import (
    DEFAULT_RUN_OPTIONS,
    CommandExecutor,
    NonZeroExit,
    RunError,
    RunOptions,
    RunResult,
    RunState,
    SignalTermination,
    SpawnFailure,
    StreamMode,
    resolve_run_options,
)
from runnables.execution.local_exec import LocalExecutor
from runnables.execution.presets import (
    PRESETS,
    get_default_executor,
    run,
    run_async,
    run_backticks,
    run_backticks_async,
    run_quietly,
    run_quietly_async,
    run_tee,
    run_tee_async,
    set_default_executor,
)

__all__ = [
    "DEFAULT_RUN_OPTIONS",
    "PRESETS",
    "CommandExecutor",
    "LocalExecutor",
    "NonZeroExit",
    "RunError",
    "RunOptions",
    "RunResult",
    "RunState",
    "SignalTermination",
    "SpawnFailure",
    "StreamMode",
    "get_default_executor",
    "resolve_run_options",
    "run",
    "run_async",
    "run_backticks",
    "run_backticks_async",
    "run_quietly",
    "run_quietly_async",
    "run_tee",
    "run_tee_async",
    "set_default_executor",
]
