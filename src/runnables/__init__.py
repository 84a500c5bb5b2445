"""Run external commands, capturing and optionally mirroring their output."""

from runnables.execution import (
    LocalExecutor,
    NonZeroExit,
    RunError,
    RunOptions,
    RunResult,
    SignalTermination,
    SpawnFailure,
    StreamMode,
    run,
    run_async,
    run_backticks,
    run_backticks_async,
    run_quietly,
    run_quietly_async,
    run_tee,
    run_tee_async,
)

__all__ = [
    "LocalExecutor",
    "NonZeroExit",
    "RunError",
    "RunOptions",
    "RunResult",
    "SignalTermination",
    "SpawnFailure",
    "StreamMode",
    "run",
    "run_async",
    "run_backticks",
    "run_backticks_async",
    "run_quietly",
    "run_quietly_async",
    "run_tee",
    "run_tee_async",
]
