"""Execution types: run options, run results and the failure variants."""

from __future__ import annotations

import asyncio
import signal as signals
from abc import ABC, abstractmethod
from dataclasses import dataclass, fields, replace
from datetime import datetime
from enum import Enum
from typing import Any, Mapping, Sequence, Union

from runnables.util.logging import get_logger

_LOGGER = get_logger("runnables.execution")


class StreamMode(str, Enum):
    """How a child output stream is handled.

    ``CAPTURE`` only buffers the output for the result. ``TEE`` buffers it
    and also forwards it to the matching stream of the calling process.
    """

    CAPTURE = "capture"
    TEE = "tee"


class RunState(str, Enum):
    """Lifecycle of a single run."""

    NOT_STARTED = "not_started"
    SPAWNING = "spawning"
    RUNNING = "running"
    EXITED = "exited"
    SIGNALED = "signaled"
    SPAWN_FAILED = "spawn_failed"


@dataclass(frozen=True)
class RunOptions:
    """Per-run stream handling and success policy.

    Every field may be ``None``, meaning "not specified here". Options are
    layered with :meth:`merged`; :func:`resolve_run_options` fills whatever
    is still unspecified from :data:`DEFAULT_RUN_OPTIONS`.

    Attributes:
        stdout: Mode for the child's standard output.
        stderr: Mode for the child's standard error.
        success_codes: Exit codes treated as success. Defaults to ``{0}``.
        allowed_signals: Signal names treated as success. Defaults to none.
    """

    stdout: StreamMode | None = None
    stderr: StreamMode | None = None
    success_codes: frozenset[int] | None = None
    allowed_signals: frozenset[str] | None = None

    def __post_init__(self) -> None:
        if self.stdout is not None:
            object.__setattr__(self, "stdout", _parse_mode("stdout", self.stdout))
        if self.stderr is not None:
            object.__setattr__(self, "stderr", _parse_mode("stderr", self.stderr))
        if self.success_codes is not None:
            object.__setattr__(
                self, "success_codes", frozenset(int(code) for code in self.success_codes)
            )
        if self.allowed_signals is not None:
            object.__setattr__(
                self,
                "allowed_signals",
                frozenset(normalize_signal_name(name) for name in self.allowed_signals),
            )

    @classmethod
    def coerce(cls, value: RunOptionsLike) -> RunOptions:
        """Build options from ``None``, an existing instance, or a mapping.

        Unrecognized mapping keys are ignored.
        """

        if value is None:
            return cls()
        if isinstance(value, RunOptions):
            return value
        if not isinstance(value, Mapping):
            raise TypeError(f"Unsupported run options type: {type(value).__name__}")
        known = {item.name for item in fields(cls)}
        unknown = sorted(str(key) for key in value if key not in known)
        if unknown:
            _LOGGER.debug("Ignoring unknown run options: %s", ", ".join(unknown))
        return cls(**{key: item for key, item in value.items() if key in known})

    def merged(self, overrides: RunOptionsLike) -> RunOptions:
        """Return a copy where each specified field of ``overrides`` wins."""

        other = RunOptions.coerce(overrides)
        changes = {
            item.name: getattr(other, item.name)
            for item in fields(other)
            if getattr(other, item.name) is not None
        }
        return replace(self, **changes)

    def is_success(self, err_code: int | None, signal: str | None) -> bool:
        """Return whether an exit status counts as success under these options."""

        if signal is not None:
            return self.allowed_signals is not None and signal in self.allowed_signals
        success_codes = frozenset({0}) if self.success_codes is None else self.success_codes
        return err_code in success_codes


RunOptionsLike = Union[RunOptions, Mapping[str, Any], None]


def normalize_signal_name(name: str | int) -> str:
    """Return the canonical ``SIGxxx`` name for a signal name or number."""

    if isinstance(name, int):
        try:
            return signals.Signals(name).name
        except ValueError as exc:
            raise ValueError(f"Unknown signal number: {name}") from exc
    candidate = str(name).strip().upper()
    if not candidate.startswith("SIG"):
        candidate = f"SIG{candidate}"
    if candidate not in signals.Signals.__members__:
        raise ValueError(f"Unknown signal: {name}")
    return candidate


def _parse_mode(field_name: str, value: Any) -> StreamMode:
    try:
        return StreamMode(value)
    except ValueError as exc:
        allowed = ", ".join(mode.value for mode in StreamMode)
        raise ValueError(f"{field_name} must be one of: {allowed} (got {value!r})") from exc


DEFAULT_RUN_OPTIONS = RunOptions(
    stdout=StreamMode.TEE,
    stderr=StreamMode.TEE,
    success_codes=frozenset({0}),
    allowed_signals=frozenset(),
)


def resolve_run_options(*layers: RunOptionsLike) -> RunOptions:
    """Fold option layers over the defaults, later layers winning per field.

    :data:`DEFAULT_RUN_OPTIONS` and the layers are never modified.
    """

    resolved = DEFAULT_RUN_OPTIONS
    for layer in layers:
        resolved = resolved.merged(layer)
    return resolved


@dataclass(frozen=True)
class RunResult:
    """Outcome of one run, successful or not.

    Attributes:
        command: The command that was run.
        stdout: Everything the child wrote to standard output.
        stderr: Everything the child wrote to standard error.
        start_time: Wall-clock time (UTC) just before the child was started.
        end_time: Wall-clock time (UTC) once the child finished and its
            streams were drained.
        wall_time_ns: Elapsed time from the monotonic clock.
        err_code: Exit code; ``None`` when the child was killed by a signal.
        signal: Name of the terminating signal; ``None`` on a normal exit.
    """

    command: tuple[str, ...]
    stdout: str
    stderr: str
    start_time: datetime
    end_time: datetime
    wall_time_ns: int
    err_code: int | None = None
    signal: str | None = None

    @property
    def wall_time_s(self) -> float:
        return self.wall_time_ns / 1e9

    @property
    def exited(self) -> bool:
        return self.signal is None

    @property
    def signaled(self) -> bool:
        return self.signal is not None

    def to_dict(self) -> dict[str, Any]:
        """Serialize the result into a JSON-compatible dictionary."""

        return {
            "command": list(self.command),
            "stdout": self.stdout,
            "stderr": self.stderr,
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat(),
            "wall_time_ns": self.wall_time_ns,
            "wall_time_s": self.wall_time_s,
            "err_code": self.err_code,
            "signal": self.signal,
        }


class RunError(RuntimeError):
    """Raised when a started command finishes unsuccessfully.

    The full :class:`RunResult` is attached, so output produced before the
    failure stays available to the caller.
    """

    def __init__(self, message: str, command: Sequence[str], run_result: RunResult) -> None:
        super().__init__(message)
        self.message = message
        self.command = list(command)
        self.run_result = run_result


class NonZeroExit(RunError):
    """Raised when the command exits normally with a failing exit code."""

    def __init__(self, command: Sequence[str], run_result: RunResult) -> None:
        super().__init__(f"Non-zero exit code {run_result.err_code}", command, run_result)
        self.err_code = run_result.err_code


class SignalTermination(RunError):
    """Raised when the command is killed by a signal."""

    def __init__(self, command: Sequence[str], run_result: RunResult) -> None:
        super().__init__(f"Command exited with signal {run_result.signal}", command, run_result)
        self.signal = run_result.signal


class SpawnFailure(OSError):
    """Raised when the command could not be started at all.

    Keeps the ``errno``, ``strerror`` and ``filename`` of the underlying
    ``OSError``, which is also chained as ``__cause__``. No process ran, so
    there is never a run result.
    """

    run_result: RunResult | None = None

    def __init__(self, command: Sequence[str], cause: OSError) -> None:
        if cause.errno is None:
            super().__init__(str(cause))
        elif cause.filename is None:
            super().__init__(cause.errno, cause.strerror)
        else:
            super().__init__(cause.errno, cause.strerror, cause.filename)
        self.command = list(command)


class CommandExecutor(ABC):
    """Abstract base class for command executors."""

    @abstractmethod
    def run(
        self,
        command: Sequence[str],
        run_options: RunOptionsLike = None,
        spawn_options: Mapping[str, Any] | None = None,
    ) -> RunResult:
        """Run a command once and report how it finished.

        Args:
            command: Executable followed by its arguments.
            run_options: Stream handling and success policy overrides.
            spawn_options: Extra keyword arguments for process creation.

        Returns:
            RunResult for a successful run.

        Raises:
            SpawnFailure: If the command could not be started.
            NonZeroExit: If the command exited with a failing code.
            SignalTermination: If the command was killed by a signal.
        """

    async def run_async(
        self,
        command: Sequence[str],
        run_options: RunOptionsLike = None,
        spawn_options: Mapping[str, Any] | None = None,
    ) -> RunResult:
        """Run a command in a worker thread so it can be awaited."""

        return await asyncio.to_thread(self.run, command, run_options, spawn_options)
