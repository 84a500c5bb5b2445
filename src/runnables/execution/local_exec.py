"""Local execution engine: spawn, drain both streams, report the outcome."""

from __future__ import annotations

import codecs
import os
import subprocess
import sys
import threading
import time
from datetime import datetime, timezone
from typing import IO, Any, Mapping, Sequence, TextIO

from runnables.execution.base import (
    CommandExecutor,
    NonZeroExit,
    RunOptions,
    RunOptionsLike,
    RunResult,
    RunState,
    SignalTermination,
    SpawnFailure,
    StreamMode,
    normalize_signal_name,
    resolve_run_options,
)
from runnables.util.logging import get_logger
from runnables.util.observability import ObservabilityManager

CHUNK_SIZE = 64 * 1024

# Popen arguments the executor owns; overriding them would break capture.
RESERVED_SPAWN_OPTIONS = frozenset(
    {
        "args",
        "stdin",
        "stdout",
        "stderr",
        "bufsize",
        "text",
        "universal_newlines",
        "encoding",
        "errors",
    }
)


class _StreamReader:
    """Drain one child stream on its own thread.

    Each chunk is decoded, forwarded to ``sink`` when teeing, then appended
    to the buffer, so the mirrored output and the buffer agree on order.
    """

    def __init__(self, name: str, stream: IO[bytes], sink: TextIO | None) -> None:
        self.name = name
        self.error: Exception | None = None
        self._stream = stream
        self._sink = sink
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._chunks: list[str] = []
        self._thread = threading.Thread(
            target=self._drain,
            name=f"runnables-{name}",
            daemon=True,
        )

    def start(self) -> None:
        self._thread.start()

    def join(self) -> None:
        self._thread.join()

    @property
    def text(self) -> str:
        return "".join(self._chunks)

    def _drain(self) -> None:
        try:
            while True:
                data = self._stream.read1(CHUNK_SIZE)  # type: ignore[attr-defined]
                if not data:
                    break
                self._emit(self._decoder.decode(data))
        except Exception as exc:  # noqa: BLE001 - reported by the executor
            self._record_error(exc)
        finally:
            self._emit(self._decoder.decode(b"", final=True))

    def _emit(self, text: str) -> None:
        if not text:
            return
        if self._sink is not None:
            try:
                self._sink.write(text)
                self._sink.flush()
            except Exception as exc:  # noqa: BLE001 - reported by the executor
                # Keep draining so the child never blocks on a full pipe.
                self._record_error(exc)
                self._sink = None
        self._chunks.append(text)

    def _record_error(self, exc: Exception) -> None:
        if self.error is None:
            self.error = exc


class LocalExecutor(CommandExecutor):
    """Execute commands on the local host.

    The child's stdin is always closed. Its stdout and stderr are piped and
    drained concurrently; each is captured and optionally teed to the
    calling process according to the resolved :class:`RunOptions`.
    """

    def __init__(
        self,
        defaults: RunOptionsLike = None,
        *,
        stdout_sink: TextIO | None = None,
        stderr_sink: TextIO | None = None,
        observability: ObservabilityManager | None = None,
        merge_env: bool = False,
    ) -> None:
        """Initialize the executor.

        Args:
            defaults: Options layered between the built-in defaults and the
                options passed to each call.
            stdout_sink: Where teed stdout goes. Defaults to ``sys.stdout``
                as it is at call time.
            stderr_sink: Where teed stderr goes. Defaults to ``sys.stderr``
                as it is at call time.
            observability: Optional event logger and metrics collector.
            merge_env: Merge an ``env`` spawn option over ``os.environ``
                instead of replacing the environment.
        """

        self._defaults = RunOptions.coerce(defaults)
        self._stdout_sink = stdout_sink
        self._stderr_sink = stderr_sink
        self._observability = observability
        self._merge_env = merge_env
        self._logger = get_logger("runnables.execution")

    @property
    def defaults(self) -> RunOptions:
        return self._defaults

    def run(
        self,
        command: Sequence[str],
        run_options: RunOptionsLike = None,
        spawn_options: Mapping[str, Any] | None = None,
    ) -> RunResult:
        """Run a command locally, capturing and optionally teeing its output.

        Args:
            command: Executable followed by its arguments.
            run_options: Per-field overrides for stream modes and success
                policy.
            spawn_options: Extra ``subprocess.Popen`` keyword arguments such
                as ``cwd`` or ``env``. Arguments that change the standard
                streams are rejected; other careless overrides (for example
                ``pass_fds``) can still interfere with capture.

        Returns:
            RunResult with captured output, timing and exit status.

        Raises:
            ValueError: If the command is empty or spawn options are invalid.
            SpawnFailure: If the command could not be started.
            NonZeroExit: If the command exited with a failing code.
            SignalTermination: If the command was killed by a signal.
        """

        argv = _validate_command(command)
        options = resolve_run_options(self._defaults, run_options)
        popen_kwargs = self._build_popen_kwargs(spawn_options)
        stdout_sink = self._tee_sink(options.stdout, self._stdout_sink, sys.stdout)
        stderr_sink = self._tee_sink(options.stderr, self._stderr_sink, sys.stderr)

        state = RunState.NOT_STARTED
        state = self._transition(argv, state, RunState.SPAWNING)
        self._emit("run.started", {"command": list(argv)}, level="DEBUG")
        start_time = datetime.now(timezone.utc)
        start_ns = time.monotonic_ns()
        try:
            process = subprocess.Popen(
                list(argv),
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                **popen_kwargs,
            )
        except OSError as exc:
            state = self._transition(argv, state, RunState.SPAWN_FAILED)
            self._logger.info("Failed to start command %s: %s", argv, exc)
            self._count("runs.spawn_failed")
            self._emit("run.failed", {"command": list(argv), "reason": str(exc)}, level="WARNING")
            raise SpawnFailure(argv, exc) from exc

        state = self._transition(argv, state, RunState.RUNNING)
        with process:
            if process.stdout is None or process.stderr is None:
                raise RuntimeError("Child process streams were not piped.")
            readers = (
                _StreamReader("stdout", process.stdout, stdout_sink),
                _StreamReader("stderr", process.stderr, stderr_sink),
            )
            for reader in readers:
                reader.start()
            returncode = process.wait()
            # Exit can be reported before the pipes are drained.
            for reader in readers:
                reader.join()
        end_ns = time.monotonic_ns()
        end_time = datetime.now(timezone.utc)

        err_code: int | None = returncode
        signal_name: str | None = None
        if returncode < 0:
            err_code = None
            signal_name = _signal_name(-returncode)
        state = self._transition(
            argv, state, RunState.SIGNALED if signal_name else RunState.EXITED
        )

        result = RunResult(
            command=argv,
            stdout=readers[0].text,
            stderr=readers[1].text,
            start_time=start_time,
            end_time=end_time,
            wall_time_ns=end_ns - start_ns,
            err_code=err_code,
            signal=signal_name,
        )
        self._logger.info(
            "Command %s finished with %s in %.2fs.",
            argv,
            f"signal {signal_name}" if signal_name else f"exit code {err_code}",
            result.wall_time_s,
        )
        self._record_finish(result, options)

        stream_error: Exception | None = None
        for reader in readers:
            if reader.error is not None:
                self._logger.warning(
                    "Error handling %s of command %s: %r", reader.name, argv, reader.error
                )
                stream_error = stream_error or reader.error

        if not options.is_success(err_code, signal_name):
            if signal_name is not None:
                raise SignalTermination(argv, result) from stream_error
            raise NonZeroExit(argv, result) from stream_error
        return result

    def _build_popen_kwargs(self, spawn_options: Mapping[str, Any] | None) -> dict[str, Any]:
        kwargs = dict(spawn_options or {})
        reserved = sorted(RESERVED_SPAWN_OPTIONS.intersection(kwargs))
        if reserved:
            raise ValueError(
                f"Spawn options may not override stream handling: {', '.join(reserved)}"
            )
        if "cwd" in kwargs and kwargs["cwd"] is not None:
            kwargs["cwd"] = str(kwargs["cwd"])
        env = kwargs.get("env")
        if env is not None and self._merge_env:
            merged_env = os.environ.copy()
            merged_env.update({str(key): str(value) for key, value in env.items()})
            kwargs["env"] = merged_env
        return kwargs

    @staticmethod
    def _tee_sink(
        mode: StreamMode | None, configured: TextIO | None, fallback: TextIO
    ) -> TextIO | None:
        if mode is not StreamMode.TEE:
            return None
        return configured if configured is not None else fallback

    def _transition(self, argv: tuple[str, ...], old: RunState, new: RunState) -> RunState:
        self._logger.debug("Run %s: %s -> %s", argv, old.value, new.value)
        return new

    def _record_finish(self, result: RunResult, options: RunOptions) -> None:
        if self._observability is None:
            return
        succeeded = options.is_success(result.err_code, result.signal)
        payload = {
            "command": list(result.command),
            "err_code": result.err_code,
            "signal": result.signal,
            "wall_time_s": result.wall_time_s,
        }
        self._count("runs.total")
        if not succeeded:
            self._count("runs.failed")
        self._observability.metrics.record_duration("run.wall_time", result.wall_time_s)
        if succeeded:
            self._emit("run.finished", payload)
        else:
            self._emit("run.failed", payload, level="WARNING")

    def _count(self, name: str) -> None:
        if self._observability is not None:
            self._observability.metrics.increment(name)

    def _emit(self, event_type: str, payload: dict[str, Any], *, level: str = "INFO") -> None:
        if self._observability is not None:
            self._observability.log_event(event_type, payload, level=level)


def _validate_command(command: Sequence[str]) -> tuple[str, ...]:
    if isinstance(command, (str, bytes)):
        raise ValueError("Command must be a sequence of arguments, not a single string.")
    argv = tuple(command)
    if not argv:
        raise ValueError("Command must contain at least one argument.")
    if not all(isinstance(part, str) for part in argv):
        raise ValueError("Command arguments must all be strings.")
    return argv


def _signal_name(signum: int) -> str:
    try:
        return normalize_signal_name(signum)
    except ValueError:
        return f"SIG{signum}"
