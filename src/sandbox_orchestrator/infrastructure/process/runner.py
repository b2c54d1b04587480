"""Bounded execution of external commands with concurrent output draining."""

from __future__ import annotations

import logging
import os
import signal
import subprocess
import threading
import time
from collections.abc import Callable, Sequence
from contextlib import suppress
from dataclasses import dataclass
from pathlib import Path
from typing import IO, Any, Protocol

from sandbox_orchestrator.errors import CommandTimeoutError, ExternalToolError

logger = logging.getLogger("sandbox_orchestrator.process")

LineConsumer = Callable[[str], None]

DEFAULT_DRAIN_GRACE_SECONDS = 10.0
DEFAULT_KILL_GRACE_SECONDS = 5.0


@dataclass(frozen=True, slots=True)
class CommandResult:
    """Exit status and merged stdout/stderr of a finished command."""

    args: tuple[str, ...]
    exit_code: int
    output: str
    duration_s: float


@dataclass(frozen=True, slots=True)
class CapturedOutput:
    """Exit status and separately captured streams of a finished command."""

    args: tuple[str, ...]
    exit_code: int
    stdout: str
    stderr: str
    duration_s: float


class CommandRunner(Protocol):
    """Executes argument vectors with a deadline."""

    def run(
        self,
        args: Sequence[str],
        *,
        timeout: float,
        cwd: Path | None = None,
        check: bool = True,
        line_consumer: LineConsumer | None = None,
    ) -> CommandResult:
        """Run with stdout and stderr merged into one stream."""

    def capture(
        self,
        args: Sequence[str],
        *,
        timeout: float,
        cwd: Path | None = None,
    ) -> CapturedOutput:
        """Run with stdout and stderr captured separately."""


class _StreamDrain:
    """Reads one text stream line by line on a daemon thread."""

    def __init__(self, stream: IO[str], *, name: str, consumer: LineConsumer | None = None) -> None:
        self._stream = stream
        self._consumer = consumer
        self._lines: list[str] = []
        self._lock = threading.Lock()
        self._thread = threading.Thread(target=self._pump, name=name, daemon=True)

    def start(self) -> _StreamDrain:
        self._thread.start()
        return self

    def join(self, timeout: float) -> bool:
        self._thread.join(timeout=timeout)
        return not self._thread.is_alive()

    def text(self) -> str:
        with self._lock:
            return "".join(self._lines)

    def _pump(self) -> None:
        try:
            for line in self._stream:
                with self._lock:
                    self._lines.append(line)
                if self._consumer is not None:
                    self._emit(line.rstrip("\n"))
        except (OSError, ValueError) as exc:
            # Stream closed underneath us after a forced kill.
            logger.warning("failed to read process output: %s", exc)
        finally:
            with suppress(OSError):
                self._stream.close()

    def _emit(self, line: str) -> None:
        assert self._consumer is not None
        try:
            self._consumer(line)
        except Exception:
            logger.exception("process output consumer failed")


class ProcessRunner(CommandRunner):
    """Runs external commands, draining their output while waiting on them.

    Output is read on reader threads that run alongside ``Popen.wait`` so a
    chatty child can never block on a full pipe. On timeout the child's whole
    process group is killed and ``CommandTimeoutError`` carries whatever was
    read so far. After a normal exit the readers get a bounded grace period to
    flush; a reader still blocked after that is abandoned with partial output.
    """

    def __init__(
        self,
        *,
        drain_grace_seconds: float = DEFAULT_DRAIN_GRACE_SECONDS,
        kill_grace_seconds: float = DEFAULT_KILL_GRACE_SECONDS,
        popen: Callable[..., subprocess.Popen[str]] | None = None,
    ) -> None:
        if drain_grace_seconds < 0:
            raise ValueError("drain_grace_seconds must be >= 0")
        if kill_grace_seconds < 0:
            raise ValueError("kill_grace_seconds must be >= 0")
        self._drain_grace = drain_grace_seconds
        self._kill_grace = kill_grace_seconds
        self._popen = popen or self._default_popen

    def run(
        self,
        args: Sequence[str],
        *,
        timeout: float,
        cwd: Path | None = None,
        check: bool = True,
        line_consumer: LineConsumer | None = None,
    ) -> CommandResult:
        argv = _argv(args)
        logger.debug("executing command", extra={"data": {"args": argv, "cwd": str(cwd) if cwd else None}})
        start = time.monotonic()
        process = self._spawn(argv, cwd=cwd, stderr=subprocess.STDOUT)
        assert process.stdout is not None
        drain = _StreamDrain(process.stdout, name=f"drain-{process.pid}", consumer=line_consumer).start()

        exit_code = self._wait(process, argv, timeout=timeout, drains=(drain,))
        self._finish(argv, (drain,))
        output = drain.text()
        duration = time.monotonic() - start

        logger.debug(
            "command finished",
            extra={"data": {"args": argv, "exit_code": exit_code, "duration_s": round(duration, 3)}},
        )
        if check and exit_code != 0:
            raise ExternalToolError(argv, exit_code=exit_code, output=output)
        return CommandResult(args=tuple(argv), exit_code=exit_code, output=output, duration_s=duration)

    def capture(
        self,
        args: Sequence[str],
        *,
        timeout: float,
        cwd: Path | None = None,
    ) -> CapturedOutput:
        argv = _argv(args)
        logger.debug("executing command", extra={"data": {"args": argv, "cwd": str(cwd) if cwd else None}})
        start = time.monotonic()
        process = self._spawn(argv, cwd=cwd, stderr=subprocess.PIPE)
        assert process.stdout is not None
        assert process.stderr is not None
        stdout = _StreamDrain(process.stdout, name=f"stdout-{process.pid}").start()
        stderr = _StreamDrain(process.stderr, name=f"stderr-{process.pid}").start()

        exit_code = self._wait(process, argv, timeout=timeout, drains=(stdout, stderr))
        self._finish(argv, (stdout, stderr))
        return CapturedOutput(
            args=tuple(argv),
            exit_code=exit_code,
            stdout=stdout.text(),
            stderr=stderr.text(),
            duration_s=time.monotonic() - start,
        )

    def _spawn(self, argv: list[str], *, cwd: Path | None, stderr: int) -> subprocess.Popen[str]:
        return self._popen(
            argv,
            cwd=str(cwd) if cwd is not None else None,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=stderr,
            text=True,
            encoding="utf-8",
            errors="replace",
            start_new_session=True,
        )

    def _wait(
        self,
        process: subprocess.Popen[str],
        argv: list[str],
        *,
        timeout: float,
        drains: Sequence[_StreamDrain],
    ) -> int:
        try:
            return process.wait(timeout=timeout)
        except subprocess.TimeoutExpired:
            pass
        logger.error(
            "command timed out after %ss; killing process group",
            timeout,
            extra={"data": {"args": argv, "pid": process.pid}},
        )
        self._kill_tree(process)
        for drain in drains:
            drain.join(self._kill_grace)
        output = "".join(drain.text() for drain in drains)
        raise CommandTimeoutError(argv, timeout=timeout, output=output)

    def _kill_tree(self, process: subprocess.Popen[str]) -> None:
        try:
            os.killpg(process.pid, signal.SIGKILL)
        except OSError:
            with suppress(OSError):
                process.kill()
        try:
            process.wait(timeout=self._kill_grace)
        except subprocess.TimeoutExpired:
            logger.error("process did not exit after SIGKILL", extra={"data": {"pid": process.pid}})

    def _finish(self, argv: list[str], drains: Sequence[_StreamDrain]) -> None:
        deadline = time.monotonic() + self._drain_grace
        for drain in drains:
            remaining = max(0.0, deadline - time.monotonic())
            if not drain.join(remaining):
                logger.warning(
                    "output reader did not finish within %ss; using partial output",
                    self._drain_grace,
                    extra={"data": {"args": argv}},
                )

    @staticmethod
    def _default_popen(*args: Any, **kwargs: Any) -> subprocess.Popen[str]:  # pragma: no cover - thin wrapper
        return subprocess.Popen(*args, **kwargs)  # noqa: S603


def _argv(args: Sequence[str]) -> list[str]:
    if isinstance(args, str):
        raise TypeError("command must be an argument sequence, not a string")
    argv = [str(part) for part in args]
    if not argv:
        raise ValueError("command must not be empty")
    return argv


__all__ = [
    "CapturedOutput",
    "CommandResult",
    "CommandRunner",
    "LineConsumer",
    "ProcessRunner",
]
