"""Exception taxonomy shared across the orchestrator components."""

from __future__ import annotations

from collections.abc import Sequence


class SandboxError(Exception):
    """Base class for orchestrator failures."""


class ConfigurationError(SandboxError):
    """Raised when the orchestrator is wired with a missing or invalid external tool."""


class InvalidIdentifierError(SandboxError, ValueError):
    """Raised when a project identifier or port cannot be used."""


class UnsupportedRuntimeError(SandboxError, ValueError):
    """Raised for a runtime tag outside the supported set."""

    def __init__(self, runtime: str) -> None:
        super().__init__(f"unsupported runtime: {runtime!r}")
        self.runtime = runtime


class FetchError(SandboxError):
    """Raised when the project archive cannot be retrieved."""

    def __init__(self, message: str, *, source: str | None = None) -> None:
        super().__init__(message)
        self.source = source


class ArchiveError(SandboxError):
    """Raised when the project archive cannot be extracted."""


class PathTraversalError(ArchiveError):
    """Raised when an archive entry resolves outside the destination directory."""

    def __init__(self, entry_name: str) -> None:
        super().__init__(f"archive entry is outside of the target dir: {entry_name}")
        self.entry_name = entry_name


class CommandTimeoutError(SandboxError, TimeoutError):
    """Raised when an external command exceeds its deadline and was killed."""

    def __init__(self, args: Sequence[str], *, timeout: float, output: str = "") -> None:
        super().__init__(f"command timed out after {timeout:g}s: {' '.join(args)}")
        self.args_vector = tuple(args)
        self.timeout = timeout
        self.output = output


class ExternalToolError(SandboxError):
    """Raised when an external command exits with a nonzero status."""

    def __init__(self, args: Sequence[str], *, exit_code: int, output: str = "") -> None:
        super().__init__(f"command failed (exit_code={exit_code}): {' '.join(args)}")
        self.args_vector = tuple(args)
        self.exit_code = exit_code
        self.output = output


class ExecutionError(SandboxError):
    """Raised by a run request; wraps the failure of one lifecycle phase."""

    def __init__(self, instance_id: str, phase: str, cause: BaseException) -> None:
        super().__init__(f"project execution failed (id={instance_id} phase={phase}): {cause}")
        self.instance_id = instance_id
        self.phase = phase
        self.cause = cause

    @property
    def output(self) -> str:
        """Captured external tool output, when the cause carried any."""

        return getattr(self.cause, "output", "") or ""


__all__ = [
    "ArchiveError",
    "CommandTimeoutError",
    "ConfigurationError",
    "ExecutionError",
    "ExternalToolError",
    "FetchError",
    "InvalidIdentifierError",
    "PathTraversalError",
    "SandboxError",
    "UnsupportedRuntimeError",
]
