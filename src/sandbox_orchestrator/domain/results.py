"""Result records returned by orchestrator operations."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ContainerStatus(str, Enum):
    RUNNING = "RUNNING"
    STOPPED = "STOPPED"
    ERROR = "ERROR"


class StopOutcome(str, Enum):
    STOPPED = "STOPPED"
    NOT_FOUND = "NOT_FOUND"
    ERROR = "ERROR"


class LogsStatus(str, Enum):
    SUCCESS = "SUCCESS"
    CONTAINER_NOT_FOUND = "CONTAINER_NOT_FOUND"
    ERROR = "ERROR"


@dataclass(frozen=True, slots=True)
class RunResult:
    instance_id: str
    port: int

    @property
    def address(self) -> str:
        """``id:port`` form callers compose a reachable address from."""

        return f"{self.instance_id}:{self.port}"


@dataclass(frozen=True, slots=True)
class StatusResult:
    instance_id: str
    status: ContainerStatus
    detail: str


@dataclass(frozen=True, slots=True)
class LogsResult:
    """Output of a container log query, or the not-found variant."""

    instance_id: str
    container_name: str
    found: bool
    status: LogsStatus
    stdout: str
    stderr: str
    exit_code: int
    message: str = ""

    @property
    def has_logs(self) -> bool:
        return bool(self.stdout.strip())

    @property
    def line_count(self) -> int:
        return len(self.stdout.splitlines())


__all__ = [
    "ContainerStatus",
    "LogsResult",
    "LogsStatus",
    "RunResult",
    "StatusResult",
    "StopOutcome",
]
