"""Request and response schemas for the sandbox HTTP API."""

from __future__ import annotations

from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict, Field


class RunRequestDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    uuid: str | None = None
    url: str = Field(min_length=1)
    framework: str
    port: int


@dataclass(frozen=True, slots=True)
class RunResponse:
    message: str
    status: str
    execution_id: str
    execution_time_ms: int
    result: str | None = None
    error: str | None = None
    output: str | None = None


@dataclass(frozen=True, slots=True)
class ExecuteResponse:
    project_id: str
    port: int
    url: str


@dataclass(frozen=True, slots=True)
class ErrorResponse:
    error: str


@dataclass(frozen=True, slots=True)
class StatusResponse:
    uuid: str
    status: str
    details: str


@dataclass(frozen=True, slots=True)
class StopResponse:
    uuid: str
    status: str
    message: str


@dataclass(frozen=True, slots=True)
class ActiveResponse:
    active_containers: dict[str, str]
    count: int
    status: str


@dataclass(frozen=True, slots=True)
class LogsResponse:
    uuid: str
    container_name: str
    status: str
    found: bool
    stdout: str
    stderr: str
    exit_code: int
    has_logs: bool
    line_count: int
    message: str = ""


@dataclass(frozen=True, slots=True)
class HealthResponse:
    status: str


__all__ = [
    "ActiveResponse",
    "ErrorResponse",
    "ExecuteResponse",
    "HealthResponse",
    "LogsResponse",
    "RunRequestDTO",
    "RunResponse",
    "StatusResponse",
    "StopResponse",
]
