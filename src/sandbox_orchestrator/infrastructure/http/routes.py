"""HTTP route definitions for the sandbox API."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import asdict, dataclass
from typing import Protocol
from uuid import uuid4

from fastapi import Depends, FastAPI, File, Form, Query, Request, UploadFile
from fastapi.responses import JSONResponse

from sandbox_orchestrator.domain.results import (
    ContainerStatus,
    LogsResult,
    LogsStatus,
    RunResult,
    StatusResult,
    StopOutcome,
)
from sandbox_orchestrator.domain.runtime import RuntimeTag
from sandbox_orchestrator.errors import (
    CommandTimeoutError,
    ExecutionError,
    InvalidIdentifierError,
    SandboxError,
    UnsupportedRuntimeError,
)
from sandbox_orchestrator.infrastructure.artifacts.fetcher import (
    ArtifactSource,
    InlineArtifact,
    RemoteArtifact,
)
from sandbox_orchestrator.infrastructure.http.schemas import (
    ActiveResponse,
    ErrorResponse,
    ExecuteResponse,
    HealthResponse,
    LogsResponse,
    RunRequestDTO,
    RunResponse,
    StatusResponse,
    StopResponse,
)

logger = logging.getLogger("sandbox_orchestrator.http")


class SandboxOperations(Protocol):
    def run(self, instance_id: str, source: ArtifactSource, runtime: RuntimeTag | str, port: int) -> RunResult:
        ...

    def stop(self, instance_id: str) -> bool:
        ...

    def status(self, instance_id: str) -> StatusResult:
        ...

    def logs(self, instance_id: str, *, max_lines: int, follow: bool, since: str) -> LogsResult:
        ...

    def list_active(self) -> dict[str, str]:
        ...


@dataclass(frozen=True)
class SandboxRouteDeps:
    orchestrator: SandboxOperations


def add_sandbox_routes(app: FastAPI, dependency_provider: Callable[[], SandboxRouteDeps]) -> None:
    def get_dependencies() -> SandboxRouteDeps:
        return dependency_provider()

    @app.post(
        "/api/sandbox/run",
        response_model=RunResponse,
        description="Fetch a project archive by URL, build it and run it in a container.",
    )
    def run_project(
        payload: RunRequestDTO,
        deps: SandboxRouteDeps = Depends(get_dependencies),  # noqa: B008
    ) -> RunResponse | JSONResponse:
        instance_id = payload.uuid or uuid4().hex
        start = time.perf_counter()
        try:
            result = deps.orchestrator.run(
                instance_id,
                RemoteArtifact(payload.url),
                payload.framework,
                payload.port,
            )
        except (InvalidIdentifierError, UnsupportedRuntimeError) as exc:
            return _json(
                400,
                RunResponse(
                    message="Invalid run request",
                    status="FAILED",
                    execution_id=instance_id,
                    execution_time_ms=_elapsed_ms(start),
                    error=str(exc),
                ),
            )
        except ExecutionError as exc:
            return _json(
                500,
                RunResponse(
                    message="Project execution failed",
                    status="FAILED",
                    execution_id=instance_id,
                    execution_time_ms=_elapsed_ms(start),
                    error=str(exc.cause),
                    output=exc.output or None,
                ),
            )
        return RunResponse(
            message="Project started successfully",
            status="SUCCESS",
            execution_id=instance_id,
            execution_time_ms=_elapsed_ms(start),
            result=result.address,
        )

    @app.post(
        "/api/execute",
        response_model=ExecuteResponse,
        description="Build and run an uploaded project archive.",
    )
    def execute_upload(
        request: Request,
        framework: str = Form(...),
        project_zip: UploadFile = File(..., alias="projectZip"),  # noqa: B008
        port: int = Form(...),
        uuid: str | None = Form(None),
        deps: SandboxRouteDeps = Depends(get_dependencies),  # noqa: B008
    ) -> ExecuteResponse | JSONResponse:
        instance_id = uuid or uuid4().hex
        source = InlineArtifact(data=project_zip.file, filename=project_zip.filename)
        try:
            result = deps.orchestrator.run(instance_id, source, framework, port)
        except (InvalidIdentifierError, UnsupportedRuntimeError) as exc:
            return _json(400, ErrorResponse(error=str(exc)))
        except ExecutionError as exc:
            return _json(500, ErrorResponse(error=f"Failed to execute project: {exc.cause}"))
        host = request.url.hostname or "localhost"
        return ExecuteResponse(
            project_id=result.instance_id,
            port=result.port,
            url=f"http://{host}:{result.port}",
        )

    @app.get(
        "/api/sandbox/status/{uuid}",
        response_model=StatusResponse,
        description="Return whether the container for a project is running.",
    )
    def container_status(
        uuid: str,
        deps: SandboxRouteDeps = Depends(get_dependencies),  # noqa: B008
    ) -> StatusResponse | JSONResponse:
        result = deps.orchestrator.status(uuid)
        response = StatusResponse(uuid=uuid, status=result.status.value, details=result.detail)
        if result.status is ContainerStatus.ERROR:
            return _json(500, response)
        return response

    @app.delete(
        "/api/sandbox/stop/{uuid}",
        response_model=StopResponse,
        description="Stop and remove the container for a project.",
    )
    def stop_container(
        uuid: str,
        deps: SandboxRouteDeps = Depends(get_dependencies),  # noqa: B008
    ) -> StopResponse | JSONResponse:
        try:
            stopped = deps.orchestrator.stop(uuid)
        except (SandboxError, OSError) as exc:
            logger.exception("stop request failed", extra={"data": {"id": uuid}})
            return _json(
                500,
                StopResponse(uuid=uuid, status=StopOutcome.ERROR.value, message=f"Error stopping container: {exc}"),
            )
        if stopped:
            return StopResponse(uuid=uuid, status=StopOutcome.STOPPED.value, message="Container stopped")
        return StopResponse(uuid=uuid, status=StopOutcome.NOT_FOUND.value, message="No active container found")

    @app.get(
        "/api/sandbox/active",
        response_model=ActiveResponse,
        description="List the containers started by this service.",
    )
    def active_containers(
        deps: SandboxRouteDeps = Depends(get_dependencies),  # noqa: B008
    ) -> ActiveResponse:
        active = deps.orchestrator.list_active()
        return ActiveResponse(active_containers=active, count=len(active), status="SUCCESS")

    @app.get(
        "/api/sandbox/logs/{uuid}",
        response_model=LogsResponse,
        description="Return stdout and stderr of a project container.",
    )
    def container_logs(
        uuid: str,
        lines: int = Query(50),
        follow: bool = Query(False),
        since: str = Query("all"),
        deps: SandboxRouteDeps = Depends(get_dependencies),  # noqa: B008
    ) -> LogsResponse | JSONResponse:
        try:
            result = deps.orchestrator.logs(uuid, max_lines=lines, follow=follow, since=since)
        except CommandTimeoutError as exc:
            logger.warning("logs request timed out", extra={"data": {"id": uuid, "timeout": exc.timeout}})
            return _json(500, _logs_error(uuid, f"Timed out retrieving logs: {exc}", stdout=exc.output))
        except (SandboxError, OSError) as exc:
            logger.exception("logs request failed", extra={"data": {"id": uuid}})
            return _json(500, _logs_error(uuid, f"Error retrieving logs: {exc}"))
        response = LogsResponse(
            uuid=result.instance_id,
            container_name=result.container_name,
            status=result.status.value,
            found=result.found,
            stdout=result.stdout,
            stderr=result.stderr,
            exit_code=result.exit_code,
            has_logs=result.has_logs,
            line_count=result.line_count,
            message=result.message,
        )
        if result.status is LogsStatus.ERROR:
            return _json(500, response)
        return response


def add_health_routes(app: FastAPI) -> None:
    @app.get("/healthz", response_model=HealthResponse, description="Liveness probe.")
    def healthz() -> HealthResponse:
        return HealthResponse(status="ok")


# --- Helpers ---


def _json(status_code: int, body: object) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=asdict(body))  # type: ignore[call-overload]


def _elapsed_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)


def _logs_error(uuid: str, message: str, *, stdout: str = "") -> LogsResponse:
    return LogsResponse(
        uuid=uuid,
        container_name="",
        status=LogsStatus.ERROR.value,
        found=False,
        stdout=stdout,
        stderr="",
        exit_code=-1,
        has_logs=bool(stdout.strip()),
        line_count=len(stdout.splitlines()),
        message=message,
    )


__all__ = ["SandboxOperations", "SandboxRouteDeps", "add_health_routes", "add_sandbox_routes"]
