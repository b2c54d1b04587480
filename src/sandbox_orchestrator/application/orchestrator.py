"""Lifecycle of sandboxed project executions."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from pathlib import Path

from opentelemetry import trace

from sandbox_orchestrator.application.ports.instance_registry import InstanceRegistryPort
from sandbox_orchestrator.domain.instance import (
    InstanceHandle,
    InstanceState,
    container_name_for,
    validate_instance_id,
    validate_port,
)
from sandbox_orchestrator.domain.results import (
    ContainerStatus,
    LogsResult,
    RunResult,
    StatusResult,
)
from sandbox_orchestrator.domain.runtime import RuntimeTag
from sandbox_orchestrator.errors import ExecutionError, SandboxError
from sandbox_orchestrator.infrastructure.artifacts.descriptor import generate_descriptor
from sandbox_orchestrator.infrastructure.artifacts.fetcher import ArtifactFetcher, ArtifactSource
from sandbox_orchestrator.infrastructure.docker.control import DockerControl
from sandbox_orchestrator.infrastructure.docker.logs import DEFAULT_MAX_LINES, DEFAULT_SINCE, LogRetriever
from sandbox_orchestrator.infrastructure.process.build_tool import BuildTool
from sandbox_orchestrator.infrastructure.process.runner import CommandRunner
from sandbox_orchestrator.infrastructure.state.staging import StagingArea

logger = logging.getLogger("sandbox_orchestrator.orchestrator")
build_logger = logging.getLogger("sandbox_orchestrator.build")

DescriptorWriter = Callable[[Path, RuntimeTag], Path]

DEFAULT_BUILD_TIMEOUT_SECONDS = 300.0


class ExecutionOrchestrator:
    """Runs at most one sandboxed instance per project identifier.

    ``run`` retires whatever is registered for the identifier, then stages,
    fetches, extracts, writes the descriptor and invokes the build tool. The
    instance is registered only after the build tool exits cleanly; any failure
    on the way deletes the attempt's staging directory and surfaces as
    ``ExecutionError`` naming the failed phase.

    The staging directory of an attempt is touched only by that attempt until
    it registers; retirement deletes the directories of registered runs only.
    """

    def __init__(
        self,
        *,
        registry: InstanceRegistryPort,
        staging: StagingArea,
        fetcher: ArtifactFetcher,
        containers: DockerControl,
        log_retriever: LogRetriever,
        runner: CommandRunner,
        build_tool: BuildTool,
        build_timeout_seconds: float = DEFAULT_BUILD_TIMEOUT_SECONDS,
        descriptor_writer: DescriptorWriter = generate_descriptor,
    ) -> None:
        build_tool.verify()
        self._registry = registry
        self._staging = staging
        self._fetcher = fetcher
        self._containers = containers
        self._log_retriever = log_retriever
        self._runner = runner
        self._build_tool = build_tool
        self._build_timeout = build_timeout_seconds
        self._write_descriptor = descriptor_writer
        self._tracer = trace.get_tracer("sandbox_orchestrator.orchestrator")

    def run(
        self,
        instance_id: str,
        source: ArtifactSource,
        runtime: RuntimeTag | str,
        port: int,
    ) -> RunResult:
        validate_instance_id(instance_id)
        validate_port(port)
        tag = RuntimeTag.parse(runtime)

        with self._tracer.start_as_current_span(
            "sandbox.run",
            attributes={"sandbox.id": instance_id, "sandbox.runtime": tag.value, "sandbox.port": port},
        ):
            logger.info(
                "project execution requested",
                extra={
                    "data": {
                        "id": instance_id,
                        "runtime": tag.value,
                        "port": port,
                        "source": source.describe(),
                    }
                },
            )
            self._retire(instance_id)

            self._transition(instance_id, InstanceState.STAGING)
            phase = "stage"
            staging_dir: Path | None = None
            try:
                staging_dir = self._staging.create(instance_id)
                phase = "fetch"
                with self._phase(phase, instance_id):
                    archive = self._fetcher.fetch(source, staging_dir)
                phase = "extract"
                with self._phase(phase, instance_id):
                    self._fetcher.extract(archive, staging_dir)
                phase = "descriptor"
                with self._phase(phase, instance_id):
                    self._write_descriptor(staging_dir, tag)
                phase = "build"
                self._transition(instance_id, InstanceState.BUILDING_RUNNING)
                with self._phase(phase, instance_id):
                    self._build(instance_id, tag, port, staging_dir)
            except Exception as exc:
                self._transition(instance_id, InstanceState.FAILED, phase=phase, error=str(exc))
                if staging_dir is not None:
                    self._staging.discard(instance_id, staging_dir)
                if phase == "build":
                    self._remove_leftover(instance_id)
                logger.exception(
                    "project execution failed",
                    extra={"data": {"id": instance_id, "phase": phase}},
                )
                raise ExecutionError(instance_id, phase, exc) from exc

            handle = InstanceHandle.active(instance_id, port=port, runtime=tag)
            self._registry.put(handle.instance_id, handle.container_name)
            self._staging.adopt(instance_id, staging_dir)
            self._transition(instance_id, handle.state, container=handle.container_name)
            return RunResult(instance_id=instance_id, port=port)

    def stop(self, instance_id: str) -> bool:
        """Retire the instance for ``instance_id``; False when none was registered."""

        with self._tracer.start_as_current_span("sandbox.stop", attributes={"sandbox.id": instance_id}):
            stopped = self._retire(instance_id)
        if not stopped:
            logger.info("no active container to stop", extra={"data": {"id": instance_id}})
        return stopped

    def status(self, instance_id: str) -> StatusResult:
        """Probe the container CLI directly; the registry is not consulted."""

        container_name = container_name_for(instance_id)
        try:
            detail = self._containers.container_status(container_name)
        except (SandboxError, OSError) as exc:
            logger.warning(
                "failed to check container status",
                extra={"data": {"id": instance_id, "error": str(exc)}},
            )
            return StatusResult(instance_id, ContainerStatus.ERROR, f"Error checking status: {exc}")
        if detail:
            return StatusResult(instance_id, ContainerStatus.RUNNING, detail)
        return StatusResult(instance_id, ContainerStatus.STOPPED, "Container not running")

    def logs(
        self,
        instance_id: str,
        *,
        max_lines: int = DEFAULT_MAX_LINES,
        follow: bool = False,
        since: str = DEFAULT_SINCE,
    ) -> LogsResult:
        return self._log_retriever.logs(instance_id, max_lines=max_lines, follow=follow, since=since)

    def list_active(self) -> dict[str, str]:
        return self._registry.all()

    def shutdown(self) -> list[str]:
        """Retire every registered instance and delete all staging directories."""

        retired = []
        for instance_id in self._registry.all():
            self._retire(instance_id)
            retired.append(instance_id)
        leftovers = self._staging.release_all()
        logger.info(
            "sandbox orchestrator shut down",
            extra={"data": {"retired": retired, "staging_released": leftovers}},
        )
        return retired

    def _retire(self, instance_id: str) -> bool:
        container_name = self._registry.get(instance_id)
        if container_name is not None:
            self._transition(instance_id, InstanceState.STOPPING, container=container_name)
            try:
                self._containers.retire(container_name)
            except (SandboxError, OSError):
                logger.exception(
                    "failed to retire container; falling back to force removal",
                    extra={"data": {"id": instance_id, "container": container_name}},
                )
                self._force_remove(instance_id, container_name)
            finally:
                self._registry.remove(instance_id)
        self._staging.release(instance_id)
        if container_name is not None:
            self._transition(instance_id, InstanceState.NONE)
        return container_name is not None

    def _force_remove(self, instance_id: str, container_name: str) -> None:
        try:
            self._containers.force_remove(container_name)
        except (SandboxError, OSError):
            logger.exception(
                "force removal failed",
                extra={"data": {"id": instance_id, "container": container_name}},
            )

    def _remove_leftover(self, instance_id: str) -> None:
        # The build tool may have started the container before failing.
        self._force_remove(instance_id, container_name_for(instance_id))

    def _build(self, instance_id: str, tag: RuntimeTag, port: int, staging_dir: Path) -> None:
        args = self._build_tool.argv(instance_id, port=port, runtime=tag, staging_dir=staging_dir)

        def log_line(line: str) -> None:
            build_logger.info("%s", line, extra={"data": {"id": instance_id}})

        result = self._runner.run(
            args,
            timeout=self._build_timeout,
            cwd=self._build_tool.working_dir,
            line_consumer=log_line,
        )
        logger.info(
            "build tool finished",
            extra={"data": {"id": instance_id, "duration_s": round(result.duration_s, 3)}},
        )

    @contextmanager
    def _phase(self, phase: str, instance_id: str) -> Iterator[None]:
        with self._tracer.start_as_current_span(f"sandbox.{phase}", attributes={"sandbox.id": instance_id}):
            yield

    @staticmethod
    def _transition(instance_id: str, state: InstanceState, **data: object) -> None:
        logger.info(
            "sandbox state changed",
            extra={"data": {"id": instance_id, "state": state.value, **data}},
        )


__all__ = ["DEFAULT_BUILD_TIMEOUT_SECONDS", "DescriptorWriter", "ExecutionOrchestrator"]
