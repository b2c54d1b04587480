"""Runtime wiring for the sandbox orchestrator service."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass

import httpx

from sandbox_orchestrator.application.orchestrator import ExecutionOrchestrator
from sandbox_orchestrator.config.sandbox import SandboxSettings
from sandbox_orchestrator.infrastructure.artifacts.fetcher import ArtifactFetcher
from sandbox_orchestrator.infrastructure.docker.control import DockerControl
from sandbox_orchestrator.infrastructure.docker.logs import LogRetriever
from sandbox_orchestrator.infrastructure.http.routes import SandboxRouteDeps
from sandbox_orchestrator.infrastructure.process.build_tool import BuildTool
from sandbox_orchestrator.infrastructure.process.runner import CommandRunner, ProcessRunner
from sandbox_orchestrator.infrastructure.state.instance_registry import InMemoryInstanceRegistry
from sandbox_orchestrator.infrastructure.state.staging import StagingArea
from sandbox_orchestrator.runtime.settings import Settings

logger = logging.getLogger("sandbox_orchestrator.runtime")


@dataclass(frozen=True, slots=True)
class RuntimeContext:
    """Aggregated runtime components for the sandbox service."""

    settings: Settings
    registry: InMemoryInstanceRegistry
    staging: StagingArea
    runner: CommandRunner
    containers: DockerControl
    orchestrator: ExecutionOrchestrator
    route_deps_provider: Callable[[], SandboxRouteDeps]


def build_runtime(
    settings: Settings | None = None,
    *,
    runner: CommandRunner | None = None,
    transport: httpx.BaseTransport | None = None,
) -> RuntimeContext:
    """Construct the object graph; raises ``ConfigurationError`` when the build tool is missing."""

    resolved = settings or Settings.load()
    sandbox = resolved.sandbox
    logger.info(
        "building sandbox runtime",
        extra={
            "data": {
                "build_script": str(sandbox.build_script),
                "working_dir": str(sandbox.working_dir),
                "docker_binary": sandbox.docker_binary,
            }
        },
    )

    build_tool = create_build_tool(sandbox)
    build_tool.verify()

    command_runner = runner or ProcessRunner(drain_grace_seconds=sandbox.drain_grace_seconds)
    registry = InMemoryInstanceRegistry()
    staging = StagingArea(root=sandbox.staging_root)
    containers = DockerControl(
        command_runner,
        docker_binary=sandbox.docker_binary,
        stop_timeout_seconds=sandbox.stop_timeout_seconds,
        remove_timeout_seconds=sandbox.remove_timeout_seconds,
        probe_timeout_seconds=sandbox.probe_timeout_seconds,
    )
    orchestrator = ExecutionOrchestrator(
        registry=registry,
        staging=staging,
        fetcher=ArtifactFetcher(
            timeout_seconds=sandbox.download_timeout_seconds,
            max_bytes=sandbox.max_archive_bytes,
            max_extracted_bytes=sandbox.max_extracted_bytes,
            max_entries=sandbox.max_archive_entries,
            transport=transport,
        ),
        containers=containers,
        log_retriever=LogRetriever(
            command_runner,
            containers,
            timeout_seconds=sandbox.logs_timeout_seconds,
        ),
        runner=command_runner,
        build_tool=build_tool,
        build_timeout_seconds=sandbox.build_timeout_seconds,
    )
    route_deps = SandboxRouteDeps(orchestrator=orchestrator)

    return RuntimeContext(
        settings=resolved,
        registry=registry,
        staging=staging,
        runner=command_runner,
        containers=containers,
        orchestrator=orchestrator,
        route_deps_provider=lambda: route_deps,
    )


def create_build_tool(settings: SandboxSettings) -> BuildTool:
    return BuildTool(
        script=settings.build_script,
        working_dir=settings.working_dir,
        shell=settings.shell_binary,
    )


def close_runtime_resources(runtime: RuntimeContext) -> None:
    """Retire every running sandbox and delete staging directories."""

    retired = runtime.orchestrator.shutdown()
    logger.info("sandbox runtime closed", extra={"data": {"retired": len(retired)}})


__all__ = ["RuntimeContext", "build_runtime", "close_runtime_resources", "create_build_tool"]
