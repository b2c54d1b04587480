"""Container log retrieval."""

from __future__ import annotations

import logging

from sandbox_orchestrator.domain.instance import container_name_for
from sandbox_orchestrator.domain.results import LogsResult, LogsStatus
from sandbox_orchestrator.infrastructure.docker.control import DockerControl
from sandbox_orchestrator.infrastructure.process.runner import CommandRunner

logger = logging.getLogger("sandbox_orchestrator.logs")

CONTAINER_NOT_FOUND_STDERR = "Container not found"
DEFAULT_MAX_LINES = 50
DEFAULT_SINCE = "all"


class LogRetriever:
    """Reads the stdout and stderr of a sandbox container.

    A missing container is a normal result, not an error. A nonzero
    ``docker logs`` exit yields an ``ERROR`` result carrying its stderr. A call
    that outlives ``timeout_seconds`` is killed and raises
    ``CommandTimeoutError`` with the partial output, including for ``follow``.
    """

    def __init__(
        self,
        runner: CommandRunner,
        control: DockerControl,
        *,
        timeout_seconds: float = 30.0,
    ) -> None:
        self._runner = runner
        self._control = control
        self._timeout = timeout_seconds

    def logs(
        self,
        instance_id: str,
        *,
        max_lines: int = DEFAULT_MAX_LINES,
        follow: bool = False,
        since: str = DEFAULT_SINCE,
    ) -> LogsResult:
        container_name = container_name_for(instance_id)
        if not self._control.container_exists(container_name):
            logger.info("logs requested for missing container", extra={"data": {"id": instance_id}})
            return LogsResult(
                instance_id=instance_id,
                container_name=container_name,
                found=False,
                status=LogsStatus.CONTAINER_NOT_FOUND,
                stdout="",
                stderr=CONTAINER_NOT_FOUND_STDERR,
                exit_code=-1,
                message=f"No container found for UUID: {instance_id}",
            )

        args = self._control.logs_args(container_name, max_lines=max_lines, follow=follow, since=since)
        captured = self._runner.capture(args, timeout=self._timeout)
        if captured.exit_code != 0:
            logger.warning(
                "docker logs failed",
                extra={"data": {"id": instance_id, "exit_code": captured.exit_code}},
            )
            return LogsResult(
                instance_id=instance_id,
                container_name=container_name,
                found=True,
                status=LogsStatus.ERROR,
                stdout=captured.stdout,
                stderr=captured.stderr,
                exit_code=captured.exit_code,
                message=f"docker logs exited with {captured.exit_code}: {captured.stderr.strip()}",
            )
        result = LogsResult(
            instance_id=instance_id,
            container_name=container_name,
            found=True,
            status=LogsStatus.SUCCESS,
            stdout=captured.stdout,
            stderr=captured.stderr,
            exit_code=captured.exit_code,
        )
        logger.debug(
            "retrieved container logs",
            extra={
                "data": {
                    "id": instance_id,
                    "exit_code": captured.exit_code,
                    "lines": result.line_count,
                }
            },
        )
        return result


__all__ = ["CONTAINER_NOT_FOUND_STDERR", "DEFAULT_MAX_LINES", "DEFAULT_SINCE", "LogRetriever"]
