"""Bounded invocations of the container CLI for sandbox containers."""

from __future__ import annotations

import logging

from sandbox_orchestrator.errors import CommandTimeoutError
from sandbox_orchestrator.infrastructure.process.runner import CommandRunner

logger = logging.getLogger("sandbox_orchestrator.docker")


class DockerControl:
    """Stops, removes and inspects sandbox containers using the Docker CLI.

    Every call goes through the injected ``CommandRunner`` with its own
    deadline. Name filters passed to ``docker ps`` match substrings, so callers
    always get exact-name matches back.
    """

    def __init__(
        self,
        runner: CommandRunner,
        *,
        docker_binary: str = "docker",
        stop_timeout_seconds: float = 30.0,
        remove_timeout_seconds: float = 10.0,
        probe_timeout_seconds: float = 5.0,
    ) -> None:
        self._runner = runner
        self._docker = docker_binary
        self._stop_timeout = stop_timeout_seconds
        self._remove_timeout = remove_timeout_seconds
        self._probe_timeout = probe_timeout_seconds

    @property
    def docker_binary(self) -> str:
        return self._docker

    def retire(self, container_name: str) -> None:
        """Stop, remove and untag ``container_name``.

        ``docker stop`` is allowed to fail or time out; ``docker rm -f`` must
        succeed or the error propagates; image removal is best effort.
        """

        logger.info("retiring sandbox container", extra={"data": {"container": container_name}})
        try:
            result = self._runner.run(
                [self._docker, "stop", container_name],
                timeout=self._stop_timeout,
                check=False,
            )
            if result.exit_code != 0:
                logger.warning(
                    "docker stop failed (ignored): exit_code=%s",
                    result.exit_code,
                    extra={"data": {"container": container_name, "output": result.output.strip()}},
                )
        except CommandTimeoutError:
            logger.warning(
                "docker stop timed out after %ss; forcing removal",
                self._stop_timeout,
                extra={"data": {"container": container_name}},
            )

        self._runner.run([self._docker, "rm", "-f", container_name], timeout=self._remove_timeout)
        self._remove_image(container_name)

    def force_remove(self, container_name: str) -> list[str]:
        """Remove every container whose name is exactly ``container_name``."""

        listing = self._runner.run(
            [
                self._docker,
                "ps",
                "-a",
                "--filter",
                f"name={container_name}",
                "--format",
                "{{.ID}}\t{{.Names}}",
            ],
            timeout=self._probe_timeout,
        )
        ids = [
            container_id
            for container_id, name in _rows(listing.output)
            if name == container_name
        ]
        if not ids:
            return []
        self._runner.run([self._docker, "rm", "-f", *ids], timeout=self._remove_timeout)
        logger.warning(
            "force removed sandbox container",
            extra={"data": {"container": container_name, "ids": ids}},
        )
        return ids

    def container_status(self, container_name: str) -> str | None:
        """Return the CLI status text of a running container, or None."""

        listing = self._runner.run(
            [
                self._docker,
                "ps",
                "--filter",
                f"name={container_name}",
                "--format",
                "{{.Names}}\t{{.Status}}",
            ],
            timeout=self._probe_timeout,
        )
        for name, status in _rows(listing.output):
            if name == container_name and status:
                return status
        return None

    def container_exists(self, container_name: str) -> bool:
        listing = self._runner.run(
            [
                self._docker,
                "ps",
                "-a",
                "--filter",
                f"name={container_name}",
                "--format",
                "{{.Names}}",
            ],
            timeout=self._probe_timeout,
        )
        return any(line.strip() == container_name for line in listing.output.splitlines())

    def logs_args(self, container_name: str, *, max_lines: int, follow: bool, since: str) -> list[str]:
        args = [self._docker, "logs"]
        if max_lines > 0:
            args.extend(["--tail", str(max_lines)])
        if follow:
            args.append("--follow")
        if since and since != "all":
            args.extend(["--since", since])
        args.append("--timestamps")
        args.append(container_name)
        return args

    def _remove_image(self, image: str) -> None:
        try:
            result = self._runner.run(
                [self._docker, "rmi", "-f", image],
                timeout=self._remove_timeout,
                check=False,
            )
        except (CommandTimeoutError, OSError) as exc:
            logger.warning(
                "docker rmi failed (ignored): %s",
                exc,
                extra={"data": {"image": image}},
            )
            return
        if result.exit_code != 0:
            logger.debug(
                "docker rmi returned nonzero (ignored)",
                extra={"data": {"image": image, "exit_code": result.exit_code}},
            )


def _rows(output: str) -> list[tuple[str, str]]:
    rows = []
    for line in output.splitlines():
        if not line.strip():
            continue
        first, _, rest = line.partition("\t")
        rows.append((first.strip(), rest.strip()))
    return rows


__all__ = ["DockerControl"]
