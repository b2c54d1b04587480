from __future__ import annotations

import io
import threading
import zipfile
from collections.abc import Callable, Mapping, Sequence
from pathlib import Path

import pytest

from sandbox_orchestrator.errors import CommandTimeoutError, ExternalToolError
from sandbox_orchestrator.infrastructure.process.runner import (
    CapturedOutput,
    CommandResult,
    CommandRunner,
    LineConsumer,
)


class FakeDockerCli(CommandRunner):
    """Simulates the Docker CLI and the build script against an in-memory container table."""

    def __init__(self) -> None:
        self.containers: dict[str, str] = {}
        self.commands: list[list[str]] = []
        self.build_dirs: list[Path] = []
        self.build_fails = False
        self.build_times_out = False
        self.remove_fails = False
        self.cli_missing = False
        self.build_started = threading.Event()
        self.build_gate: threading.Event | None = None
        self.logs_stdout = "2024-01-01T00:00:00Z started\n2024-01-01T00:00:01Z listening\n"
        self.logs_stderr = ""

    def run(
        self,
        args: Sequence[str],
        *,
        timeout: float,
        cwd: Path | None = None,
        check: bool = True,
        line_consumer: LineConsumer | None = None,
    ) -> CommandResult:
        argv = list(args)
        self.commands.append(argv)
        if argv[0] == "bash":
            exit_code, output = self._build(argv, line_consumer)
        else:
            exit_code, output = self._docker(argv)
        if check and exit_code != 0:
            raise ExternalToolError(argv, exit_code=exit_code, output=output)
        return CommandResult(args=tuple(argv), exit_code=exit_code, output=output, duration_s=0.01)

    def capture(self, args: Sequence[str], *, timeout: float, cwd: Path | None = None) -> CapturedOutput:
        argv = list(args)
        self.commands.append(argv)
        if self.cli_missing:
            raise FileNotFoundError(argv[0])
        return CapturedOutput(
            args=tuple(argv),
            exit_code=0,
            stdout=self.logs_stdout,
            stderr=self.logs_stderr,
            duration_s=0.01,
        )

    def commands_for(self, subcommand: str) -> list[list[str]]:
        return [cmd for cmd in self.commands if len(cmd) > 1 and cmd[1] == subcommand]

    def _build(self, argv: list[str], line_consumer: LineConsumer | None) -> tuple[int, str]:
        instance_id, _port, _runtime, staging = argv[-4:]
        staging_dir = Path(staging)
        self.build_dirs.append(staging_dir)
        self.build_started.set()
        if self.build_gate is not None:
            self.build_gate.wait(timeout=10)
        if self.build_times_out:
            raise CommandTimeoutError(argv, timeout=300, output="Step 1/9\n")
        if self.build_fails:
            return 1, "Step 1/9\nERROR: build failed\n"
        if not (staging_dir / "Dockerfile").is_file():
            return 1, "no Dockerfile\n"
        lines = ["Step 1/9 : FROM base", f"started sandbox-{instance_id}"]
        if line_consumer is not None:
            for line in lines:
                line_consumer(line)
        self.containers[f"sandbox-{instance_id}"] = "Up 1 second"
        return 0, "\n".join(lines) + "\n"

    def _docker(self, argv: list[str]) -> tuple[int, str]:
        if self.cli_missing:
            raise FileNotFoundError(argv[0])
        subcommand = argv[1]
        if subcommand == "stop":
            name = argv[2]
            if name not in self.containers:
                return 1, f"Error: No such container: {name}\n"
            self.containers[name] = "Exited (0) 1 second ago"
            return 0, name + "\n"
        if subcommand == "rm":
            if self.remove_fails:
                self.remove_fails = False
                return 1, "Error: removal already in progress\n"
            for target in argv[3:]:
                self.containers.pop(target.removeprefix("id-"), None)
            return 0, ""
        if subcommand == "rmi":
            return 0, ""
        if subcommand == "ps":
            return 0, self._ps(argv)
        return 1, f"unknown command: {subcommand}\n"

    def _ps(self, argv: list[str]) -> str:
        pattern = argv[argv.index("--filter") + 1].removeprefix("name=")
        fmt = argv[argv.index("--format") + 1]
        show_all = "-a" in argv
        rows = []
        for name, status in list(self.containers.items()):
            if pattern not in name:
                continue
            if not show_all and not status.startswith("Up"):
                continue
            if "{{.ID}}" in fmt:
                rows.append(f"id-{name}\t{name}")
            elif "{{.Status}}" in fmt:
                rows.append(f"{name}\t{status}")
            else:
                rows.append(name)
        return "".join(f"{row}\n" for row in rows)


def zip_bytes(entries: Mapping[str, bytes | str]) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        for name, content in entries.items():
            archive.writestr(name, content)
    return buffer.getvalue()


@pytest.fixture
def fake_cli() -> FakeDockerCli:
    return FakeDockerCli()


@pytest.fixture
def make_zip() -> Callable[[Mapping[str, bytes | str]], bytes]:
    return zip_bytes


@pytest.fixture
def build_script(tmp_path: Path) -> Path:
    script = tmp_path / "tool" / "build_and_run.sh"
    script.parent.mkdir()
    script.write_text("#!/usr/bin/env bash\nexit 0\n", encoding="utf-8")
    return script


@pytest.fixture
def staging_root(tmp_path: Path) -> Path:
    root = tmp_path / "staging"
    root.mkdir()
    return root

