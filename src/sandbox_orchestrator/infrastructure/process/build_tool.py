"""The external build-and-run script invoked for each project."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from sandbox_orchestrator.domain.runtime import RuntimeTag
from sandbox_orchestrator.errors import ConfigurationError


@dataclass(frozen=True, slots=True)
class BuildTool:
    """Locates the build script and builds its argument vector.

    The script takes ``<id> <port> <runtime> <staging_path>`` and is run from
    ``working_dir`` through ``shell``.
    """

    script: Path
    working_dir: Path = Path(".")
    shell: str = "bash"
    trace: bool = True

    @property
    def script_path(self) -> Path:
        if self.script.is_absolute():
            return self.script
        return self.working_dir / self.script

    def verify(self) -> None:
        """Raise ``ConfigurationError`` when the script cannot be found."""

        path = self.script_path
        if not path.is_file():
            raise ConfigurationError(f"build script not found: {path.resolve()}")

    def argv(self, instance_id: str, *, port: int, runtime: RuntimeTag, staging_dir: Path) -> list[str]:
        args = [self.shell]
        if self.trace:
            args.append("-x")
        args.extend([str(self.script), instance_id, str(port), runtime.value, str(staging_dir)])
        return args


__all__ = ["BuildTool"]
