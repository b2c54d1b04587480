"""Supported project runtimes."""

from __future__ import annotations

from enum import Enum

from sandbox_orchestrator.errors import UnsupportedRuntimeError


class RuntimeTag(str, Enum):
    """Closed set of project runtimes the sandbox can build."""

    SPRING = "spring"
    REACT = "react"
    FASTAPI = "fastapi"

    @classmethod
    def parse(cls, value: RuntimeTag | str) -> RuntimeTag:
        """Return the tag for ``value`` or raise ``UnsupportedRuntimeError``."""

        if isinstance(value, RuntimeTag):
            return value
        try:
            return cls(value)
        except ValueError as exc:
            raise UnsupportedRuntimeError(str(value)) from exc

    @property
    def container_port(self) -> int:
        return _CONTAINER_PORTS[self]


_CONTAINER_PORTS: dict[RuntimeTag, int] = {
    RuntimeTag.SPRING: 8080,
    RuntimeTag.REACT: 3000,
    RuntimeTag.FASTAPI: 8000,
}


__all__ = ["RuntimeTag"]
