"""Sandbox instance identity and lifecycle primitives."""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Final

from sandbox_orchestrator.domain.runtime import RuntimeTag
from sandbox_orchestrator.errors import InvalidIdentifierError

CONTAINER_NAME_PREFIX: Final[str] = "sandbox-"
_IDENTIFIER_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.-]*$")
_MAX_IDENTIFIER_LENGTH = 128


class InstanceState(str, Enum):
    """Lifecycle states of one sandboxed project."""

    NONE = "none"
    STAGING = "staging"
    BUILDING_RUNNING = "building_running"
    ACTIVE = "active"
    STOPPING = "stopping"
    FAILED = "failed"


def container_name_for(instance_id: str) -> str:
    return f"{CONTAINER_NAME_PREFIX}{instance_id}"


def validate_instance_id(instance_id: str) -> str:
    """Return ``instance_id`` unchanged when it can name a container."""

    if not instance_id:
        raise InvalidIdentifierError("project id must be provided")
    if len(instance_id) > _MAX_IDENTIFIER_LENGTH:
        raise InvalidIdentifierError(
            f"project id exceeds {_MAX_IDENTIFIER_LENGTH} characters: {instance_id[:32]}..."
        )
    if not _IDENTIFIER_PATTERN.match(instance_id):
        raise InvalidIdentifierError(f"project id contains unsupported characters: {instance_id!r}")
    return instance_id


def validate_port(port: int) -> int:
    if not 1 <= port <= 65535:
        raise InvalidIdentifierError(f"port must be between 1 and 65535, got {port}")
    return port


@dataclass(frozen=True, slots=True)
class InstanceHandle:
    """A running sandbox instance as tracked by the orchestrator."""

    instance_id: str
    container_name: str
    port: int
    runtime: RuntimeTag
    state: InstanceState = InstanceState.ACTIVE

    @classmethod
    def active(cls, instance_id: str, *, port: int, runtime: RuntimeTag) -> InstanceHandle:
        return cls(
            instance_id=instance_id,
            container_name=container_name_for(instance_id),
            port=port,
            runtime=runtime,
        )


__all__ = [
    "CONTAINER_NAME_PREFIX",
    "InstanceHandle",
    "InstanceState",
    "container_name_for",
    "validate_instance_id",
    "validate_port",
]
