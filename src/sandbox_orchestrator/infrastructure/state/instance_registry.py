"""In-memory implementation of the instance registry port."""

from __future__ import annotations

from threading import Lock

from sandbox_orchestrator.application.ports.instance_registry import InstanceRegistryPort


class InMemoryInstanceRegistry(InstanceRegistryPort):
    """Stores active container names in memory for the lifetime of the process."""

    def __init__(self) -> None:
        self._containers: dict[str, str] = {}
        self._lock = Lock()

    def put(self, instance_id: str, container_name: str) -> None:
        with self._lock:
            self._containers[instance_id] = container_name

    def get(self, instance_id: str) -> str | None:
        with self._lock:
            return self._containers.get(instance_id)

    def remove(self, instance_id: str) -> str | None:
        with self._lock:
            return self._containers.pop(instance_id, None)

    def all(self) -> dict[str, str]:
        with self._lock:
            return dict(self._containers)

    def __len__(self) -> int:
        with self._lock:
            return len(self._containers)


__all__ = ["InMemoryInstanceRegistry"]
