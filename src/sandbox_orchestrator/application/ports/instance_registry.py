"""Port describing the bookkeeping of active sandbox instances."""

from __future__ import annotations

from typing import Protocol


class InstanceRegistryPort(Protocol):
    """Maps project identifiers to the container currently serving them."""

    def put(self, instance_id: str, container_name: str) -> None:
        """Record ``container_name`` as the active container for ``instance_id``."""

    def get(self, instance_id: str) -> str | None:
        """Return the active container name for ``instance_id``, if any."""

    def remove(self, instance_id: str) -> str | None:
        """Forget ``instance_id``; absent identifiers are a no-op."""

    def all(self) -> dict[str, str]:
        """Return a snapshot copy of every tracked instance."""


__all__ = ["InstanceRegistryPort"]
