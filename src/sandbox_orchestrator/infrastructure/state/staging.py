"""Per-run staging directories owned by the orchestrator."""

from __future__ import annotations

import logging
import shutil
import tempfile
from pathlib import Path
from threading import Lock

logger = logging.getLogger("sandbox_orchestrator.staging")


class StagingArea:
    """Creates and deletes the temporary build context of each run attempt.

    Every attempt gets a fresh directory named ``sandbox-<id>-<random>``. A
    directory belongs to its ``run`` call until that run registers an instance
    and hands it over with ``adopt``; only adopted directories are visible to
    ``release`` and ``release_all``. Concurrent runs for one identifier may each
    adopt a directory, so all of them are kept until released.
    """

    def __init__(self, *, root: Path | None = None) -> None:
        self._root = root.resolve() if root is not None else None
        self._dirs: dict[str, list[Path]] = {}
        self._lock = Lock()

    def create(self, instance_id: str) -> Path:
        """Make a fresh untracked directory for one run attempt."""

        if self._root is not None:
            self._root.mkdir(parents=True, exist_ok=True)
        path = Path(tempfile.mkdtemp(prefix=f"sandbox-{instance_id}-", dir=self._root))
        logger.debug("created staging dir", extra={"data": {"id": instance_id, "path": str(path)}})
        return path

    def adopt(self, instance_id: str, path: Path) -> None:
        """Track ``path`` as backing the registered instance for ``instance_id``."""

        with self._lock:
            self._dirs.setdefault(instance_id, []).append(path)

    def get(self, instance_id: str) -> Path | None:
        """Most recently adopted directory for ``instance_id``."""

        with self._lock:
            paths = self._dirs.get(instance_id)
            return paths[-1] if paths else None

    def release(self, instance_id: str) -> list[Path]:
        """Forget and delete every adopted directory for ``instance_id``."""

        with self._lock:
            paths = self._dirs.pop(instance_id, [])
        for path in paths:
            _delete_tree(instance_id, path)
        return paths

    def discard(self, instance_id: str, path: Path) -> None:
        """Delete the directory of a failed attempt; it was never adopted."""

        _delete_tree(instance_id, path)

    def release_all(self) -> list[str]:
        with self._lock:
            tracked = list(self._dirs.items())
            self._dirs.clear()
        for instance_id, paths in tracked:
            for path in paths:
                _delete_tree(instance_id, path)
        return [instance_id for instance_id, _ in tracked]

    def tracked(self) -> dict[str, list[Path]]:
        with self._lock:
            return {instance_id: list(paths) for instance_id, paths in self._dirs.items()}


def _delete_tree(instance_id: str, path: Path) -> None:
    if not path.exists():
        return
    try:
        shutil.rmtree(path)
    except OSError as exc:
        logger.warning(
            "failed to delete staging dir %s",
            path,
            extra={"data": {"id": instance_id, "path": str(path), "error": str(exc)}},
        )
        return
    logger.info("deleted staging dir", extra={"data": {"id": instance_id, "path": str(path)}})


__all__ = ["StagingArea"]
