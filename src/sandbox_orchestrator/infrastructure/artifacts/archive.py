"""Safe extraction of uploaded project archives."""

from __future__ import annotations

import logging
import shutil
import stat
import zipfile
import zlib
from pathlib import Path
from typing import Final

from sandbox_orchestrator.errors import ArchiveError, PathTraversalError

logger = logging.getLogger("sandbox_orchestrator.artifacts")

_EXECUTABLE_SUFFIXES: Final[tuple[str, ...]] = ("gradlew", ".sh")
_EXECUTABLE_BITS: Final[int] = stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH
_PROJECT_MARKERS: Final[frozenset[str]] = frozenset(
    {"main.py", "requirements.txt", "package.json", "build.gradle", "build.gradle.kts", "pom.xml", "gradlew"}
)


def is_os_metadata(name: str) -> bool:
    """Return True for resource forks and Finder files zipped up by macOS."""

    return (
        "__MACOSX" in name
        or ".DS_Store" in name
        or "/._" in name
        or name.startswith("._")
    )


def extract_archive(
    archive_path: Path,
    dest_dir: Path,
    *,
    max_total_bytes: int | None = None,
    max_entries: int | None = None,
    delete_archive: bool = True,
) -> list[Path]:
    """Extract ``archive_path`` into ``dest_dir`` and return the written paths.

    All entries are checked against ``dest_dir`` and the declared size and entry
    limits before anything is written, so a single escaping entry or an oversized
    archive rejects the whole extraction. Any entry failure aborts the
    extraction. The archive is deleted once extraction succeeds.
    """

    root = dest_dir.resolve()
    written: list[Path] = []
    try:
        with zipfile.ZipFile(archive_path) as archive:
            plan = [
                (info, _resolve_entry(root, info))
                for info in archive.infolist()
                if not is_os_metadata(info.filename)
            ]
            _check_limits(archive_path, plan, max_total_bytes=max_total_bytes, max_entries=max_entries)
            for info, target in plan:
                _extract_entry(archive, info, target)
                written.append(target)
    except zipfile.BadZipFile as exc:
        raise ArchiveError(f"not a valid zip archive: {archive_path.name}") from exc
    except (OSError, EOFError, RuntimeError, NotImplementedError, zlib.error) as exc:
        raise ArchiveError(f"failed to extract {archive_path.name}: {exc}") from exc

    if delete_archive:
        archive_path.unlink(missing_ok=True)
    logger.debug(
        "extracted project archive",
        extra={"data": {"archive": str(archive_path), "entries": len(written)}},
    )
    return written


def normalize_layout(dest_dir: Path) -> bool:
    """Hoist the contents of a lone top-level project folder into ``dest_dir``.

    Projects zipped as a folder unpack to ``dest_dir/<folder>/...``; the build
    descriptor must sit beside the sources, so the folder is flattened. Only a
    folder holding a project marker file (``main.py``, ``package.json``,
    ``build.gradle``, ``pom.xml`` and the like) is hoisted; any other layout is
    left as uploaded. Returns True when the layout changed.
    """

    children = [child for child in dest_dir.iterdir() if not is_os_metadata(child.name)]
    if len(children) != 1 or not children[0].is_dir() or children[0].is_symlink():
        return False
    if not any((children[0] / marker).is_file() for marker in _PROJECT_MARKERS):
        return False

    wrapper = children[0]
    holding = dest_dir / f".{wrapper.name}.hoist"
    wrapper.rename(holding)
    for item in holding.iterdir():
        item.rename(dest_dir / item.name)
    holding.rmdir()
    logger.debug("flattened project folder", extra={"data": {"folder": wrapper.name}})
    return True


def _check_limits(
    archive_path: Path,
    plan: list[tuple[zipfile.ZipInfo, Path]],
    *,
    max_total_bytes: int | None,
    max_entries: int | None,
) -> None:
    if max_entries is not None and len(plan) > max_entries:
        raise ArchiveError(f"{archive_path.name} has {len(plan)} entries, limit is {max_entries}")
    # Reads stop at each entry's declared file_size, so the declared total bounds what is written.
    total = sum(info.file_size for info, _ in plan)
    if max_total_bytes is not None and total > max_total_bytes:
        raise ArchiveError(f"{archive_path.name} expands to {total} bytes, limit is {max_total_bytes}")


def _resolve_entry(root: Path, info: zipfile.ZipInfo) -> Path:
    target = (root / info.filename).resolve()
    if root in target.parents or (info.is_dir() and target == root):
        return target
    raise PathTraversalError(info.filename)


def _extract_entry(archive: zipfile.ZipFile, info: zipfile.ZipInfo, target: Path) -> None:
    if info.is_dir():
        target.mkdir(parents=True, exist_ok=True)
        return
    target.parent.mkdir(parents=True, exist_ok=True)
    with archive.open(info) as src, target.open("wb") as dst:
        shutil.copyfileobj(src, dst)
    if info.filename.endswith(_EXECUTABLE_SUFFIXES):
        target.chmod(target.stat().st_mode | _EXECUTABLE_BITS)
        logger.debug("set executable permission", extra={"data": {"entry": info.filename}})


__all__ = ["extract_archive", "is_os_metadata", "normalize_layout"]
