"""Retrieval of project archives into a staging directory."""

from __future__ import annotations

import io
import logging
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Final

import httpx

from sandbox_orchestrator.errors import FetchError
from sandbox_orchestrator.infrastructure.artifacts.archive import extract_archive, normalize_layout

logger = logging.getLogger("sandbox_orchestrator.artifacts")

ARCHIVE_FILENAME: Final[str] = "project.zip"
_CHUNK_SIZE: Final[int] = 64 * 1024


@dataclass(frozen=True, slots=True)
class RemoteArtifact:
    """Archive downloaded over HTTP(S)."""

    url: str

    def describe(self) -> str:
        return self.url


@dataclass(frozen=True, slots=True)
class InlineArtifact:
    """Archive supplied by the caller as bytes or a readable binary stream."""

    data: bytes | BinaryIO
    filename: str | None = None

    def describe(self) -> str:
        return self.filename or "<inline upload>"


ArtifactSource = RemoteArtifact | InlineArtifact


class ArtifactFetcher:
    """Puts a project archive into a staging directory and unpacks it."""

    def __init__(
        self,
        *,
        timeout_seconds: float = 60.0,
        max_bytes: int | None = None,
        max_extracted_bytes: int | None = None,
        max_entries: int | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        if timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive")
        if max_bytes is not None and max_bytes <= 0:
            raise ValueError("max_bytes must be positive when set")
        self._timeout = timeout_seconds
        self._max_bytes = max_bytes
        self._max_extracted_bytes = max_extracted_bytes
        self._max_entries = max_entries
        self._transport = transport

    def fetch(self, source: ArtifactSource, dest_dir: Path) -> Path:
        """Write the archive to ``dest_dir/project.zip`` and return its path."""

        target = dest_dir / ARCHIVE_FILENAME
        if isinstance(source, RemoteArtifact):
            self._download(source.url, target)
        elif isinstance(source, InlineArtifact):
            self._store(source, target)
        else:
            raise TypeError(f"unsupported artifact source: {type(source).__name__}")
        logger.info(
            "fetched project archive",
            extra={"data": {"source": source.describe(), "path": str(target), "bytes": target.stat().st_size}},
        )
        return target

    def extract(self, archive_path: Path, dest_dir: Path) -> list[Path]:
        """Unpack ``archive_path`` into ``dest_dir`` and flatten a wrapping project folder."""

        written = extract_archive(
            archive_path,
            dest_dir,
            max_total_bytes=self._max_extracted_bytes,
            max_entries=self._max_entries,
        )
        normalize_layout(dest_dir)
        return written

    def _download(self, url: str, target: Path) -> None:
        logger.debug("downloading project archive", extra={"data": {"url": url}})
        try:
            with self._client() as client, client.stream("GET", url) as response:
                if not response.is_success:
                    raise FetchError(
                        f"download failed with status {response.status_code}: {url}",
                        source=url,
                    )
                self._write(response.iter_bytes(_CHUNK_SIZE), target, source=url)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise FetchError(f"failed to download {url}: {exc}", source=url) from exc

    def _store(self, source: InlineArtifact, target: Path) -> None:
        stream = io.BytesIO(source.data) if isinstance(source.data, bytes) else source.data
        self._write(_read_chunks(stream), target, source=source.describe())

    def _write(self, chunks: Iterable[bytes], target: Path, *, source: str) -> None:
        received = 0
        try:
            with target.open("wb") as fh:
                for chunk in chunks:
                    received += len(chunk)
                    if self._max_bytes is not None and received > self._max_bytes:
                        raise FetchError(
                            f"archive exceeds the {self._max_bytes} byte limit: {source}",
                            source=source,
                        )
                    fh.write(chunk)
        except OSError as exc:
            raise FetchError(f"failed to write {target}: {exc}", source=source) from exc

    def _client(self) -> httpx.Client:
        return httpx.Client(
            timeout=self._timeout,
            follow_redirects=True,
            transport=self._transport,
        )


def _read_chunks(stream: BinaryIO) -> Iterator[bytes]:
    while chunk := stream.read(_CHUNK_SIZE):
        yield chunk


__all__ = [
    "ARCHIVE_FILENAME",
    "ArtifactFetcher",
    "ArtifactSource",
    "InlineArtifact",
    "RemoteArtifact",
]
