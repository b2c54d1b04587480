from __future__ import annotations

import io
from pathlib import Path

import httpx
import pytest

from sandbox_orchestrator.errors import ArchiveError, FetchError
from sandbox_orchestrator.infrastructure.artifacts.fetcher import (
    ARCHIVE_FILENAME,
    ArtifactFetcher,
    InlineArtifact,
    RemoteArtifact,
)


def _fetcher(handler, **kwargs) -> ArtifactFetcher:
    return ArtifactFetcher(transport=httpx.MockTransport(handler), **kwargs)


def test_downloads_remote_archive(tmp_path: Path) -> None:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, content=b"PK-archive-bytes")

    path = _fetcher(handler).fetch(RemoteArtifact("https://files.test/project.zip"), tmp_path)

    assert path == tmp_path / ARCHIVE_FILENAME
    assert path.read_bytes() == b"PK-archive-bytes"
    assert requests[0].method == "GET"
    assert str(requests[0].url) == "https://files.test/project.zip"


def test_follows_redirects(tmp_path: Path) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/old.zip":
            return httpx.Response(302, headers={"location": "https://files.test/new.zip"})
        return httpx.Response(200, content=b"moved")

    path = _fetcher(handler).fetch(RemoteArtifact("https://files.test/old.zip"), tmp_path)

    assert path.read_bytes() == b"moved"


def test_overwrites_existing_archive(tmp_path: Path) -> None:
    (tmp_path / ARCHIVE_FILENAME).write_bytes(b"stale content that is longer")

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=b"fresh")

    path = _fetcher(handler).fetch(RemoteArtifact("https://files.test/p.zip"), tmp_path)

    assert path.read_bytes() == b"fresh"


def test_non_success_status_raises_fetch_error(tmp_path: Path) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404, text="missing")

    with pytest.raises(FetchError) as excinfo:
        _fetcher(handler).fetch(RemoteArtifact("https://files.test/missing.zip"), tmp_path)

    assert excinfo.value.source == "https://files.test/missing.zip"
    assert "404" in str(excinfo.value)


def test_transport_error_raises_fetch_error(tmp_path: Path) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(FetchError) as excinfo:
        _fetcher(handler).fetch(RemoteArtifact("https://files.test/p.zip"), tmp_path)

    assert isinstance(excinfo.value.__cause__, httpx.ConnectError)


def test_archive_size_limit_is_enforced(tmp_path: Path) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=b"x" * 2048)

    with pytest.raises(FetchError, match="byte limit"):
        _fetcher(handler, max_bytes=1024).fetch(RemoteArtifact("https://files.test/big.zip"), tmp_path)


def test_missing_destination_raises_fetch_error(tmp_path: Path) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=b"data")

    with pytest.raises(FetchError):
        _fetcher(handler).fetch(RemoteArtifact("https://files.test/p.zip"), tmp_path / "gone")


def test_stores_inline_bytes_and_streams(tmp_path: Path) -> None:
    fetcher = ArtifactFetcher()

    from_bytes = fetcher.fetch(InlineArtifact(b"inline-bytes", filename="upload.zip"), tmp_path)
    assert from_bytes.read_bytes() == b"inline-bytes"

    from_stream = fetcher.fetch(InlineArtifact(io.BytesIO(b"streamed" * 10_000)), tmp_path)
    assert from_stream.read_bytes() == b"streamed" * 10_000


def test_extract_unpacks_and_flattens(tmp_path: Path, make_zip) -> None:
    fetcher = ArtifactFetcher()
    archive = fetcher.fetch(
        InlineArtifact(make_zip({"demo/": "", "demo/main.py": "app = 1\n"})),
        tmp_path,
    )

    fetcher.extract(archive, tmp_path)

    assert (tmp_path / "main.py").read_text(encoding="utf-8") == "app = 1\n"
    assert not (tmp_path / "demo").exists()
    assert not archive.exists()


def test_extract_applies_configured_limits(tmp_path: Path, make_zip) -> None:
    fetcher = ArtifactFetcher(max_extracted_bytes=8)
    archive = fetcher.fetch(InlineArtifact(make_zip({"main.py": "x" * 64})), tmp_path)

    with pytest.raises(ArchiveError):
        fetcher.extract(archive, tmp_path)

    assert not (tmp_path / "main.py").exists()

def test_rejects_invalid_limits() -> None:
    with pytest.raises(ValueError):
        ArtifactFetcher(timeout_seconds=0)
    with pytest.raises(ValueError):
        ArtifactFetcher(max_bytes=0)
