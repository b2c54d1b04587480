from __future__ import annotations

from pathlib import Path

import pytest

from sandbox_orchestrator.domain.runtime import RuntimeTag
from sandbox_orchestrator.errors import UnsupportedRuntimeError
from sandbox_orchestrator.infrastructure.artifacts.descriptor import (
    DESCRIPTOR_FILENAME,
    generate_descriptor,
    render_descriptor,
)


@pytest.mark.parametrize(
    ("runtime", "expected"),
    [
        ("spring", ['CMD ["java", "-jar", "app.jar"]', "EXPOSE 8080", "gradlew"]),
        ("react", ['CMD ["serve", "-s", "dist", "-l", "3000", "-n"]', "EXPOSE 3000", "npm run build"]),
        ("fastapi", ['"uvicorn", "main:app"', "EXPOSE 8000", "requirements.txt"]),
    ],
)
def test_generate_writes_runtime_template(tmp_path: Path, runtime: str, expected: list[str]) -> None:
    path = generate_descriptor(tmp_path, runtime)

    assert path == tmp_path / DESCRIPTOR_FILENAME
    content = path.read_text(encoding="utf-8")
    for snippet in expected:
        assert snippet in content


def test_exposed_port_matches_runtime_container_port() -> None:
    for tag in RuntimeTag:
        assert f"EXPOSE {tag.container_port}" in render_descriptor(tag)


def test_unsupported_runtime_writes_nothing(tmp_path: Path) -> None:
    with pytest.raises(UnsupportedRuntimeError):
        generate_descriptor(tmp_path, "django")

    assert not (tmp_path / DESCRIPTOR_FILENAME).exists()


def test_generate_overwrites_existing_descriptor(tmp_path: Path) -> None:
    (tmp_path / DESCRIPTOR_FILENAME).write_text("FROM scratch\n", encoding="utf-8")

    generate_descriptor(tmp_path, RuntimeTag.FASTAPI)

    assert (tmp_path / DESCRIPTOR_FILENAME).read_text(encoding="utf-8").startswith("FROM python:3.11-slim")
