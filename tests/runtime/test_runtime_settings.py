from __future__ import annotations

from pathlib import Path

from sandbox_orchestrator.runtime.settings import Settings


def test_settings_defaults(monkeypatch) -> None:
    for name in ("SANDBOX_PORT", "SANDBOX_BUILD_TIMEOUT_SECONDS", "SANDBOX_BUILD_SCRIPT"):
        monkeypatch.delenv(name, raising=False)

    settings = Settings()

    assert settings.listen_port == 8080
    assert settings.sandbox.docker_binary == "docker"
    assert settings.sandbox.build_script == Path("scripts/build_and_run.sh")
    assert settings.sandbox.build_timeout_seconds == 300
    assert settings.sandbox.stop_timeout_seconds == 30
    assert settings.sandbox.remove_timeout_seconds == 10
    assert settings.sandbox.probe_timeout_seconds == 5
    assert settings.sandbox.logs_timeout_seconds == 30
    assert settings.sandbox.drain_grace_seconds == 10
    assert settings.sandbox.max_archive_bytes == 512 * 1024 * 1024
    assert settings.sandbox.max_extracted_bytes == 2 * 1024 * 1024 * 1024
    assert settings.sandbox.max_archive_entries == 20_000


def test_settings_loads_from_environment(monkeypatch, tmp_path: Path) -> None:
    """Settings loads from environment variables."""
    monkeypatch.setenv("SANDBOX_PORT", "9090")
    monkeypatch.setenv("SANDBOX_DOCKER_BINARY", "podman")
    monkeypatch.setenv("SANDBOX_BUILD_TIMEOUT_SECONDS", "120")
    monkeypatch.setenv("SANDBOX_STAGING_ROOT", str(tmp_path))

    settings = Settings.load()

    assert settings.listen_port == 9090
    assert settings.sandbox.docker_binary == "podman"
    assert settings.sandbox.build_timeout_seconds == 120
    assert settings.sandbox.staging_root == tmp_path
