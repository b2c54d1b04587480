from __future__ import annotations

from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from sandbox_orchestrator.config.sandbox import SandboxSettings
from sandbox_orchestrator.errors import ConfigurationError
from sandbox_orchestrator.runtime.bootstrap import build_runtime
from sandbox_orchestrator.runtime.settings import Settings
from sandbox_orchestrator.server import create_app


def _settings(build_script: Path, staging_root: Path) -> Settings:
    return Settings(
        sandbox=SandboxSettings(
            SANDBOX_BUILD_SCRIPT=str(build_script.name),
            SANDBOX_WORKING_DIR=str(build_script.parent),
            SANDBOX_STAGING_ROOT=str(staging_root),
        ),
    )


def test_build_runtime_wires_components(build_script: Path, staging_root: Path, fake_cli) -> None:
    runtime = build_runtime(_settings(build_script, staging_root), runner=fake_cli)

    assert runtime.runner is fake_cli
    assert runtime.route_deps_provider().orchestrator is runtime.orchestrator
    assert runtime.orchestrator.list_active() == {}


def test_build_runtime_requires_build_script(tmp_path: Path, staging_root: Path) -> None:
    settings = Settings(
        sandbox=SandboxSettings(
            SANDBOX_BUILD_SCRIPT="missing.sh",
            SANDBOX_WORKING_DIR=str(tmp_path),
        ),
    )

    with pytest.raises(ConfigurationError):
        build_runtime(settings)


def test_app_serves_routes_and_cleans_up_on_shutdown(
    build_script: Path,
    staging_root: Path,
    fake_cli,
    make_zip,
) -> None:
    runtime = build_runtime(_settings(build_script, staging_root), runner=fake_cli)
    app = create_app(runtime)

    with TestClient(app) as client:
        assert client.get("/healthz").json() == {"status": "ok"}
        response = client.post(
            "/api/execute",
            data={"framework": "fastapi", "port": "9001", "uuid": "demo"},
            files={"projectZip": ("project.zip", make_zip({"main.py": "app = 1\n"}), "application/zip")},
        )
        assert response.status_code == 200
        assert client.get("/api/sandbox/active").json()["count"] == 1
        assert client.get("/api/sandbox/status/demo").json()["status"] == "RUNNING"

    assert runtime.registry.all() == {}
    assert fake_cli.containers == {}
    assert list(staging_root.iterdir()) == []
