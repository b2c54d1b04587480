from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.testclient import TestClient

from sandbox_orchestrator.infrastructure.http.middleware import request_logging_middleware


def _records(caplog, app: FastAPI, send) -> list[logging.LogRecord]:
    target_logger = logging.getLogger("sandbox_orchestrator.http")
    original_propagate = target_logger.propagate
    target_logger.propagate = False
    target_logger.addHandler(caplog.handler)
    target_logger.setLevel(logging.INFO)
    caplog.set_level(logging.INFO)
    try:
        send(TestClient(app))
    finally:
        target_logger.removeHandler(caplog.handler)
        target_logger.propagate = original_propagate
    return [record for record in caplog.records if record.name == "sandbox_orchestrator.http"]


def test_logs_json_requests_with_truncated_body(caplog) -> None:
    app = FastAPI()
    app.middleware("http")(request_logging_middleware)

    @app.post("/api/sandbox/run")
    async def run() -> dict[str, bool]:
        return {"ok": True}

    responses = []
    records = _records(
        caplog,
        app,
        lambda client: responses.append(
            client.post(
                "/api/sandbox/run",
                params=[("q", "1")],
                content='{"url": "' + "y" * 2000 + '"}',
                headers={"content-type": "application/json", "x-request-id": "req-1"},
            )
        ),
    )

    assert responses[0].headers["x-request-id"] == "req-1"
    received = next(record for record in records if record.msg == "request_received")
    completed = next(record for record in records if record.msg == "request_completed")

    assert received.data["request_id"] == "req-1"
    assert received.data["request_line"] == "POST /api/sandbox/run?q=1"
    assert received.data["body"].endswith("... (truncated)")
    assert completed.data["status_code"] == 200
    assert completed.data["duration_ms"] >= 0
    assert "body" not in completed.data


def test_skips_body_for_uploads(caplog) -> None:
    app = FastAPI()
    app.middleware("http")(request_logging_middleware)

    @app.post("/upload")
    async def upload() -> dict[str, bool]:
        return {"ok": True}

    records = _records(
        caplog,
        app,
        lambda client: client.post("/upload", files={"projectZip": ("p.zip", b"\x00\xff", "application/zip")}),
    )

    received = next(record for record in records if record.msg == "request_received")
    assert "body" not in received.data
