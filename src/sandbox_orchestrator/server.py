"""Entrypoint for running the sandbox orchestrator API under uvicorn."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from starlette.concurrency import run_in_threadpool

from sandbox_orchestrator.infrastructure.http.middleware import request_logging_middleware
from sandbox_orchestrator.infrastructure.http.routes import add_health_routes, add_sandbox_routes
from sandbox_orchestrator.infrastructure.observability.logging import configure_logging
from sandbox_orchestrator.infrastructure.observability.tracing import configure_tracing
from sandbox_orchestrator.runtime.bootstrap import RuntimeContext, build_runtime, close_runtime_resources
from sandbox_orchestrator.runtime.settings import Settings

SHUTDOWN_TIMEOUT_SECONDS = 60


def create_app(runtime: RuntimeContext) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        yield
        await run_in_threadpool(close_runtime_resources, runtime)

    app = FastAPI(title="Sandbox Orchestrator API", version="0.1.0", lifespan=lifespan)
    app.middleware("http")(request_logging_middleware)

    add_health_routes(app)
    add_sandbox_routes(app, runtime.route_deps_provider)

    return app


def main() -> None:
    import uvicorn

    configure_logging()
    configure_tracing(service_name="sandbox-orchestrator")
    runtime = build_runtime(Settings.load())
    app = create_app(runtime)

    uvicorn.run(
        app,
        host=runtime.settings.listen_host,
        port=runtime.settings.listen_port,
        timeout_graceful_shutdown=SHUTDOWN_TIMEOUT_SECONDS,
        # logging already setup
        log_config=None,
    )


if __name__ == "__main__":
    main()


__all__ = ["create_app", "main"]
