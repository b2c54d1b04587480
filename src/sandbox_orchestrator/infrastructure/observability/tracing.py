"""OpenTelemetry bootstrap."""

from __future__ import annotations

import os

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

_TRACING_CONFIGURED = False


def configure_tracing(*, service_name: str) -> bool:
    """Configure OpenTelemetry tracing when an OTLP endpoint is provided.

    Opt-in: without an OTLP endpoint in the environment this is a no-op and
    spans go to the default no-op provider. Returns True when an exporter was
    installed by this call.

    If tracing is explicitly enabled but missing exporter config, it fails loudly.
    """

    global _TRACING_CONFIGURED
    if _TRACING_CONFIGURED:
        return False

    traces_exporter = (os.getenv("OTEL_TRACES_EXPORTER") or "").strip().lower()
    if traces_exporter == "none":
        _TRACING_CONFIGURED = True
        return False

    otlp_endpoint = (
        os.getenv("OTEL_EXPORTER_OTLP_TRACES_ENDPOINT") or os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT")
    )
    if not otlp_endpoint:
        if traces_exporter:
            raise RuntimeError(
                "Tracing enabled but OTLP endpoint missing: set OTEL_EXPORTER_OTLP_ENDPOINT "
                "(or OTEL_EXPORTER_OTLP_TRACES_ENDPOINT), or set OTEL_TRACES_EXPORTER=none."
            )
        _TRACING_CONFIGURED = True
        return False

    resolved_service_name = (os.getenv("OTEL_SERVICE_NAME") or service_name).strip()
    if not resolved_service_name:
        raise RuntimeError("service_name must be a non-empty string")

    provider = TracerProvider(resource=Resource.create({"service.name": resolved_service_name}))
    provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter()))
    trace.set_tracer_provider(provider)

    _TRACING_CONFIGURED = True
    return True


def reset_tracing_state() -> None:
    """Allow ``configure_tracing`` to run again (tests only)."""

    global _TRACING_CONFIGURED
    _TRACING_CONFIGURED = False


__all__ = ["configure_tracing", "reset_tracing_state"]
