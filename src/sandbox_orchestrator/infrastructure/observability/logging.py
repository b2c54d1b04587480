"""Logging helpers (formatter, trace context filter, dictConfig builder)."""

from __future__ import annotations

import json
import logging
import os
import time
import traceback
from collections.abc import Mapping
from enum import Enum
from logging.config import dictConfig
from pathlib import Path
from typing import Any

from opentelemetry import trace


def _level(env_var: str, default: str) -> str:
    return os.getenv(env_var, default).upper()


def _should_emit_json_payload() -> bool:
    # Kubernetes log ingestion parses JSON lines into structured payloads.
    return bool(os.getenv("KUBERNETES_SERVICE_HOST"))


def _compact_json(value: Any, *, limit: int = 512) -> str:
    encoded = json.dumps(value, sort_keys=True, separators=(",", ":"))
    if len(encoded) <= limit:
        return encoded
    return encoded[:limit] + "... (truncated)"


def _structured_payload(record: logging.LogRecord) -> dict[str, Any]:
    record_dict = record.__dict__
    record_data = record_dict.get("data")

    message = record.getMessage()
    sanitized_data: Any | None = None
    if record_data:
        sanitized_data = _sanitize_for_json(record_data)
        message = f"{message} | data={_compact_json(sanitized_data)}"

    payload: dict[str, Any] = {
        "message": message,
        "severity": record.levelname,
        "logger": record.name,
        "timestamp": (
            f"{time.strftime('%Y-%m-%dT%H:%M:%S', time.gmtime(record.created))}"
            f".{int(record.msecs):03d}Z"
        ),
    }
    if record.exc_info:
        payload["exception"] = "".join(traceback.format_exception(*record.exc_info)).rstrip("\n")
    if sanitized_data is not None:
        payload["data"] = sanitized_data

    otel = record_dict.get("otel")
    if otel:
        payload["otel"] = otel
    return payload


class ExtrasFormatter(logging.Formatter):
    """Append structured `data` payloads when present."""

    def format(self, record: logging.LogRecord) -> str:
        record_data = record.__dict__.get("data")

        if _should_emit_json_payload():
            return json.dumps(_structured_payload(record), sort_keys=True, separators=(",", ":"))

        formatted = super().format(record)
        if record_data:
            try:
                encoded = json.dumps(record_data, sort_keys=True, separators=(",", ":"))
            except TypeError:
                encoded = _compact_json(_sanitize_for_json(record_data))
            return f"{formatted} | data={encoded}"
        return formatted


class OtelContextLogFilter(logging.Filter):
    """Attach the current OpenTelemetry trace and span ids to each record."""

    def filter(self, record: logging.LogRecord) -> bool:  # pragma: no cover - thin wrapper
        span_context = trace.get_current_span().get_span_context()
        if span_context.is_valid:
            record.__dict__["otel"] = {
                "trace_id": f"{span_context.trace_id:032x}",
                "span_id": f"{span_context.span_id:016x}",
            }
        return True


def _console_logger(level: str) -> dict[str, Any]:
    return {"level": level, "handlers": ["console"], "propagate": False}


def build_log_config() -> dict[str, Any]:
    """Return a dictConfig-compatible logging configuration.

    Levels come from ``LOG_LEVEL`` (root), ``UVICORN_LOG_LEVEL``,
    ``UVICORN_ACCESS_LOG_LEVEL``, ``HTTPX_LOG_LEVEL`` and ``BUILD_LOG_LEVEL``
    (build tool output).
    """

    uvicorn_level = _level("UVICORN_LOG_LEVEL", "INFO")
    httpx_level = _level("HTTPX_LOG_LEVEL", "WARNING")
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "console": {
                "()": ExtrasFormatter,
                "format": "%(asctime)s %(levelname)s %(name)s: %(message)s",
                "datefmt": "%Y-%m-%dT%H:%M:%S",
            }
        },
        "filters": {
            "otel_context": {"()": OtelContextLogFilter},
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "console",
                "stream": "ext://sys.stdout",
                "filters": ["otel_context"],
            }
        },
        "root": {
            "level": _level("LOG_LEVEL", "INFO"),
            "handlers": ["console"],
        },
        "loggers": {
            "uvicorn": _console_logger(uvicorn_level),
            "uvicorn.error": _console_logger(uvicorn_level),
            "uvicorn.access": _console_logger(_level("UVICORN_ACCESS_LOG_LEVEL", "WARNING")),
            "httpx": _console_logger(httpx_level),
            "httpcore": _console_logger(httpx_level),
            "sandbox_orchestrator.build": _console_logger(_level("BUILD_LOG_LEVEL", "INFO")),
        },
    }


def configure_logging() -> None:
    dictConfig(build_log_config())
    logging.getLogger("sandbox_orchestrator.observability").debug("configured logging")


def _sanitize_for_json(value: Any, depth: int = 10, max_items: int = 200) -> Any:
    """Return a JSON-serializable copy; fallback to string for unknowns."""

    if depth <= 0:
        return "<depth_exceeded>"

    if isinstance(value, Enum):
        return _sanitize_for_json(value.value, depth - 1, max_items)

    if value is None or isinstance(value, (str, int, float, bool)):
        return value

    if isinstance(value, (bytes, bytearray)):
        return f"<bytes len={len(value)}>"

    if isinstance(value, Path):
        return str(value)

    if isinstance(value, Mapping):
        result: dict[str, Any] = {}
        for idx, (k, v) in enumerate(value.items()):
            if idx >= max_items:
                result["<truncated>"] = f"...{len(value) - idx} more"
                break
            result[str(k)] = _sanitize_for_json(v, depth - 1, max_items)
        return result

    if isinstance(value, (list, tuple, set)):
        out = []
        iterable = list(value)
        for idx, item in enumerate(iterable):
            if idx >= max_items:
                out.append(f"... {len(iterable) - idx} more")
                break
            out.append(_sanitize_for_json(item, depth - 1, max_items))
        return out

    return str(value)


__all__ = ["ExtrasFormatter", "OtelContextLogFilter", "build_log_config", "configure_logging"]
