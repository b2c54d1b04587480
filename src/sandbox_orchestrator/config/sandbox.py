"""Sandbox execution settings: external tools and timeouts."""

from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class SandboxSettings(BaseSettings):
    """External tool locations and per-call deadlines."""

    model_config = SettingsConfigDict(
        env_prefix="",
        extra="ignore",
        case_sensitive=False,
        frozen=True,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    docker_binary: str = Field(default="docker", alias="SANDBOX_DOCKER_BINARY")
    shell_binary: str = Field(default="bash", alias="SANDBOX_SHELL_BINARY")
    build_script: Path = Field(
        default=Path("scripts/build_and_run.sh"),
        alias="SANDBOX_BUILD_SCRIPT",
        description="Build-and-run script, relative to working_dir unless absolute.",
    )
    working_dir: Path = Field(default=Path("."), alias="SANDBOX_WORKING_DIR")
    staging_root: Path | None = Field(
        default=None,
        alias="SANDBOX_STAGING_ROOT",
        description="Parent directory for staging dirs; system temp dir when unset.",
    )

    build_timeout_seconds: float = Field(default=300.0, gt=0, alias="SANDBOX_BUILD_TIMEOUT_SECONDS")
    drain_grace_seconds: float = Field(default=10.0, ge=0, alias="SANDBOX_DRAIN_GRACE_SECONDS")
    stop_timeout_seconds: float = Field(default=30.0, gt=0, alias="SANDBOX_STOP_TIMEOUT_SECONDS")
    remove_timeout_seconds: float = Field(default=10.0, gt=0, alias="SANDBOX_REMOVE_TIMEOUT_SECONDS")
    probe_timeout_seconds: float = Field(default=5.0, gt=0, alias="SANDBOX_PROBE_TIMEOUT_SECONDS")
    logs_timeout_seconds: float = Field(default=30.0, gt=0, alias="SANDBOX_LOGS_TIMEOUT_SECONDS")
    download_timeout_seconds: float = Field(default=60.0, gt=0, alias="SANDBOX_DOWNLOAD_TIMEOUT_SECONDS")

    max_archive_bytes: int | None = Field(
        default=512 * 1024 * 1024,
        alias="SANDBOX_MAX_ARCHIVE_BYTES",
        description="Upper bound on a fetched project archive; unset disables the check.",
    )
    max_extracted_bytes: int | None = Field(
        default=2 * 1024 * 1024 * 1024,
        alias="SANDBOX_MAX_EXTRACTED_BYTES",
        description="Upper bound on the declared uncompressed size of all archive entries.",
    )
    max_archive_entries: int | None = Field(default=20_000, alias="SANDBOX_MAX_ARCHIVE_ENTRIES")


__all__ = ["SandboxSettings"]
