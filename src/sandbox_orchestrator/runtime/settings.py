"""Configuration for the sandbox orchestrator service."""

from __future__ import annotations

import logging

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from sandbox_orchestrator.config.sandbox import SandboxSettings


class Settings(BaseSettings):
    """Service configuration resolved from the environment."""

    model_config = SettingsConfigDict(
        env_prefix="",
        extra="ignore",
        case_sensitive=False,
        frozen=True,
    )

    # --- Server ---
    listen_host: str = Field(default="0.0.0.0", alias="SANDBOX_HOST")  # noqa: S104
    listen_port: int = Field(default=8080, alias="SANDBOX_PORT")

    # --- Component settings ---
    sandbox: SandboxSettings = Field(default_factory=SandboxSettings)

    # --- Loader ---
    @classmethod
    def load(cls) -> Settings:
        instance = cls()
        logger = logging.getLogger("sandbox_orchestrator.settings")
        logger.info("sandbox orchestrator settings loaded: %r", instance)
        return instance


__all__ = ["SandboxSettings", "Settings"]
