"""Configuration management for the FlowFn SDK."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .models import DEFAULT_MAX_TIMEOUT_SECONDS, DEFAULT_POLL_INTERVAL_SECONDS, PollOptions

DEFAULT_REGISTRY_PREFIX = "flowfn_workflow_run_"


class FlowFnSettings(BaseSettings):
    """Runtime configuration sourced from environment variables and optional .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    base_url: str = Field(default="http://localhost:3000", validation_alias="FLOWFN_BASE_URL")
    app_code: str | None = Field(default=None, validation_alias="FLOWFN_APP_CODE")
    api_key: str | None = Field(default=None, validation_alias="FLOWFN_API_KEY")
    request_timeout_seconds: float = Field(
        default=30.0, validation_alias="FLOWFN_REQUEST_TIMEOUT"
    )
    poll_interval_seconds: float = Field(
        default=DEFAULT_POLL_INTERVAL_SECONDS, validation_alias="FLOWFN_POLL_INTERVAL"
    )
    max_poll_timeout_seconds: float = Field(
        default=DEFAULT_MAX_TIMEOUT_SECONDS, validation_alias="FLOWFN_MAX_POLL_TIMEOUT"
    )
    registry_backend: Literal["memory", "chroma"] = Field(
        default="memory", validation_alias="FLOWFN_REGISTRY_BACKEND"
    )
    registry_path: Path = Field(
        default=Path("./storage/flowfn"), validation_alias="FLOWFN_REGISTRY_PATH"
    )
    registry_prefix: str = Field(
        default=DEFAULT_REGISTRY_PREFIX, validation_alias="FLOWFN_REGISTRY_PREFIX"
    )
    log_level: str = Field(default="INFO", validation_alias="FLOWFN_LOG_LEVEL")

    @field_validator("base_url")
    @classmethod
    def _strip_base_url(cls, value: str) -> str:
        normalized = value.strip().rstrip("/")
        if not normalized:
            raise ValueError("FLOWFN_BASE_URL must not be empty")
        return normalized

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        normalized = value.strip().upper()
        if normalized not in {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}:
            raise ValueError(
                "FLOWFN_LOG_LEVEL must be one of CRITICAL, ERROR, WARNING, INFO, DEBUG"
            )
        return normalized

    @field_validator("request_timeout_seconds", "poll_interval_seconds", "max_poll_timeout_seconds")
    @classmethod
    def _validate_positive(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("Timeouts and poll intervals must be greater than zero")
        return value

    @field_validator("registry_prefix")
    @classmethod
    def _validate_prefix(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("FLOWFN_REGISTRY_PREFIX must not be empty")
        return value

    def poll_options(self) -> PollOptions:
        return PollOptions(
            poll_interval_seconds=self.poll_interval_seconds,
            max_timeout_seconds=self.max_poll_timeout_seconds,
        )


@lru_cache(maxsize=1)
def get_settings() -> FlowFnSettings:
    """Return cached settings instance."""

    settings = FlowFnSettings()
    settings.registry_path = settings.registry_path.expanduser().resolve()
    return settings


__all__ = ["DEFAULT_REGISTRY_PREFIX", "FlowFnSettings", "get_settings"]
