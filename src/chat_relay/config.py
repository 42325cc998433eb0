"""Configuration management for the chat relay."""

from functools import lru_cache
from typing import Any

from pydantic import AliasChoices, Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from chat_relay.constants import (
    DEFAULT_HOST_ID,
    DEFAULT_OPENAI_MODEL,
    DEFAULT_PORT,
    DEFAULT_TELEMETRY_TIMEOUT,
    MAX_TELEMETRY_TIMEOUT,
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Read once at process start and never mutated afterwards; components
    receive the instance explicitly instead of calling ``get_settings()``.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    # Telemetry collector
    telemetry_url: str | None = Field(
        default=None,
        validation_alias=AliasChoices("telemetry_url", "cribl_url"),
        description="Destination URL for telemetry events",
    )
    telemetry_enabled: bool = Field(
        default=True,
        validation_alias=AliasChoices("telemetry_enabled", "cribl_enabled"),
        description="Telemetry is on unless explicitly set to 'false'",
    )
    telemetry_auth_token: SecretStr | None = Field(
        default=None,
        validation_alias=AliasChoices("telemetry_auth_token", "cribl_auth_token"),
        description="Bearer token sent to the collector",
    )
    telemetry_timeout: float = Field(
        default=DEFAULT_TELEMETRY_TIMEOUT,
        gt=0,
        le=MAX_TELEMETRY_TIMEOUT,
        description="Seconds before an in-flight telemetry request is torn down",
    )
    verify_tls: bool = Field(
        default=True,
        validation_alias=AliasChoices("verify_tls", "telemetry_verify_tls"),
        description="Verify collector certificates on encrypted transports",
    )

    # Host identity reported on every event
    hostname: str | None = Field(default=None, description="Host identifier")

    # HTTP server
    listen_host: str = Field(default="0.0.0.0", description="Interface to bind")
    port: int = Field(default=DEFAULT_PORT, ge=1, le=65535, description="Listening port")

    # OpenAI
    openai_api_key: SecretStr | None = Field(default=None, description="OpenAI API key")
    openai_model: str = Field(
        default=DEFAULT_OPENAI_MODEL, description="Chat completion model"
    )

    # Application
    environment: str = Field(default="production", description="Environment name")
    log_level: str = Field(default="INFO", description="Logging level")

    @field_validator("telemetry_url", "hostname", mode="before")
    @classmethod
    def _blank_to_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("telemetry_enabled", mode="before")
    @classmethod
    def _only_false_disables(cls, value: Any) -> Any:
        if value is None:
            return True
        if isinstance(value, str):
            return value.strip().lower() != "false"
        return value

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.environment.lower() == "development"

    @property
    def host_id(self) -> str:
        """Host identifier stamped on telemetry events."""
        return self.hostname or DEFAULT_HOST_ID

    @property
    def telemetry_active(self) -> bool:
        """Whether telemetry should be attempted at all."""
        return self.telemetry_enabled and bool(self.telemetry_url)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
