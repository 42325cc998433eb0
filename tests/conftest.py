"""Shared fixtures for the chat relay test suite."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import pytest

from chat_relay.config import Settings
from chat_relay.telemetry.events import EventType, TelemetryEvent, build_event

# Environment variables Settings reads that would leak into tests
_SETTINGS_ENV = (
    "TELEMETRY_URL",
    "CRIBL_URL",
    "TELEMETRY_ENABLED",
    "CRIBL_ENABLED",
    "TELEMETRY_AUTH_TOKEN",
    "CRIBL_AUTH_TOKEN",
    "TELEMETRY_TIMEOUT",
    "VERIFY_TLS",
    "TELEMETRY_VERIFY_TLS",
    "HOSTNAME",
    "PORT",
    "LISTEN_HOST",
    "OPENAI_API_KEY",
    "OPENAI_MODEL",
    "ENVIRONMENT",
    "LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep the developer's shell environment out of Settings."""
    for name in _SETTINGS_ENV:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture()
def make_settings() -> Callable[..., Settings]:
    """Factory for Settings that ignores any .env file."""

    def _make(**overrides: Any) -> Settings:
        values: dict[str, Any] = {"_env_file": None}
        values.update(overrides)
        return Settings(**values)

    return _make


@pytest.fixture()
def chat_event() -> TelemetryEvent:
    """A representative successful chat event."""
    return build_event(
        EventType.CHAT_REQUEST,
        {
            "request_id": "abc123",
            "user_message": "hi",
            "ai_response": "hello",
            "conversation_length": 0,
            "processing_time_ms": 42,
            "model": "gpt-4o-mini",
        },
        host="test-host",
    )
