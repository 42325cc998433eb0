"""Telemetry event construction.

Events are plain frozen dataclasses with a ``to_dict``/``to_json`` pair for
the wire.  The field set is tagged by ``eventType``: every field a type
declares is always present, with a placeholder substituted when the caller
had nothing to offer.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from types import MappingProxyType
from typing import Any

from chat_relay.constants import CHAT_SOURCE, DEFAULT_HOST_ID, TEST_SOURCE

UNKNOWN = "unknown"


class EventType(Enum):
    """Logical telemetry event types."""

    CHAT_REQUEST = "chat_request"
    CHAT_ERROR = "chat_error"
    TEST = "test"

    @classmethod
    def coerce(cls, kind: EventType | str) -> EventType:
        """Map a kind tag onto an EventType, treating unknown tags as TEST."""
        if isinstance(kind, cls):
            return kind
        try:
            return cls(str(kind).lower())
        except ValueError:
            return cls.TEST


# wire name, context key, placeholder
_FIELDS: dict[EventType, tuple[tuple[str, str, Any], ...]] = {
    EventType.CHAT_REQUEST: (
        ("requestId", "request_id", UNKNOWN),
        ("userMessage", "user_message", ""),
        ("aiResponse", "ai_response", ""),
        ("conversationLength", "conversation_length", 0),
        ("processingTimeMs", "processing_time_ms", 0),
        ("model", "model", UNKNOWN),
        ("status", "status", "success"),
    ),
    EventType.CHAT_ERROR: (
        ("requestId", "request_id", UNKNOWN),
        ("userMessage", "user_message", UNKNOWN),
        ("errorMessage", "error_message", UNKNOWN),
        ("processingTimeMs", "processing_time_ms", 0),
        ("status", "status", "error"),
    ),
    EventType.TEST: (("status", "status", "test"),),
}


@dataclass(frozen=True)
class TelemetryEvent:
    """A single structured record describing one transaction."""

    event_type: EventType
    raw: str
    timestamp: str  # ISO-8601, UTC
    source: str
    host: str
    attributes: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "attributes", MappingProxyType(dict(self.attributes)))

    def to_dict(self) -> dict[str, Any]:
        return {
            "_raw": self.raw,
            "timestamp": self.timestamp,
            **self.attributes,
            "host": self.host,
            "source": self.source,
            "eventType": self.event_type.value,
        }

    def to_json(self) -> bytes:
        """Compact UTF-8 JSON body for the collector."""
        return json.dumps(
            self.to_dict(), separators=(",", ":"), ensure_ascii=False, default=str
        ).encode("utf-8")


def utc_timestamp() -> str:
    """Current wall-clock time as ISO-8601 UTC with millisecond precision."""
    return datetime.now(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _coerce(value: Any, placeholder: Any) -> Any:
    if isinstance(placeholder, int):
        if isinstance(value, bool):
            return placeholder
        try:
            return int(value)
        except (TypeError, ValueError, OverflowError):
            return placeholder
    if value is None or value == "":
        return placeholder
    return value if isinstance(value, str) else str(value)


def _default_raw(kind: EventType, attributes: Mapping[str, Any]) -> str:
    if kind is EventType.CHAT_REQUEST:
        return "Chat request processed successfully"
    if kind is EventType.CHAT_ERROR:
        return f"Chat request failed: {attributes['errorMessage']}"
    return "Test event from deployment"


def build_event(
    kind: EventType | str,
    context: Mapping[str, Any] | None = None,
    *,
    host: str | None = None,
) -> TelemetryEvent:
    """Build a telemetry event from transaction context.

    Args:
        kind: Event type tag; unknown tags are built as ``test`` events.
        context: Transaction context keyed by snake_case names
            (``request_id``, ``user_message``, ``processing_time_ms`` ...).
            An optional ``raw`` entry overrides the summary text.
        host: Host identifier; falls back to a fixed literal when empty.

    Returns:
        A fully populated, immutable TelemetryEvent.  Never raises.
    """
    event_type = EventType.coerce(kind)
    ctx: Mapping[str, Any] = context if isinstance(context, Mapping) else {}

    attributes = {
        wire: _coerce(ctx.get(key), placeholder)
        for wire, key, placeholder in _FIELDS[event_type]
    }
    raw = ctx.get("raw")
    if not isinstance(raw, str) or not raw:
        raw = _default_raw(event_type, attributes)

    return TelemetryEvent(
        event_type=event_type,
        raw=raw,
        timestamp=utc_timestamp(),
        source=TEST_SOURCE if event_type is EventType.TEST else CHAT_SOURCE,
        host=host or DEFAULT_HOST_ID,
        attributes=attributes,
    )


def build_test_event(host: str | None = None) -> TelemetryEvent:
    """Synthetic event used by the diagnostic endpoint."""
    return build_event(EventType.TEST, {"raw": "Test event from deployment"}, host=host)
