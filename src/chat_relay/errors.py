"""Error taxonomy for the chat relay.

Only ``ValidationError`` and ``ProviderError`` ever reach an HTTP caller.
``ConfigurationError`` and ``DeliveryFailure`` belong to the telemetry path
and are logged, never surfaced.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from chat_relay.telemetry.classifier import FailureCategory


class RelayError(Exception):
    """Base class for chat relay errors."""


class ValidationError(RelayError):
    """Required client input is missing or malformed."""


class ProviderError(RelayError):
    """The completion provider failed to produce a reply."""


class ConfigurationError(RelayError):
    """The telemetry destination cannot be used as configured."""


class DeliveryFailure(RelayError):
    """A telemetry send failed at the network level."""

    def __init__(self, reason: str, classification: FailureCategory) -> None:
        super().__init__(reason)
        self.reason = reason
        self.classification = classification
