"""Outbound telemetry forwarding."""

from chat_relay.telemetry.classifier import FailureCategory, classify
from chat_relay.telemetry.dispatcher import (
    Delivered,
    Dispatcher,
    DispatchOutcome,
    Failed,
    Skipped,
)
from chat_relay.telemetry.events import EventType, TelemetryEvent, build_event
from chat_relay.telemetry.reporter import TelemetryReporter
from chat_relay.telemetry.transport import Scheme, TransportTarget, resolve

__all__ = [
    "Delivered",
    "DispatchOutcome",
    "Dispatcher",
    "EventType",
    "Failed",
    "FailureCategory",
    "Scheme",
    "Skipped",
    "TelemetryEvent",
    "TelemetryReporter",
    "TransportTarget",
    "build_event",
    "classify",
    "resolve",
]
