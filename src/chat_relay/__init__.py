"""Chat relay with best-effort telemetry forwarding."""

__version__ = "0.1.0"
