"""Fire-and-forget telemetry reporting.

The chat path hands a built event to ``TelemetryReporter.report`` and moves
on.  Delivery happens on a background task whose outcome is only ever logged:
no retries, no queue, nothing propagates back into the request/response
cycle.
"""

from __future__ import annotations

import asyncio
from typing import Any

from chat_relay.config import Settings
from chat_relay.errors import ConfigurationError
from chat_relay.logging import get_logger
from chat_relay.telemetry.classifier import classify, describe
from chat_relay.telemetry.dispatcher import (
    Delivered,
    Dispatcher,
    DispatchOutcome,
    Failed,
    Skipped,
)
from chat_relay.telemetry.events import TelemetryEvent
from chat_relay.telemetry.transport import default_transports, resolve

log = get_logger("chat_relay.telemetry.reporter")


class TelemetryReporter:
    """Resolves, dispatches and logs telemetry events."""

    def __init__(self, settings: Settings, dispatcher: Dispatcher | None = None) -> None:
        self._settings = settings
        self._dispatcher = dispatcher or Dispatcher(
            timeout=settings.telemetry_timeout,
            transports=default_transports(verify_tls=settings.verify_tls),
        )
        self._tasks: set[asyncio.Task[DispatchOutcome]] = set()

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def enabled(self) -> bool:
        return self._settings.telemetry_active

    @property
    def pending(self) -> int:
        """Number of background sends still in flight."""
        return len(self._tasks)

    def describe_config(self) -> dict[str, Any]:
        """Secret-free summary of the telemetry configuration."""
        return {
            "enabled": self._settings.telemetry_enabled,
            "urlSet": bool(self._settings.telemetry_url),
            "hasAuthToken": self._settings.telemetry_auth_token is not None,
        }

    # ------------------------------------------------------------------
    # Sending
    # ------------------------------------------------------------------

    async def send_event(self, event: TelemetryEvent) -> DispatchOutcome:
        """Deliver one event and log the outcome.  Never raises."""
        if not self._settings.telemetry_enabled:
            return Skipped(reason="telemetry disabled")
        if not self._settings.telemetry_url:
            return Skipped(reason="no destination configured")

        token = self._settings.telemetry_auth_token
        try:
            target = resolve(
                self._settings.telemetry_url,
                token.get_secret_value() if token else None,
            )
        except ConfigurationError as exc:
            log.error("telemetry_destination_invalid", error=str(exc))
            return Skipped(reason=str(exc))

        try:
            outcome = await self._dispatcher.dispatch(target, event)
        except Exception as exc:
            log.exception("telemetry_dispatch_crashed", event_type=event.event_type.value)
            return Failed(reason=str(exc), classification=classify(exc))

        if isinstance(outcome, Delivered):
            if outcome.ok:
                log.debug(
                    "telemetry_event_sent",
                    event_type=event.event_type.value,
                    status=outcome.status_code,
                )
            else:
                log.warning(
                    "telemetry_event_rejected",
                    event_type=event.event_type.value,
                    status=outcome.status_code,
                    status_text=outcome.status_text,
                    body=outcome.body[:200],
                )
        elif isinstance(outcome, Failed):
            log.warning(
                "telemetry_send_failed",
                event_type=event.event_type.value,
                reason=outcome.reason,
                classification=outcome.classification.value,
                hint=describe(outcome.classification),
                scheme=target.scheme.value,
                host=target.host,
                port=target.port,
            )
        return outcome

    def report(self, event: TelemetryEvent) -> None:
        """Schedule delivery of ``event`` without waiting for it.

        Must be called from inside a running event loop.  The task is only
        referenced here until it finishes.
        """
        if not self.enabled:
            return
        task = asyncio.create_task(self.send_event(event))
        self._tasks.add(task)
        task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task[DispatchOutcome]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            log.error("telemetry_task_failed", error=str(exc))

    async def drain(self, timeout: float | None = None) -> None:
        """Wait for in-flight sends, cancelling whatever is left at ``timeout``."""
        if not self._tasks:
            return
        tasks = list(self._tasks)
        _, still_running = await asyncio.wait(tasks, timeout=timeout)
        for task in still_running:
            task.cancel()
        if still_running:
            await asyncio.gather(*still_running, return_exceptions=True)
            log.warning("telemetry_drain_cancelled", cancelled=len(still_running))
