"""Single-shot delivery of a telemetry event to its collector."""

from __future__ import annotations

import asyncio
from collections.abc import Mapping
from dataclasses import dataclass

from chat_relay.constants import DEFAULT_TELEMETRY_TIMEOUT
from chat_relay.errors import DeliveryFailure
from chat_relay.logging import get_logger
from chat_relay.telemetry.classifier import FailureCategory
from chat_relay.telemetry.events import TelemetryEvent
from chat_relay.telemetry.transport import (
    Scheme,
    Transport,
    TransportTarget,
    default_transports,
)

log = get_logger("chat_relay.telemetry.dispatcher")

TIMEOUT_REASON = "timeout"


@dataclass(frozen=True)
class Delivered:
    """The collector answered; ``ok`` only for a 2xx status."""

    status_code: int
    status_text: str
    body: str

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


@dataclass(frozen=True)
class Failed:
    """The request never produced a response."""

    reason: str
    classification: FailureCategory


@dataclass(frozen=True)
class Skipped:
    """No request was attempted."""

    reason: str


DispatchOutcome = Delivered | Failed | Skipped


class Dispatcher:
    """Sends one event per call, racing the request against a timeout."""

    def __init__(
        self,
        timeout: float = DEFAULT_TELEMETRY_TIMEOUT,
        transports: Mapping[Scheme, Transport] | None = None,
    ) -> None:
        if timeout <= 0:
            raise ValueError("timeout must be > 0")
        self._timeout = timeout
        self._transports = dict(transports) if transports is not None else default_transports()

    @property
    def timeout(self) -> float:
        return self._timeout

    async def dispatch(self, target: TransportTarget, event: TelemetryEvent) -> DispatchOutcome:
        """POST ``event`` to ``target`` exactly once.

        Resolves to ``Delivered`` when a full response arrived, otherwise to
        ``Failed``.  When the timeout elapses first the in-flight request is
        cancelled, which closes its connection, and the outcome is
        ``Failed("timeout", TIMEOUT)``.
        """
        body = event.to_json()
        headers = {
            "Content-Type": "application/json",
            "Content-Length": str(len(body)),
            **target.headers(),
        }
        transport = self._transports[target.scheme]

        log.debug(
            "telemetry_dispatch_started",
            scheme=target.scheme.value,
            host=target.host,
            port=target.port,
            path=target.path,
            bytes=len(body),
        )
        try:
            raw = await asyncio.wait_for(
                transport.send(target, body, headers, self._timeout),
                timeout=self._timeout,
            )
        except TimeoutError:
            return Failed(reason=TIMEOUT_REASON, classification=FailureCategory.TIMEOUT)
        except DeliveryFailure as exc:
            if exc.classification is FailureCategory.TIMEOUT:
                return Failed(reason=TIMEOUT_REASON, classification=FailureCategory.TIMEOUT)
            return Failed(reason=exc.reason, classification=exc.classification)

        return Delivered(
            status_code=raw.status_code,
            status_text=raw.status_text,
            body=raw.body,
        )
