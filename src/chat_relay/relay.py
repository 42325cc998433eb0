"""Chat relay: forwards a conversation to the completion provider.

Every request that passes validation produces exactly one telemetry event,
``chat_request`` on success or ``chat_error`` on provider failure.  The
event is handed to the reporter and never awaited.
"""

from __future__ import annotations

import time
import uuid
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from chat_relay.config import Settings
from chat_relay.errors import ProviderError, ValidationError
from chat_relay.logging import get_logger
from chat_relay.prompts import SYSTEM_PROMPT
from chat_relay.provider import CompletionProvider
from chat_relay.telemetry.events import EventType, build_event
from chat_relay.telemetry.reporter import TelemetryReporter

log = get_logger("chat_relay.relay")

MESSAGE_REQUIRED = "Message is required"


@dataclass(frozen=True)
class ChatTurn:
    """One prior message in the conversation."""

    text: str
    sender: str  # "user" or "ai"

    @property
    def role(self) -> str:
        return "user" if self.sender == "user" else "assistant"


def parse_history(raw: Any) -> list[ChatTurn]:
    """Validate the client's ``conversationHistory`` payload."""
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ValidationError("conversationHistory must be a list")

    turns: list[ChatTurn] = []
    for item in raw:
        if not isinstance(item, Mapping):
            raise ValidationError("conversationHistory entries must be objects")
        text = item.get("text")
        turns.append(
            ChatTurn(
                text=text if isinstance(text, str) else str(text or ""),
                sender=str(item.get("sender", "")),
            )
        )
    return turns


def _new_request_id() -> str:
    return uuid.uuid4().hex[:8]


class ChatRelay:
    """Validates chat input, calls the provider and reports telemetry."""

    def __init__(
        self,
        provider: CompletionProvider,
        reporter: TelemetryReporter,
        settings: Settings,
        system_prompt: str = SYSTEM_PROMPT,
    ) -> None:
        self._provider = provider
        self._reporter = reporter
        self._host = settings.host_id
        self._system_prompt = system_prompt

    async def handle(self, message: Any, history: Any = None) -> str:
        """Produce the assistant reply for ``message``.

        Raises:
            ValidationError: ``message`` is missing or history is malformed.
                No telemetry is emitted.
            ProviderError: The provider failed; a ``chat_error`` event has
                already been scheduled.
        """
        if not isinstance(message, str) or not message:
            raise ValidationError(MESSAGE_REQUIRED)
        turns = parse_history(history)

        start = time.perf_counter()
        request_id = _new_request_id()
        messages = [{"role": turn.role, "content": turn.text} for turn in turns]
        messages.append({"role": "user", "content": message})

        try:
            response = await self._provider.complete(self._system_prompt, messages)
        except ProviderError as exc:
            elapsed = _elapsed_ms(start)
            log.warning(
                "chat_request_failed",
                request_id=request_id,
                error=str(exc),
                duration_ms=elapsed,
            )
            self._emit(
                EventType.CHAT_ERROR,
                {
                    "request_id": request_id,
                    "user_message": message,
                    "error_message": str(exc),
                    "processing_time_ms": elapsed,
                },
            )
            raise

        elapsed = _elapsed_ms(start)
        log.info(
            "chat_request_completed",
            request_id=request_id,
            conversation_length=len(turns),
            duration_ms=elapsed,
        )
        self._emit(
            EventType.CHAT_REQUEST,
            {
                "request_id": request_id,
                "user_message": message,
                "ai_response": response,
                "conversation_length": len(turns),
                "processing_time_ms": elapsed,
                "model": self._provider.model,
            },
        )
        return response

    def _emit(self, kind: EventType, context: Mapping[str, Any]) -> None:
        try:
            self._reporter.report(build_event(kind, context, host=self._host))
        except Exception:
            log.exception("telemetry_emit_failed", event_type=kind.value)

    async def close(self) -> None:
        await self._provider.close()


def _elapsed_ms(start: float) -> int:
    return round((time.perf_counter() - start) * 1000)
