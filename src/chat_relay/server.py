"""aiohttp HTTP API for the chat relay.

Routes are served both at the root and under ``/api``:

- ``POST /chat``            relay a message to the completion provider
- ``GET  /health``          liveness probe
- ``POST /test-telemetry``  send one synthetic telemetry event and report back
"""

from __future__ import annotations

import asyncio
from typing import Any

from aiohttp import web

from chat_relay.config import Settings, get_settings
from chat_relay.constants import TELEMETRY_DRAIN_TIMEOUT
from chat_relay.errors import ProviderError, ValidationError
from chat_relay.logging import get_logger, setup_logging
from chat_relay.provider import OpenAIProvider
from chat_relay.relay import ChatRelay
from chat_relay.telemetry.dispatcher import Delivered, DispatchOutcome, Failed
from chat_relay.telemetry.events import build_test_event
from chat_relay.telemetry.reporter import TelemetryReporter

log = get_logger("chat_relay.server")

ROUTE_PREFIXES = ("", "/api")
PROVIDER_FAILURE = "Failed to get response from completion provider"

_CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization",
}


@web.middleware
async def cors_middleware(request: web.Request, handler: Any) -> web.StreamResponse:
    """Answer preflight requests and stamp CORS headers on responses."""
    if request.method == "OPTIONS":
        response: web.StreamResponse = web.Response(status=204)
    else:
        try:
            response = await handler(request)
        except web.HTTPException as exc:
            # 404/405 and other router errors arrive raised
            exc.headers.update(_CORS_HEADERS)
            raise
    response.headers.update(_CORS_HEADERS)
    return response


def _describe_outcome(outcome: DispatchOutcome) -> str:
    if isinstance(outcome, Delivered):
        if outcome.ok:
            return "Test event sent to collector"
        return f"Collector rejected test event: {outcome.status_code} {outcome.status_text}"
    if isinstance(outcome, Failed):
        return f"Test event failed: {outcome.reason} ({outcome.classification.value})"
    return f"Test event skipped: {outcome.reason}"


class RelayServer:
    """HTTP front for a ChatRelay and its TelemetryReporter."""

    def __init__(
        self,
        relay: ChatRelay,
        reporter: TelemetryReporter,
        settings: Settings,
    ) -> None:
        self._relay = relay
        self._reporter = reporter
        self._settings = settings

    def create_app(self) -> web.Application:
        """Create the aiohttp application."""
        app = web.Application(middlewares=[cors_middleware])
        for prefix in ROUTE_PREFIXES:
            app.router.add_post(f"{prefix}/chat", self._handle_chat)
            app.router.add_get(f"{prefix}/health", self._handle_health)
            app.router.add_post(f"{prefix}/test-telemetry", self._handle_test_telemetry)
        app.on_cleanup.append(self._on_cleanup)
        return app

    async def _handle_health(self, request: web.Request) -> web.Response:
        return web.json_response({"status": "ok"})

    async def _handle_chat(self, request: web.Request) -> web.Response:
        try:
            payload = await request.json()
        except ValueError:
            payload = None
        if not isinstance(payload, dict):
            payload = {}

        try:
            response = await self._relay.handle(
                payload.get("message"),
                payload.get("conversationHistory"),
            )
        except ValidationError as exc:
            return web.json_response({"error": str(exc)}, status=400)
        except ProviderError as exc:
            return web.json_response(
                {"error": PROVIDER_FAILURE, "details": str(exc)},
                status=500,
            )
        return web.json_response({"response": response})

    async def _handle_test_telemetry(self, request: web.Request) -> web.Response:
        outcome = await self._reporter.send_event(build_test_event(self._settings.host_id))
        success = isinstance(outcome, Delivered) and outcome.ok
        log.info("test_telemetry_sent", success=success, outcome=type(outcome).__name__)
        config = self._reporter.describe_config()
        return web.json_response(
            {
                "success": success,
                "message": _describe_outcome(outcome),
                "config": {"enabled": config["enabled"], "urlSet": config["urlSet"]},
            }
        )

    async def _on_cleanup(self, app: web.Application) -> None:
        await self._reporter.drain(timeout=TELEMETRY_DRAIN_TIMEOUT)
        await self._relay.close()


def build_server(settings: Settings) -> RelayServer:
    """Wire the provider, reporter and relay from settings."""
    api_key = settings.openai_api_key
    provider = OpenAIProvider(
        api_key=api_key.get_secret_value() if api_key else None,
        model=settings.openai_model,
    )
    reporter = TelemetryReporter(settings)
    relay = ChatRelay(provider=provider, reporter=reporter, settings=settings)
    return RelayServer(relay=relay, reporter=reporter, settings=settings)


async def run_server(settings: Settings | None = None) -> None:
    """Start the HTTP server and run until cancelled."""
    settings = settings or get_settings()
    setup_logging(settings)

    server = build_server(settings)
    log.info(
        "telemetry_configured",
        enabled=settings.telemetry_enabled,
        url_set=bool(settings.telemetry_url),
        has_auth_token=settings.telemetry_auth_token is not None,
        timeout=settings.telemetry_timeout,
    )

    runner = web.AppRunner(server.create_app())
    await runner.setup()
    site = web.TCPSite(runner, settings.listen_host, settings.port)
    await site.start()
    log.info("chat_relay_started", host=settings.listen_host, port=settings.port)

    try:
        await asyncio.Event().wait()
    finally:
        await runner.cleanup()
        log.info("chat_relay_stopped")
