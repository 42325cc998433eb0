"""Transport resolution and the per-scheme senders.

The collector URL is operator-configured and may point at a non-standard
port (20001, 10080 ...), so the scheme, host, port and path are resolved
explicitly instead of being left to a client's scheme-to-port defaults.
"""

from __future__ import annotations

import ipaddress
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol
from urllib.parse import urlsplit

import httpx

from chat_relay.constants import ENCRYPTED_DEFAULT_PORT, PLAIN_DEFAULT_PORT
from chat_relay.errors import ConfigurationError, DeliveryFailure
from chat_relay.telemetry.classifier import classify

# DNS labels; underscores appear in some internal service names
_HOSTNAME = re.compile(r"[^\W_][\w-]*(\.[\w-]+)*\.?")


class Scheme(Enum):
    """Closed set of supported transports."""

    PLAIN = "http"
    ENCRYPTED = "https"

    @property
    def default_port(self) -> int:
        return ENCRYPTED_DEFAULT_PORT if self is Scheme.ENCRYPTED else PLAIN_DEFAULT_PORT


@dataclass(frozen=True)
class TransportTarget:
    """Everything needed to issue one outbound telemetry request."""

    scheme: Scheme
    host: str
    port: int
    path: str = "/"
    auth_token: str | None = field(default=None, repr=False)

    @property
    def url(self) -> str:
        host = f"[{self.host}]" if ":" in self.host else self.host
        return f"{self.scheme.value}://{host}:{self.port}{self.path}"

    def headers(self) -> dict[str, str]:
        """Credential headers, empty when no token is configured."""
        if not self.auth_token:
            return {}
        return {"Authorization": f"Bearer {self.auth_token}"}


def _valid_host(host: str) -> bool:
    if ":" in host:
        try:
            ipaddress.IPv6Address(host.split("%", 1)[0])
        except ValueError:
            return False
        return True
    return _HOSTNAME.fullmatch(host) is not None


def resolve(destination_url: str, auth_token: str | None = None) -> TransportTarget:
    """Resolve a configured destination URL into a transport target.

    ``https`` selects the encrypted transport (default port 443); every other
    scheme is sent as plain ``http`` (default port 80).  An explicit port
    always wins over the protocol default.

    Raises:
        ConfigurationError: If the string is not an absolute URL with a valid
            host and port, or the token cannot be sent in a header.
    """
    invalid = ConfigurationError(f"invalid telemetry destination: {destination_url!r}")
    try:
        parts = urlsplit(destination_url.strip())
        explicit_port = parts.port
        httpx.URL(destination_url.strip())
    except (AttributeError, TypeError, ValueError, httpx.InvalidURL) as exc:
        raise invalid from exc

    if not parts.scheme or not parts.hostname or not _valid_host(parts.hostname):
        raise invalid
    if explicit_port == 0:
        raise invalid
    if auth_token and not auth_token.isascii():
        raise ConfigurationError("telemetry auth token must be ASCII")

    scheme = Scheme.ENCRYPTED if parts.scheme.lower() == "https" else Scheme.PLAIN
    path = parts.path or "/"
    if parts.query:
        path = f"{path}?{parts.query}"

    return TransportTarget(
        scheme=scheme,
        host=parts.hostname,
        port=explicit_port if explicit_port is not None else scheme.default_port,
        path=path,
        auth_token=auth_token or None,
    )


@dataclass(frozen=True)
class RawResponse:
    """Status line and full body of a collector reply."""

    status_code: int
    status_text: str
    body: str


class Transport(Protocol):
    """Sends one request body to a resolved target."""

    scheme: Scheme

    async def send(
        self,
        target: TransportTarget,
        body: bytes,
        headers: Mapping[str, str],
        timeout: float,
    ) -> RawResponse: ...


class _HttpxTransport:
    """One POST per call over a client that is opened and closed with it."""

    scheme: Scheme

    def __init__(self, verify: bool = True) -> None:
        self._verify = verify

    async def send(
        self,
        target: TransportTarget,
        body: bytes,
        headers: Mapping[str, str],
        timeout: float,
    ) -> RawResponse:
        if target.scheme is not self.scheme:
            raise ValueError(f"{type(self).__name__} cannot send to {target.scheme.value} targets")
        try:
            async with httpx.AsyncClient(
                timeout=timeout,
                verify=self._verify,
                trust_env=False,
            ) as client:
                resp = await client.post(target.url, content=body, headers=dict(headers))
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise DeliveryFailure(str(exc) or type(exc).__name__, classify(exc)) from exc
        return RawResponse(
            status_code=resp.status_code,
            status_text=resp.reason_phrase,
            body=resp.text,
        )


class PlainTransport(_HttpxTransport):
    """Unencrypted HTTP."""

    scheme = Scheme.PLAIN


class EncryptedTransport(_HttpxTransport):
    """HTTPS with certificate verification unless disabled."""

    scheme = Scheme.ENCRYPTED


def default_transports(verify_tls: bool = True) -> dict[Scheme, Transport]:
    """One transport per scheme."""
    return {
        Scheme.PLAIN: PlainTransport(),
        Scheme.ENCRYPTED: EncryptedTransport(verify=verify_tls),
    }
