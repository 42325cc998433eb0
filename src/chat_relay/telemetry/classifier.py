"""Diagnostic classification of telemetry delivery failures.

Purely informational: the category is attached to log lines so operators can
tell port blocking, DNS and certificate problems apart.  It never changes the
outcome of a dispatch.
"""

from __future__ import annotations

import errno
import socket
import ssl
from collections.abc import Iterator
from enum import Enum

import httpx


class FailureCategory(Enum):
    """Diagnostic labels for delivery failures."""

    TIMEOUT = "timeout"
    CONNECTION_REFUSED = "connection-refused"
    CONNECTION_RESET = "connection-reset"
    NAME_RESOLUTION = "name-resolution-failure"
    TLS = "tls-failure"
    OTHER = "other-network-error"


_HINTS: dict[FailureCategory, str] = {
    FailureCategory.TIMEOUT: "collector did not answer in time; outbound port may be silently dropped",
    FailureCategory.CONNECTION_REFUSED: "nothing listening on the collector port, or the port is blocked",
    FailureCategory.CONNECTION_RESET: "connection dropped mid-request; check proxies and collector limits",
    FailureCategory.NAME_RESOLUTION: "collector hostname did not resolve; check DNS and the configured URL",
    FailureCategory.TLS: "TLS handshake failed; check the certificate or use a plain http URL",
    FailureCategory.OTHER: "unclassified network error",
}

# Substrings seen in error messages when the exception chain is opaque
_MESSAGE_MARKERS: tuple[tuple[FailureCategory, tuple[str, ...]], ...] = (
    (FailureCategory.TIMEOUT, ("timed out", "timeout", "etimedout")),
    (FailureCategory.CONNECTION_REFUSED, ("connection refused", "econnrefused")),
    (FailureCategory.CONNECTION_RESET, ("connection reset", "econnreset", "broken pipe")),
    (
        FailureCategory.NAME_RESOLUTION,
        (
            "name or service not known",
            "nodename nor servname",
            "getaddrinfo",
            "temporary failure in name resolution",
            "enotfound",
        ),
    ),
    (FailureCategory.TLS, ("certificate", "ssl", "tls")),
)

# Bare OSErrors raised with only an errno set
_ERRNO_CATEGORIES: dict[int, FailureCategory] = {
    errno.ECONNREFUSED: FailureCategory.CONNECTION_REFUSED,
    errno.ECONNRESET: FailureCategory.CONNECTION_RESET,
    errno.ETIMEDOUT: FailureCategory.TIMEOUT,
}


def _chain(failure: BaseException) -> Iterator[BaseException]:
    """Walk causes, contexts and exception-group members depth first."""
    seen: set[int] = set()
    stack: list[BaseException] = [failure]
    while stack:
        exc = stack.pop()
        if id(exc) in seen:
            continue
        seen.add(id(exc))
        yield exc
        for linked in (exc.__context__, exc.__cause__):
            if linked is not None:
                stack.append(linked)
        if isinstance(exc, BaseExceptionGroup):
            stack.extend(reversed(exc.exceptions))


def _by_type(exc: BaseException) -> FailureCategory | None:
    # ssl.SSLError and socket.gaierror are OSError subclasses, check them first
    if isinstance(exc, ssl.SSLError):
        return FailureCategory.TLS
    if isinstance(exc, socket.gaierror):
        return FailureCategory.NAME_RESOLUTION
    if isinstance(exc, (TimeoutError, httpx.TimeoutException)):
        return FailureCategory.TIMEOUT
    if isinstance(exc, ConnectionRefusedError):
        return FailureCategory.CONNECTION_REFUSED
    if isinstance(exc, (ConnectionResetError, BrokenPipeError)):
        return FailureCategory.CONNECTION_RESET
    if isinstance(exc, OSError) and exc.errno in _ERRNO_CATEGORIES:
        return _ERRNO_CATEGORIES[exc.errno]
    return None


def classify(failure: BaseException | str) -> FailureCategory:
    """Derive a diagnostic category for a delivery failure.

    Args:
        failure: The exception raised while sending, or a bare reason string.

    Returns:
        The most specific category found in the exception chain, falling back
        to message heuristics and finally ``OTHER``.
    """
    if isinstance(failure, BaseException):
        messages = []
        for exc in _chain(failure):
            category = _by_type(exc)
            if category is not None:
                return category
            messages.append(str(exc))
        text = " ".join(messages).lower()
    else:
        text = str(failure).lower()

    for category, markers in _MESSAGE_MARKERS:
        if any(marker in text for marker in markers):
            return category
    return FailureCategory.OTHER


def describe(category: FailureCategory) -> str:
    """Operator-facing hint for a category."""
    return _HINTS[category]
