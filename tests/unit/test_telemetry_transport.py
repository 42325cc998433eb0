"""Tests for destination resolution and the per-scheme transports."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from chat_relay.errors import ConfigurationError, DeliveryFailure
from chat_relay.telemetry.classifier import FailureCategory
from chat_relay.telemetry.transport import (
    EncryptedTransport,
    PlainTransport,
    Scheme,
    TransportTarget,
    default_transports,
    resolve,
)


class TestResolvePorts:
    """Tests for scheme and port selection."""

    @pytest.mark.parametrize(
        ("url", "scheme", "port"),
        [
            ("http://collector.example.com", Scheme.PLAIN, 80),
            ("http://collector.example.com/ingest", Scheme.PLAIN, 80),
            ("https://collector.example.com", Scheme.ENCRYPTED, 443),
            ("HTTPS://collector.example.com/x?y=1", Scheme.ENCRYPTED, 443),
            ("tcp://collector.example.com", Scheme.PLAIN, 80),
        ],
    )
    def test_default_port_per_scheme(self, url, scheme, port):
        """Without an explicit port the scheme's default is used."""
        target = resolve(url)
        assert target.scheme is scheme
        assert target.port == port

    @pytest.mark.parametrize(
        ("url", "port"),
        [
            ("http://collector:20001", 20001),
            ("https://collector:10080/cribl", 10080),
            ("http://collector:443", 443),
            ("https://collector:80", 80),
        ],
    )
    def test_explicit_port_overrides_default(self, url, port):
        """An explicit port wins even when it is the other scheme's default."""
        assert resolve(url).port == port

    def test_custom_port_scenario(self):
        """Non-standard collector ports survive into the request URL."""
        target = resolve("http://host:20001/path")
        assert target == TransportTarget(Scheme.PLAIN, "host", 20001, "/path")
        assert target.url == "http://host:20001/path"


class TestResolvePath:
    """Tests for path and query handling."""

    def test_empty_path_defaults_to_root(self):
        """A bare host posts to /."""
        assert resolve("http://collector:9000").path == "/"

    def test_query_is_appended(self):
        """Query strings are kept on the request path."""
        target = resolve("https://collector/services/collector?index=chat&src=relay")
        assert target.path == "/services/collector?index=chat&src=relay"

    def test_root_with_query(self):
        """A query without a path is sent against /."""
        assert resolve("http://collector?token=abc").path == "/?token=abc"

    def test_ipv6_host_is_bracketed_in_url(self):
        """IPv6 literals are bracketed when the URL is rebuilt."""
        target = resolve("http://[::1]:8088/in")
        assert target.host == "::1"
        assert target.url == "http://[::1]:8088/in"

    def test_underscore_service_name(self):
        """Internal service names with underscores resolve."""
        assert resolve("http://log_collector:9000/in").host == "log_collector"


class TestResolveCredentials:
    """Tests for the bearer credential."""

    def test_bearer_header_when_token_present(self):
        """A token becomes an Authorization bearer header."""
        target = resolve("https://collector", auth_token="tok")
        assert target.headers() == {"Authorization": "Bearer tok"}

    @pytest.mark.parametrize("token", [None, ""])
    def test_no_header_without_token(self, token):
        """No token means no Authorization header at all."""
        assert resolve("https://collector", auth_token=token).headers() == {}

    def test_token_not_in_repr(self):
        """The token never shows up in the target's repr."""
        assert "tok" not in repr(resolve("https://collector", auth_token="tok"))

    def test_non_ascii_token_is_rejected(self):
        """A token that cannot be encoded in a header is a configuration error."""
        with pytest.raises(ConfigurationError, match="ASCII") as exc_info:
            resolve("http://collector", auth_token="tök")
        assert "tök" not in str(exc_info.value)


class TestResolveInvalid:
    """Tests for destinations that cannot be resolved."""

    @pytest.mark.parametrize(
        "url",
        [
            "",
            "not a url",
            "collector:20001/path",
            "http://",
            "http://collector:notaport",
            "http://collector:99999",
            "http://collector:0/path",
            "http://exa mple.com/path",
            "http://[::zz]/path",
            None,
        ],
    )
    def test_invalid_destinations_raise(self, url):
        """Malformed URLs, bad hosts and out-of-range ports are rejected."""
        with pytest.raises(ConfigurationError):
            resolve(url)  # type: ignore[arg-type]


def _mock_client(post: AsyncMock) -> MagicMock:
    client = MagicMock()
    client.post = post
    client.__aenter__ = AsyncMock(return_value=client)
    client.__aexit__ = AsyncMock(return_value=False)
    return client


class TestHttpxTransports:
    """Tests for the httpx-backed transports."""

    async def test_plain_transport_posts_body(self):
        """The body and headers are posted to the resolved URL."""
        response = httpx.Response(202, text="queued")
        post = AsyncMock(return_value=response)
        target = resolve("http://collector:20001/path")

        with patch(
            "chat_relay.telemetry.transport.httpx.AsyncClient",
            return_value=_mock_client(post),
        ) as mock_cls:
            raw = await PlainTransport().send(target, b"{}", {"X-Test": "1"}, 2.5)

        assert raw.status_code == 202
        assert raw.status_text == "Accepted"
        assert raw.body == "queued"
        post.assert_awaited_once_with(
            "http://collector:20001/path", content=b"{}", headers={"X-Test": "1"}
        )
        assert mock_cls.call_args.kwargs["timeout"] == 2.5

    async def test_encrypted_transport_passes_verify_flag(self):
        """Certificate verification follows the transport's flag."""
        post = AsyncMock(return_value=httpx.Response(200))
        with patch(
            "chat_relay.telemetry.transport.httpx.AsyncClient",
            return_value=_mock_client(post),
        ) as mock_cls:
            await EncryptedTransport(verify=False).send(
                resolve("https://collector"), b"{}", {}, 1.0
            )
        assert mock_cls.call_args.kwargs["verify"] is False

    async def test_network_error_becomes_delivery_failure(self):
        """Connection errors surface as classified DeliveryFailure."""
        post = AsyncMock(side_effect=httpx.ConnectError("[Errno 111] Connection refused"))
        with patch(
            "chat_relay.telemetry.transport.httpx.AsyncClient",
            return_value=_mock_client(post),
        ):
            with pytest.raises(DeliveryFailure) as exc_info:
                await PlainTransport().send(resolve("http://collector"), b"{}", {}, 1.0)

        assert exc_info.value.classification is FailureCategory.CONNECTION_REFUSED
        assert "Connection refused" in exc_info.value.reason

    @pytest.mark.parametrize(
        "error",
        [
            httpx.DecodingError("bad gzip"),
            httpx.TooManyRedirects("loop"),
            httpx.InvalidURL("bad url"),
        ],
    )
    async def test_non_network_httpx_errors_become_delivery_failure(self, error):
        """Any httpx error raised while sending is a DeliveryFailure."""
        post = AsyncMock(side_effect=error)
        with patch(
            "chat_relay.telemetry.transport.httpx.AsyncClient",
            return_value=_mock_client(post),
        ):
            with pytest.raises(DeliveryFailure) as exc_info:
                await PlainTransport().send(resolve("http://collector"), b"{}", {}, 1.0)

        assert exc_info.value.classification is FailureCategory.OTHER

    async def test_scheme_mismatch_is_rejected(self):
        """A transport refuses targets of the other scheme."""
        with pytest.raises(ValueError):
            await PlainTransport().send(resolve("https://collector"), b"{}", {}, 1.0)

    def test_default_transports_cover_both_schemes(self):
        """One transport is registered per scheme."""
        transports = default_transports()
        assert isinstance(transports[Scheme.PLAIN], PlainTransport)
        assert isinstance(transports[Scheme.ENCRYPTED], EncryptedTransport)
