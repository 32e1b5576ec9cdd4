"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
Corsgate, a product of Garudex Labs

Unit tests for the forwarding engine.

Tests the httpx-backed engine:
- Option merging and validation
- Target resolution
- Header preparation (hop-by-hop removal, X-Forwarded-*)
- Streaming upstream responses into the response handle
- Error channel emission
"""

from unittest.mock import AsyncMock, Mock

import httpx
import pytest

from corsgate.exceptions import InvalidConfigurationError, UnresolvableTargetError
from corsgate.gateway.forwarding import (
    TLS_REJECT_UNAUTHORIZED_ENV,
    ForwardingEngine,
    build_forwarding_options,
)
from corsgate.gateway.response import ResponseHandle


class BrokenStream(httpx.AsyncByteStream):
    """Upstream body that fails after the first chunk."""

    async def __aiter__(self):
        yield b"partial"
        raise httpx.ReadError("upstream reset")


class TestForwardingOptions:
    """Test option merging."""

    def test_defaults(self, monkeypatch):
        """Defaults forward X-Forwarded-* and verify upstream TLS."""
        monkeypatch.delenv(TLS_REJECT_UNAUTHORIZED_ENV, raising=False)
        options = build_forwarding_options()

        assert options["xfwd"] is True
        assert options["secure"] is True
        assert options["target"] is None

    def test_env_disables_upstream_verification(self, monkeypatch):
        """CORSGATE_TLS_REJECT_UNAUTHORIZED=0 turns verification off."""
        monkeypatch.setenv(TLS_REJECT_UNAUTHORIZED_ENV, "0")
        assert build_forwarding_options()["secure"] is False

    def test_overrides_are_merged(self):
        """Overrides replace individual defaults."""
        options = build_forwarding_options({"xfwd": False, "timeout": 5})

        assert options["xfwd"] is False
        assert options["timeout"] == 5
        assert "secure" in options

    def test_unknown_option_rejected(self):
        """Typos in overrides fail loudly."""
        with pytest.raises(InvalidConfigurationError):
            build_forwarding_options({"targt": "http://x"})


class TestResolveTarget:
    """Test upstream URL derivation."""

    def test_url_in_path(self, request_factory):
        """Without a configured target the path carries the URL."""
        engine = ForwardingEngine()
        request = request_factory("/https://api.example.com/v1/items", query_string=b"page=2")

        assert engine.resolve_target(request) == "https://api.example.com/v1/items?page=2"

    def test_configured_target(self, request_factory):
        """A configured target prefixes the request path."""
        engine = ForwardingEngine({"target": "http://upstream.internal/"})
        request = request_factory("/v1/items", query_string=b"a=1")

        assert engine.resolve_target(request) == "http://upstream.internal/v1/items?a=1"

    def test_url_in_path_keeps_percent_escapes(self, request_factory):
        """Encoded ? and # stay part of the upstream path."""
        engine = ForwardingEngine()
        request = request_factory(
            "/https://api.test/files/a?b#c",
            raw_path=b"/https://api.test/files/a%3Fb%23c",
        )

        assert engine.resolve_target(request) == "https://api.test/files/a%3Fb%23c"

    def test_configured_target_keeps_percent_escapes(self, request_factory):
        """The configured-target branch forwards the raw path too."""
        engine = ForwardingEngine({"target": "http://upstream.internal"})
        request = request_factory(
            "/files/a b?c",
            raw_path=b"/files/a%20b%3Fc",
            query_string=b"x=%2F",
        )

        assert engine.resolve_target(request) == "http://upstream.internal/files/a%20b%3Fc?x=%2F"

    def test_missing_raw_path_uses_decoded_path(self, request_factory):
        """Servers that omit raw_path fall back to the decoded path."""
        engine = ForwardingEngine({"target": "http://upstream.internal"})
        request = request_factory("/v1/items")
        del request.scope["raw_path"]

        assert engine.resolve_target(request) == "http://upstream.internal/v1/items"

    @pytest.mark.parametrize("path", ["/", "/favicon.ico", "/ftp://example.com/x", "/https://"])
    def test_unresolvable(self, request_factory, path):
        """Paths without an http(s) URL cannot be forwarded."""
        engine = ForwardingEngine()
        with pytest.raises(UnresolvableTargetError):
            engine.resolve_target(request_factory(path))


class TestPrepareHeaders:
    """Test outbound header preparation."""

    def test_strips_hop_by_hop_and_host(self, request_factory):
        """Hop-by-hop headers and Host are not forwarded."""
        engine = ForwardingEngine({"xfwd": False})
        request = request_factory(headers={
            "Host": "gateway.local",
            "Connection": "keep-alive",
            "Transfer-Encoding": "chunked",
            "Authorization": "Bearer abc",
        })

        headers = engine.prepare_headers(request)

        assert headers == {"authorization": "Bearer abc"}

    def test_adds_forwarded_headers(self, request_factory):
        """xfwd adds client address, port and scheme."""
        engine = ForwardingEngine()
        request = request_factory(headers={"Host": "gateway.local:8080"})

        headers = engine.prepare_headers(request)

        assert headers["x-forwarded-for"] == "203.0.113.7"
        assert headers["x-forwarded-port"] == "8080"
        assert headers["x-forwarded-proto"] == "http"

    def test_appends_to_existing_forwarded_headers(self, request_factory):
        """Existing X-Forwarded-* values are extended."""
        engine = ForwardingEngine()
        request = request_factory(
            headers={"Host": "gateway.local", "X-Forwarded-For": "198.51.100.1"},
            scheme="https",
            server=("gateway.local", 443),
        )

        headers = engine.prepare_headers(request)

        assert headers["x-forwarded-for"] == "198.51.100.1,203.0.113.7"
        assert headers["x-forwarded-port"] == "443"
        assert headers["x-forwarded-proto"] == "https"


class TestForward:
    """Test forwarding a request end to end."""

    @pytest.mark.asyncio
    async def test_streams_upstream_response(self, request_factory, recording_send):
        """Upstream status, headers and body reach the client."""
        seen = {}

        def upstream(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["method"] = request.method
            seen["body"] = request.content
            return httpx.Response(
                201,
                headers={"Content-Type": "application/json", "Connection": "close"},
                content=b'{"ok":true}',
            )

        engine = ForwardingEngine(transport=httpx.MockTransport(upstream))
        response = ResponseHandle(recording_send)
        request = request_factory("/https://api.example.com/items", method="POST", body=b"payload")

        await engine.forward(request, response)

        assert seen == {"url": "https://api.example.com/items", "method": "POST", "body": b"payload"}
        assert recording_send.status == 201
        assert recording_send.headers["content-type"] == "application/json"
        assert "connection" not in recording_send.headers
        assert recording_send.body == b'{"ok":true}'
        assert response.finished is True

    @pytest.mark.asyncio
    async def test_streams_chunked_upstream_body(self, request_factory, recording_send):
        """An unread upstream stream is relayed chunk by chunk."""
        def upstream(request):
            return httpx.Response(200, stream=httpx.ByteStream(b"streamed body"))

        engine = ForwardingEngine(transport=httpx.MockTransport(upstream))
        response = ResponseHandle(recording_send)

        await engine.forward(request_factory("/https://api.example.com/"), response)

        assert recording_send.status == 200
        assert recording_send.body == b"streamed body"
        assert response.finished is True

    @pytest.mark.asyncio
    async def test_upstream_headers_override_staged(self, request_factory, recording_send):
        """Upstream values replace staged headers with the same name."""
        def upstream(request):
            return httpx.Response(200, headers={"Access-Control-Allow-Origin": "https://app.example"})

        engine = ForwardingEngine(transport=httpx.MockTransport(upstream))
        response = ResponseHandle(recording_send)
        response.set_header("Access-Control-Allow-Origin", "*")
        response.set_header("Access-Control-Allow-Credentials", "true")

        await engine.forward(request_factory("/https://api.example.com/"), response)

        assert recording_send.headers["access-control-allow-origin"] == "https://app.example"
        assert recording_send.headers["access-control-allow-credentials"] == "true"

    @pytest.mark.asyncio
    async def test_connect_error_is_emitted(self, request_factory, recording_send):
        """Connection failures go to the error channel, not the caller."""
        def upstream(request):
            raise httpx.ConnectError("Connection refused", request=request)

        engine = ForwardingEngine(transport=httpx.MockTransport(upstream))
        listener = Mock()
        engine.on_error(listener)
        request = request_factory("/https://api.example.com/")
        response = ResponseHandle(recording_send)

        await engine.forward(request, response)

        listener.assert_called_once()
        error, seen_request, seen_response = listener.call_args.args
        assert isinstance(error, httpx.ConnectError)
        assert seen_request is request
        assert seen_response is response
        assert response.headers_sent is False

    @pytest.mark.asyncio
    async def test_unresolvable_target_is_emitted(self, request_factory, recording_send):
        """Target resolution failures use the same channel."""
        engine = ForwardingEngine()
        listener = AsyncMock()
        engine.on_error(listener)

        await engine.forward(request_factory("/not-a-url"), ResponseHandle(recording_send))

        listener.assert_awaited_once()
        assert isinstance(listener.await_args.args[0], UnresolvableTargetError)

    @pytest.mark.asyncio
    async def test_mid_stream_failure_after_headers(self, request_factory, recording_send):
        """A body failure is emitted with the response already started."""
        def upstream(request):
            return httpx.Response(200, stream=BrokenStream())

        engine = ForwardingEngine(transport=httpx.MockTransport(upstream))
        states = []

        def listener(error, request, response):
            states.append((type(error), response.headers_sent, response.finished))

        engine.on_error(listener)

        await engine.forward(request_factory("/https://api.example.com/"), ResponseHandle(recording_send))

        assert states == [(httpx.ReadError, True, False)]
        assert recording_send.body == b"partial"

    @pytest.mark.asyncio
    async def test_error_without_listener_propagates(self, request_factory, recording_send):
        """With nobody listening the failure is raised."""
        engine = ForwardingEngine()

        with pytest.raises(UnresolvableTargetError):
            await engine.forward(request_factory("/nowhere"), ResponseHandle(recording_send))

    @pytest.mark.asyncio
    async def test_aclose(self):
        """Closing releases the httpx client."""
        engine = ForwardingEngine()
        await engine.aclose()
        assert engine.http_client.is_closed
