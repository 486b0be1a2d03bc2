"""Tests for the HTTP long-polling transport."""

import json

import httpx
import pytest

from fayekit.bayeux.transport import (
    ConnectionRefusedError,
    LongPollingTransport,
    MalformedResponseError,
    SessionError,
    TimeoutError,
    TransportConfig,
    TransportError,
    TransportEventType,
)

ENDPOINT = "https://example.com/faye"


def make_transport(handler, **config):
    return LongPollingTransport(
        TransportConfig(**config),
        http_transport=httpx.MockTransport(handler),
    )


class TestTransportConfig:
    """Tests for TransportConfig validation."""

    def test_defaults(self):
        config = TransportConfig()
        assert config.timeout == 30.0
        assert config.verify_ssl

    def test_invalid_timeout_rejected(self):
        with pytest.raises(ValueError, match="timeout must be positive"):
            TransportConfig(timeout=0)

    def test_invalid_connect_timeout_rejected(self):
        with pytest.raises(ValueError, match="connect_timeout must be positive"):
            TransportConfig(connect_timeout=-1)

    def test_long_poll_needs_two_connections(self):
        with pytest.raises(ValueError, match="max_connections"):
            TransportConfig(max_connections=1)


class TestLongPollingTransport:
    """Tests for LongPollingTransport."""

    @pytest.mark.asyncio
    async def test_send_posts_json_batch(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["method"] = request.method
            seen["url"] = str(request.url)
            seen["content_type"] = request.headers["Content-Type"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(
                200,
                json=[{"channel": "/meta/handshake", "successful": True, "clientId": "abc"}],
            )

        async with make_transport(handler) as transport:
            batch = await transport.send(ENDPOINT, [{"channel": "/meta/handshake", "id": "1"}])

        assert seen["method"] == "POST"
        assert seen["url"] == ENDPOINT
        assert seen["content_type"] == "application/json"
        assert seen["body"] == [{"channel": "/meta/handshake", "id": "1"}]
        assert batch == [{"channel": "/meta/handshake", "successful": True, "clientId": "abc"}]

    @pytest.mark.asyncio
    async def test_custom_headers_sent(self):
        seen = {}

        def handler(request):
            seen["auth"] = request.headers.get("Authorization")
            return httpx.Response(200, json=[])

        async with make_transport(handler, headers={"Authorization": "Bearer t"}) as transport:
            await transport.send(ENDPOINT, [{"channel": "/foo"}])

        assert seen["auth"] == "Bearer t"

    @pytest.mark.asyncio
    async def test_single_object_response_is_a_batch(self):
        def handler(request):
            return httpx.Response(200, json={"channel": "/meta/connect", "successful": True})

        async with make_transport(handler) as transport:
            batch = await transport.send(ENDPOINT, [{"channel": "/meta/connect"}])
        assert batch == [{"channel": "/meta/connect", "successful": True}]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", [b"not json", b"42", b'["x"]'])
    async def test_malformed_response(self, body):
        def handler(request):
            return httpx.Response(200, content=body)

        async with make_transport(handler) as transport:
            with pytest.raises(MalformedResponseError):
                await transport.send(ENDPOINT, [{"channel": "/foo"}])

    @pytest.mark.asyncio
    async def test_http_error_status(self):
        def handler(request):
            return httpx.Response(500, text="boom")

        async with make_transport(handler) as transport:
            with pytest.raises(TransportError, match="HTTP 500"):
                await transport.send(ENDPOINT, [{"channel": "/foo"}])

    @pytest.mark.asyncio
    async def test_timeout_mapped(self):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        async with make_transport(handler) as transport:
            with pytest.raises(TimeoutError):
                await transport.send(ENDPOINT, [{"channel": "/meta/connect"}], timeout=1.0)

    @pytest.mark.asyncio
    async def test_connection_refused_mapped(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        async with make_transport(handler) as transport:
            with pytest.raises(ConnectionRefusedError) as exc_info:
                await transport.send(ENDPOINT, [{"channel": "/foo"}])
        assert isinstance(exc_info.value.cause, httpx.ConnectError)

    @pytest.mark.asyncio
    async def test_send_requires_open(self):
        transport = make_transport(lambda request: httpx.Response(200, json=[]))
        with pytest.raises(SessionError, match="not open"):
            await transport.send(ENDPOINT, [{"channel": "/foo"}])

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self):
        transport = make_transport(lambda request: httpx.Response(200, json=[]))
        await transport.open()
        assert transport.is_open()
        await transport.close()
        await transport.close()
        assert not transport.is_open()

    @pytest.mark.asyncio
    async def test_event_emission(self):
        events = []
        transport = make_transport(lambda request: httpx.Response(200, json=[]))
        transport.on_event(lambda e: events.append(e.type))

        await transport.open()
        await transport.send(ENDPOINT, [{"channel": "/foo"}])
        await transport.close()

        assert events == [
            TransportEventType.OPENED,
            TransportEventType.REQUEST_SENT,
            TransportEventType.RESPONSE_RECEIVED,
            TransportEventType.CLOSED,
        ]

    @pytest.mark.asyncio
    async def test_error_event_emitted(self):
        events = []

        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        transport = make_transport(handler)
        transport.on_event(events.append)
        await transport.open()
        with pytest.raises(ConnectionRefusedError):
            await transport.send(ENDPOINT, [{"channel": "/foo"}])
        await transport.close()

        errors = [e for e in events if e.type == TransportEventType.ERROR]
        assert len(errors) == 1
        assert isinstance(errors[0].error, httpx.ConnectError)
