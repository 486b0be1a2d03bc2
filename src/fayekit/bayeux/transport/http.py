"""HTTP long-polling transport for Bayeux."""

from __future__ import annotations

import time
from typing import Any

import httpx

from fayekit.lib import oj
from fayekit.bayeux.transport.base import (
    Transport,
    TransportError,
    ConnectionRefusedError,
    TimeoutError,
    MalformedResponseError,
    SessionError,
)
from fayekit.bayeux.transport.types import (
    TransportConfig,
    TransportEvent,
    TransportEventType,
)


class LongPollingTransport(Transport):
    """
    Bayeux long-polling transport.

    Every batch is one HTTP POST with a JSON array body; the response
    body is the JSON array of replies and deliveries. The server holds
    /meta/connect requests open until it has something to deliver or the
    advised timeout elapses, so callers pass a per-request timeout for
    those.
    """

    connection_type = "long-polling"

    def __init__(
        self,
        config: TransportConfig | None = None,
        http_transport: httpx.AsyncBaseTransport | None = None,
    ):
        super().__init__(config)
        self._http_transport = http_transport
        self._client: httpx.AsyncClient | None = None
        self._closing: bool = False

    async def open(self) -> None:
        """Create the pooled HTTP client."""
        if self._client is not None:
            return

        try:
            timeout = httpx.Timeout(
                connect=self.config.connect_timeout,
                read=self.config.timeout,
                write=self.config.timeout,
                pool=self.config.timeout,
            )
            limits = httpx.Limits(max_connections=self.config.max_connections)
            self._client = httpx.AsyncClient(
                timeout=timeout,
                limits=limits,
                headers=self.config.headers,
                verify=self.config.verify_ssl,
                transport=self._http_transport,
            )
            self._closing = False
        except Exception as e:
            raise ConnectionRefusedError(
                f"Failed to initialize HTTP client: {e}", cause=e
            )

        self._emit_event(
            TransportEvent(type=TransportEventType.OPENED, timestamp=time.time())
        )

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client is None:
            return

        self._closing = True
        await self._client.aclose()
        self._client = None

        self._emit_event(
            TransportEvent(type=TransportEventType.CLOSED, timestamp=time.time())
        )

    def is_open(self) -> bool:
        """Check if transport is open."""
        return self._client is not None and not self._closing

    async def send(
        self,
        endpoint: str,
        messages: list[dict[str, Any]],
        timeout: float | None = None,
    ) -> list[dict[str, Any]]:
        """POST a message batch and return the decoded response batch."""
        if not self.is_open():
            raise SessionError("Transport not open")

        channels = [m.get("channel") for m in messages]
        self._emit_event(
            TransportEvent(
                type=TransportEventType.REQUEST_SENT,
                timestamp=time.time(),
                data={"endpoint": endpoint, "channels": channels},
            )
        )

        request_timeout: Any = httpx.USE_CLIENT_DEFAULT
        if timeout is not None:
            request_timeout = httpx.Timeout(
                timeout, connect=self.config.connect_timeout
            )

        try:
            response = await self._client.post(
                endpoint,
                content=oj.dumps(messages),
                headers={
                    "Content-Type": "application/json",
                    "Accept": "application/json",
                },
                timeout=request_timeout,
            )
        except httpx.TimeoutException as e:
            self._emit_error(e)
            raise TimeoutError(f"Request timed out: {e}", cause=e)
        except httpx.ConnectError as e:
            self._emit_error(e)
            raise ConnectionRefusedError(f"Connection failed: {e}", cause=e)
        except httpx.HTTPError as e:
            self._emit_error(e)
            raise TransportError(f"HTTP error: {e}", cause=e)

        if response.status_code >= 400:
            error = TransportError(f"HTTP {response.status_code}: {response.text}")
            self._emit_error(error)
            raise error

        batch = self._decode(response.content)
        self._emit_event(
            TransportEvent(
                type=TransportEventType.RESPONSE_RECEIVED,
                timestamp=time.time(),
                data={"count": len(batch)},
            )
        )
        return batch

    def _decode(self, body: bytes) -> list[dict[str, Any]]:
        """Parse a response body into a list of message dicts."""
        try:
            decoded = oj.loads(body)
        except oj.JSONDecodeError as e:
            raise MalformedResponseError(f"Failed to parse response: {e}", cause=e)

        # A single object is accepted as a batch of one
        if isinstance(decoded, dict):
            decoded = [decoded]

        if not isinstance(decoded, list) or not all(
            isinstance(item, dict) for item in decoded
        ):
            raise MalformedResponseError(
                f"Expected a JSON array of messages, got {type(decoded).__name__}"
            )
        return decoded

    def _emit_error(self, error: Exception) -> None:
        self._emit_event(
            TransportEvent(
                type=TransportEventType.ERROR,
                timestamp=time.time(),
                error=error,
            )
        )
