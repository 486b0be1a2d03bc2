"""Pytest configuration and fixtures."""

import asyncio
from typing import Any

import pytest
import pytest_asyncio

from fayekit.bayeux.client import BayeuxClient
from fayekit.bayeux.config import ClientConfig
from fayekit.bayeux.transport.base import Transport

# Enable async tests without marking each one
pytest_plugins = ["pytest_asyncio"]

ENDPOINT = "https://example.com/faye"


class FakeBayeuxServer(Transport):
    """
    In-process stand-in for a Bayeux server.

    Handshakes hand out client IDs from ``client_ids``. Connects block like
    a long-poll until the test calls ``push()`` with deliveries or an
    exception to raise. Subscribe, unsubscribe and publish succeed unless
    overridden through ``replies``.
    """

    def __init__(self) -> None:
        super().__init__()
        self.opened = False
        self.requests: list[list[dict[str, Any]]] = []
        self.connect_times: list[float] = []
        self.client_ids = ["abc", "def", "ghi"]
        self.handshake_advice: dict[str, Any] | None = {
            "reconnect": "retry",
            "interval": 0,
            "timeout": 30000,
        }
        # channel -> reply overrides (successful, error, advice, ...)
        self.replies: dict[str, dict[str, Any]] = {}
        self.handshake_errors: list[Exception] = []
        # channel -> messages appended to the response after that reply
        self.piggyback: dict[str, list[dict[str, Any]]] = {}
        self._holds: list[tuple[str, str | None, asyncio.Event]] = []
        self._connects: asyncio.Queue = asyncio.Queue()

    async def open(self) -> None:
        self.opened = True

    async def close(self) -> None:
        self.opened = False

    def is_open(self) -> bool:
        return self.opened

    def push(self, item: Any = None) -> None:
        """Release one pending connect with deliveries (list) or an exception."""
        self._connects.put_nowait(item if item is not None else [])

    def hold(self, channel: str, subscription: str | None = None) -> asyncio.Event:
        """Block the next matching request until the returned event is set."""
        gate = asyncio.Event()
        self._holds.append((channel, subscription, gate))
        return gate

    async def _wait_for_hold(self, message: dict[str, Any]) -> None:
        for entry in self._holds:
            channel, subscription, gate = entry
            if channel != message["channel"]:
                continue
            if subscription is not None and subscription != message.get("subscription"):
                continue
            self._holds.remove(entry)
            await gate.wait()
            return

    def sent(self, channel: str) -> list[dict[str, Any]]:
        return [m for batch in self.requests for m in batch if m["channel"] == channel]

    async def send(self, endpoint, messages, timeout=None):
        self.requests.append(messages)
        response: list[dict[str, Any]] = []
        for message in messages:
            channel = message["channel"]
            reply: dict[str, Any] = {"channel": channel, "id": message.get("id")}
            await self._wait_for_hold(message)

            if channel == "/meta/handshake":
                if self.handshake_errors:
                    raise self.handshake_errors.pop(0)
                reply.update(successful=True, clientId=self.client_ids.pop(0))
                if self.handshake_advice is not None:
                    reply["advice"] = dict(self.handshake_advice)
            elif channel == "/meta/connect":
                self.connect_times.append(asyncio.get_running_loop().time())
                item = await self._connects.get()
                if isinstance(item, Exception):
                    raise item
                response.extend(item)
                reply.update(successful=True, clientId=message["clientId"])
            elif channel in ("/meta/subscribe", "/meta/unsubscribe"):
                reply.update(successful=True, subscription=message["subscription"])
            else:
                reply.update(successful=True)

            reply.update(self.replies.get(channel, {}))
            response.append(reply)
            response.extend(self.piggyback.get(channel, []))
        return response


@pytest.fixture
def server():
    return FakeBayeuxServer()


@pytest.fixture
def config():
    return ClientConfig(endpoint=ENDPOINT, retry_interval=0.05, request_timeout=5.0)


@pytest_asyncio.fixture
async def client(server, config):
    client = BayeuxClient(server, config)
    yield client
    # Let any blocked long-poll finish so the loop can exit
    server.push()
    await client.aclose()


@pytest.fixture
def eventually():
    """Wait until a condition holds, failing after a timeout."""

    async def wait(predicate, timeout: float = 1.0) -> None:
        async def poll():
            while not predicate():
                await asyncio.sleep(0.005)

        await asyncio.wait_for(poll(), timeout=timeout)

    return wait
