"""Bayeux message envelope and advice types."""

from __future__ import annotations

import itertools
from dataclasses import dataclass, field, fields, replace
from enum import Enum
from typing import Any

from fayekit.bayeux.protocol.channel import MetaChannel, is_meta
from fayekit.bayeux.transport.base import MalformedResponseError

BAYEUX_VERSION = "1.0"
MINIMUM_VERSION = "1.0"

# Python attribute name -> wire field name
_WIRE_NAMES = {
    "client_id": "clientId",
    "minimum_version": "minimumVersion",
    "supported_connection_types": "supportedConnectionTypes",
    "connection_type": "connectionType",
}
_PY_NAMES = {wire: py for py, wire in _WIRE_NAMES.items()}

_message_ids = itertools.count(1)


def next_message_id() -> str:
    """Return a process-unique message id."""
    return str(next(_message_ids))


class Reconnect(str, Enum):
    """Server advice on how to recover a broken connection."""

    RETRY = "retry"
    HANDSHAKE = "handshake"
    NONE = "none"


@dataclass(frozen=True)
class Advice:
    """
    Reconnect policy and timing supplied by the server.

    ``interval`` and ``timeout`` are in seconds; the wire carries
    milliseconds.
    """

    reconnect: Reconnect = Reconnect.RETRY
    interval: float = 0.0
    timeout: float = 60.0

    def merged(self, wire: dict[str, Any]) -> "Advice":
        """
        Apply an advice object from the wire.

        Fields present in ``wire`` replace the current values, absent
        fields keep them. Unknown reconnect values and negative durations
        are ignored.
        """
        changes: dict[str, Any] = {}

        reconnect = wire.get("reconnect")
        if reconnect is not None:
            try:
                changes["reconnect"] = Reconnect(reconnect)
            except ValueError:
                pass

        for name in ("interval", "timeout"):
            value = wire.get(name)
            if isinstance(value, (int, float)) and not isinstance(value, bool) and value >= 0:
                changes[name] = value / 1000.0

        return replace(self, **changes) if changes else self

    def to_dict(self) -> dict[str, Any]:
        return {
            "reconnect": self.reconnect.value,
            "interval": int(self.interval * 1000),
            "timeout": int(self.timeout * 1000),
        }


@dataclass
class Message:
    """
    A Bayeux message.

    The same envelope carries requests, replies (which have
    ``successful`` set) and published or delivered data.
    """

    channel: str
    data: Any = None
    client_id: str | None = None
    id: str | None = None
    successful: bool | None = None
    advice: dict[str, Any] | None = None
    error: str | None = None
    subscription: str | None = None
    ext: dict[str, Any] | None = None
    version: str | None = None
    minimum_version: str | None = None
    supported_connection_types: list[str] | None = None
    connection_type: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)
    """Wire fields this client does not model, kept for extensions."""

    @property
    def is_meta(self) -> bool:
        return is_meta(self.channel)

    @property
    def is_reply(self) -> bool:
        """Replies carry ``successful``; deliveries do not."""
        return self.successful is not None

    def to_dict(self) -> dict[str, Any]:
        """Convert to the wire dict, leaving out unset fields."""
        msg: dict[str, Any] = dict(self.extra)
        for f in fields(self):
            if f.name == "extra":
                continue
            value = getattr(self, f.name)
            if value is None:
                continue
            msg[_WIRE_NAMES.get(f.name, f.name)] = value
        msg["channel"] = str(self.channel)
        return msg

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Message":
        """
        Create from a wire dict.

        Raises:
            MalformedResponseError: If the message has no channel.
        """
        channel = data.get("channel")
        if not isinstance(channel, str):
            raise MalformedResponseError(f"Message without channel: {data!r}")

        known = {f.name for f in fields(cls)} - {"extra"}
        kwargs: dict[str, Any] = {}
        extra: dict[str, Any] = {}
        for key, value in data.items():
            name = _PY_NAMES.get(key, key)
            if name in known:
                kwargs[name] = value
            else:
                extra[key] = value

        if "id" in kwargs and kwargs["id"] is not None:
            kwargs["id"] = str(kwargs["id"])
        return cls(extra=extra, **kwargs)

    def __str__(self) -> str:
        if self.is_reply:
            status = "ok" if self.successful else f"failed: {self.error}"
            return f"Message({self.channel}, id={self.id}, {status})"
        return f"Message({self.channel}, id={self.id})"


def handshake_message(connection_types: list[str]) -> Message:
    return Message(
        channel=MetaChannel.HANDSHAKE.value,
        id=next_message_id(),
        version=BAYEUX_VERSION,
        minimum_version=MINIMUM_VERSION,
        supported_connection_types=list(connection_types),
    )


def connect_message(client_id: str, connection_type: str) -> Message:
    return Message(
        channel=MetaChannel.CONNECT.value,
        id=next_message_id(),
        client_id=client_id,
        connection_type=connection_type,
    )


def disconnect_message(client_id: str) -> Message:
    return Message(
        channel=MetaChannel.DISCONNECT.value,
        id=next_message_id(),
        client_id=client_id,
    )


def subscribe_message(client_id: str, subscription: str) -> Message:
    return Message(
        channel=MetaChannel.SUBSCRIBE.value,
        id=next_message_id(),
        client_id=client_id,
        subscription=subscription,
    )


def unsubscribe_message(client_id: str, subscription: str) -> Message:
    return Message(
        channel=MetaChannel.UNSUBSCRIBE.value,
        id=next_message_id(),
        client_id=client_id,
        subscription=subscription,
    )


def publish_message(client_id: str, channel: str, data: Any) -> Message:
    return Message(
        channel=channel,
        id=next_message_id(),
        client_id=client_id,
        data=data,
    )
