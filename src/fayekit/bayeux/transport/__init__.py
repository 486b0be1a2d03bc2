"""
Bayeux Transport Layer.

Implements the HTTP long-polling transport.
"""

from fayekit.bayeux.transport.types import TransportConfig, TransportEvent, TransportEventType
from fayekit.bayeux.transport.base import (
    Transport,
    TransportError,
    ConnectionRefusedError,
    TimeoutError,
    MalformedResponseError,
    SessionError,
)
from fayekit.bayeux.transport.http import LongPollingTransport

__all__ = [
    "Transport",
    "TransportConfig",
    "TransportEvent",
    "TransportEventType",
    "TransportError",
    "ConnectionRefusedError",
    "TimeoutError",
    "MalformedResponseError",
    "SessionError",
    "LongPollingTransport",
]
