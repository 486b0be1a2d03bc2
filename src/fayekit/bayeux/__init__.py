"""
Bayeux publish/subscribe client.

Submodules:
- transport: HTTP long-polling transport layer
- protocol: channels, messages, advice, session state and errors
- subscriptions: subscription registry and message dispatch
- client: the BayeuxClient state machine
- config: client configuration loading
"""

# Transport layer
from fayekit.bayeux.transport import (
    LongPollingTransport,
    TransportConfig,
    Transport,
    TransportError,
    ConnectionRefusedError,
    TimeoutError,
    MalformedResponseError,
    SessionError,
)

# Protocol layer
from fayekit.bayeux.protocol import (
    Advice,
    BayeuxError,
    Channel,
    ClientState,
    Extension,
    ExtFieldExtension,
    InvalidChannelError,
    ListenerError,
    Message,
    MetaChannel,
    ProtocolError,
    ProtocolErrorKind,
    Reconnect,
)

# Subscriptions
from fayekit.bayeux.subscriptions import (
    Dispatcher,
    ListenerHandle,
    SubscriptionRegistry,
    SubscriptionStatus,
)

# Client
from fayekit.bayeux.client import BayeuxClient
from fayekit.bayeux.config import ClientConfig, load_client_config

__all__ = [
    # Transport
    "LongPollingTransport",
    "TransportConfig",
    "Transport",
    "TransportError",
    "ConnectionRefusedError",
    "TimeoutError",
    "MalformedResponseError",
    "SessionError",
    # Protocol
    "Advice",
    "BayeuxError",
    "Channel",
    "ClientState",
    "Extension",
    "ExtFieldExtension",
    "InvalidChannelError",
    "ListenerError",
    "Message",
    "MetaChannel",
    "ProtocolError",
    "ProtocolErrorKind",
    "Reconnect",
    # Subscriptions
    "Dispatcher",
    "ListenerHandle",
    "SubscriptionRegistry",
    "SubscriptionStatus",
    # Client
    "BayeuxClient",
    "ClientConfig",
    "load_client_config",
]
