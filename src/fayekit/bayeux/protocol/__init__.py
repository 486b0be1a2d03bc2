"""
Bayeux protocol layer.

Channels, message envelopes, advice, session state and errors.
"""

from fayekit.bayeux.protocol.channel import Channel, MetaChannel, expand, is_meta
from fayekit.bayeux.protocol.errors import (
    BayeuxError,
    InvalidChannelError,
    ListenerError,
    ProtocolError,
    ProtocolErrorKind,
    parse_error_string,
)
from fayekit.bayeux.protocol.extensions import Extension, ExtFieldExtension, ExtensionPipeline
from fayekit.bayeux.protocol.messages import Advice, Message, Reconnect
from fayekit.bayeux.protocol.session import Session
from fayekit.bayeux.protocol.state import (
    ClientState,
    ClientStateMachine,
    InvalidStateTransition,
)

__all__ = [
    "Channel",
    "MetaChannel",
    "expand",
    "is_meta",
    "BayeuxError",
    "InvalidChannelError",
    "ListenerError",
    "ProtocolError",
    "ProtocolErrorKind",
    "parse_error_string",
    "Extension",
    "ExtFieldExtension",
    "ExtensionPipeline",
    "Advice",
    "Message",
    "Reconnect",
    "Session",
    "ClientState",
    "ClientStateMachine",
    "InvalidStateTransition",
]
