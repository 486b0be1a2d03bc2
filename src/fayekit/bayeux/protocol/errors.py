"""Protocol error types."""

from __future__ import annotations

from enum import Enum, auto
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from fayekit.bayeux.protocol.messages import Message

# Bayeux error codes seen in "code:args:message" error strings
VERSION_MISMATCH = 300
CONNTYPE_MISMATCH = 301
EXT_MISMATCH = 302
BAD_REQUEST = 400
CLIENT_UNKNOWN = 401
PARAMETER_MISSING = 402
CHANNEL_FORBIDDEN = 403
CHANNEL_UNKNOWN = 404
CHANNEL_INVALID = 405
EXT_UNKNOWN = 406
PUBLISH_FAILED = 407
SERVER_ERROR = 500


class ProtocolErrorKind(Enum):
    """What went wrong at the protocol level."""

    HANDSHAKE_REJECTED = auto()
    RECONNECT_NONE = auto()
    SUBSCRIBE_REJECTED = auto()
    UNSUBSCRIBE_REJECTED = auto()
    PUBLISH_REJECTED = auto()
    NOT_CONNECTED = auto()


class BayeuxError(Exception):
    """Base class for client-side Bayeux errors."""

    pass


class InvalidChannelError(BayeuxError, ValueError):
    """Channel name or pattern is malformed, or not allowed for the operation."""

    def __init__(self, channel: Any, reason: str):
        self.channel = channel
        self.reason = reason
        super().__init__(f"Invalid channel {channel!r}: {reason}")


def parse_error_string(error: str | None) -> tuple[int | None, list[str], str]:
    """
    Split a Bayeux error string into its parts.

    Bayeux errors look like ``"402:xj3sjdsjdsjad:Unknown Client ID"``;
    the args part is comma separated and may be empty. Strings that do not
    follow the format come back as the message with no code.

    Returns:
        (code, args, message)
    """
    if not error:
        return None, [], ""

    parts = error.split(":", 2)
    if len(parts) == 3 and parts[0].isdigit():
        code, args, message = parts
        return int(code), [a for a in args.split(",") if a], message
    return None, [], error


class ProtocolError(BayeuxError):
    """
    Server rejected a request or advised the client to stop.

    Carries the Bayeux error code and args when the server sent a
    well-formed error string.
    """

    def __init__(
        self,
        kind: ProtocolErrorKind,
        message: str,
        code: int | None = None,
        args: list[str] | None = None,
    ):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.code = code
        self.error_args = args or []

    @classmethod
    def from_reply(cls, kind: ProtocolErrorKind, reply: "Message") -> "ProtocolError":
        """Build from an unsuccessful reply message."""
        code, args, message = parse_error_string(reply.error)
        if not message:
            message = f"{reply.channel} was not successful"
        return cls(kind, message, code=code, args=args)

    @classmethod
    def not_connected(cls, operation: str) -> "ProtocolError":
        """Operation needs a session the client does not have."""
        return cls(
            ProtocolErrorKind.NOT_CONNECTED,
            f"Cannot {operation}: client has no session",
        )

    def __str__(self) -> str:
        if self.code is not None:
            return f"ProtocolError({self.kind.name}, {self.code}): {self.message}"
        return f"ProtocolError({self.kind.name}): {self.message}"


class ListenerError(BayeuxError):
    """An application listener raised while a message was being delivered."""

    def __init__(self, channel: str, cause: Exception):
        super().__init__(f"Listener for {channel} failed: {cause!r}")
        self.channel = channel
        self.cause = cause
