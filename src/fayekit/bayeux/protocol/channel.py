"""Bayeux channel names, patterns and meta-channel constants."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum

from fayekit.bayeux.protocol.errors import InvalidChannelError

META_CHANNEL_PREFIX = "/meta/"

WILDCARD = "*"
DEEP_WILDCARD = "**"

_SEGMENT = re.compile(r"^[A-Za-z0-9\-_!~()$@]+$")


class MetaChannel(str, Enum):
    """Reserved channels used for session control."""

    HANDSHAKE = META_CHANNEL_PREFIX + "handshake"
    CONNECT = META_CHANNEL_PREFIX + "connect"
    DISCONNECT = META_CHANNEL_PREFIX + "disconnect"
    SUBSCRIBE = META_CHANNEL_PREFIX + "subscribe"
    UNSUBSCRIBE = META_CHANNEL_PREFIX + "unsubscribe"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class Channel:
    """
    A validated channel name or subscription pattern.

    Names are slash separated paths such as ``/chat/room1``. Patterns end
    in a wildcard segment: ``*`` matches exactly one segment and ``**``
    matches one or more trailing segments. Wildcards are only allowed as
    the whole final segment.

    Build instances with ``Channel.parse``.
    """

    name: str
    segments: tuple[str, ...] = field(repr=False, compare=False)

    @classmethod
    def parse(cls, name: "str | Channel") -> "Channel":
        """
        Validate a channel name or pattern.

        Raises:
            InvalidChannelError: If the name is malformed.
        """
        if isinstance(name, Channel):
            return name
        if not isinstance(name, str):
            raise InvalidChannelError(name, "channel must be a string")
        if not name.startswith("/"):
            raise InvalidChannelError(name, "must start with '/'")

        segments = tuple(name[1:].split("/"))
        last = len(segments) - 1
        for index, segment in enumerate(segments):
            if not segment:
                raise InvalidChannelError(name, "empty segment")
            if segment in (WILDCARD, DEEP_WILDCARD):
                if index != last:
                    raise InvalidChannelError(
                        name, "wildcards are only allowed as the final segment"
                    )
                continue
            if not _SEGMENT.match(segment):
                raise InvalidChannelError(name, f"bad segment {segment!r}")

        return cls(name=name, segments=segments)

    @property
    def is_wildcard(self) -> bool:
        """True for ``*`` and ``**`` patterns."""
        return self.segments[-1] in (WILDCARD, DEEP_WILDCARD)

    @property
    def is_deep_wildcard(self) -> bool:
        return self.segments[-1] == DEEP_WILDCARD

    @property
    def is_meta(self) -> bool:
        return is_meta(self.name)

    def __str__(self) -> str:
        return self.name


def is_meta(name: str) -> bool:
    """Check if a channel name is a meta-channel."""
    return name.startswith(META_CHANNEL_PREFIX)


def expand(name: str) -> list[str]:
    """
    List every pattern that matches a concrete channel name.

    ``/foo/bar/baz`` expands to ``/foo/bar/baz``, ``/foo/bar/*``,
    ``/**``, ``/foo/**`` and ``/foo/bar/**``.
    """
    segments = name[1:].split("/")
    patterns = [name]

    parent = "/" + "/".join(segments[:-1]) if len(segments) > 1 else ""
    patterns.append(f"{parent}/{WILDCARD}")

    for depth in range(len(segments)):
        prefix = "".join(f"/{s}" for s in segments[:depth])
        patterns.append(f"{prefix}/{DEEP_WILDCARD}")

    return patterns
