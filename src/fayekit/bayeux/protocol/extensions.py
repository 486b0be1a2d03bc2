"""Message extensions applied to every outgoing and incoming message."""

from __future__ import annotations

import inspect
import logging
from typing import Any

from fayekit.bayeux.protocol.messages import Message

logger = logging.getLogger(__name__)


class Extension:
    """
    Base class for message extensions.

    Override ``outgoing`` and/or ``incoming``. Each receives a message and
    returns the (possibly modified) message, or ``None`` to drop it. Both
    may be coroutines.
    """

    def outgoing(self, message: Message) -> Any:
        return message

    def incoming(self, message: Message) -> Any:
        return message


class ExtFieldExtension(Extension):
    """
    Adds fixed entries to the ``ext`` field of outgoing messages.

    The usual way to pass authentication tokens to a Faye server.
    Restricted to meta-channels unless ``all_channels`` is set.
    """

    def __init__(self, fields: dict[str, Any], all_channels: bool = False):
        self.fields = dict(fields)
        self.all_channels = all_channels

    def outgoing(self, message: Message) -> Message:
        if self.all_channels or message.is_meta:
            message.ext = {**(message.ext or {}), **self.fields}
        return message


class ExtensionPipeline:
    """Runs messages through registered extensions in order."""

    def __init__(self) -> None:
        self._extensions: list[Extension] = []

    def add(self, extension: Extension) -> None:
        self._extensions.append(extension)
        logger.debug(f"Added extension {type(extension).__name__}")

    def remove(self, extension: Extension) -> None:
        try:
            self._extensions.remove(extension)
        except ValueError:
            pass

    def __len__(self) -> int:
        return len(self._extensions)

    async def outgoing(self, message: Message) -> Message | None:
        return await self._run("outgoing", message)

    async def incoming(self, message: Message) -> Message | None:
        return await self._run("incoming", message)

    async def _run(self, stage: str, message: Message) -> Message | None:
        current: Message | None = message
        for extension in list(self._extensions):
            result = getattr(extension, stage)(current)
            if inspect.isawaitable(result):
                result = await result
            if result is None:
                logger.debug(
                    f"{type(extension).__name__} dropped {stage} message on {message.channel}"
                )
                return None
            current = result
        return current
