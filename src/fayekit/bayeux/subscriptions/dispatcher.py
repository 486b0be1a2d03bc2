"""Routes inbound message batches to the client or to listeners."""

from __future__ import annotations

import inspect
import logging
from typing import Callable

from fayekit.bayeux.protocol.errors import ListenerError
from fayekit.bayeux.protocol.messages import Message
from fayekit.bayeux.subscriptions.registry import SubscriptionRegistry

logger = logging.getLogger(__name__)

ReplyHandler = Callable[[Message], None]
ErrorHook = Callable[[Exception], None]


class Dispatcher:
    """
    Delivers a response batch in arrival order.

    Meta-channel messages and replies go to the reply handler; everything
    else is a delivery and goes to the listeners the registry resolves
    for its channel. A failing listener never stops the batch.
    """

    def __init__(
        self,
        registry: SubscriptionRegistry,
        on_reply: ReplyHandler,
        on_error: ErrorHook | None = None,
    ):
        self.registry = registry
        self._on_reply = on_reply
        self._on_error = on_error

    async def dispatch(self, batch: list[Message]) -> int:
        """
        Dispatch a batch.

        Returns:
            Number of listener invocations made.
        """
        delivered = 0
        for message in batch:
            if message.is_meta or message.is_reply:
                self._on_reply(message)
                continue
            delivered += await self.deliver(message)
        return delivered

    async def deliver(self, message: Message) -> int:
        """Invoke every listener subscribed to the message's channel."""
        handles = self.registry.resolve(message.channel)
        if not handles:
            logger.debug(f"No listeners for {message.channel}")
            return 0

        for handle in handles:
            try:
                result = handle.listener(message.data)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.exception(f"Listener error on {message.channel}")
                self._report(ListenerError(message.channel, e))
        return len(handles)

    def _report(self, error: Exception) -> None:
        if self._on_error is None:
            return
        try:
            self._on_error(error)
        except Exception:
            logger.exception("Error hook failed")
