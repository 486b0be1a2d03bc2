"""Subscription registry: channel patterns to local listeners."""

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Awaitable, Callable

from fayekit.bayeux.protocol.channel import Channel, expand

logger = logging.getLogger(__name__)

# Listeners receive the message data; they may be plain functions or coroutines
Listener = Callable[[Any], Awaitable[None] | None]

_handle_ids = itertools.count(1)


class SubscriptionStatus(Enum):
    """Where a subscription is in its server round trip."""

    PENDING = auto()
    SUBSCRIBING = auto()
    ACTIVE = auto()
    PENDING_REMOVAL = auto()


_AWAITING_ACK = (SubscriptionStatus.PENDING, SubscriptionStatus.SUBSCRIBING)


@dataclass(eq=False)
class ListenerHandle:
    """
    Opaque handle for one registered listener.

    Returned by subscribe and passed back to unsubscribe. Handles compare
    by identity, so registering the same callable twice gives two
    independent handles.
    """

    channel: Channel
    listener: Listener
    id: int = field(default_factory=lambda: next(_handle_ids))

    def __repr__(self) -> str:
        return f"ListenerHandle({self.channel}, id={self.id})"


@dataclass
class Subscription:
    """Listeners sharing one server-side subscription."""

    channel: Channel
    listeners: list[ListenerHandle] = field(default_factory=list)
    status: SubscriptionStatus = SubscriptionStatus.PENDING


class SubscriptionRegistry:
    """
    Maps channel patterns to listeners and tracks subscribe/unsubscribe
    round trips.

    Only ACTIVE subscriptions receive deliveries. The registry never talks
    to the server itself; its mutators report whether a request is due
    and the client sends it.
    """

    def __init__(self) -> None:
        self._subscriptions: dict[str, Subscription] = {}

    def __len__(self) -> int:
        return len(self._subscriptions)

    def __contains__(self, channel: object) -> bool:
        return str(channel) in self._subscriptions

    def get(self, channel: str | Channel) -> Subscription | None:
        return self._subscriptions.get(str(channel))

    def add(self, channel: Channel, listener: Listener) -> tuple[ListenerHandle, bool]:
        """
        Register a listener.

        Returns:
            (handle, needs_subscribe): needs_subscribe is True when the
            server must be sent a /meta/subscribe for this channel.
        """
        handle = ListenerHandle(channel=channel, listener=listener)
        subscription = self._subscriptions.get(channel.name)

        if subscription is None:
            subscription = Subscription(channel=channel)
            self._subscriptions[channel.name] = subscription
            subscription.listeners.append(handle)
            logger.debug(f"New subscription {channel} (pending)")
            return handle, True

        subscription.listeners.append(handle)
        if subscription.status == SubscriptionStatus.PENDING_REMOVAL:
            # Unsubscribe already went out; subscribe again
            subscription.status = SubscriptionStatus.PENDING
            logger.debug(f"Subscription {channel} revived before removal ack")
            return handle, True
        return handle, False

    def remove(self, handle: ListenerHandle) -> bool:
        """
        Unregister a listener.

        Returns:
            True when the subscription lost its last listener and is now
            PENDING_REMOVAL, meaning a /meta/unsubscribe is due.
        """
        subscription = self._subscriptions.get(handle.channel.name)
        if subscription is None or handle not in subscription.listeners:
            return False

        subscription.listeners.remove(handle)
        if subscription.listeners:
            return False

        subscription.status = SubscriptionStatus.PENDING_REMOVAL
        logger.debug(f"Subscription {handle.channel} pending removal")
        return True

    def mark_subscribing(self, channels: list[Channel]) -> None:
        """Flag PENDING subscriptions whose /meta/subscribe is going out."""
        for channel in channels:
            subscription = self._subscriptions.get(channel.name)
            if subscription is not None and subscription.status == SubscriptionStatus.PENDING:
                subscription.status = SubscriptionStatus.SUBSCRIBING

    def requeue(self, channels: list[Channel]) -> None:
        """Return SUBSCRIBING subscriptions to PENDING after a failed send."""
        for channel in channels:
            subscription = self._subscriptions.get(channel.name)
            if subscription is not None and subscription.status == SubscriptionStatus.SUBSCRIBING:
                subscription.status = SubscriptionStatus.PENDING

    def activate(self, channel: str | Channel) -> bool:
        """Mark a subscription ACTIVE after the server acknowledged it."""
        subscription = self._subscriptions.get(str(channel))
        if subscription is None or subscription.status not in _AWAITING_ACK:
            return False
        subscription.status = SubscriptionStatus.ACTIVE
        logger.debug(f"Subscription {channel} active")
        return True

    def reject(self, channel: str | Channel) -> list[ListenerHandle]:
        """Drop a subscription the server refused; returns its handles."""
        subscription = self._subscriptions.get(str(channel))
        if subscription is None or subscription.status not in _AWAITING_ACK:
            return []
        del self._subscriptions[str(channel)]
        logger.debug(f"Subscription {channel} rejected")
        return subscription.listeners

    def discard(self, channel: str | Channel) -> bool:
        """
        Delete a subscription whose removal is done.

        Called on unsubscribe ack, or locally when there is no session to
        send the unsubscribe on. A subscription revived in the meantime is
        kept.
        """
        subscription = self._subscriptions.get(str(channel))
        if subscription is None:
            return False
        if subscription.status != SubscriptionStatus.PENDING_REMOVAL:
            return False
        del self._subscriptions[str(channel)]
        logger.debug(f"Subscription {channel} removed")
        return True

    def reset(self) -> list[Channel]:
        """
        Prepare for a new session after rehandshake.

        Subscriptions awaiting removal are dropped without waiting for an
        ack; every other subscription reverts to PENDING with its listeners
        intact.

        Returns:
            Channels that must be subscribed again.
        """
        for name, subscription in list(self._subscriptions.items()):
            if subscription.status == SubscriptionStatus.PENDING_REMOVAL:
                del self._subscriptions[name]
            else:
                subscription.status = SubscriptionStatus.PENDING
        return self.pending()

    def pending(self) -> list[Channel]:
        """Channels whose subscribe is due and not already in flight."""
        return [
            s.channel
            for s in self._subscriptions.values()
            if s.status == SubscriptionStatus.PENDING
        ]

    def clear(self) -> None:
        self._subscriptions.clear()

    def resolve(self, channel: str) -> list[ListenerHandle]:
        """
        Find the listeners for a message on a concrete channel.

        Returns a snapshot of handles from every ACTIVE subscription whose
        pattern matches, in subscription order, so listeners may subscribe
        or unsubscribe during delivery.
        """
        patterns = set(expand(channel))
        handles: list[ListenerHandle] = []
        for name, subscription in self._subscriptions.items():
            if name not in patterns:
                continue
            if subscription.status != SubscriptionStatus.ACTIVE:
                continue
            handles.extend(subscription.listeners)
        return handles
