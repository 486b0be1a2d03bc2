"""Subscription tracking and message dispatch."""

from fayekit.bayeux.subscriptions.registry import (
    Listener,
    ListenerHandle,
    Subscription,
    SubscriptionRegistry,
    SubscriptionStatus,
)
from fayekit.bayeux.subscriptions.dispatcher import Dispatcher

__all__ = [
    "Listener",
    "ListenerHandle",
    "Subscription",
    "SubscriptionRegistry",
    "SubscriptionStatus",
    "Dispatcher",
]
