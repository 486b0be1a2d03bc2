"""Per-connection session state."""

from __future__ import annotations

import logging
from typing import Any

from fayekit.bayeux.protocol.messages import Advice
from fayekit.bayeux.protocol.state import ClientState, ClientStateMachine

logger = logging.getLogger(__name__)


class Session:
    """
    Client ID, lifecycle state and server advice for one client.

    Owned by BayeuxClient; nothing else mutates it.
    """

    def __init__(self, advice: Advice | None = None):
        self.client_id: str | None = None
        self.advice = advice or Advice()
        self.machine = ClientStateMachine()

    @property
    def state(self) -> ClientState:
        return self.machine.state

    @property
    def is_established(self) -> bool:
        """True while the client holds a server-issued client ID."""
        return self.client_id is not None and self.machine.is_connected

    def establish(self, client_id: str) -> None:
        """Record the client ID from a successful handshake."""
        self.client_id = client_id
        self.machine.transition(ClientState.CONNECTED)
        logger.info(f"Session established: client_id={client_id}")

    def update_advice(self, wire: dict[str, Any] | None) -> None:
        """Merge advice from a server reply, if it carried any."""
        if not wire:
            return
        new_advice = self.advice.merged(wire)
        if new_advice != self.advice:
            logger.debug(f"Advice updated: {new_advice}")
        self.advice = new_advice

    def clear(self) -> None:
        """Forget the client ID (disconnect or rehandshake)."""
        self.client_id = None

    def __repr__(self) -> str:
        return (
            f"Session(client_id={self.client_id!r}, state={self.state}, "
            f"advice={self.advice})"
        )
