"""Connection state machine for the Bayeux client lifecycle."""

import logging
from enum import Enum, auto
from typing import Callable

logger = logging.getLogger(__name__)


class ClientState(Enum):
    """
    Client lifecycle states.

    State transitions:
        UNCONNECTED -> HANDSHAKING -> CONNECTED <-> RECONNECTING
                           ^              |              |
                           +--------------+--------------+  (rehandshake)

    DISCONNECTED is terminal and can be reached from every other state,
    either through disconnect() or an unrecoverable failure.
    """

    UNCONNECTED = auto()
    HANDSHAKING = auto()
    CONNECTED = auto()
    RECONNECTING = auto()
    DISCONNECTED = auto()

    def __str__(self) -> str:
        return self.name


class InvalidStateTransition(Exception):
    """Raised when an invalid state transition is attempted."""

    def __init__(self, from_state: ClientState, to_state: ClientState):
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(
            f"Invalid state transition: {from_state.name} -> {to_state.name}"
        )


# Type for state transition callbacks
StateTransitionCallback = Callable[[ClientState, ClientState], None]


class ClientStateMachine:
    """
    Tracks the client lifecycle state.

    Enforces valid state transitions and notifies listeners
    when transitions occur.
    """

    VALID_TRANSITIONS: dict[ClientState, list[ClientState]] = {
        ClientState.UNCONNECTED: [
            ClientState.HANDSHAKING,
            ClientState.DISCONNECTED,
        ],
        ClientState.HANDSHAKING: [
            ClientState.CONNECTED,
            ClientState.DISCONNECTED,  # Rejected with reconnect=none
        ],
        ClientState.CONNECTED: [
            ClientState.RECONNECTING,
            ClientState.HANDSHAKING,  # Server advised rehandshake
            ClientState.DISCONNECTED,
        ],
        ClientState.RECONNECTING: [
            ClientState.CONNECTED,
            ClientState.HANDSHAKING,
            ClientState.DISCONNECTED,
        ],
        ClientState.DISCONNECTED: [],  # Terminal state
    }

    def __init__(self, initial_state: ClientState = ClientState.UNCONNECTED):
        self._state = initial_state
        self._listeners: list[StateTransitionCallback] = []

    @property
    def state(self) -> ClientState:
        """Current client state."""
        return self._state

    @property
    def is_connected(self) -> bool:
        """Check if a session is established (CONNECTED or RECONNECTING)."""
        return self._state in (ClientState.CONNECTED, ClientState.RECONNECTING)

    @property
    def is_disconnected(self) -> bool:
        return self._state == ClientState.DISCONNECTED

    def can_transition_to(self, new_state: ClientState) -> bool:
        """Check if transition to new_state is valid."""
        return new_state in self.VALID_TRANSITIONS.get(self._state, [])

    def transition(self, new_state: ClientState) -> None:
        """
        Transition to a new state.

        Transitioning to the current state is a no-op.

        Raises:
            InvalidStateTransition: If the transition is not valid.
        """
        if new_state == self._state:
            return
        if not self.can_transition_to(new_state):
            raise InvalidStateTransition(self._state, new_state)

        old_state = self._state
        self._state = new_state
        logger.debug(f"Client state {old_state} -> {new_state}")

        for listener in list(self._listeners):
            try:
                listener(old_state, new_state)
            except Exception:
                logger.exception("State transition listener failed")

    def on_transition(self, callback: StateTransitionCallback) -> None:
        """
        Register a callback for state transitions.

        Args:
            callback: Function called with (old_state, new_state) on transitions.
        """
        self._listeners.append(callback)

    def __repr__(self) -> str:
        return f"ClientStateMachine(state={self._state!r})"
