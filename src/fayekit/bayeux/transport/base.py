"""Abstract base transport and error types."""

from abc import ABC, abstractmethod
from typing import Any, Callable

from fayekit.bayeux.transport.types import TransportConfig, TransportEvent


class TransportError(Exception):
    """Base exception for transport errors."""

    def __init__(self, message: str, cause: Exception | None = None):
        super().__init__(message)
        self.cause = cause


class ConnectionRefusedError(TransportError):
    """Server could not be reached or refused the connection."""

    pass


class TimeoutError(TransportError):
    """Request or connection timed out."""

    pass


class MalformedResponseError(TransportError):
    """Server answered with something that is not a Bayeux message batch."""

    pass


class SessionError(TransportError):
    """Transport used while it is not open."""

    pass


class Transport(ABC):
    """
    Abstract base class for Bayeux transports.

    A transport carries batches of Bayeux messages to an endpoint and
    returns the batch the server answers with. It knows nothing about
    handshakes, client IDs or subscriptions.
    """

    connection_type: str = "long-polling"

    def __init__(self, config: TransportConfig | None = None):
        self.config = config or TransportConfig()
        self._event_handlers: list[Callable[[TransportEvent], None]] = []

    def on_event(self, handler: Callable[[TransportEvent], None]) -> None:
        """
        Register an event handler for transport events.

        Args:
            handler: Callback invoked when transport events occur.
        """
        self._event_handlers.append(handler)

    def _emit_event(self, event: TransportEvent) -> None:
        """Emit an event to all registered handlers."""
        for handler in self._event_handlers:
            try:
                handler(event)
            except Exception:
                # Don't let handler errors affect transport
                pass

    @abstractmethod
    async def open(self) -> None:
        """
        Prepare the transport for sending.

        Raises:
            ConnectionRefusedError: If the underlying client cannot be created.
        """
        pass

    @abstractmethod
    async def close(self) -> None:
        """
        Release all resources.

        This method should be safe to call multiple times.
        """
        pass

    @abstractmethod
    async def send(
        self,
        endpoint: str,
        messages: list[dict[str, Any]],
        timeout: float | None = None,
    ) -> list[dict[str, Any]]:
        """
        Send a batch of Bayeux messages and return the response batch.

        Args:
            endpoint: Server URL.
            messages: Wire-format message dicts.
            timeout: Per-request timeout in seconds (defaults to config).

        Returns:
            Response message dicts in the order the server sent them.

        Raises:
            TimeoutError: If the request timed out.
            ConnectionRefusedError: If the server could not be reached.
            MalformedResponseError: If the response is not a message batch.
            SessionError: If the transport is not open.
        """
        pass

    @abstractmethod
    def is_open(self) -> bool:
        """Check if the transport is ready to send."""
        pass

    async def __aenter__(self) -> "Transport":
        """Async context manager entry."""
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.close()
