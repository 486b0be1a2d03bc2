"""Transport layer types and configuration."""

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any


class TransportEventType(Enum):
    """Types of transport events for observability."""

    OPENED = auto()
    CLOSED = auto()
    REQUEST_SENT = auto()
    RESPONSE_RECEIVED = auto()
    ERROR = auto()


@dataclass
class TransportEvent:
    """Event emitted by transport for observability."""

    type: TransportEventType
    timestamp: float
    data: dict[str, Any] | None = None
    error: Exception | None = None

    def __str__(self) -> str:
        base = f"[{self.type.name}]"
        if self.data:
            base += f" {self.data}"
        if self.error:
            base += f" error={self.error}"
        return base


@dataclass
class TransportConfig:
    """Configuration for the Bayeux transport layer."""

    timeout: float = 30.0
    """Default request timeout in seconds (long-poll requests pass their own)."""

    connect_timeout: float = 10.0
    """Connection establishment timeout in seconds."""

    headers: dict[str, str] = field(default_factory=dict)
    """Additional HTTP headers to include in requests."""

    max_connections: int = 2
    """Maximum number of pooled HTTP connections (long-poll holds one)."""

    verify_ssl: bool = True
    """Whether to verify SSL certificates."""

    def __post_init__(self) -> None:
        """Validate configuration."""
        if self.timeout <= 0:
            raise ValueError("timeout must be positive")
        if self.connect_timeout <= 0:
            raise ValueError("connect_timeout must be positive")
        if self.max_connections < 2:
            raise ValueError("max_connections must be at least 2")
