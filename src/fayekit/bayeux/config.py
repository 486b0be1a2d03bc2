"""Bayeux client configuration loading."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, fields
from pathlib import Path
from urllib.parse import urlparse

from fayekit.lib import oj

logger = logging.getLogger(__name__)

# Config file locations
CONFIG_FILENAME = "bayeux.json"
GLOBAL_CONFIG = Path.home() / ".fayekit" / CONFIG_FILENAME
LOCAL_CONFIG_DIR = ".fayekit"


@dataclass
class ClientConfig:
    """Configuration for a BayeuxClient."""

    endpoint: str | None = None
    """Server URL used when handshake() is called without one."""

    request_timeout: float = 10.0
    """Seconds added to the advised long-poll timeout, and the timeout of
    every other request."""

    retry_interval: float = 5.0
    """Backoff in seconds after a transport failure when the server advises
    no interval."""

    connection_type: str = "long-polling"

    headers: dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        """Validate configuration."""
        if self.endpoint is not None:
            validate_endpoint(self.endpoint)
        if self.request_timeout <= 0:
            raise ValueError("request_timeout must be positive")
        if self.retry_interval < 0:
            raise ValueError("retry_interval must not be negative")

    @classmethod
    def from_dict(cls, data: dict) -> "ClientConfig":
        """Create from config dict, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})


def validate_endpoint(endpoint: str) -> str:
    """
    Check a server URL.

    Raises:
        ValueError: If the URL is empty, not http(s), or plain http to a
            remote host.
    """
    if not endpoint:
        raise ValueError("endpoint is required")
    parsed = urlparse(endpoint)
    if parsed.scheme not in ("http", "https"):
        raise ValueError("endpoint must be an http:// or https:// URL")
    # Allow http:// only for localhost development
    if parsed.scheme == "http" and (parsed.hostname or "") not in (
        "localhost",
        "127.0.0.1",
        "::1",
    ):
        raise ValueError("Remote endpoints must use https://")
    return endpoint


def _read_section(path: Path) -> dict:
    try:
        data = oj.loads(path.read_bytes())
    except (OSError, oj.JSONDecodeError) as e:
        logger.warning(f"Ignoring unreadable config {path}: {e}")
        return {}
    section = data.get("bayeux", {}) if isinstance(data, dict) else {}
    if not isinstance(section, dict):
        logger.warning(f"Ignoring config {path}: 'bayeux' is not an object")
        return {}
    return section


def load_client_config(
    working_dir: Path | None = None,
    global_config: Path | None = None,
) -> ClientConfig:
    """Load client config from global and local config files.

    Global config (~/.fayekit/bayeux.json) is loaded first.
    Local config ({working_dir}/.fayekit/bayeux.json) overrides it key by key.
    Invalid values are logged and the defaults used instead.
    """
    merged: dict = {}

    global_path = global_config or GLOBAL_CONFIG
    if global_path.exists():
        merged.update(_read_section(global_path))

    if working_dir:
        local_path = working_dir / LOCAL_CONFIG_DIR / CONFIG_FILENAME
        if local_path.exists():
            merged.update(_read_section(local_path))

    try:
        return ClientConfig.from_dict(merged)
    except (TypeError, ValueError) as e:
        logger.warning(f"Invalid client config, using defaults: {e}")
        return ClientConfig()
