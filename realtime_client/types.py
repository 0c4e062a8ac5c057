# =============================================================================
# Realtime Client -- Type Definitions
# =============================================================================

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .constants import (
    RECONNECT_BASE_DELAY,
    RECONNECT_JITTER_MAX,
    RECONNECT_MAX_ATTEMPTS,
    RECONNECT_MAX_DELAY,
)


class ConnectionState(str, Enum):
    """Connection lifecycle state.

    Typical flow: DISCONNECTED -> CONNECTING -> CONNECTED. A drop moves
    CONNECTED (or a stalled CONNECTING) to RECONNECTING while a retry is
    pending, or straight to DISCONNECTED once the retry budget is spent.
    """

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"


@dataclass(frozen=True, slots=True)
class ReconnectPolicy:
    """Backoff policy for automatic reconnection.

    Attributes:
        base_delay: Delay in seconds before the first retry.
        max_delay: Cap in seconds applied after jitter.
        max_attempts: Retries allowed before giving up.
        jitter_max: Upper bound in seconds of the uniform jitter added
            to every delay.
    """

    base_delay: float = RECONNECT_BASE_DELAY
    max_delay: float = RECONNECT_MAX_DELAY
    max_attempts: int = RECONNECT_MAX_ATTEMPTS
    jitter_max: float = RECONNECT_JITTER_MAX

    def __post_init__(self) -> None:
        if self.base_delay <= 0:
            raise ValueError(f"base_delay must be positive, got {self.base_delay}")
        if self.max_delay < self.base_delay:
            raise ValueError("max_delay must not be smaller than base_delay")
        if self.max_attempts < 0:
            raise ValueError(f"max_attempts must be >= 0, got {self.max_attempts}")
        if self.jitter_max < 0:
            raise ValueError(f"jitter_max must be >= 0, got {self.jitter_max}")


@dataclass(frozen=True, slots=True)
class Message:
    """A message received from the server.

    Attributes:
        type: Tag used for routing, e.g. ``"snapshot_update"``.
        payload: Every other field of the frame, forwarded untouched.
    """

    type: str
    payload: dict[str, Any] = field(default_factory=dict)

    @property
    def connection_id(self) -> str | None:
        """Connection identifier carried by the ack message."""
        value = self.payload.get("connection_id")
        return str(value) if value is not None else None

    @property
    def error_message(self) -> str:
        """Human-readable text carried by an error message."""
        return str(self.payload.get("message", "Unknown error"))
