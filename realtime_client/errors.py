# =============================================================================
# Realtime Client -- Error Types
# =============================================================================


class RealtimeError(Exception):
    """Base exception for all realtime client errors."""


class RealtimeConnectionError(RealtimeError):
    """The transport failed to open a connection."""


class RealtimeProtocolError(RealtimeError):
    """Malformed inbound frame (not JSON, or missing a type tag)."""


class RealtimeTimeoutError(RealtimeError):
    """Operation timed out."""
