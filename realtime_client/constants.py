# =============================================================================
# Realtime Client -- Constants
# =============================================================================
#
# Durations are in seconds.
# =============================================================================

# -- Reconnection -------------------------------------------------------------

RECONNECT_BASE_DELAY = 1.0
RECONNECT_MAX_DELAY = 30.0
RECONNECT_MAX_ATTEMPTS = 5
RECONNECT_JITTER_MAX = 1.0  # uniform 0..1s added to every delay

# Grace period between a manual disconnect and the follow-up connect
RECONNECT_SETTLE_DELAY = 0.1

# -- Reconciliation -----------------------------------------------------------

RECONCILE_INTERVAL = 1.0

# -- Transport ----------------------------------------------------------------

CONNECTION_TIMEOUT = 10.0
MAX_MESSAGE_SIZE = 1_048_576  # 1 MB
SYNC_CALL_TIMEOUT = 5.0

# -- Message tags -------------------------------------------------------------

MSG_CONNECTED = "connected"
MSG_ERROR = "error"
MSG_PING = "ping"

MSG_SNAPSHOT_UPDATE = "snapshot_update"
MSG_CORRIDOR_UPDATE = "corridor_update"
MSG_ANCHOR_UPDATE = "anchor_update"

# -- WebSocket close codes -----------------------------------------------------

WS_CLOSE_NORMAL = 1000
