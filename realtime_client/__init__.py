"""Resilient real-time channel client.

Async usage::

    from realtime_client import WebSocketTransport, connect

    transport = WebSocketTransport("ws://localhost:8080/ws")
    async with connect(transport, on_message=print) as manager:
        await asyncio.sleep(60)

Sync usage::

    from realtime_client import SyncRealtimeClient

    client = SyncRealtimeClient("ws://localhost:8080/ws", on_message=print)
    client.connect()
    client.wait_until_connected(timeout=5.0)
    client.close()

Optional extras::

    pip install realtime-client[fast]   # orjson
"""

from ._version import __version__
from .dispatcher import MessageDispatcher
from .errors import (
    RealtimeConnectionError,
    RealtimeError,
    RealtimeProtocolError,
    RealtimeTimeoutError,
)
from .feeds import anchor_updates, corridor_updates, feed, snapshot_updates
from .manager import ConnectionManager, connect
from .registry import SubscriptionRegistry
from .scheduler import ReconnectScheduler
from .sync_client import SyncRealtimeClient
from .transport import Transport, TransportRegistry, WebSocketTransport
from .types import ConnectionState, Message, ReconnectPolicy

__all__ = [
    "__version__",
    "connect",
    "ConnectionManager",
    "SyncRealtimeClient",
    "ReconnectScheduler",
    "SubscriptionRegistry",
    "MessageDispatcher",
    "Transport",
    "WebSocketTransport",
    "TransportRegistry",
    "ConnectionState",
    "Message",
    "ReconnectPolicy",
    "feed",
    "snapshot_updates",
    "corridor_updates",
    "anchor_updates",
    "RealtimeError",
    "RealtimeConnectionError",
    "RealtimeProtocolError",
    "RealtimeTimeoutError",
]
