# =============================================================================
# Realtime Client -- Synchronous Wrapper
# =============================================================================
#
# Runs a ConnectionManager on a dedicated event-loop thread. Every command
# is marshalled onto that thread, so the manager only ever sees one caller.
# =============================================================================

from __future__ import annotations

import asyncio
import threading
from typing import Any, Callable, Iterable

from ._logging import logger
from .constants import SYNC_CALL_TIMEOUT
from .errors import RealtimeTimeoutError
from .manager import ConnectionManager
from .transport import WebSocketTransport
from .types import ConnectionState, Message, ReconnectPolicy


class SyncRealtimeClient:
    """Blocking / thread-based client.

    Callbacks run on the background loop thread.

    Args:
        url: WebSocket server URL, e.g. ``"ws://localhost:8080/ws"``.
        extra_headers: Additional HTTP headers for the handshake.
        message_types: Allow-list of message tags (default: all).
        on_message: Called with every dispatched :class:`Message`.
        on_connect: Called when the server acknowledges the connection.
        on_disconnect: Called after a disconnect completes.
        on_error: Called with the text of server error messages.
        policy: Backoff policy.
        max_reconnect_attempts: Shortcut overriding ``policy.max_attempts``.

    Example::

        client = SyncRealtimeClient("ws://localhost:8080/ws", on_message=print)
        client.connect()
        client.wait_until_connected(timeout=5.0)
        client.send_heartbeat()
        client.close()
    """

    def __init__(
        self,
        url: str,
        *,
        extra_headers: dict[str, str] | None = None,
        message_types: Iterable[str] | None = None,
        on_message: Callable[[Message], Any] | None = None,
        on_connect: Callable[[], Any] | None = None,
        on_disconnect: Callable[[], Any] | None = None,
        on_error: Callable[[str], Any] | None = None,
        policy: ReconnectPolicy | None = None,
        max_reconnect_attempts: int | None = None,
    ) -> None:
        self._url = url
        self._extra_headers = extra_headers
        self._manager_options: dict[str, Any] = {
            "message_types": list(message_types) if message_types else None,
            "on_message": on_message,
            "on_connect": on_connect,
            "on_disconnect": on_disconnect,
            "on_error": on_error,
            "policy": policy,
            "max_reconnect_attempts": max_reconnect_attempts,
        }

        self._loop: asyncio.AbstractEventLoop | None = None
        self._thread: threading.Thread | None = None
        self._manager: ConnectionManager | None = None
        self._ready = threading.Event()
        self._connected_event = threading.Event()

    # -- Lifecycle ------------------------------------------------------------

    def connect(self, timeout: float = SYNC_CALL_TIMEOUT) -> None:
        """Run a full reconnect cycle on the background loop.

        Starts the loop thread on first use and returns once the command
        is queued; use :meth:`wait_until_connected` to block on the outcome.

        Raises:
            RealtimeTimeoutError: If the loop thread does not start in time.
        """
        self._ensure_loop(timeout)
        self._call(lambda manager: manager.reconnect())

    def disconnect(self) -> None:
        self._call(lambda manager: manager.disconnect())

    def send_heartbeat(self) -> None:
        self._call(lambda manager: manager.send_heartbeat())

    def close(self) -> None:
        """Disconnect and stop the background thread."""
        loop = self._loop
        if loop is not None:
            self.disconnect()
            loop.call_soon_threadsafe(loop.stop)

        if self._thread is not None and self._thread.is_alive():
            self._thread.join(timeout=SYNC_CALL_TIMEOUT)
        self._thread = None

    def wait_until_connected(self, timeout: float | None = None) -> bool:
        """Block until the connection is up. Returns False on timeout."""
        return self._connected_event.wait(timeout=timeout)

    # -- Properties -----------------------------------------------------------
    #
    # Read from the caller's thread while the loop thread writes: each value
    # is a point-in-time snapshot. After close() they report a fresh client.

    @property
    def state(self) -> ConnectionState:
        manager = self._manager
        if manager:
            return manager.state
        return ConnectionState.DISCONNECTED

    @property
    def is_connected(self) -> bool:
        manager = self._manager
        return manager is not None and manager.is_connected

    @property
    def connection_id(self) -> str | None:
        manager = self._manager
        if manager:
            return manager.connection_id
        return None

    @property
    def last_message(self) -> Message | None:
        manager = self._manager
        if manager:
            return manager.last_message
        return None

    # -- Internal -------------------------------------------------------------

    def _ensure_loop(self, timeout: float) -> None:
        if self._thread is not None and self._thread.is_alive():
            return

        self._ready.clear()
        self._thread = threading.Thread(
            target=self._run_loop, daemon=True, name="realtime-client"
        )
        self._thread.start()

        if not self._ready.wait(timeout=timeout):
            raise RealtimeTimeoutError(f"Event loop did not start within {timeout}s")

    def _call(self, command: Callable[[ConnectionManager], Any]) -> None:
        loop, manager = self._loop, self._manager
        if loop is None or manager is None:
            return
        loop.call_soon_threadsafe(command, manager)

    def _run_loop(self) -> None:
        """Background thread: own the event loop and the manager."""
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        self._loop = loop
        try:
            loop.run_until_complete(self._setup())
            self._ready.set()
            loop.run_forever()
        except Exception as exc:
            logger.error("Background loop error: %s", exc)
        finally:
            # Give socket close handshakes a moment, then cancel stragglers
            pending = asyncio.all_tasks(loop)
            if pending:
                _, pending = loop.run_until_complete(asyncio.wait(pending, timeout=1.0))
            for task in pending:
                task.cancel()
            if pending:
                loop.run_until_complete(
                    asyncio.gather(*pending, return_exceptions=True)
                )
            loop.close()
            self._loop = None
            self._manager = None
            self._connected_event.clear()

    async def _setup(self) -> None:
        transport = WebSocketTransport(self._url, extra_headers=self._extra_headers)
        self._manager = ConnectionManager(
            transport,
            auto_connect=False,
            on_state_change=self._on_state_change,
            **self._manager_options,
        )

    def _on_state_change(self, state: ConnectionState) -> None:
        if state == ConnectionState.CONNECTED:
            self._connected_event.set()
        else:
            self._connected_event.clear()
