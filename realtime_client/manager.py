# =============================================================================
# Realtime Client -- Connection Manager
# =============================================================================
#
# Lifecycle state machine over an injected transport: connect, reconcile,
# reconnect with backoff, disconnect. Public operations are commands that
# schedule work and return; outcomes surface through state and callbacks.
# =============================================================================

from __future__ import annotations

import asyncio
from dataclasses import replace
from typing import Any, Callable, Iterable

from ._logging import logger
from .constants import MSG_ERROR, RECONCILE_INTERVAL, RECONNECT_SETTLE_DELAY
from .dispatcher import MessageDispatcher
from .registry import SubscriptionRegistry
from .scheduler import ReconnectScheduler
from .transport import Transport
from .types import ConnectionState, Message, ReconnectPolicy


class ConnectionManager:
    """Keeps one logical connection alive and routes its messages.

    Must be used from a running asyncio loop; all methods are expected to
    be called on that loop's thread.

    Args:
        transport: Transport to drive. Not owned exclusively: only the
            subscriptions this manager creates are torn down.
        auto_connect: Call :meth:`connect` on construction (default True).
        message_types: Allow-list of message tags. ``None`` or empty
            receives every message.
        on_message: Called with every dispatched :class:`Message`.
        on_connect: Called when the server acknowledges the connection.
        on_disconnect: Called after :meth:`disconnect` completes.
        on_error: Called with the text of server error messages.
        on_state_change: Called with the new :class:`ConnectionState`.
        policy: Backoff policy. Defaults to :class:`ReconnectPolicy`.
        max_reconnect_attempts: Shortcut overriding ``policy.max_attempts``.
        reconcile_interval: Seconds between transport state polls.
        settle_delay: Seconds :meth:`reconnect` waits before connecting.

    Example::

        transport = WebSocketTransport("ws://localhost:8080/ws")
        manager = ConnectionManager(
            transport,
            message_types=["snapshot_update"],
            on_message=lambda msg: print(msg.payload),
        )
    """

    def __init__(
        self,
        transport: Transport,
        *,
        auto_connect: bool = True,
        message_types: Iterable[str] | None = None,
        on_message: Callable[[Message], Any] | None = None,
        on_connect: Callable[[], Any] | None = None,
        on_disconnect: Callable[[], Any] | None = None,
        on_error: Callable[[str], Any] | None = None,
        on_state_change: Callable[[ConnectionState], Any] | None = None,
        policy: ReconnectPolicy | None = None,
        max_reconnect_attempts: int | None = None,
        reconcile_interval: float = RECONCILE_INTERVAL,
        settle_delay: float = RECONNECT_SETTLE_DELAY,
    ) -> None:
        policy = policy or ReconnectPolicy()
        if max_reconnect_attempts is not None:
            policy = replace(policy, max_attempts=max_reconnect_attempts)

        self._transport = transport
        self._message_types = list(message_types) if message_types else None
        self._reconcile_interval = reconcile_interval
        self._settle_delay = settle_delay

        # Callbacks
        self._on_connect = on_connect
        self._on_disconnect = on_disconnect
        self._on_state_change = on_state_change

        # Components
        self._scheduler = ReconnectScheduler(policy)
        self._registry = SubscriptionRegistry()
        self._dispatcher = MessageDispatcher(
            on_ack=self._handle_ack,
            on_message=on_message,
            on_error=on_error,
        )

        # State
        self._state = ConnectionState.DISCONNECTED
        self._is_connecting = False
        self._is_connected = False
        self._connection_id: str | None = None
        self._reconnect_attempts = 0
        self._settle_task: asyncio.Task[None] | None = None
        self._background_tasks: set[asyncio.Task[Any]] = set()

        # Bumped by disconnect(); a transition that sees it change mid-way
        # was cancelled by a callback and must stop
        self._generation = 0

        if auto_connect:
            self.connect()

    # -- Context manager ------------------------------------------------------

    async def __aenter__(self) -> ConnectionManager:
        self.connect()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        self.disconnect()

    # -- Properties -----------------------------------------------------------

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._is_connected

    @property
    def connection_id(self) -> str | None:
        return self._connection_id

    @property
    def last_message(self) -> Message | None:
        return self._dispatcher.last_message

    @property
    def reconnect_attempts(self) -> int:
        return self._reconnect_attempts

    @property
    def policy(self) -> ReconnectPolicy:
        return self._scheduler.policy

    @property
    def subscription_count(self) -> int:
        """Live registrations, including the reconciliation task."""
        return len(self._registry)

    @property
    def retry_pending(self) -> bool:
        return self._scheduler.pending

    # -- Connect / Disconnect -------------------------------------------------

    def connect(self) -> None:
        """Start a connect cycle.

        No-op while a connect is in flight, while already connected, or
        while a retry is pending (use :meth:`reconnect` to cut the backoff
        short). Lifts the auto-reconnect suppression left by
        :meth:`disconnect`.
        """
        if self._state == ConnectionState.RECONNECTING:
            return
        self._scheduler.enabled = True
        self._connect()

    def _connect(self) -> None:
        if self._is_connecting:
            return
        if self._state == ConnectionState.CONNECTED and self._transport.is_connected():
            return

        generation = self._generation
        self._is_connecting = True
        self._set_state(ConnectionState.CONNECTING)
        if generation != self._generation:
            return

        # Fresh subscriptions every cycle: drop whatever the last one left
        self._registry.dispose_all()
        self._registry.bind(
            self._transport, self._dispatcher.dispatch, self._message_types
        )
        self._registry.track(self._transport.on(MSG_ERROR, self._handle_transport_error))

        try:
            self._transport.connect()
        except Exception as exc:
            logger.warning("Failed to connect: %s", exc)
            self._is_connecting = False
            self._set_state(ConnectionState.DISCONNECTED)

        if generation == self._generation:
            self._start_reconcile()

    def reconnect(self) -> None:
        """Tear down, reset the retry budget, and connect after a short grace."""
        self.disconnect()
        self._reconnect_attempts = 0
        self._scheduler.enabled = True
        self._settle_task = asyncio.ensure_future(self._connect_after(self._settle_delay))

    def disconnect(self) -> None:
        """Stop everything and stay down until the next connect/reconnect."""
        self._generation += 1
        self._scheduler.enabled = False
        self._is_connecting = False
        self._scheduler.cancel()
        self._cancel_settle()
        self._registry.dispose_all()

        try:
            self._transport.disconnect()
        except Exception as exc:
            logger.warning("Transport disconnect failed: %s", exc)

        self._is_connected = False
        self._connection_id = None
        self._reconnect_attempts = 0
        self._set_state(ConnectionState.DISCONNECTED)
        self._invoke(self._on_disconnect)

    def close(self) -> None:
        """Alias for disconnect."""
        self.disconnect()

    def send_heartbeat(self) -> None:
        try:
            self._transport.send_heartbeat()
        except Exception as exc:
            logger.debug("Heartbeat failed: %s", exc)

    # -- Internal: lifecycle signals ------------------------------------------

    def _handle_ack(self, connection_id: str | None) -> None:
        """Server acknowledged the connection."""
        self._scheduler.cancel()
        self._is_connected = True
        self._connection_id = connection_id
        self._is_connecting = False
        self._reconnect_attempts = 0
        generation = self._generation
        self._set_state(ConnectionState.CONNECTED)
        if generation != self._generation:
            return
        logger.info("Connected (connection_id=%s)", connection_id)
        self._invoke(self._on_connect)

    def _handle_transport_error(self, message: Message) -> None:
        # Established connections are left to the reconciliation poll
        if self._state != ConnectionState.CONNECTING:
            return

        self._is_connecting = False
        if self._reconnect_attempts > 0:
            logger.debug(
                "Reconnect attempt %d failed: %s",
                self._reconnect_attempts,
                message.error_message,
            )
            self._handle_drop()
            return

        logger.debug("Connect aborted by error: %s", message.error_message)
        self._set_state(ConnectionState.DISCONNECTED)

    # -- Internal: reconciliation ---------------------------------------------

    def _start_reconcile(self) -> None:
        task = asyncio.ensure_future(self._reconcile_loop())
        self._registry.track(task.cancel)

    async def _reconcile_loop(self) -> None:
        while True:
            try:
                await asyncio.sleep(self._reconcile_interval)
            except asyncio.CancelledError:
                return
            try:
                self._reconcile()
            except Exception as exc:
                logger.warning("Reconciliation failed: %s", exc)

    def _reconcile(self) -> None:
        """Align the state machine with what the transport reports."""
        connected = self._transport.is_connected()
        self._is_connected = connected

        if connected:
            self._connection_id = self._transport.get_connection_id()
            if self._state != ConnectionState.CONNECTED:
                self._is_connecting = False
                self._scheduler.cancel()
                self._reconnect_attempts = 0
                self._set_state(ConnectionState.CONNECTED)
            return

        self._connection_id = None
        if self._state in (ConnectionState.CONNECTED, ConnectionState.CONNECTING):
            self._handle_drop()

    # -- Internal: reconnection -----------------------------------------------

    def _handle_drop(self) -> None:
        self._scheduler.cancel()

        if not self._scheduler.should_retry(self._reconnect_attempts):
            if self._scheduler.enabled:
                logger.error(
                    "Max reconnect attempts (%d) reached",
                    self._scheduler.policy.max_attempts,
                )
            self._is_connecting = False
            self._set_state(ConnectionState.DISCONNECTED)
            return

        self._reconnect_attempts += 1
        generation = self._generation
        self._set_state(ConnectionState.RECONNECTING)
        if generation != self._generation:
            return
        delay = self._scheduler.compute_delay(self._reconnect_attempts)
        logger.info(
            "Reconnecting in %.1fs (attempt %d/%d)",
            delay,
            self._reconnect_attempts,
            self._scheduler.policy.max_attempts,
        )
        self._scheduler.schedule(self._retry, delay)

    def _retry(self) -> None:
        if not self._scheduler.enabled:
            return
        self._is_connecting = False
        self._connect()

    async def _connect_after(self, delay: float) -> None:
        try:
            await asyncio.sleep(delay)
        except asyncio.CancelledError:
            return
        self._settle_task = None
        self.connect()

    def _cancel_settle(self) -> None:
        if self._settle_task is not None:
            self._settle_task.cancel()
            self._settle_task = None

    # -- State management -----------------------------------------------------

    def _set_state(self, new_state: ConnectionState) -> None:
        if new_state == self._state:
            return
        old = self._state
        self._state = new_state
        logger.debug("State: %s -> %s", old.value, new_state.value)
        self._invoke(self._on_state_change, new_state)

    def _invoke(self, callback: Callable[..., Any] | None, *args: Any) -> None:
        if callback is None:
            return
        try:
            result = callback(*args)
            if asyncio.iscoroutine(result):
                self._fire_task(result)
        except Exception as exc:
            logger.error("Callback error: %s", exc)

    def _fire_task(self, coro: Any) -> None:
        """Schedule a coroutine with a strong reference to prevent GC."""
        task = asyncio.ensure_future(coro)
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)


def connect(transport: Transport, **kwargs: Any) -> ConnectionManager:
    """Create a :class:`ConnectionManager` and start connecting.

    Keyword arguments are forwarded to :class:`ConnectionManager`.

    Example::

        async with connect(transport, on_message=print) as manager:
            await asyncio.sleep(60)
    """
    return ConnectionManager(transport, **kwargs)
