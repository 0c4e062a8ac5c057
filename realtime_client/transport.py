# =============================================================================
# Realtime Client -- Transport
# =============================================================================
#
# The transport is the only layer that touches the socket. ConnectionManager
# talks to it through the Transport protocol and never owns it exclusively:
# the same instance may be shared by several managers via TransportRegistry.
# =============================================================================

from __future__ import annotations

import asyncio
import time
from collections import defaultdict
from typing import Any, Callable, Protocol

import websockets.asyncio.client
from websockets.exceptions import ConnectionClosed, WebSocketException
from websockets.protocol import State

from ._logging import logger
from .constants import (
    CONNECTION_TIMEOUT,
    MAX_MESSAGE_SIZE,
    MSG_CONNECTED,
    MSG_ERROR,
    MSG_PING,
    WS_CLOSE_NORMAL,
)
from .errors import RealtimeConnectionError, RealtimeProtocolError
from .protocol import MessageCodec
from .types import Message

MessageHandler = Callable[[Message], Any]
Disposer = Callable[[], None]


class Transport(Protocol):
    """What ConnectionManager needs from a transport."""

    def connect(self) -> None: ...

    def disconnect(self) -> None: ...

    def is_connected(self) -> bool: ...

    def get_connection_id(self) -> str | None: ...

    def on(self, msg_type: str, handler: MessageHandler) -> Disposer: ...

    def on_any(self, handler: MessageHandler) -> Disposer: ...

    def send_heartbeat(self) -> None: ...


class WebSocketTransport:
    """Transport over a single WebSocket.

    ``connect()`` only starts the open; failures are reported to listeners
    as an ``error`` message rather than raised. Must be driven from a
    running asyncio loop.

    Args:
        url: WebSocket server URL, e.g. ``"ws://localhost:8080/ws"``.
        extra_headers: Additional HTTP headers for the handshake.
        open_timeout: Seconds allowed for the opening handshake.
        codec: Frame codec. Defaults to :class:`MessageCodec`.
    """

    def __init__(
        self,
        url: str,
        *,
        extra_headers: dict[str, str] | None = None,
        open_timeout: float = CONNECTION_TIMEOUT,
        codec: MessageCodec | None = None,
    ) -> None:
        self._url = url
        self._extra_headers = extra_headers or {}
        self._open_timeout = open_timeout
        self._codec = codec or MessageCodec()

        self._handlers: dict[str, list[MessageHandler]] = defaultdict(list)
        self._wildcard_handlers: list[MessageHandler] = []

        self._ws: websockets.asyncio.client.ClientConnection | None = None
        self._connection_id: str | None = None
        self._open_task: asyncio.Task[None] | None = None
        self._recv_task: asyncio.Task[None] | None = None
        self._background_tasks: set[asyncio.Task[Any]] = set()

    @property
    def url(self) -> str:
        return self._url

    def _fire_task(self, coro: Any) -> None:
        """Schedule a coroutine with a strong reference to prevent GC."""
        task = asyncio.ensure_future(coro)
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)

    # -- Connect / Disconnect -------------------------------------------------

    def connect(self) -> None:
        """Start opening the socket. No-op while open or already opening."""
        if self._ws is not None:
            return
        if self._open_task is not None and not self._open_task.done():
            return
        self._open_task = asyncio.ensure_future(self._open())

    async def _open(self) -> None:
        try:
            ws = await self._open_socket()
        except RealtimeConnectionError as exc:
            logger.warning("%s", exc)
            self._emit(Message(type=MSG_ERROR, payload={"message": str(exc)}))
            return

        self._ws = ws
        self._recv_task = asyncio.ensure_future(self._recv_loop(ws))
        logger.debug("WebSocket open: %s", self._url)

    async def _open_socket(self) -> websockets.asyncio.client.ClientConnection:
        try:
            return await websockets.asyncio.client.connect(
                self._url,
                additional_headers=self._extra_headers,
                max_size=MAX_MESSAGE_SIZE,
                open_timeout=self._open_timeout,
            )
        except (OSError, TimeoutError, WebSocketException) as exc:
            raise RealtimeConnectionError(f"Failed to connect: {exc}") from exc

    def disconnect(self) -> None:
        """Close the socket if open. Safe to call repeatedly."""
        if self._open_task is not None:
            self._open_task.cancel()
            self._open_task = None
        if self._recv_task is not None:
            self._recv_task.cancel()
            self._recv_task = None

        ws, self._ws = self._ws, None
        self._connection_id = None
        if ws is not None:
            self._fire_task(self._close(ws))

    async def _close(self, ws: websockets.asyncio.client.ClientConnection) -> None:
        try:
            await ws.close(WS_CLOSE_NORMAL, "Client disconnect")
        except Exception as exc:
            logger.debug("Close failed: %s", exc)

    # -- State ----------------------------------------------------------------

    def is_connected(self) -> bool:
        return self._ws is not None and self._ws.state is State.OPEN

    def get_connection_id(self) -> str | None:
        return self._connection_id

    # -- Send -----------------------------------------------------------------

    def send(self, msg_type: str, payload: dict[str, Any] | None = None) -> bool:
        """Queue a frame for sending. Returns False when not connected."""
        if not self.is_connected():
            return False
        assert self._ws is not None
        self._fire_task(self._send(self._ws, self._codec.encode(msg_type, payload)))
        return True

    async def _send(
        self, ws: websockets.asyncio.client.ClientConnection, data: str
    ) -> None:
        try:
            await ws.send(data)
        except ConnectionClosed:
            logger.debug("Send failed: connection closed")

    def send_heartbeat(self) -> None:
        if not self.send(MSG_PING, {"timestamp": int(time.time() * 1000)}):
            logger.debug("Heartbeat skipped: not connected")

    # -- Handler registration -------------------------------------------------

    def on(self, msg_type: str, handler: MessageHandler) -> Disposer:
        """Register *handler* for one message type; returns its disposer."""
        handlers = self._handlers[msg_type]
        handlers.append(handler)

        def dispose() -> None:
            if handler in handlers:
                handlers.remove(handler)

        return dispose

    def on_any(self, handler: MessageHandler) -> Disposer:
        """Register a wildcard handler; returns its disposer."""
        self._wildcard_handlers.append(handler)

        def dispose() -> None:
            if handler in self._wildcard_handlers:
                self._wildcard_handlers.remove(handler)

        return dispose

    # -- Internal: receive loop -----------------------------------------------

    async def _recv_loop(self, ws: websockets.asyncio.client.ClientConnection) -> None:
        """Read frames until the socket closes."""
        try:
            async for raw in ws:
                self._handle_raw_message(raw)
        except ConnectionClosed as exc:
            logger.debug("WebSocket closed: %s", exc)
        finally:
            if self._ws is ws:
                self._ws = None
                self._connection_id = None

    def _handle_raw_message(self, data: str | bytes) -> None:
        try:
            message = self._codec.decode(data)
        except RealtimeProtocolError as exc:
            logger.debug("Dropping frame: %s", exc)
            return

        if message.type == MSG_CONNECTED:
            self._connection_id = message.connection_id
        self._emit(message)

    def _emit(self, message: Message) -> None:
        handlers = list(self._handlers.get(message.type, ())) + list(
            self._wildcard_handlers
        )
        for handler in handlers:
            try:
                handler(message)
            except Exception as exc:
                logger.error("Handler error for '%s': %s", message.type, exc)


class TransportRegistry:
    """Shared transports keyed by URL.

    Several managers pointed at the same endpoint reuse one socket. The
    registry is handed to callers explicitly; managers only ever receive
    the transport itself.
    """

    def __init__(
        self, factory: Callable[..., WebSocketTransport] = WebSocketTransport
    ) -> None:
        self._factory = factory
        self._transports: dict[str, WebSocketTransport] = {}

    def __len__(self) -> int:
        return len(self._transports)

    def __contains__(self, url: object) -> bool:
        return url in self._transports

    def get(self, url: str, **options: Any) -> WebSocketTransport:
        """Return the transport for *url*, creating it on first use.

        *options* are passed to the factory only when the transport is
        created.
        """
        transport = self._transports.get(url)
        if transport is None:
            transport = self._factory(url, **options)
            self._transports[url] = transport
        return transport

    def release(self, url: str) -> None:
        """Disconnect and forget the transport for *url*, if any."""
        transport = self._transports.pop(url, None)
        if transport is not None:
            transport.disconnect()

    def clear(self) -> None:
        for url in list(self._transports):
            self.release(url)
