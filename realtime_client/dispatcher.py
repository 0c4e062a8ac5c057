# =============================================================================
# Realtime Client -- Message Dispatcher
# =============================================================================

from __future__ import annotations

import asyncio
from typing import Any, Callable

from ._logging import logger
from .constants import MSG_CONNECTED, MSG_ERROR
from .types import Message

MessageHandler = Callable[[Message], Any]


class MessageDispatcher:
    """Records the latest message, applies lifecycle signals, fans out.

    Args:
        on_ack: Internal hook called with the connection id when the
            server acknowledges the connection.
        on_message: Caller callback, invoked for every dispatched message.
        on_error: Caller callback, invoked with the text of error messages.
    """

    def __init__(
        self,
        *,
        on_ack: Callable[[str | None], Any] | None = None,
        on_message: MessageHandler | None = None,
        on_error: Callable[[str], Any] | None = None,
    ) -> None:
        self._on_ack = on_ack
        self._on_message = on_message
        self._on_error = on_error
        self._last_message: Message | None = None
        self._background_tasks: set[asyncio.Task[Any]] = set()

    @property
    def last_message(self) -> Message | None:
        return self._last_message

    def dispatch(self, message: Message) -> None:
        self._last_message = message

        if message.type == MSG_CONNECTED and self._on_ack:
            self._on_ack(message.connection_id)

        if message.type == MSG_ERROR:
            self._invoke(self._on_error, message.error_message, message.type)

        self._invoke(self._on_message, message, message.type)

    def _invoke(self, callback: Callable[..., Any] | None, arg: Any, msg_type: str) -> None:
        if callback is None:
            return
        try:
            result = callback(arg)
            if asyncio.iscoroutine(result):
                self._fire_task(result)
        except Exception as exc:
            logger.error("Handler error for '%s': %s", msg_type, exc)

    def _fire_task(self, coro: Any) -> None:
        """Schedule a coroutine with a strong reference to prevent GC."""
        task = asyncio.ensure_future(coro)
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)
