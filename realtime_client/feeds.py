# =============================================================================
# Realtime Client -- Feed Helpers
# =============================================================================
#
# One manager per feed, filtered to a single message tag.
# =============================================================================

from __future__ import annotations

from typing import Any, Callable

from .constants import MSG_ANCHOR_UPDATE, MSG_CORRIDOR_UPDATE, MSG_SNAPSHOT_UPDATE
from .manager import ConnectionManager
from .transport import Transport
from .types import Message


def feed(
    transport: Transport,
    msg_type: str,
    on_update: Callable[[Message], Any],
    **kwargs: Any,
) -> ConnectionManager:
    """Manager that delivers only *msg_type* messages to *on_update*.

    Remaining keyword arguments go to :class:`ConnectionManager`;
    ``message_types`` and ``on_message`` are set by this helper.
    """

    def on_message(message: Message) -> Any:
        if message.type == msg_type:
            return on_update(message)
        return None

    return ConnectionManager(
        transport,
        message_types=[msg_type],
        on_message=on_message,
        **kwargs,
    )


def snapshot_updates(
    transport: Transport, on_update: Callable[[Message], Any], **kwargs: Any
) -> ConnectionManager:
    return feed(transport, MSG_SNAPSHOT_UPDATE, on_update, **kwargs)


def corridor_updates(
    transport: Transport, on_update: Callable[[Message], Any], **kwargs: Any
) -> ConnectionManager:
    return feed(transport, MSG_CORRIDOR_UPDATE, on_update, **kwargs)


def anchor_updates(
    transport: Transport, on_update: Callable[[Message], Any], **kwargs: Any
) -> ConnectionManager:
    return feed(transport, MSG_ANCHOR_UPDATE, on_update, **kwargs)
