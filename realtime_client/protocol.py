# =============================================================================
# Realtime Client -- Wire Protocol Codec
# =============================================================================
#
# Frames are JSON objects tagged by a "type" field:
#
#   {"type": "connected", "connection_id": "c-42"}
#   {"type": "error", "message": "subscription rejected"}
#   {"type": "snapshot_update", ...}
#
# Binary frames are treated as UTF-8 JSON.
# =============================================================================

from __future__ import annotations

import json
from typing import Any

from .constants import MAX_MESSAGE_SIZE
from .errors import RealtimeProtocolError
from .types import Message

try:
    import orjson

    def _json_loads(data: str | bytes) -> Any:
        return orjson.loads(data)

    def _json_dumps(obj: Any) -> str:
        return orjson.dumps(obj).decode()

except ImportError:

    def _json_loads(data: str | bytes) -> Any:
        return json.loads(data)

    def _json_dumps(obj: Any) -> str:
        return json.dumps(obj, separators=(",", ":"))


class MessageCodec:
    """Encode and decode type-tagged JSON frames.

    Args:
        max_size: Frames larger than this many bytes are rejected.
    """

    def __init__(self, max_size: int = MAX_MESSAGE_SIZE) -> None:
        self._max_size = max_size

    def decode(self, data: str | bytes) -> Message:
        """Decode one frame.

        Raises:
            RealtimeProtocolError: Oversized, not JSON, not an object, or
                missing a string ``type``.
        """
        size = len(data.encode()) if isinstance(data, str) else len(data)
        if size > self._max_size:
            raise RealtimeProtocolError(f"Frame exceeds {self._max_size} bytes")

        try:
            parsed = _json_loads(data)
        except ValueError as exc:
            raise RealtimeProtocolError(f"Invalid JSON: {exc}") from exc

        if not isinstance(parsed, dict):
            raise RealtimeProtocolError("Frame is not a JSON object")

        msg_type = parsed.pop("type", None)
        if not isinstance(msg_type, str) or not msg_type:
            raise RealtimeProtocolError("Frame has no type tag")

        return Message(type=msg_type, payload=parsed)

    def encode(self, msg_type: str, payload: dict[str, Any] | None = None) -> str:
        frame = {"type": msg_type}
        if payload:
            frame.update({k: v for k, v in payload.items() if k != "type"})
        return _json_dumps(frame)
