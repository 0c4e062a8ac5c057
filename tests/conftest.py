"""Shared fixtures: an in-memory transport the manager can drive."""

from collections import defaultdict

import pytest

from realtime_client.types import Message, ReconnectPolicy


class FakeTransport:
    """Records calls and lets tests play the server side."""

    def __init__(self) -> None:
        self.connected = False
        self.connection_id: str | None = None
        self.connect_calls = 0
        self.disconnect_calls = 0
        self.heartbeats = 0
        self.connect_error: Exception | None = None
        self._handlers = defaultdict(list)
        self._wildcard_handlers = []

    # -- Transport protocol ---------------------------------------------------

    def connect(self):
        self.connect_calls += 1
        if self.connect_error is not None:
            raise self.connect_error

    def disconnect(self):
        self.disconnect_calls += 1
        self.connected = False
        self.connection_id = None

    def is_connected(self):
        return self.connected

    def get_connection_id(self):
        return self.connection_id

    def on(self, msg_type, handler):
        handlers = self._handlers[msg_type]
        handlers.append(handler)

        def dispose():
            if handler in handlers:
                handlers.remove(handler)

        return dispose

    def on_any(self, handler):
        self._wildcard_handlers.append(handler)

        def dispose():
            if handler in self._wildcard_handlers:
                self._wildcard_handlers.remove(handler)

        return dispose

    def send_heartbeat(self):
        self.heartbeats += 1

    # -- Server side ----------------------------------------------------------

    def emit(self, msg_type, **payload):
        message = Message(type=msg_type, payload=payload)
        for handler in list(self._handlers.get(msg_type, [])) + list(
            self._wildcard_handlers
        ):
            handler(message)
        return message

    def open(self, connection_id="conn-1"):
        self.connected = True
        self.connection_id = connection_id

    def ack(self, connection_id="conn-1"):
        self.open(connection_id)
        return self.emit("connected", connection_id=connection_id)

    def drop(self):
        self.connected = False
        self.connection_id = None

    @property
    def listener_count(self):
        return sum(len(h) for h in self._handlers.values()) + len(
            self._wildcard_handlers
        )


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def fast_policy():
    """Millisecond delays, no jitter, so retries fire within a test."""
    return ReconnectPolicy(base_delay=0.01, max_delay=0.05, max_attempts=3, jitter_max=0.0)
