"""Tests for WebSocketTransport and TransportRegistry."""

import asyncio
import json
from unittest.mock import MagicMock

import pytest
from websockets.asyncio.server import serve

from realtime_client.manager import ConnectionManager
from realtime_client.transport import TransportRegistry, WebSocketTransport
from realtime_client.types import ConnectionState


class TestHandlers:
    def test_typed_then_wildcard(self):
        t = WebSocketTransport("ws://localhost:1/ws")
        calls = []
        t.on_any(lambda msg: calls.append(("any", msg.type)))
        t.on("snapshot_update", lambda msg: calls.append(("typed", msg.type)))

        t._handle_raw_message('{"type":"snapshot_update"}')
        assert calls == [("typed", "snapshot_update"), ("any", "snapshot_update")]

    def test_disposer_removes_handler(self):
        t = WebSocketTransport("ws://localhost:1/ws")
        handler = MagicMock()
        dispose = t.on("snapshot_update", handler)
        dispose_any = t.on_any(handler)

        dispose()
        dispose()
        dispose_any()
        t._handle_raw_message('{"type":"snapshot_update"}')
        handler.assert_not_called()

    def test_ack_captures_connection_id(self):
        t = WebSocketTransport("ws://localhost:1/ws")
        t._handle_raw_message('{"type":"connected","connection_id":"c-5"}')
        assert t.get_connection_id() == "c-5"

    def test_malformed_frame_dropped(self):
        t = WebSocketTransport("ws://localhost:1/ws")
        handler = MagicMock()
        t.on_any(handler)
        t._handle_raw_message("garbage")
        handler.assert_not_called()

    def test_handler_error_isolated(self, caplog):
        t = WebSocketTransport("ws://localhost:1/ws")
        after = MagicMock()
        t.on_any(MagicMock(side_effect=RuntimeError("bad handler")))
        t.on_any(after)

        t._handle_raw_message('{"type":"anchor_update"}')
        after.assert_called_once()
        assert "Handler error for 'anchor_update'" in caplog.text


class TestIdle:
    def test_not_connected_initially(self):
        t = WebSocketTransport("ws://localhost:1/ws")
        assert t.is_connected() is False
        assert t.get_connection_id() is None

    def test_send_when_closed(self):
        t = WebSocketTransport("ws://localhost:1/ws")
        assert t.send("ping") is False
        t.send_heartbeat()

    def test_disconnect_idempotent(self):
        t = WebSocketTransport("ws://localhost:1/ws")
        t.disconnect()
        t.disconnect()
        assert t.is_connected() is False


class TestOpenFailure:
    @pytest.mark.asyncio
    async def test_failure_reported_as_error_message(self):
        t = WebSocketTransport("ws://127.0.0.1:1/ws", open_timeout=2.0)
        errors = []
        t.on("error", errors.append)

        t.connect()
        await t._open_task
        assert t.is_connected() is False
        assert len(errors) == 1
        assert errors[0].error_message.startswith("Failed to connect")

    @pytest.mark.asyncio
    async def test_connect_while_opening_is_noop(self):
        t = WebSocketTransport("ws://127.0.0.1:1/ws", open_timeout=2.0)
        t.connect()
        first = t._open_task
        t.connect()
        assert t._open_task is first
        await first


class TestLiveServer:
    @pytest.mark.asyncio
    async def test_connect_ack_heartbeat_and_drop(self):
        received = []
        close_server_side = asyncio.Event()

        async def handler(ws):
            await ws.send(json.dumps({"type": "connected", "connection_id": "srv-1"}))
            await ws.send(json.dumps({"type": "snapshot_update", "epoch": 1}))
            received.append(json.loads(await ws.recv()))
            await close_server_side.wait()

        async with serve(handler, "127.0.0.1", 0) as server:
            port = next(iter(server.sockets)).getsockname()[1]
            transport = WebSocketTransport(f"ws://127.0.0.1:{port}")
            messages = []
            m = ConnectionManager(
                transport,
                on_message=messages.append,
                reconcile_interval=0.05,
                max_reconnect_attempts=0,
            )

            for _ in range(100):
                if len(messages) >= 2:
                    break
                await asyncio.sleep(0.02)

            assert m.state == ConnectionState.CONNECTED
            assert m.connection_id == "srv-1"
            assert [msg.type for msg in messages] == ["connected", "snapshot_update"]

            m.send_heartbeat()
            for _ in range(100):
                if received:
                    break
                await asyncio.sleep(0.02)
            assert received[0]["type"] == "ping"

            # Server hangs up; the poll notices and, with no retries left, stops
            close_server_side.set()
            for _ in range(100):
                if m.state == ConnectionState.DISCONNECTED:
                    break
                await asyncio.sleep(0.02)
            assert m.state == ConnectionState.DISCONNECTED
            assert m.is_connected is False
            m.disconnect()


class TestRegistry:
    def test_same_url_same_transport(self):
        reg = TransportRegistry()
        a = reg.get("ws://localhost:1/ws")
        b = reg.get("ws://localhost:1/ws", open_timeout=99.0)
        assert a is b
        assert len(reg) == 1
        assert "ws://localhost:1/ws" in reg

    def test_options_used_on_creation(self):
        factory = MagicMock()
        reg = TransportRegistry(factory=factory)
        reg.get("ws://a", open_timeout=3.0)
        reg.get("ws://a", open_timeout=9.0)
        factory.assert_called_once_with("ws://a", open_timeout=3.0)

    def test_release_disconnects(self):
        factory = MagicMock()
        reg = TransportRegistry(factory=factory)
        transport = reg.get("ws://a")

        reg.release("ws://a")
        transport.disconnect.assert_called_once()
        assert "ws://a" not in reg
        reg.release("ws://a")

    def test_clear(self):
        reg = TransportRegistry(factory=MagicMock())
        reg.get("ws://a")
        reg.get("ws://b")
        reg.clear()
        assert len(reg) == 0
