"""Tests for the message dispatcher."""

import asyncio
from unittest.mock import MagicMock

import pytest

from realtime_client.dispatcher import MessageDispatcher
from realtime_client.types import Message


class TestDispatch:
    def test_stores_last_message(self):
        d = MessageDispatcher()
        first = Message(type="a", payload={"n": 1})
        second = Message(type="b", payload={"n": 2})

        d.dispatch(first)
        assert d.last_message is first
        d.dispatch(second)
        assert d.last_message is second

    def test_ack_calls_hook_with_connection_id(self):
        on_ack = MagicMock()
        d = MessageDispatcher(on_ack=on_ack)

        d.dispatch(Message(type="connected", payload={"connection_id": "c-42"}))
        on_ack.assert_called_once_with("c-42")

    def test_error_calls_on_error_with_text(self):
        on_error = MagicMock()
        on_message = MagicMock()
        d = MessageDispatcher(on_error=on_error, on_message=on_message)

        msg = Message(type="error", payload={"message": "bad subscription"})
        d.dispatch(msg)
        on_error.assert_called_once_with("bad subscription")
        on_message.assert_called_once_with(msg)

    def test_error_without_text(self):
        on_error = MagicMock()
        d = MessageDispatcher(on_error=on_error)

        d.dispatch(Message(type="error"))
        on_error.assert_called_once_with("Unknown error")

    def test_on_message_for_every_message(self):
        on_message = MagicMock()
        d = MessageDispatcher(on_message=on_message)

        for tag in ("connected", "error", "snapshot_update", "anything"):
            d.dispatch(Message(type=tag))
        assert on_message.call_count == 4

    def test_ack_runs_before_on_message(self):
        calls = []
        d = MessageDispatcher(
            on_ack=lambda cid: calls.append("ack"),
            on_message=lambda msg: calls.append("message"),
        )

        d.dispatch(Message(type="connected", payload={"connection_id": "x"}))
        assert calls == ["ack", "message"]

    def test_handler_error_is_logged(self, caplog):
        d = MessageDispatcher(on_message=MagicMock(side_effect=ValueError("oops")))

        d.dispatch(Message(type="snapshot_update"))
        assert "Handler error for 'snapshot_update'" in caplog.text
        assert d.last_message.type == "snapshot_update"

    @pytest.mark.asyncio
    async def test_async_handler_is_scheduled(self):
        received = []

        async def handler(msg):
            received.append(msg)

        d = MessageDispatcher(on_message=handler)
        d.dispatch(Message(type="snapshot_update"))
        await asyncio.sleep(0)
        await asyncio.sleep(0)
        assert len(received) == 1
