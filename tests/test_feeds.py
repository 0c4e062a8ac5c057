"""Tests for the single-feed helpers."""

from unittest.mock import MagicMock

import pytest

from realtime_client.feeds import anchor_updates, corridor_updates, snapshot_updates


class TestFeeds:
    @pytest.mark.asyncio
    async def test_snapshot_feed_only_sees_snapshots(self, transport):
        on_update = MagicMock()
        m = snapshot_updates(transport, on_update, reconcile_interval=3600.0)

        transport.emit("corridor_update")
        transport.emit("anchor_update")
        msg = transport.emit("snapshot_update", epoch=1)
        on_update.assert_called_once_with(msg)
        m.disconnect()

    @pytest.mark.asyncio
    async def test_feed_connects_by_default(self, transport):
        m = corridor_updates(transport, MagicMock(), reconcile_interval=3600.0)
        assert transport.connect_calls == 1
        m.disconnect()
        assert transport.listener_count == 0

    @pytest.mark.asyncio
    async def test_feed_honours_manager_options(self, transport):
        m = anchor_updates(
            transport, MagicMock(), auto_connect=False, max_reconnect_attempts=1
        )
        assert transport.connect_calls == 0
        assert m.policy.max_attempts == 1
