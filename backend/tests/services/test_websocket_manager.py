"""WebSocketManager: connection gauge, stale socket cleanup, heartbeat, publishing."""

import asyncio
import contextlib
import json
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest
from fastapi import WebSocket

from app.core.metrics import websocket_connections_active
from app.services.websocket_manager import WebSocketManager, chat_channel, execution_channel

TENANT = uuid4()
EXEC_CHANNEL = execution_channel(TENANT, uuid4())
CHAT_CHANNEL = chat_channel(TENANT, uuid4())


def _socket(send_error: Exception | None = None, ping_error: Exception | None = None):
    ws = AsyncMock(spec=WebSocket)
    ws.send_text = AsyncMock(side_effect=send_error)
    ws.send_json = AsyncMock(side_effect=ping_error)
    return ws


@pytest.fixture
def mock_redis():
    redis = AsyncMock()
    redis.publish = AsyncMock()
    return redis


@pytest.fixture
def manager(mock_redis):
    return WebSocketManager(redis=mock_redis)


def _gauge() -> float:
    return websocket_connections_active._value.get()


async def _run_heartbeat(manager: WebSocketManager, seconds: float) -> None:
    task = asyncio.create_task(manager._heartbeat_loop(interval=0.05))
    await asyncio.sleep(seconds)
    task.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await task


class TestGauge:
    """The active-connection gauge counts sockets, not channel subscriptions."""

    async def test_socket_with_many_channels_counts_once(self, manager):
        ws = _socket()
        before = _gauge()
        await manager.connect(ws, EXEC_CHANNEL)
        await manager.subscribe_to_channel(ws, CHAT_CHANNEL)
        assert _gauge() == before + 1

        await manager.disconnect_all(ws)
        assert _gauge() == before

    async def test_gauge_drops_with_last_channel(self, manager):
        ws = _socket()
        await manager.connect(ws, EXEC_CHANNEL)
        await manager.subscribe_to_channel(ws, CHAT_CHANNEL)
        before = _gauge()

        await manager.disconnect(ws, EXEC_CHANNEL)
        assert _gauge() == before
        assert manager._ws_channels[ws] == {CHAT_CHANNEL}

        await manager.disconnect(ws, CHAT_CHANNEL)
        assert _gauge() == before - 1
        assert ws not in manager._ws_channels

    async def test_independent_sockets(self, manager):
        first, second = _socket(), _socket()
        before = _gauge()
        await manager.connect(first, EXEC_CHANNEL)
        await manager.connect(second, EXEC_CHANNEL)
        assert _gauge() == before + 2
        assert manager._connections[EXEC_CHANNEL] == {first, second}

        await manager.disconnect_all(first)
        assert _gauge() == before + 1
        assert manager._connections[EXEC_CHANNEL] == {second}

    async def test_unsubscribe_keeps_connection(self, manager):
        ws = _socket()
        await manager.connect(ws, EXEC_CHANNEL)
        await manager.subscribe_to_channel(ws, CHAT_CHANNEL)
        before = _gauge()

        await manager.unsubscribe_from_channel(ws, CHAT_CHANNEL)
        assert CHAT_CHANNEL not in manager._connections
        assert _gauge() == before


class TestBroadcast:
    async def test_delivers_to_channel_members_only(self, manager):
        listener, bystander = _socket(), _socket()
        await manager.connect(listener, EXEC_CHANNEL)
        await manager.connect(bystander, CHAT_CHANNEL)

        await manager._broadcast_to_channel(EXEC_CHANNEL, '{"type": "execution_status"}')

        listener.send_text.assert_awaited_once_with('{"type": "execution_status"}')
        bystander.send_text.assert_not_awaited()

    async def test_dead_sockets_are_dropped_everywhere(self, manager):
        dead, alive = _socket(send_error=RuntimeError("closed")), _socket()
        await manager.connect(dead, EXEC_CHANNEL)
        await manager.subscribe_to_channel(dead, CHAT_CHANNEL)
        await manager.connect(alive, EXEC_CHANNEL)

        await manager._broadcast_to_channel(EXEC_CHANNEL, "{}")

        assert dead not in manager._ws_channels
        assert manager._connections[EXEC_CHANNEL] == {alive}
        assert CHAT_CHANNEL not in manager._connections

    async def test_subscriber_forwards_decoded_messages(self, manager, mock_redis):
        ws = _socket()
        await manager.connect(ws, CHAT_CHANNEL)

        async def listen():
            yield {"type": "psubscribe", "channel": b"insightflow:*", "data": 1}
            yield {"type": "pmessage", "channel": CHAT_CHANNEL.encode(), "data": b'{"ok": true}'}

        pubsub = MagicMock()
        pubsub.psubscribe = AsyncMock()
        pubsub.listen = listen
        mock_redis.pubsub = MagicMock(return_value=pubsub)

        await manager.start_subscriber()

        pubsub.psubscribe.assert_awaited_once_with("insightflow:*")
        ws.send_text.assert_awaited_once_with('{"ok": true}')


class TestHeartbeat:
    async def test_pings_live_sockets(self, manager):
        ws = _socket()
        await manager.connect(ws, EXEC_CHANNEL)

        await _run_heartbeat(manager, 0.15)

        assert ws.send_json.await_count >= 2
        assert {call.args[0]["type"] for call in ws.send_json.await_args_list} == {"ping"}
        assert ws in manager._ws_channels

    async def test_prunes_unresponsive_sockets(self, manager):
        ws = _socket(ping_error=ConnectionError("lost"))
        await manager.connect(ws, EXEC_CHANNEL)

        await _run_heartbeat(manager, 0.1)

        assert ws not in manager._ws_channels
        assert EXEC_CHANNEL not in manager._connections


class TestPublish:
    async def test_execution_status(self, manager, mock_redis):
        execution_id = uuid4()

        await manager.publish_execution_status(
            tenant_id=TENANT,
            execution_id=execution_id,
            node_id="node_1",
            status="success",
            data={"rows_processed": 12},
        )

        channel, raw = mock_redis.publish.await_args.args
        assert channel == f"insightflow:{TENANT}:execution:{execution_id}"
        assert json.loads(raw) == {
            "type": "execution_status",
            "execution_id": str(execution_id),
            "node_id": "node_1",
            "status": "success",
            "data": {"rows_processed": 12},
        }

    async def test_workflow_status_without_data(self, manager, mock_redis):
        await manager.publish_execution_status(
            tenant_id=TENANT, execution_id=uuid4(), node_id="__workflow__", status="running"
        )
        assert json.loads(mock_redis.publish.await_args.args[1])["data"] == {}

    async def test_dashboard_update(self, manager, mock_redis):
        chat_id = uuid4()

        await manager.publish_dashboard_update(
            tenant_id=TENANT,
            chat_id=chat_id,
            node_id="node_1",
            item_keys=["node_1-port-0"],
        )

        channel, raw = mock_redis.publish.await_args.args
        assert channel == chat_channel(TENANT, chat_id)
        assert json.loads(raw) == {
            "type": "dashboard_update",
            "chat_id": str(chat_id),
            "node_id": "node_1",
            "item_keys": ["node_1-port-0"],
        }
