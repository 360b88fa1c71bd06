"""WebSocket fan-out for execution status and dashboard updates.

Connections are tracked per channel in this process; messages travel through
Redis pub/sub so that any backend instance can publish and every instance
holding a subscriber forwards to its own sockets.

Channel names: insightflow:{tenant_id}:{channel_type}:{id}
"""

import asyncio
import contextlib
import json
import time
from uuid import UUID

import structlog
from fastapi import WebSocket
from redis.asyncio import Redis

from app.core.metrics import (
    websocket_connections_active,
    websocket_message_delivery_seconds,
    websocket_messages_sent_total,
)

logger = structlog.stdlib.get_logger(__name__)

CHANNEL_PREFIX = "insightflow"
HEARTBEAT_INTERVAL_SECONDS = 30


def execution_channel(tenant_id: UUID | str, execution_id: UUID | str) -> str:
    return f"{CHANNEL_PREFIX}:{tenant_id}:execution:{execution_id}"


def chat_channel(tenant_id: UUID | str, chat_id: UUID | str) -> str:
    return f"{CHANNEL_PREFIX}:{tenant_id}:chat:{chat_id}"


class WebSocketManager:
    def __init__(self, redis: Redis):
        self._redis = redis
        self._connections: dict[str, set[WebSocket]] = {}
        self._ws_channels: dict[WebSocket, set[str]] = {}
        self._heartbeat_task: asyncio.Task | None = None

    def _track(self, websocket: WebSocket, channel: str) -> None:
        self._connections.setdefault(channel, set()).add(websocket)
        self._ws_channels.setdefault(websocket, set()).add(channel)

    def _untrack(self, websocket: WebSocket, channel: str) -> None:
        sockets = self._connections.get(channel)
        if sockets is not None:
            sockets.discard(websocket)
            if not sockets:
                del self._connections[channel]

    async def connect(self, websocket: WebSocket, channel: str) -> None:
        """Accept the socket and attach it to its first channel."""
        await websocket.accept()
        self._track(websocket, channel)
        websocket_connections_active.inc()
        logger.info("websocket_connected", channel=channel)

    async def subscribe_to_channel(self, websocket: WebSocket, channel: str) -> None:
        self._track(websocket, channel)
        logger.debug("websocket_subscribed", channel=channel)

    async def unsubscribe_from_channel(self, websocket: WebSocket, channel: str) -> None:
        self._untrack(websocket, channel)
        if websocket in self._ws_channels:
            self._ws_channels[websocket].discard(channel)
        logger.debug("websocket_unsubscribed", channel=channel)

    async def disconnect(self, websocket: WebSocket, channel: str) -> None:
        """Detach from one channel; the gauge drops only with the socket's last channel."""
        self._untrack(websocket, channel)
        channels = self._ws_channels.get(websocket)
        if channels is not None:
            channels.discard(channel)
            if not channels:
                del self._ws_channels[websocket]
                websocket_connections_active.dec()
        logger.info("websocket_disconnected", channel=channel)

    async def disconnect_all(self, websocket: WebSocket) -> None:
        channels = self._ws_channels.pop(websocket, set())
        for channel in channels:
            self._untrack(websocket, channel)
        if channels:
            websocket_connections_active.dec()
        logger.info("websocket_disconnected_all", channels=len(channels))

    async def _publish(self, channel: str, message: dict) -> None:
        await self._redis.publish(channel, json.dumps(message))
        websocket_messages_sent_total.labels(message_type=message["type"]).inc()

    async def publish_execution_status(
        self,
        tenant_id: UUID,
        execution_id: UUID,
        node_id: str,
        status: str,
        data: dict | None = None,
    ) -> None:
        """Per-node (or "__workflow__") status change of a running execution."""
        await self._publish(
            execution_channel(tenant_id, execution_id),
            {
                "type": "execution_status",
                "execution_id": str(execution_id),
                "node_id": node_id,
                "status": status,
                "data": data or {},
            },
        )

    async def publish_dashboard_update(
        self,
        tenant_id: UUID,
        chat_id: UUID,
        node_id: str,
        item_keys: list[str],
    ) -> None:
        """Tell viewers of a chat which dashboard items a node just rewrote."""
        await self._publish(
            chat_channel(tenant_id, chat_id),
            {
                "type": "dashboard_update",
                "chat_id": str(chat_id),
                "node_id": node_id,
                "item_keys": item_keys,
            },
        )

    async def _broadcast_to_channel(self, channel: str, message: str) -> None:
        """Send to local sockets on a channel, dropping sockets that fail."""
        channel_type = self._extract_channel_type(channel)
        dead: set[WebSocket] = set()
        for ws in list(self._connections.get(channel, set())):
            try:
                start = time.monotonic()
                await ws.send_text(message)
                websocket_message_delivery_seconds.labels(channel_type=channel_type).observe(
                    time.monotonic() - start
                )
            except Exception:
                dead.add(ws)

        for ws in dead:
            self._untrack(ws, channel)
            await self.disconnect_all(ws)

    @staticmethod
    def _extract_channel_type(channel: str) -> str:
        parts = channel.split(":")
        return parts[2] if len(parts) >= 3 else "unknown"

    async def _heartbeat_loop(self, interval: float = HEARTBEAT_INTERVAL_SECONDS) -> None:
        """Ping every socket periodically; sockets that fail the ping are removed."""
        while True:
            try:
                await asyncio.sleep(interval)
                dead: set[WebSocket] = set()
                for ws in list(self._ws_channels):
                    try:
                        await ws.send_json({"type": "ping", "timestamp": time.time()})
                    except Exception:
                        dead.add(ws)
                for ws in dead:
                    await self.disconnect_all(ws)
                if dead:
                    logger.info("websocket_heartbeat_pruned", removed=len(dead))
            except asyncio.CancelledError:
                break
            except Exception:
                logger.exception("websocket_heartbeat_failed")

    def start_heartbeat(self) -> None:
        if self._heartbeat_task is None or self._heartbeat_task.done():
            self._heartbeat_task = asyncio.create_task(self._heartbeat_loop())

    async def stop_heartbeat(self) -> None:
        if self._heartbeat_task and not self._heartbeat_task.done():
            self._heartbeat_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._heartbeat_task

    async def start_subscriber(self) -> None:
        """Forward every insightflow:* pub/sub message to local sockets. Runs until cancelled."""
        pubsub = self._redis.pubsub()
        await pubsub.psubscribe(f"{CHANNEL_PREFIX}:*")

        async for message in pubsub.listen():
            if message["type"] != "pmessage":
                continue
            channel = message["channel"]
            if isinstance(channel, bytes):
                channel = channel.decode()
            data = message["data"]
            if isinstance(data, bytes):
                data = data.decode()
            await self._broadcast_to_channel(channel, data)
