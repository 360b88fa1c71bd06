"""WebSocket endpoint for execution status and dashboard updates.

Channels are tenant-scoped: the tenant_id comes from the bearer token on
connection and prefixes every channel the client subscribes to.
"""

import json

import httpx
import structlog
from fastapi import APIRouter, HTTPException, WebSocket, WebSocketDisconnect

from app.core.auth import _decode_token
from app.core.config import settings
from app.services.websocket_manager import CHANNEL_PREFIX, WebSocketManager

logger = structlog.stdlib.get_logger(__name__)

router = APIRouter()

# Channel types a client may subscribe to: "execution:{id}" or "chat:{id}"
SUBSCRIBABLE_TYPES = frozenset({"execution", "chat"})


async def _extract_tenant_id(token: str) -> str | None:
    """Tenant id from a JWT, or None if the token does not verify."""
    try:
        payload = await _decode_token(token)
    except (HTTPException, httpx.HTTPError) as exc:
        logger.info("websocket_token_rejected", error=str(exc))
        return None
    return payload.get("tenant_id")


def _valid_suffix(channel_suffix: str) -> bool:
    channel_type, _, channel_id = channel_suffix.partition(":")
    return channel_type in SUBSCRIBABLE_TYPES and bool(channel_id) and ":" not in channel_id


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """Client protocol:

    {"action": "subscribe", "channel": "execution:<execution_id>"}
    {"action": "unsubscribe", "channel": "chat:<chat_id>"}

    Query params:
        token: JWT access token for authentication
    """
    token = websocket.query_params.get("token")

    # Dev-mode bypass
    if settings.app_env == "development" and not token:
        tenant_id = settings.dev_tenant_id
    elif not token:
        await websocket.close(code=4001, reason="Missing token")
        return
    else:
        tenant_id = await _extract_tenant_id(token)
        if not tenant_id:
            await websocket.close(code=4001, reason="Invalid token")
            return

    # Depends() is not available on websocket routes
    ws_manager: WebSocketManager = websocket.app.state.ws_manager

    general_channel = f"{CHANNEL_PREFIX}:{tenant_id}:general"
    await ws_manager.connect(websocket, general_channel)

    try:
        while True:
            raw = await websocket.receive_text()
            try:
                msg = json.loads(raw)
            except json.JSONDecodeError:
                await websocket.send_json({"type": "error", "detail": "Invalid JSON"})
                continue
            if not isinstance(msg, dict):
                await websocket.send_json({"type": "error", "detail": "Invalid message"})
                continue

            action = msg.get("action")
            channel_suffix = msg.get("channel") or ""

            if action in ("subscribe", "unsubscribe") and not _valid_suffix(channel_suffix):
                await websocket.send_json({"type": "error", "detail": "Invalid channel"})
                continue

            # Tenant prefix always comes from the token, never from the client
            full_channel = f"{CHANNEL_PREFIX}:{tenant_id}:{channel_suffix}"
            if action == "subscribe":
                await ws_manager.subscribe_to_channel(websocket, full_channel)
                await websocket.send_json({"type": "subscribed", "channel": channel_suffix})
            elif action == "unsubscribe":
                await ws_manager.unsubscribe_from_channel(websocket, full_channel)
                await websocket.send_json({"type": "unsubscribed", "channel": channel_suffix})
            else:
                await websocket.send_json({"type": "error", "detail": "Unknown action"})

    except WebSocketDisconnect:
        await ws_manager.disconnect_all(websocket)
    except Exception:
        logger.exception("websocket_error", tenant_id=tenant_id)
        await ws_manager.disconnect_all(websocket)
