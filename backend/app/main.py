"""InsightFlow FastAPI application entry point."""

import asyncio
import contextlib
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.routes import (
    audit,
    chats,
    dashboard_items,
    executions,
    health,
    metrics,
    nodes,
    reports,
    templates,
    workflows,
    ws,
)
from app.core.config import settings
from app.core.logging_config import configure_logging
from app.core.metrics import app_info
from app.core.middleware import ObservabilityMiddleware
from app.core.redis import get_redis
from app.engine.registry import get_registry
from app.services.websocket_manager import WebSocketManager

configure_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle events."""
    app_info.info({"version": "0.1.0", "env": settings.app_env})

    # Fail fast on a broken node module rather than at first execution
    get_registry()

    # WebSocket manager with Redis pub/sub fan-out
    redis = await get_redis()
    ws_manager = WebSocketManager(redis)
    app.state.ws_manager = ws_manager
    subscriber_task = asyncio.create_task(ws_manager.start_subscriber())
    ws_manager.start_heartbeat()

    yield

    await ws_manager.stop_heartbeat()
    subscriber_task.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await subscriber_task


app = FastAPI(
    title="InsightFlow",
    description="Node-based data workflow editor and executor with chat-scoped dashboards",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(ObservabilityMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routes: all REST under /api/v1/
app.include_router(health.router, tags=["health"])
app.include_router(chats.router, prefix="/api/v1/chats", tags=["chats"])
app.include_router(workflows.router, prefix="/api/v1/workflows", tags=["workflows"])
app.include_router(nodes.router, prefix="/api/v1/nodes", tags=["nodes"])
app.include_router(executions.router, prefix="/api/v1/executions", tags=["executions"])
app.include_router(
    dashboard_items.router, prefix="/api/v1/dashboard-items", tags=["dashboard-items"]
)
app.include_router(reports.router, prefix="/api/v1/reports", tags=["reports"])
app.include_router(templates.router, prefix="/api/v1/templates", tags=["templates"])
app.include_router(audit.router, prefix="/api/v1/audit-logs", tags=["audit-logs"])
app.include_router(ws.router, tags=["websocket"])
app.include_router(metrics.router, tags=["metrics"])
