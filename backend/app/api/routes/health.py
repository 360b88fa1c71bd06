"""Health check endpoints. No authentication required.

- /health       legacy status probe
- /health/live  liveness probe (always 200)
- /health/ready readiness probe (PostgreSQL and Redis)
"""

import asyncio
import time

import structlog
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from redis.asyncio import Redis
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.metrics import store_health_check_duration_seconds, store_health_status
from app.core.redis import get_redis

router = APIRouter()
logger = structlog.stdlib.get_logger("insightflow.health")

# Per-store timeout for health checks (seconds)
_HEALTH_CHECK_TIMEOUT = 3.0


@router.get("/health")
async def health_check():
    return {"status": "healthy", "service": "insightflow"}


@router.get("/health/live")
async def liveness():
    return {"status": "live"}


async def _probe(store: str, check) -> dict:
    """Run one store check under the timeout and record its metrics."""
    start = time.monotonic()
    try:
        await asyncio.wait_for(check, timeout=_HEALTH_CHECK_TIMEOUT)
    except Exception as exc:
        store_health_check_duration_seconds.labels(store=store).observe(time.monotonic() - start)
        store_health_status.labels(store=store).set(0)
        logger.warning("readiness_check_failed", dependency=store, error=str(exc))
        return {"status": "error", "detail": str(exc)}
    store_health_check_duration_seconds.labels(store=store).observe(time.monotonic() - start)
    store_health_status.labels(store=store).set(1)
    return {"status": "ok"}


@router.get("/health/ready")
async def readiness(
    db: AsyncSession = Depends(get_db),
    redis: Redis = Depends(get_redis),
):
    """Readiness probe: checks PostgreSQL and Redis concurrently."""
    postgresql, redis_check = await asyncio.gather(
        _probe("postgresql", db.execute(text("SELECT 1"))),
        _probe("redis", redis.ping()),
    )
    checks = {"postgresql": postgresql, "redis": redis_check}
    healthy = all(c["status"] == "ok" for c in checks.values())

    return JSONResponse(
        content={"status": "ready" if healthy else "not_ready", "checks": checks},
        status_code=200 if healthy else 503,
    )
