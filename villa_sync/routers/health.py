# villa_sync/routers/health.py
# Liveness and readiness for load balancers, plus a full check that probes
# the shape sync service and compares running poll loops to subscriptions.

import logging
import time
from typing import Any, Dict

from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel

from villa_sync.routers.deps import get_sync_context
from villa_sync.services.sync_context import SyncContext

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

# Worst component status wins
_SEVERITY = {"healthy": 0, "degraded": 1, "unhealthy": 2}


class HealthStatus(BaseModel):
    status: str  # healthy | degraded | unhealthy
    timestamp: float
    version: str = "1.0.0"
    checks: Dict[str, Dict[str, Any]] = {}


async def check_sync_service(ctx: SyncContext) -> Dict[str, Any]:
    """Probe the sync service now and summarize the poll loops."""
    started = time.perf_counter()
    connected = await ctx.connectivity.check()
    latency_ms = round((time.perf_counter() - started) * 1000, 2)

    running = ctx.scheduler.running_count()
    subscriptions = len(ctx.registry)
    if not connected:
        result = ("unhealthy", f"Sync service unreachable at {ctx.config.url}")
    elif running < subscriptions:
        result = ("degraded", f"{running}/{subscriptions} poll loops running")
    else:
        result = ("healthy", f"{subscriptions} subscriptions polling")

    return {"status": result[0], "latency_ms": latency_ms, "message": result[1]}


@router.get("/health", response_model=HealthStatus)
async def health_check(response: Response, ctx: SyncContext = Depends(get_sync_context)) -> HealthStatus:
    """Full check; 503 when any component is unhealthy."""
    checks = {"sync_service": await check_sync_service(ctx)}
    overall = max((c["status"] for c in checks.values()), key=_SEVERITY.__getitem__)
    if overall == "unhealthy":
        logger.warning(f"Health check failed: {checks}")
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    return HealthStatus(status=overall, timestamp=time.time(), checks=checks)


@router.get("/health/live")
async def liveness_probe():
    """Process is up. No dependency checks."""
    return {"status": "alive"}


@router.get("/health/ready")
async def readiness_probe(response: Response, ctx: SyncContext = Depends(get_sync_context)):
    # Last known connectivity; the monitor refreshes it in the background.
    if ctx.connectivity.connected:
        return {"status": "ready"}
    response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    return {"status": "not_ready", "reason": "Sync service not connected"}
