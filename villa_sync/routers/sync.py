# villa_sync/routers/sync.py
# FastAPI router exposing sync state for dashboards and operators

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel

from villa_sync.errors import SubscriptionNotFoundError
from villa_sync.observability.metrics import render_latest
from villa_sync.routers.deps import get_sync_context
from villa_sync.schemas.shape import CacheEntry
from villa_sync.schemas.status import SessionInfo, ShapeOut, SubscriptionOut, SyncStatusResponse
from villa_sync.services.sync_context import SyncContext


router = APIRouter(tags=["Sync"])
metrics_router = APIRouter(tags=["Metrics"])


class StartSyncRequest(BaseModel):
    user_id: str
    role: str
    villa_id: Optional[str] = None


@router.get("/sync/status", response_model=SyncStatusResponse)
async def sync_status(ctx: SyncContext = Depends(get_sync_context)) -> SyncStatusResponse:
    return ctx.sync_status()


@router.get("/sync/subscriptions", response_model=List[SubscriptionOut])
async def list_subscriptions(ctx: SyncContext = Depends(get_sync_context)) -> List[SubscriptionOut]:
    return [ctx.subscription_out(sub) for sub in ctx.registry.list()]


@router.get("/sync/shapes/{subscription_id}", response_model=ShapeOut)
async def get_shape(subscription_id: str, ctx: SyncContext = Depends(get_sync_context)) -> ShapeOut:
    """Current cache entry of one subscription."""
    subscription = ctx.require(subscription_id)
    entry = ctx.cache.get(subscription_id) or CacheEntry()
    return ShapeOut(subscription=ctx.subscription_out(subscription), entry=entry)


@router.post("/sync/shapes/{subscription_id}/refetch", response_model=CacheEntry)
async def refetch_shape(subscription_id: str, ctx: SyncContext = Depends(get_sync_context)) -> CacheEntry:
    """Fetch now instead of waiting for the next tick. Failures land in ``error``."""
    ctx.require(subscription_id)
    entry = await ctx.refetch(subscription_id)
    return entry or CacheEntry()


@router.post("/sync/session", response_model=SessionInfo)
async def start_session(payload: StartSyncRequest, ctx: SyncContext = Depends(get_sync_context)) -> SessionInfo:
    """Start role-scoped sync of every table the role may see."""
    return ctx.start_sync(payload.user_id, payload.role, payload.villa_id)


@router.delete("/sync/session", status_code=204)
async def stop_session(ctx: SyncContext = Depends(get_sync_context)) -> Response:
    ctx.stop_sync()
    return Response(status_code=204)


@router.post("/sync/tables/{table}/refresh", response_model=CacheEntry)
async def refresh_table(table: str, ctx: SyncContext = Depends(get_sync_context)) -> CacheEntry:
    """Force sync of the session's subscription for ``table``."""
    entry = await ctx.force_sync(table)
    if entry is None:
        raise SubscriptionNotFoundError(table)
    return entry


@metrics_router.get("/metrics", include_in_schema=False)
async def metrics() -> Response:
    body, content_type = render_latest()
    return Response(content=body, media_type=content_type)
