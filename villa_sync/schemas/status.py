from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel

from villa_sync.schemas.shape import CacheEntry


class ConnectivityState(BaseModel):
    connected: bool = False
    last_health_check: Optional[datetime] = None
    is_checking: bool = False


class SessionInfo(BaseModel):
    user_id: str
    role: str
    villa_id: Optional[str] = None
    tables: List[str] = []


class SubscriptionOut(BaseModel):
    id: str
    table: str
    where: Optional[str] = None
    columns: Optional[List[str]] = None
    poll_interval_ms: int
    is_active: bool
    last_sync: Optional[datetime] = None
    consumers: int
    poll_state: Optional[str] = None


class ShapeOut(BaseModel):
    subscription: SubscriptionOut
    entry: CacheEntry


class SyncStatusResponse(BaseModel):
    connected: bool
    last_health_check: Optional[datetime] = None
    subscriptions_count: int
    session: Optional[SessionInfo] = None
