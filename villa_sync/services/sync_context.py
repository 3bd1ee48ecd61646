# villa_sync/services/sync_context.py
# Explicit context object wiring the sync core together.
# Construct one per application (or per test) and pass it to accessors.

import logging
from typing import Dict, Optional, Sequence

from villa_sync.errors import SubscriptionNotFoundError
from villa_sync.schemas.shape import CacheEntry, Subscription, SyncConfig
from villa_sync.schemas.status import SessionInfo, SubscriptionOut, SyncStatusResponse
from villa_sync.services import access_policy
from villa_sync.services.connectivity import ConnectivityMonitor
from villa_sync.services.poll_scheduler import PollScheduler
from villa_sync.services.registry import SubscriptionHandle, SubscriptionRegistry
from villa_sync.services.shape_cache import ShapeCache
from villa_sync.services.shape_client import ShapeClient

logger = logging.getLogger(__name__)


class SyncContext:
    """Shape client, cache, scheduler, registry and connectivity for one app."""

    def __init__(self, config: Optional[SyncConfig] = None, client: Optional[ShapeClient] = None):
        self.config = config or SyncConfig.from_settings()
        self.client = client or ShapeClient(
            self.config.url,
            health_timeout_ms=self.config.health_check_timeout_ms,
            fetch_timeout_ms=self.config.shape_fetch_timeout_ms,
        )
        self.cache = ShapeCache()
        self.scheduler = PollScheduler(self.client, self.cache)
        self.registry = SubscriptionRegistry(self.cache, self.scheduler, self.config.poll_interval_ms)
        self.connectivity = ConnectivityMonitor(self.client.health_check, self.config.health_check_interval_ms)
        self.session: Optional[SessionInfo] = None
        self._session_handles: Dict[str, SubscriptionHandle] = {}

    async def start(self, monitor_connectivity: bool = True) -> "SyncContext":
        if monitor_connectivity:
            self.connectivity.start()
        logger.info(f"Sync context started against {self.config.url}")
        return self

    async def close(self) -> None:
        self.stop_sync()
        await self.connectivity.stop()
        await self.registry.close_all()
        await self.client.close()
        logger.info("Sync context closed")

    async def __aenter__(self) -> "SyncContext":
        return await self.start()

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    # --- Subscriptions ---

    def subscribe(
        self,
        table: str,
        where: Optional[str] = None,
        columns: Optional[Sequence[str]] = None,
        poll_interval_ms: Optional[int] = None,
    ) -> SubscriptionHandle:
        return self.registry.subscribe(table, where, columns, poll_interval_ms)

    def unsubscribe(self, subscription_id: str) -> bool:
        return self.registry.unsubscribe(subscription_id)

    def require(self, subscription_id: str) -> Subscription:
        subscription = self.registry.get(subscription_id)
        if subscription is None:
            raise SubscriptionNotFoundError(subscription_id)
        return subscription

    async def refetch(self, subscription_id: str) -> Optional[CacheEntry]:
        return await self.scheduler.refetch(subscription_id)

    # --- Role-based sync sessions ---

    def start_sync(self, user_id: str, role: str, villa_id: Optional[str] = None) -> SessionInfo:
        """Subscribe every table ``role`` may see, scoped by its row predicate."""
        if self.session is not None:
            self.stop_sync()

        tables = access_policy.relevant_tables(role)
        for table in tables:
            where = access_policy.where_for(table, role, villa_id)
            self._session_handles[table] = self.subscribe(table, where=where)

        self.session = SessionInfo(user_id=user_id, role=role, villa_id=villa_id, tables=tables)
        logger.info(f"Real-time sync started for user {user_id} with role {role}")
        return self.session

    def stop_sync(self) -> None:
        if self.session is None:
            return
        for handle in self._session_handles.values():
            handle.close()
        self._session_handles.clear()
        logger.info(f"Sync stopped for user {self.session.user_id}")
        self.session = None

    async def force_sync(self, table: str) -> Optional[CacheEntry]:
        """Refetch the session subscription for ``table`` now."""
        handle = self._session_handles.get(table)
        if handle is None:
            logger.warning(f"No active session subscription found for {table}")
            return None
        return await self.refetch(handle.id)

    # --- Status ---

    def subscription_out(self, subscription: Subscription) -> SubscriptionOut:
        return SubscriptionOut(
            id=subscription.id,
            table=subscription.table,
            where=subscription.where,
            columns=list(subscription.columns) if subscription.columns else None,
            poll_interval_ms=subscription.poll_interval_ms,
            is_active=subscription.is_active,
            last_sync=subscription.last_sync,
            consumers=subscription.consumers,
            poll_state=self.scheduler.state(subscription.id).value,
        )

    def sync_status(self) -> SyncStatusResponse:
        return SyncStatusResponse(
            connected=self.connectivity.connected,
            last_health_check=self.connectivity.last_health_check,
            subscriptions_count=len(self.registry),
            session=self.session,
        )
