# villa_sync/services/registry.py
# Subscription registry: collapses identical shape requests into one
# subscription and tears it down when the last consumer leaves.

import logging
from typing import Dict, List, Optional, Sequence

from villa_sync.observability.metrics import ACTIVE_SUBSCRIPTIONS
from villa_sync.schemas.shape import ShapeIdentity, Subscription
from villa_sync.services.poll_scheduler import PollScheduler
from villa_sync.services.shape_cache import ShapeCache

logger = logging.getLogger(__name__)


class SubscriptionHandle:
    """One consumer's claim on a subscription. Close it to release."""

    def __init__(self, registry: "SubscriptionRegistry", subscription: Subscription):
        self._registry = registry
        self.subscription = subscription
        self.released = False

    @property
    def id(self) -> str:
        return self.subscription.id

    def close(self) -> None:
        if not self.released:
            self.released = True
            self._registry.release(self)

    def __enter__(self) -> "SubscriptionHandle":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"SubscriptionHandle({self.subscription.table!r}, id={self.id!r}, released={self.released})"


class SubscriptionRegistry:
    """
    Owns subscriptions keyed by the id derived from their shape identity.

    - ``subscribe`` attaches to an existing subscription or creates one and
      starts exactly one poll loop for it.
    - Consumers are counted per handle; the subscription is removed, its
      cache entry purged and its loop stopped when the count reaches zero.
    - ``unsubscribe`` removes a subscription regardless of consumers.
    """

    def __init__(self, cache: ShapeCache, scheduler: PollScheduler, default_poll_interval_ms: int):
        self._cache = cache
        self._scheduler = scheduler
        self._default_poll_interval_ms = default_poll_interval_ms
        self._subscriptions: Dict[str, Subscription] = {}

    def subscribe(
        self,
        table: str,
        where: Optional[str] = None,
        columns: Optional[Sequence[str]] = None,
        poll_interval_ms: Optional[int] = None,
    ) -> SubscriptionHandle:
        """Attach a consumer to the shape ``(table, where, columns)``.

        ``poll_interval_ms`` applies when the subscription is created; later
        subscribers to the same identity share the existing cadence.
        Raises ConfigurationError for malformed identities.
        """
        identity = ShapeIdentity.create(table, where, columns)
        subscription_id = identity.subscription_id

        subscription = self._subscriptions.get(subscription_id)
        if subscription is None or not subscription.is_active:
            subscription = Subscription(
                id=subscription_id,
                identity=identity,
                poll_interval_ms=poll_interval_ms or self._default_poll_interval_ms,
            )
            # Loop first: without a running event loop nothing is registered.
            self._scheduler.start(subscription)
            self._subscriptions[subscription_id] = subscription
            self._cache.set(subscription_id, create=True, is_loading=True)
            ACTIVE_SUBSCRIPTIONS.set(len(self._subscriptions))
            logger.info(f"Subscribed to {identity.table} (where={identity.where!r}) as {subscription_id}")

        subscription.consumers += 1
        return SubscriptionHandle(self, subscription)

    def release(self, handle: SubscriptionHandle) -> None:
        """Drop one consumer; tear down on the last one."""
        handle.released = True
        subscription = self._subscriptions.get(handle.id)
        if subscription is not handle.subscription:
            # Already torn down (and possibly recreated for new consumers).
            return
        subscription.consumers = max(0, subscription.consumers - 1)
        if subscription.consumers == 0:
            self._teardown(subscription)

    def unsubscribe(self, subscription_id: str) -> bool:
        """Remove a subscription and its cache entry. Returns False for unknown ids."""
        subscription = self._subscriptions.get(subscription_id)
        if subscription is None:
            return False
        self._teardown(subscription)
        return True

    def _teardown(self, subscription: Subscription) -> None:
        self._scheduler.stop(subscription.id)
        subscription.is_active = False
        subscription.consumers = 0
        self._subscriptions.pop(subscription.id, None)
        self._cache.discard(subscription.id)
        ACTIVE_SUBSCRIPTIONS.set(len(self._subscriptions))
        logger.info(f"Unsubscribed from {subscription.table} ({subscription.id})")

    async def close_all(self) -> None:
        await self._scheduler.stop_all()
        for subscription in list(self._subscriptions.values()):
            self._teardown(subscription)

    def get(self, subscription_id: str) -> Optional[Subscription]:
        return self._subscriptions.get(subscription_id)

    def list(self) -> List[Subscription]:
        return list(self._subscriptions.values())

    def __contains__(self, subscription_id: str) -> bool:
        return subscription_id in self._subscriptions

    def __len__(self) -> int:
        return len(self._subscriptions)
