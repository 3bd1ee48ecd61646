# villa_sync/services/poll_scheduler.py
# One fetch-then-wait loop per active subscription.
# Each loop owns a cancellation token captured at start; every cache write
# checks it, so a stopped loop never writes even if a fetch was in flight.

import asyncio
import logging
from enum import Enum
from typing import Dict, List, Optional, Protocol, Sequence

from villa_sync.errors import RequestError
from villa_sync.observability.metrics import POLL_LOOPS
from villa_sync.schemas.shape import CacheEntry, Record, Subscription
from villa_sync.services.shape_cache import ShapeCache

logger = logging.getLogger(__name__)


class ShapeFetcher(Protocol):
    async def fetch_shape(
        self,
        table: str,
        where: Optional[str] = None,
        columns: Optional[Sequence[str]] = None,
    ) -> List[Record]:
        ...


class PollState(Enum):
    """Poll loop states."""
    STARTING = "starting"   # Loop created, first fetch not finished
    POLLING = "polling"     # At least one fetch completed, waiting or fetching
    STOPPED = "stopped"     # Cancelled; no further fetches or writes


class CancelToken:
    """Cancellation flag that can also be awaited as an interruptible sleep."""

    def __init__(self):
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    async def sleep(self, seconds: float) -> bool:
        """Wait ``seconds`` or until cancelled. Returns True if cancelled."""
        try:
            await asyncio.wait_for(self._event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return False
        return True


class PollLoop:
    def __init__(self, subscription: Subscription):
        self.subscription = subscription
        self.token = CancelToken()
        self.state = PollState.STARTING
        self.in_flight = 0
        self.fetch_count = 0
        self.task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self.state is not PollState.STOPPED and not self.token.cancelled


class PollScheduler:
    """
    Drives poll loops and manual refetches, writing results into the cache.

    - First fetch is issued immediately on start.
    - The next fetch is scheduled ``poll_interval_ms`` after the previous
      one completes, so a slow server delays only its own subscription.
    - Failures are recorded on the cache entry and polling continues.
    """

    def __init__(self, fetcher: ShapeFetcher, cache: ShapeCache):
        self._fetcher = fetcher
        self._cache = cache
        self._loops: Dict[str, PollLoop] = {}

    def start(self, subscription: Subscription) -> PollLoop:
        """Start polling ``subscription``. Idempotent while its loop is running.

        Must be called from inside the running event loop.
        """
        existing = self._loops.get(subscription.id)
        if existing is not None and existing.running:
            return existing

        # Raises RuntimeError outside an event loop, before any state is kept.
        event_loop = asyncio.get_running_loop()
        loop = PollLoop(subscription)
        loop.task = event_loop.create_task(self._run(loop), name=f"poll:{subscription.table}")
        self._loops[subscription.id] = loop
        POLL_LOOPS.inc()
        logger.debug(f"Poll loop started for {subscription.id} every {subscription.poll_interval_ms}ms")
        return loop

    def stop(self, subscription_id: str) -> Optional[PollLoop]:
        """Cancel the loop for ``subscription_id``. In-flight results are discarded."""
        loop = self._loops.pop(subscription_id, None)
        if loop is not None:
            loop.token.cancel()
            logger.debug(f"Poll loop stop requested for {subscription_id}")
        return loop

    async def stop_all(self) -> None:
        loops = [self.stop(sid) for sid in list(self._loops)]
        tasks = [lp.task for lp in loops if lp is not None and lp.task is not None]
        # A fetch blocked on the network would otherwise hold shutdown open.
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    def get(self, subscription_id: str) -> Optional[PollLoop]:
        return self._loops.get(subscription_id)

    def state(self, subscription_id: str) -> PollState:
        loop = self._loops.get(subscription_id)
        return loop.state if loop is not None else PollState.STOPPED

    def running_count(self) -> int:
        return sum(1 for lp in self._loops.values() if lp.running)

    async def refetch(self, subscription_id: str) -> Optional[CacheEntry]:
        """Fetch once outside the poll cadence.

        Network failures land in the cache entry, never raised. Results are
        written in completion order. Returns the entry after the write, or
        None when the subscription is not being polled.
        """
        loop = self._loops.get(subscription_id)
        if loop is None or not loop.running:
            logger.debug(f"Refetch ignored for inactive shape {subscription_id}")
            return None
        await self._fetch_into_cache(loop)
        return self._cache.get(subscription_id)

    async def _run(self, loop: PollLoop) -> None:
        subscription = loop.subscription
        interval = subscription.poll_interval_ms / 1000
        try:
            while not loop.token.cancelled:
                await self._fetch_into_cache(loop)
                if loop.token.cancelled:
                    break
                loop.state = PollState.POLLING
                if await loop.token.sleep(interval):
                    break
        finally:
            loop.state = PollState.STOPPED
            POLL_LOOPS.dec()
            logger.debug(f"Poll loop stopped for {subscription.id} after {loop.fetch_count} fetches")

    async def _fetch_into_cache(self, loop: PollLoop) -> None:
        subscription = loop.subscription
        token = loop.token
        if token.cancelled:
            return

        loop.in_flight += 1
        loop.fetch_count += 1
        self._cache.set(subscription.id, is_loading=True)
        try:
            try:
                data = await self._fetcher.fetch_shape(
                    subscription.table,
                    where=subscription.where,
                    columns=subscription.columns,
                )
            finally:
                loop.in_flight -= 1
        except asyncio.CancelledError:
            # Caller gave up on this fetch; the entry is loading only if another one is pending.
            if not token.cancelled:
                self._cache.set(subscription.id, is_loading=loop.in_flight > 0)
            raise
        except RequestError as e:
            if token.cancelled:
                return
            logger.warning(f"Shape fetch failed for {subscription.table}: {e.message}")
            self._cache.record_failure(subscription.id, e, is_loading=loop.in_flight > 0)
            return
        except Exception as e:
            if token.cancelled:
                return
            logger.error(f"Unexpected error polling {subscription.table}: {type(e).__name__}: {e}",
                         exc_info=True)
            self._cache.record_failure(subscription.id, e, is_loading=loop.in_flight > 0)
            return

        if token.cancelled:
            logger.debug(f"Discarding in-flight result for stopped shape {subscription.id}")
            return
        # Another fetch for the same subscription may still be in flight.
        entry = self._cache.record_success(subscription.id, data, is_loading=loop.in_flight > 0)
        if entry is not None:
            subscription.last_sync = entry.last_updated
