# villa_sync/services/connectivity.py
# Process-wide connectivity state for the sync service.
# Refreshed on a fixed interval and whenever the application regains focus.

import asyncio
import logging
from datetime import datetime, timezone
from typing import Awaitable, Callable, List, Optional

from villa_sync.observability.metrics import SYNC_CONNECTED
from villa_sync.schemas.status import ConnectivityState

logger = logging.getLogger(__name__)

HealthProbe = Callable[[], Awaitable[bool]]
ConnectivityListener = Callable[[ConnectivityState], None]


class ConnectivityMonitor:
    """
    Tracks whether the sync service is reachable.

    The probe must never raise (``ShapeClient.health_check`` maps every
    failure to False). ``state`` starts disconnected with no check time.
    """

    def __init__(self, probe: HealthProbe, interval_ms: int):
        self._probe = probe
        self.interval = interval_ms / 1000
        self.state = ConnectivityState()
        self._listeners: List[ConnectivityListener] = []
        self._task: Optional[asyncio.Task] = None
        self._stop_event: Optional[asyncio.Event] = None

    @property
    def connected(self) -> bool:
        return self.state.connected

    @property
    def last_health_check(self) -> Optional[datetime]:
        return self.state.last_health_check

    def add_listener(self, callback: ConnectivityListener) -> Callable[[], None]:
        self._listeners.append(callback)

        def remove() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return remove

    async def check(self) -> bool:
        """Run one health probe and publish the result."""
        self._update(is_checking=True)
        try:
            healthy = await self._probe()
        finally:
            self.state = self.state.model_copy(update={"is_checking": False})
        previous = self.state.connected
        self._update(connected=healthy, last_health_check=datetime.now(timezone.utc))
        SYNC_CONNECTED.set(1 if healthy else 0)
        if previous != healthy:
            logger.info(f"Sync service {'connected' if healthy else 'disconnected'}")
        return healthy

    def notify_focus(self) -> asyncio.Task:
        """Application regained focus: re-check immediately."""
        return asyncio.get_running_loop().create_task(self.check(), name="connectivity:focus")

    def start(self) -> asyncio.Task:
        """Start periodic checks (first one immediately). Idempotent."""
        if self._task is not None and not self._task.done():
            return self._task
        self._stop_event = asyncio.Event()
        self._task = asyncio.get_running_loop().create_task(self._run(), name="connectivity")
        return self._task

    async def stop(self) -> None:
        if self._task is None:
            return
        self._stop_event.set()
        await asyncio.gather(self._task, return_exceptions=True)
        self._task = None

    async def _run(self) -> None:
        while not self._stop_event.is_set():
            await self.check()
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self.interval)
            except asyncio.TimeoutError:
                continue

    def _update(self, **changes) -> None:
        self.state = self.state.model_copy(update=changes)
        for callback in list(self._listeners):
            try:
                callback(self.state)
            except Exception:
                logger.exception("Connectivity listener failed")
