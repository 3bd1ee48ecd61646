# villa_sync/hooks/connectivity.py

from datetime import datetime
from typing import Callable, Optional

from villa_sync.schemas.status import ConnectivityState
from villa_sync.services.sync_context import SyncContext


class ConnectivityView:
    """Connection status of the sync service plus a manual re-check."""

    def __init__(self, ctx: SyncContext):
        self._monitor = ctx.connectivity

    @property
    def connected(self) -> bool:
        return self._monitor.state.connected

    @property
    def last_health_check(self) -> Optional[datetime]:
        return self._monitor.state.last_health_check

    @property
    def is_checking(self) -> bool:
        return self._monitor.state.is_checking

    async def check_health(self) -> bool:
        return await self._monitor.check()

    def on_change(self, callback: Callable[[ConnectivityState], None]) -> Callable[[], None]:
        return self._monitor.add_listener(callback)


def use_connectivity(ctx: SyncContext) -> ConnectivityView:
    return ConnectivityView(ctx)
