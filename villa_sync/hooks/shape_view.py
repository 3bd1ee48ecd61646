# villa_sync/hooks/shape_view.py
# Read-only views over one subscription's cache entry.
# UI adapters register on_change callbacks instead of re-rendering.

import logging
from datetime import datetime
from typing import Callable, List, Optional, Sequence, Type, TypeVar

from pydantic import BaseModel, ValidationError

from villa_sync.schemas.shape import CacheEntry, Record, ShapeError
from villa_sync.services.registry import SubscriptionHandle
from villa_sync.services.sync_context import SyncContext

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


class ShapeView:
    """
    Live accessor for a shape.

    Attributes read the current cache entry on every access. A disabled view
    (no subscription) reports no data, not loading, no error.
    """

    def __init__(self, ctx: SyncContext, handle: Optional[SubscriptionHandle] = None):
        self._ctx = ctx
        self._handle = handle
        self._unlisteners: List[Callable[[], None]] = []

    @property
    def enabled(self) -> bool:
        return self._handle is not None

    @property
    def subscription_id(self) -> Optional[str]:
        return self._handle.id if self._handle is not None else None

    @property
    def entry(self) -> Optional[CacheEntry]:
        if self._handle is None or self._handle.released:
            return None
        return self._ctx.cache.get(self._handle.id)

    @property
    def data(self) -> List[Record]:
        entry = self.entry
        return entry.data if entry is not None else []

    @property
    def is_loading(self) -> bool:
        entry = self.entry
        return entry.is_loading if entry is not None else False

    @property
    def error(self) -> Optional[ShapeError]:
        entry = self.entry
        return entry.error if entry is not None else None

    @property
    def last_updated(self) -> Optional[datetime]:
        entry = self.entry
        return entry.last_updated if entry is not None else None

    async def refetch(self) -> None:
        if self.subscription_id is not None:
            await self._ctx.refetch(self.subscription_id)

    def on_change(self, callback: Callable[["ShapeView"], None]) -> Callable[[], None]:
        """Call ``callback(view)`` after every write to this view's entry."""
        if self._handle is None:
            return lambda: None
        remove = self._ctx.cache.add_listener(self._handle.id, lambda _sid, _entry: callback(self))
        self._unlisteners.append(remove)
        return remove

    def typed(self, model: Type[M]) -> List[M]:
        """Parse records into ``model``; records that do not fit are skipped."""
        items: List[M] = []
        for record in self.data:
            try:
                items.append(model.model_validate(record))
            except ValidationError as e:
                logger.warning(f"Skipping {model.__name__} record {record.get('id')!r}: {e.error_count()} errors")
        return items

    def close(self) -> None:
        for remove in self._unlisteners:
            remove()
        self._unlisteners.clear()
        if self._handle is not None:
            self._handle.close()

    def __enter__(self) -> "ShapeView":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def __repr__(self) -> str:
        return (f"ShapeView(id={self.subscription_id!r}, records={len(self.data)}, "
                f"loading={self.is_loading}, error={self.error!r})")


def use_shape(
    ctx: SyncContext,
    table: str,
    where: Optional[str] = None,
    columns: Optional[Sequence[str]] = None,
    poll_interval_ms: Optional[int] = None,
    enabled: bool = True,
) -> ShapeView:
    """Subscribe to a shape and return a view of it.

    With ``enabled=False`` nothing is subscribed and nothing is polled.
    """
    if not enabled:
        return ShapeView(ctx)
    handle = ctx.subscribe(table, where=where, columns=columns, poll_interval_ms=poll_interval_ms)
    return ShapeView(ctx, handle)
