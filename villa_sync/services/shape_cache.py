# villa_sync/services/shape_cache.py
# Per-subscription shape state with merge-on-write semantics
# and change listeners for consumers.

import logging
from collections import defaultdict
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

from villa_sync.errors import SyncError
from villa_sync.schemas.shape import CacheEntry, Record, ShapeError

logger = logging.getLogger(__name__)

Listener = Callable[[str, CacheEntry], None]

_ENTRY_FIELDS = frozenset(CacheEntry.model_fields)


def shape_error_from(exc: Exception) -> ShapeError:
    """Build the cache's failure descriptor from a raised exception."""
    if isinstance(exc, SyncError):
        status = getattr(exc, "upstream_status", None) or exc.status_code
        return ShapeError(message=exc.message, error_code=exc.error_code, status_code=status)
    return ShapeError(message=str(exc) or type(exc).__name__, error_code="UNEXPECTED_ERROR")


class ShapeCache:
    """
    State container keyed by subscription id.

    Entries are immutable snapshots; every write replaces the entry with a
    merged copy, so a consumer holding an old entry never sees it change.
    Stale data policy: a failed fetch keeps the previous ``data`` and
    ``last_updated`` and only sets ``error``.
    """

    def __init__(self):
        self._entries: Dict[str, CacheEntry] = {}
        self._listeners: Dict[str, List[Listener]] = defaultdict(list)

    def get(self, subscription_id: str) -> Optional[CacheEntry]:
        return self._entries.get(subscription_id)

    def __contains__(self, subscription_id: str) -> bool:
        return subscription_id in self._entries

    def ids(self) -> List[str]:
        return list(self._entries)

    def set(self, subscription_id: str, create: bool = False, **partial) -> Optional[CacheEntry]:
        """Merge ``partial`` fields into the entry.

        Only the supplied fields change. Writes to an id with no entry are
        dropped unless ``create`` is set.
        """
        unknown = set(partial) - _ENTRY_FIELDS
        if unknown:
            raise ValueError(f"Unknown cache entry fields: {sorted(unknown)}")

        current = self._entries.get(subscription_id)
        if current is None:
            if not create:
                logger.debug(f"Dropping write for discarded shape {subscription_id}")
                return None
            current = CacheEntry()

        entry = current.model_copy(update=partial)
        self._entries[subscription_id] = entry
        self._notify(subscription_id, entry)
        return entry

    def record_success(
        self, subscription_id: str, data: List[Record], is_loading: bool = False
    ) -> Optional[CacheEntry]:
        return self.set(
            subscription_id,
            data=data,
            error=None,
            is_loading=is_loading,
            last_updated=datetime.now(timezone.utc),
        )

    def record_failure(
        self, subscription_id: str, exc: Exception, is_loading: bool = False
    ) -> Optional[CacheEntry]:
        return self.set(subscription_id, error=shape_error_from(exc), is_loading=is_loading)

    def discard(self, subscription_id: str) -> None:
        self._entries.pop(subscription_id, None)
        self._listeners.pop(subscription_id, None)

    def add_listener(self, subscription_id: str, callback: Listener) -> Callable[[], None]:
        """Register ``callback(subscription_id, entry)`` for writes to one entry.

        Returns a callable that removes the listener.
        """
        self._listeners[subscription_id].append(callback)

        def remove() -> None:
            callbacks = self._listeners.get(subscription_id)
            if callbacks and callback in callbacks:
                callbacks.remove(callback)

        return remove

    def _notify(self, subscription_id: str, entry: CacheEntry) -> None:
        for callback in list(self._listeners.get(subscription_id, ())):
            try:
                callback(subscription_id, entry)
            except Exception:
                logger.exception(f"Shape listener failed for {subscription_id}")
