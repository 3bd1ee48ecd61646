# villa_sync/hooks/optimistic.py
# Client-held speculative records shown on top of a shape until the server
# confirms them. Nothing here is written into the shape cache.

from typing import Callable, Dict, Iterable, List, Optional

from villa_sync.hooks.shape_view import ShapeView
from villa_sync.schemas.shape import Record

Matcher = Callable[[Record, Record], bool]


class OptimisticOverlay:
    """
    Authoritative records plus pending ones, for low-latency UI feedback.

    ``sync`` takes new authoritative data and ignores it while a fetch is
    loading, so the merged list never flickers back to a half-loaded state.
    When ``confirms`` is given, a pending item is dropped as soon as an
    authoritative record confirms it; otherwise call ``remove_pending``.
    """

    def __init__(
        self,
        base_data: Iterable[Record] = (),
        is_loading: bool = False,
        confirms: Optional[Matcher] = None,
    ):
        self._base: List[Record] = []
        self._pending: Dict[str, Record] = {}
        self._confirms = confirms
        self._unlisten: Optional[Callable[[], None]] = None
        self.sync(base_data, is_loading)

    def sync(self, base_data: Iterable[Record], is_loading: bool) -> None:
        if is_loading:
            return
        self._base = list(base_data)
        if self._confirms is not None and self._pending:
            self._pending = {
                pid: item for pid, item in self._pending.items()
                if not any(self._confirms(record, item) for record in self._base)
            }

    def add_pending(self, item: Record, pending_id: str) -> None:
        self._pending[pending_id] = item

    def remove_pending(self, pending_id: str) -> None:
        self._pending.pop(pending_id, None)

    @property
    def data(self) -> List[Record]:
        return self._base + list(self._pending.values())

    @property
    def pending(self) -> List[Record]:
        return list(self._pending.values())

    @property
    def pending_ids(self) -> List[str]:
        return list(self._pending)

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    @property
    def has_pending_updates(self) -> bool:
        return bool(self._pending)

    def follow(self, view: ShapeView) -> "OptimisticOverlay":
        """Keep the overlay in step with ``view`` on every cache write."""
        self.detach()
        self.sync(view.data, view.is_loading)
        self._unlisten = view.on_change(lambda v: self.sync(v.data, v.is_loading))
        return self

    def detach(self) -> None:
        if self._unlisten is not None:
            self._unlisten()
            self._unlisten = None


def use_optimistic_overlay(
    base_data: Iterable[Record],
    is_loading: bool,
    confirms: Optional[Matcher] = None,
) -> OptimisticOverlay:
    return OptimisticOverlay(base_data, is_loading, confirms=confirms)


def same_field(field: str) -> Matcher:
    """Matcher treating records with equal ``field`` values as the same record."""
    def confirms(record: Record, pending: Record) -> bool:
        value = pending.get(field)
        return value is not None and record.get(field) == value
    return confirms
