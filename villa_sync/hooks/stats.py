# villa_sync/hooks/stats.py
# Client-side aggregates over full shapes.
# Record counts are in the hundreds to low thousands, so aggregating in
# process is fine; results are memoized on the identity of the data list.

from collections import Counter
from typing import Any, Callable, Generic, List, Optional, Sequence, TypeVar

from villa_sync.constants import VILLA_TABLE
from villa_sync.hooks.entities import use_onboarding_session
from villa_sync.hooks.shape_view import ShapeView, use_shape
from villa_sync.schemas.entities import OnboardingProgress, OnboardingSession, VillaStats
from villa_sync.schemas.shape import Record, ShapeError
from villa_sync.services.sync_context import SyncContext

T = TypeVar("T")


def _percent(done: int, total: int) -> int:
    return round(done / total * 100) if total > 0 else 0


def compute_villa_stats(villas: Sequence[Record]) -> Optional[VillaStats]:
    """Counts and averages over villa records; None when there are none."""
    if not villas:
        return None

    total = len(villas)
    active = sum(1 for v in villas if v.get("isActive"))
    by_status = Counter(v.get("status") for v in villas if v.get("status"))
    by_location = Counter(v.get("location") for v in villas if v.get("location"))

    return VillaStats(
        total=total,
        active=active,
        inactive=total - active,
        by_status=dict(by_status),
        by_location=dict(by_location),
        average_bedrooms=sum(v.get("bedrooms") or 0 for v in villas) / total,
        average_guests=sum(v.get("maxGuests") or 0 for v in villas) / total,
    )


def compute_onboarding_progress(sessions: Sequence[Record]) -> Optional[OnboardingProgress]:
    """Completion figures for the first onboarding session, if any."""
    if not sessions:
        return None
    session = OnboardingSession.model_validate(sessions[0])
    return OnboardingProgress(
        session=session,
        completion_percentage=_percent(session.fieldsCompleted, session.totalFields),
        step_completion_percentage=_percent(session.stepsCompleted, session.totalSteps),
        is_in_progress=not session.isCompleted and session.stepsCompleted > 0,
        next_step=None if session.isCompleted else session.currentStep,
    )


class AggregateView(Generic[T]):
    """Derived value over a shape view, recomputed only when its data list changes."""

    def __init__(self, view: ShapeView, compute: Callable[[List[Record]], T]):
        self.view = view
        self._compute = compute
        self._source: Any = None
        self._value: Optional[T] = None
        self.compute_count = 0

    @property
    def data(self) -> Optional[T]:
        source = self.view.data
        if source is not self._source or self.compute_count == 0:
            self._value = self._compute(source)
            self._source = source
            self.compute_count += 1
        return self._value

    @property
    def is_loading(self) -> bool:
        return self.view.is_loading

    @property
    def error(self) -> Optional[ShapeError]:
        return self.view.error

    async def refetch(self) -> None:
        await self.view.refetch()

    def close(self) -> None:
        self.view.close()

    def __enter__(self) -> "AggregateView[T]":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


def use_aggregate_stats(view: ShapeView, compute: Callable[[List[Record]], T]) -> AggregateView[T]:
    return AggregateView(view, compute)


class VillaStatsView(AggregateView[Optional[VillaStats]]):
    @property
    def total(self) -> int:
        stats = self.data
        return stats.total if stats is not None else 0


def use_villa_stats(ctx: SyncContext) -> VillaStatsView:
    """Aggregates over the full, unfiltered villa shape."""
    return VillaStatsView(use_shape(ctx, VILLA_TABLE), compute_villa_stats)


class OnboardingProgressView(AggregateView[Optional[OnboardingProgress]]):
    @property
    def is_loading(self) -> bool:
        # Loading until a session arrives, as long as the view is enabled.
        return self.view.enabled and not self.view.data


def use_onboarding_progress(
    ctx: SyncContext,
    villa_id: Optional[str],
    enabled: bool = True,
) -> OnboardingProgressView:
    view = use_onboarding_session(ctx, villa_id, enabled=enabled)
    return OnboardingProgressView(view, compute_onboarding_progress)
