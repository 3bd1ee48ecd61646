from villa_sync.hooks.connectivity import ConnectivityView, use_connectivity
from villa_sync.hooks.entities import (
    use_children,
    use_entity_by_id,
    use_entity_list,
    use_onboarding_session,
    use_step_field_progress,
    use_villa,
    use_villa_documents,
    use_villa_photos,
    use_villas,
)
from villa_sync.hooks.optimistic import OptimisticOverlay, same_field, use_optimistic_overlay
from villa_sync.hooks.shape_view import ShapeView, use_shape
from villa_sync.hooks.stats import (
    AggregateView,
    compute_onboarding_progress,
    compute_villa_stats,
    use_aggregate_stats,
    use_onboarding_progress,
    use_villa_stats,
)

__all__ = [
    "AggregateView",
    "ConnectivityView",
    "OptimisticOverlay",
    "ShapeView",
    "compute_onboarding_progress",
    "compute_villa_stats",
    "same_field",
    "use_aggregate_stats",
    "use_children",
    "use_connectivity",
    "use_entity_by_id",
    "use_entity_list",
    "use_onboarding_progress",
    "use_onboarding_session",
    "use_optimistic_overlay",
    "use_shape",
    "use_step_field_progress",
    "use_villa",
    "use_villa_documents",
    "use_villa_photos",
    "use_villa_stats",
    "use_villas",
]
