# villa_sync/hooks/entities.py
# Entity accessors: filtered lists, single rows by id, children by parent key,
# and the villa-management shapes built on them.

from typing import Any, Mapping, Optional, Sequence

from villa_sync.constants import (
    DOCUMENT_TABLE,
    FAST_POLL_INTERVAL_MS,
    ONBOARDING_SESSION_TABLE,
    PHOTO_TABLE,
    STEP_FIELD_PROGRESS_TABLE,
    REALTIME_POLL_INTERVAL_MS,
    STEP_PROGRESS_TABLE,
    VILLA_TABLE,
)
from villa_sync.hooks.shape_view import ShapeView, use_shape
from villa_sync.services.sync_context import SyncContext
from villa_sync.utils.filters import InSubquery, build_where


def use_entity_list(
    ctx: SyncContext,
    table: str,
    filters: Optional[Mapping[str, Any]] = None,
    columns: Optional[Sequence[str]] = None,
    poll_interval_ms: Optional[int] = None,
    enabled: bool = True,
) -> ShapeView:
    """Rows of ``table`` matching every non-empty filter value."""
    return use_shape(
        ctx,
        table,
        where=build_where(filters or {}),
        columns=columns,
        poll_interval_ms=poll_interval_ms,
        enabled=enabled,
    )


def use_entity_by_id(
    ctx: SyncContext,
    table: str,
    entity_id: Optional[str],
    id_field: str = "id",
    enabled: bool = True,
) -> ShapeView:
    """The row with primary key ``entity_id``; disabled while the id is unknown."""
    return use_entity_list(ctx, table, {id_field: entity_id}, enabled=enabled and bool(entity_id))


def use_children(
    ctx: SyncContext,
    table: str,
    parent_field: str,
    parent_id: Optional[str],
    filters: Optional[Mapping[str, Any]] = None,
    poll_interval_ms: Optional[int] = None,
    enabled: bool = True,
) -> ShapeView:
    """Rows of ``table`` whose ``parent_field`` equals ``parent_id``."""
    merged = dict(filters or {})
    merged[parent_field] = parent_id
    return use_entity_list(
        ctx, table, merged,
        poll_interval_ms=poll_interval_ms,
        enabled=enabled and bool(parent_id),
    )


# --- Villa management shapes ---

def use_villas(
    ctx: SyncContext,
    status: Optional[str] = None,
    location: Optional[str] = None,
    is_active: Optional[bool] = None,
) -> ShapeView:
    return use_entity_list(ctx, VILLA_TABLE, {
        "status": status,
        "location": location,
        "isActive": is_active,
    })


def use_villa(ctx: SyncContext, villa_id: Optional[str], enabled: bool = True) -> ShapeView:
    return use_entity_by_id(ctx, VILLA_TABLE, villa_id, enabled=enabled)


def use_villa_photos(
    ctx: SyncContext,
    villa_id: Optional[str],
    category: Optional[str] = None,
    main_only: bool = False,
    enabled: bool = True,
) -> ShapeView:
    return use_children(ctx, PHOTO_TABLE, "villaId", villa_id, {
        "category": category,
        "isMain": True if main_only else None,
    }, enabled=enabled)


def use_villa_documents(
    ctx: SyncContext,
    villa_id: Optional[str],
    document_type: Optional[str] = None,
    enabled: bool = True,
) -> ShapeView:
    return use_children(ctx, DOCUMENT_TABLE, "villaId", villa_id,
                        {"documentType": document_type}, enabled=enabled)


def use_onboarding_session(
    ctx: SyncContext,
    villa_id: Optional[str],
    user_id: Optional[str] = None,
    enabled: bool = True,
) -> ShapeView:
    return use_children(ctx, ONBOARDING_SESSION_TABLE, "villaId", villa_id,
                        {"userId": user_id},
                        poll_interval_ms=REALTIME_POLL_INTERVAL_MS, enabled=enabled)


def use_step_field_progress(
    ctx: SyncContext,
    villa_id: Optional[str],
    step_number: Optional[int] = None,
    enabled: bool = True,
) -> ShapeView:
    """Field-level progress for a villa's onboarding steps; polled fast while editing."""
    step_scope = InSubquery(STEP_PROGRESS_TABLE, {"villaId": villa_id, "stepNumber": step_number})
    return use_entity_list(
        ctx,
        STEP_FIELD_PROGRESS_TABLE,
        {"stepProgressId": step_scope},
        poll_interval_ms=FAST_POLL_INTERVAL_MS,
        enabled=enabled and bool(villa_id),
    )
