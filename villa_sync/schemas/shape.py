from __future__ import annotations

import hashlib
import json
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple

from pydantic import BaseModel, ConfigDict, Field

from villa_sync.constants import (
    DEFAULT_HEALTH_CHECK_INTERVAL_MS,
    DEFAULT_HEALTH_CHECK_TIMEOUT_MS,
    DEFAULT_POLL_INTERVAL_MS,
)
from villa_sync.errors import ConfigurationError


Record = Dict[str, Any]


class ShapeIdentity(BaseModel):
    """Structural key of a shape: table, predicate and column projection.

    Two identities with equal fields are equal and hash alike, so they
    collapse to one subscription.
    """

    model_config = ConfigDict(frozen=True)

    table: str
    where: Optional[str] = None
    columns: Optional[Tuple[str, ...]] = None

    @classmethod
    def create(
        cls,
        table: str,
        where: Optional[str] = None,
        columns: Optional[Sequence[str]] = None,
    ) -> "ShapeIdentity":
        """Validate and normalize raw subscribe arguments.

        Raises ConfigurationError for a blank table or column name so bad
        input fails at subscribe time instead of inside a poll loop.
        """
        if not isinstance(table, str) or not table.strip():
            raise ConfigurationError("Shape table name must be a non-empty string")
        if where is not None and not isinstance(where, str):
            raise ConfigurationError("Shape filter must be a string", details={"where": repr(where)})
        where = where.strip() if where else None

        cols: Optional[Tuple[str, ...]] = None
        if columns is not None:
            if isinstance(columns, str):
                raise ConfigurationError("Shape columns must be a sequence of names, not a string")
            cols = tuple(columns)
            if any(not isinstance(c, str) or not c.strip() for c in cols):
                raise ConfigurationError("Shape column names must be non-empty strings",
                                         details={"columns": list(cols)})
            cols = cols or None

        return cls(table=table.strip(), where=where or None, columns=cols)

    @property
    def subscription_id(self) -> str:
        payload = {
            "table": self.table,
            "where": self.where,
            "columns": list(self.columns) if self.columns is not None else None,
        }
        raw = json.dumps(payload, sort_keys=True)
        digest = hashlib.sha256(raw.encode()).hexdigest()
        return f"{self.table}:{digest}"


class ShapeError(BaseModel):
    """Failure descriptor stored on a cache entry."""
    message: str
    error_code: str = "SHAPE_REQUEST_FAILED"
    status_code: Optional[int] = None


class CacheEntry(BaseModel):
    """Materialized state of one subscription."""
    data: List[Record] = Field(default_factory=list)
    is_loading: bool = False
    error: Optional[ShapeError] = None
    last_updated: Optional[datetime] = None


class Subscription(BaseModel):
    """One logical interest in a shape identity. Owned by the registry."""
    id: str
    identity: ShapeIdentity
    poll_interval_ms: int
    is_active: bool = True
    last_sync: Optional[datetime] = None
    consumers: int = 0

    @property
    def table(self) -> str:
        return self.identity.table

    @property
    def where(self) -> Optional[str]:
        return self.identity.where

    @property
    def columns(self) -> Optional[Tuple[str, ...]]:
        return self.identity.columns


class SyncConfig(BaseModel):
    """Configuration consumed by the sync core."""
    url: str = "http://localhost:5133"
    poll_interval_ms: int = Field(default=DEFAULT_POLL_INTERVAL_MS, gt=0)
    # Reserved: failed polls are retried indefinitely by the next tick.
    retry_attempts: int = 3
    health_check_interval_ms: int = Field(default=DEFAULT_HEALTH_CHECK_INTERVAL_MS, gt=0)
    health_check_timeout_ms: int = Field(default=DEFAULT_HEALTH_CHECK_TIMEOUT_MS, gt=0)
    shape_fetch_timeout_ms: Optional[int] = None

    @classmethod
    def from_settings(cls, settings=None) -> "SyncConfig":
        if settings is None:
            from villa_sync.config import get_settings
            settings = get_settings()
        return cls(
            url=settings.ELECTRIC_URL,
            poll_interval_ms=settings.POLL_INTERVAL_MS,
            retry_attempts=settings.RETRY_ATTEMPTS,
            health_check_interval_ms=settings.HEALTH_CHECK_INTERVAL_MS,
            health_check_timeout_ms=settings.HEALTH_CHECK_TIMEOUT_MS,
            shape_fetch_timeout_ms=settings.SHAPE_FETCH_TIMEOUT_MS,
        )
