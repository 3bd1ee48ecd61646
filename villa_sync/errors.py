# villa_sync/errors.py
# Error taxonomy for the sync client.
# Services raise these; the status API maps them to JSON envelopes.

from typing import Optional


class SyncError(Exception):
    """Base sync error with structured fields."""

    def __init__(
        self,
        message: str,
        error_code: str = "INTERNAL_ERROR",
        status_code: int = 500,
        details: dict = None
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}


class RequestError(SyncError):
    """Shape query or network failure. Transient: the next poll retries."""
    def __init__(
        self,
        message: str,
        upstream_status: Optional[int] = None,
        details: dict = None
    ):
        super().__init__(
            message=message,
            error_code="SHAPE_REQUEST_FAILED",
            status_code=502,
            details=details
        )
        self.upstream_status = upstream_status


class ConfigurationError(SyncError):
    """Malformed shape identity or client configuration."""
    def __init__(self, message: str = "Invalid sync configuration", details: dict = None):
        super().__init__(
            message=message,
            error_code="CONFIGURATION_ERROR",
            status_code=400,
            details=details
        )


class SubscriptionNotFoundError(SyncError):
    """No active subscription with the requested id."""
    def __init__(self, subscription_id: str):
        super().__init__(
            message=f"Subscription not found: {subscription_id}",
            error_code="NOT_FOUND",
            status_code=404,
            details={"subscription_id": subscription_id}
        )
