# villa_sync/middleware/error_handler.py
# JSON error envelopes for the status API.
# SyncError subclasses carry their own code and status; anything else is a 500.

import logging
import traceback
from typing import Any, Dict, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

from villa_sync.errors import SyncError

logger = logging.getLogger(__name__)

INTERNAL_MESSAGE = "An internal error occurred"


def create_error_response(
    error_code: str,
    message: str,
    status_code: int,
    details: Optional[Dict[str, Any]] = None,
    request_id: Optional[str] = None,
) -> JSONResponse:
    """Render ``{"error": {"code", "message", "details"?, "request_id"?}}``."""
    error: Dict[str, Any] = {"code": error_code, "message": message}
    if details:
        error["details"] = details
    if request_id:
        error["request_id"] = request_id
    return JSONResponse(status_code=status_code, content={"error": error})


def sync_error_response(exc: SyncError, request_id: Optional[str] = None) -> JSONResponse:
    return create_error_response(exc.error_code, exc.message, exc.status_code, exc.details, request_id)


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """
    Outermost safety net: whatever escapes a route becomes a JSON envelope.

    The request id comes from ``X-Request-ID`` when the caller sends one.
    With ``debug`` on, 500 responses include the exception type and traceback.
    """

    def __init__(self, app, debug: bool = False):
        super().__init__(app)
        self.debug = debug

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = request.headers.get("X-Request-ID") or f"req-{id(request):x}"
        path = request.url.path
        try:
            return await call_next(request)
        except SyncError as e:
            logger.warning(f"{e.error_code} on {path}: {e.message}", extra={"request_id": request_id})
            return sync_error_response(e, request_id)
        except HTTPException as e:
            logger.warning(f"HTTP {e.status_code} on {path}: {e.detail}", extra={"request_id": request_id})
            return create_error_response("HTTP_ERROR", str(e.detail), e.status_code, request_id=request_id)
        except Exception as e:
            logger.error(f"Unhandled {type(e).__name__} on {path}: {e}",
                         extra={"request_id": request_id}, exc_info=True)
            details = {"type": type(e).__name__, "traceback": traceback.format_exc()} if self.debug else None
            return create_error_response("INTERNAL_ERROR", INTERNAL_MESSAGE, 500, details, request_id)


def setup_exception_handlers(app: FastAPI) -> None:
    """Map SyncError (and stray exceptions) raised inside routes to envelopes."""

    @app.exception_handler(SyncError)
    async def handle_sync_error(request: Request, exc: SyncError) -> JSONResponse:
        return sync_error_response(exc, request.headers.get("X-Request-ID"))

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
        logger.error(f"Unhandled {type(exc).__name__} on {request.url.path}", exc_info=exc)
        return create_error_response("INTERNAL_ERROR", INTERNAL_MESSAGE, 500)
