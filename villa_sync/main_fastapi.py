from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from villa_sync.routers.health import router as health_router
from villa_sync.routers.sync import router as sync_router, metrics_router
from villa_sync.middleware.error_handler import ErrorHandlerMiddleware, setup_exception_handlers
from villa_sync.observability.tracing import init_tracing
from villa_sync.schemas.shape import SyncConfig
from villa_sync.services.sync_context import SyncContext
from villa_sync import config


def create_app(
    sync: Optional[SyncContext] = None,
    monitor_connectivity: bool = True,
    tracing: bool = True,
) -> FastAPI:
    """Build the status API around a sync context (one is created from settings if omitted)."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        ctx = app.state.sync
        await ctx.start(monitor_connectivity=monitor_connectivity)
        try:
            yield
        finally:
            await ctx.close()

    app = FastAPI(
        title="Villa Sync API",
        description="Shape subscription status for the villa management back office",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.sync = sync or SyncContext(SyncConfig.from_settings(config.settings))

    # Error handler should be outermost to catch all errors
    app.add_middleware(ErrorHandlerMiddleware, debug=config.DEBUG)
    setup_exception_handlers(app)

    app.include_router(health_router)  # Health checks at root level
    app.include_router(metrics_router)
    app.include_router(sync_router, prefix="/api")

    if tracing:
        init_tracing(app=app, service_name=config.SERVICE_NAME)

    return app


def get_app() -> FastAPI:
    return create_app()
