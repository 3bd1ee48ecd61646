from fastapi import Request

from villa_sync.services.sync_context import SyncContext


def get_sync_context(request: Request) -> SyncContext:
    return request.app.state.sync
