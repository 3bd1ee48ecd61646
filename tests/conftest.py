# tests/conftest.py
# Shared fakes and fixtures for the sync client tests.
# - FakeShapeClient stands in for the HTTP client at the fetcher seam.
# - sync_ctx builds a SyncContext with short poll intervals and closes it after the test.

import asyncio
from collections import defaultdict
from typing import Any, Callable, Dict, List, Optional

import pytest
import pytest_asyncio

from villa_sync.errors import RequestError
from villa_sync.schemas.shape import SyncConfig
from villa_sync.services.sync_context import SyncContext

FAST_MS = 20


class FakeShapeClient:
    """Records every fetch and answers from ``responder(table, where, columns)``.

    The responder may return records, raise, or be a coroutine function
    (to simulate slow requests).
    """

    def __init__(self, responder: Optional[Callable[..., Any]] = None, healthy: bool = True):
        self.responder = responder or (lambda table, where, columns: [])
        self.healthy = healthy
        self.calls: List[tuple] = []
        self.in_flight: Dict[tuple, int] = defaultdict(int)
        self.max_in_flight: Dict[tuple, int] = defaultdict(int)
        self.closed = False

    async def fetch_shape(self, table, where=None, columns=None):
        key = (table, where, tuple(columns) if columns else None)
        self.calls.append(key)
        self.in_flight[key] += 1
        self.max_in_flight[key] = max(self.max_in_flight[key], self.in_flight[key])
        try:
            result = self.responder(table, where, columns)
            if asyncio.iscoroutine(result):
                result = await result
            return result
        finally:
            self.in_flight[key] -= 1

    def calls_for(self, table, where=None, columns=None) -> int:
        key = (table, where, tuple(columns) if columns else None)
        return sum(1 for c in self.calls if c == key)

    async def health_check(self) -> bool:
        return self.healthy

    async def close(self) -> None:
        self.closed = True


async def wait_until(predicate: Callable[[], bool], timeout: float = 1.0, step: float = 0.005) -> bool:
    """Poll ``predicate`` until true or ``timeout`` elapses."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while loop.time() < deadline:
        if predicate():
            return True
        await asyncio.sleep(step)
    return predicate()


def failing(message: str = "db down", status: int = 500):
    def responder(table, where, columns):
        raise RequestError(message, upstream_status=status)
    return responder


@pytest.fixture
def fake_client() -> FakeShapeClient:
    return FakeShapeClient()


@pytest.fixture
def sync_config() -> SyncConfig:
    return SyncConfig(
        url="http://electric.test",
        poll_interval_ms=FAST_MS,
        health_check_interval_ms=FAST_MS,
        health_check_timeout_ms=50,
    )


@pytest_asyncio.fixture
async def sync_ctx(sync_config, fake_client):
    ctx = SyncContext(sync_config, client=fake_client)
    await ctx.start(monitor_connectivity=False)
    yield ctx
    await ctx.close()
