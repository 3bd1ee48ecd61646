# villa_sync/services/shape_client.py
# HTTP client for the shape sync service.
# One request returns the full current contents of a shape; there is no
# streaming offset handling, callers poll.

import asyncio
import logging
import time
from typing import Any, List, Optional, Sequence

import httpx

from villa_sync.constants import (
    DEFAULT_HEALTH_CHECK_TIMEOUT_MS,
    HEALTH_PATH,
    HEALTHY_STATUS,
    SHAPE_INITIAL_OFFSET,
    SHAPE_PATH,
)
from villa_sync.errors import RequestError
from villa_sync.observability.metrics import observe_fetch
from villa_sync.observability.tracing import get_tracer
from villa_sync.schemas.shape import Record

logger = logging.getLogger(__name__)


_WRAPPER_KEYS = frozenset({"key", "value", "headers", "offset"})


def quote_table(table: str) -> str:
    """Wrap a table name in double quotes unless it already is."""
    return table if table.startswith('"') else f'"{table}"'


def normalize_records(payload: Any) -> List[Record]:
    """Flatten a shape response into a list of records.

    Accepts a bare list of records or a list of ``{"value": record}``
    wrappers. Control messages (``{"headers": {"control": ...}}``) and
    wrappers whose value is not a record are dropped. Anything that is not
    a list yields no records.
    """
    if not isinstance(payload, list):
        return []
    records: List[Record] = []
    for item in payload:
        if not isinstance(item, dict):
            continue
        value = item.get("value")
        if isinstance(value, dict):
            records.append(value)
        elif "value" in item and set(item) <= _WRAPPER_KEYS:
            # Wrapper without a record (e.g. a delete tombstone)
            continue
        elif "control" in (item.get("headers") or {}) and "value" not in item:
            continue
        else:
            records.append(item)
    return records


class ShapeClient:
    """Shape query and health probe primitives.

    The underlying ``httpx.AsyncClient`` is created lazily and can be
    injected (tests pass one backed by ``httpx.MockTransport``).
    """

    def __init__(
        self,
        base_url: str,
        health_timeout_ms: int = DEFAULT_HEALTH_CHECK_TIMEOUT_MS,
        fetch_timeout_ms: Optional[int] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.health_timeout = health_timeout_ms / 1000
        self.fetch_timeout = fetch_timeout_ms / 1000 if fetch_timeout_ms else None
        self._http_client = http_client
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def _get_http_client(self) -> httpx.AsyncClient:
        if self._closed:
            raise RequestError("Shape client is closed")
        if self._http_client is None or self._http_client.is_closed:
            self._http_client = httpx.AsyncClient()
        return self._http_client

    async def fetch_shape(
        self,
        table: str,
        where: Optional[str] = None,
        columns: Optional[Sequence[str]] = None,
        live: bool = False,
    ) -> List[Record]:
        """Fetch the full current contents of a shape.

        Raises RequestError on transport failure or non-2xx status, carrying
        the server's ``message`` when the error body provides one.
        """
        params = {"table": quote_table(table), "offset": SHAPE_INITIAL_OFFSET}
        if where:
            params["where"] = where
        if columns:
            params["columns"] = ",".join(columns)
        if live:
            params["live"] = "true"

        request_kwargs = {"params": params}
        if self.fetch_timeout is not None:
            request_kwargs["timeout"] = self.fetch_timeout

        if self._closed:
            raise RequestError(f"Failed to fetch {table}: client closed", details={"table": table})
        client = self._get_http_client()
        start = time.perf_counter()
        with get_tracer().start_as_current_span("shape.fetch") as span:
            span.set_attribute("shape.table", table)
            try:
                response = await client.get(f"{self.base_url}{SHAPE_PATH}", **request_kwargs)
            except httpx.HTTPError as exc:
                observe_fetch(table, "network_error", time.perf_counter() - start)
                raise RequestError(
                    f"Failed to fetch {table}: {type(exc).__name__}",
                    details={"table": table}
                ) from exc

            if response.is_success:
                try:
                    payload = response.json()
                except ValueError as exc:
                    observe_fetch(table, "decode_error", time.perf_counter() - start)
                    raise RequestError(
                        f"Failed to decode {table} shape response",
                        upstream_status=response.status_code,
                        details={"table": table}
                    ) from exc
                records = normalize_records(payload)
                span.set_attribute("shape.records", len(records))
                observe_fetch(table, "ok", time.perf_counter() - start)
                return records

            observe_fetch(table, "http_error", time.perf_counter() - start)
            span.set_attribute("http.status_code", response.status_code)
            raise RequestError(
                self._error_message(response, table),
                upstream_status=response.status_code,
                details={"table": table, "status": response.status_code}
            )

    @staticmethod
    def _error_message(response: httpx.Response, table: str) -> str:
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict) and body.get("message"):
            return str(body["message"])
        return f"Failed to fetch {table}"

    async def _probe(self) -> bool:
        client = self._get_http_client()
        response = await client.get(f"{self.base_url}{HEALTH_PATH}", timeout=self.health_timeout)
        body = response.json()
        return isinstance(body, dict) and body.get("status") == HEALTHY_STATUS

    async def health_check(self) -> bool:
        """True only when the service reports itself active. Never raises."""
        if self._closed:
            return False
        try:
            return await asyncio.wait_for(self._probe(), timeout=self.health_timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Sync service health check timed out after {self.health_timeout:.1f}s")
            return False
        except Exception as e:
            logger.warning(f"Sync service health check failed: {type(e).__name__}: {e}")
            return False

    async def close(self) -> None:
        """Release the HTTP client. Later fetches fail and health checks report False."""
        self._closed = True
        if self._http_client is not None and not self._http_client.is_closed:
            await self._http_client.aclose()

    async def __aenter__(self) -> "ShapeClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()
