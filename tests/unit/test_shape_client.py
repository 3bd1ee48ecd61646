# tests/unit/test_shape_client.py
# Wire-level tests for the shape client using httpx.MockTransport

import asyncio

import httpx
import pytest

from villa_sync.errors import RequestError
from villa_sync.services.shape_client import ShapeClient, normalize_records, quote_table


def make_client(handler, **kwargs) -> ShapeClient:
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return ShapeClient("http://electric.test/", http_client=http, **kwargs)


class TestNormalizeRecords:
    """Shape payload normalization."""

    def test_bare_records_pass_through(self):
        rows = [{"id": "v1"}, {"id": "v2"}]
        assert normalize_records(rows) == rows

    def test_value_wrappers_are_unwrapped(self):
        rows = [{"key": "k1", "value": {"id": "v1"}}, {"value": {"id": "v2"}}]
        assert normalize_records(rows) == [{"id": "v1"}, {"id": "v2"}]

    def test_control_messages_are_dropped(self):
        rows = [{"value": {"id": "v1"}}, {"headers": {"control": "up-to-date"}}]
        assert normalize_records(rows) == [{"id": "v1"}]

    def test_wrappers_without_a_record_are_dropped(self):
        rows = [{"value": None}, {"key": "k2", "value": "gone"}, {"value": {"id": "v1"}}]
        assert normalize_records(rows) == [{"id": "v1"}]

    def test_record_with_value_column_is_kept(self):
        rows = [{"id": "p1", "value": 42}]
        assert normalize_records(rows) == rows

    def test_non_list_payload_yields_nothing(self):
        assert normalize_records({"rows": []}) == []
        assert normalize_records(None) == []

    def test_quote_table_is_idempotent(self):
        assert quote_table("Villa") == '"Villa"'
        assert quote_table('"Villa"') == '"Villa"'


class TestFetchShape:
    """GET /v1/shape contract."""

    @pytest.mark.asyncio
    async def test_builds_query_parameters(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["params"] = dict(request.url.params)
            return httpx.Response(200, json=[{"id": "v1", "isActive": True}])

        client = make_client(handler)
        rows = await client.fetch_shape("Villa", where='"isActive" = true', columns=["id", "isActive"])
        await client.close()

        assert rows == [{"id": "v1", "isActive": True}]
        assert seen["path"] == "/v1/shape"
        assert seen["params"] == {
            "table": '"Villa"',
            "offset": "-1",
            "where": '"isActive" = true',
            "columns": "id,isActive",
        }

    @pytest.mark.asyncio
    async def test_optional_parameters_are_omitted(self):
        seen = {}

        def handler(request):
            seen["params"] = dict(request.url.params)
            return httpx.Response(200, json=[])

        client = make_client(handler)
        await client.fetch_shape("Photo")
        assert seen["params"] == {"table": '"Photo"', "offset": "-1"}

        await client.fetch_shape("Photo", live=True)
        assert seen["params"]["live"] == "true"
        await client.close()

    @pytest.mark.asyncio
    async def test_error_body_message_becomes_request_error(self):
        client = make_client(lambda request: httpx.Response(500, json={"message": "db down"}))

        with pytest.raises(RequestError) as exc_info:
            await client.fetch_shape("Villa")
        await client.close()

        assert exc_info.value.message == "db down"
        assert exc_info.value.upstream_status == 500
        assert exc_info.value.error_code == "SHAPE_REQUEST_FAILED"

    @pytest.mark.asyncio
    async def test_error_without_message_uses_table_name(self):
        client = make_client(lambda request: httpx.Response(400, text="bad request"))

        with pytest.raises(RequestError, match="Failed to fetch Villa"):
            await client.fetch_shape("Villa")
        await client.close()

    @pytest.mark.asyncio
    async def test_network_failure_becomes_request_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = make_client(handler)
        with pytest.raises(RequestError):
            await client.fetch_shape("Villa")
        await client.close()

    @pytest.mark.asyncio
    async def test_closed_client_fails_without_reopening(self):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, json=[])

        client = make_client(handler)
        await client.close()

        with pytest.raises(RequestError) as exc_info:
            await client.fetch_shape("Villa")
        assert "closed" in exc_info.value.message
        assert await client.health_check() is False
        assert client.closed is True
        assert client._http_client.is_closed
        assert requests == []


class TestHealthCheck:
    """GET /v1/health never raises."""

    @pytest.mark.asyncio
    async def test_active_status_is_healthy(self):
        client = make_client(lambda request: httpx.Response(200, json={"status": "active"}))
        assert await client.health_check() is True
        await client.close()

    @pytest.mark.asyncio
    async def test_other_status_is_unhealthy(self):
        client = make_client(lambda request: httpx.Response(200, json={"status": "starting"}))
        assert await client.health_check() is False
        await client.close()

    @pytest.mark.asyncio
    async def test_network_failure_is_unhealthy(self):
        def handler(request):
            raise httpx.ConnectError("unreachable", request=request)

        client = make_client(handler)
        assert await client.health_check() is False
        await client.close()

    @pytest.mark.asyncio
    async def test_invalid_json_is_unhealthy(self):
        client = make_client(lambda request: httpx.Response(200, content=b"<html>"))
        assert await client.health_check() is False
        await client.close()

    @pytest.mark.asyncio
    async def test_hung_probe_times_out(self):
        async def handler(request):
            await asyncio.sleep(1.0)
            return httpx.Response(200, json={"status": "active"})

        client = make_client(handler, health_timeout_ms=50)
        loop = asyncio.get_running_loop()
        started = loop.time()
        assert await client.health_check() is False
        assert loop.time() - started < 0.5
        await client.close()
