"""Tests for the Prometheus client."""

from datetime import datetime, timezone

import httpx
import pytest

from podscope.metrics import PrometheusClient, parse_samples


def _client(handler):
    return PrometheusClient("http://prometheus:9090/", transport=httpx.MockTransport(handler))


def _ok(result_type, result):
    return httpx.Response(
        200, json={"status": "success", "data": {"resultType": result_type, "result": result}}
    )


class TestParseSamples:
    def test_vector(self):
        samples = parse_samples(
            "vector",
            [
                {"metric": {"pod": "api-1"}, "value": [1700000000, "3"]},
                {"metric": {"pod": "api-2"}, "value": [1700000000, "NaN"]},
            ],
        )
        assert [s.metric["pod"] for s in samples] == ["api-1", "api-2"]
        assert samples[0].value == 3.0
        assert samples[0].timestamp == datetime.fromtimestamp(1700000000, tz=timezone.utc)

    def test_matrix_uses_latest_point(self):
        samples = parse_samples(
            "matrix",
            [{"metric": {}, "values": [[1, "1"], [2, "5"]]}],
        )
        assert samples[0].value == 5.0

    def test_matrix_without_points(self):
        samples = parse_samples("matrix", [{"metric": {"job": "x"}, "values": []}])
        assert samples[0].value is None

    def test_scalar(self):
        samples = parse_samples("scalar", [1700000000, "42"])
        assert samples[0].value == 42.0
        assert samples[0].metric == {}

    def test_empty_vector(self):
        assert parse_samples("vector", []) == []


class TestPrometheusClient:
    @pytest.mark.asyncio
    async def test_query_success(self):
        seen = {}

        def handler(request):
            seen["url"] = f"{request.url.host}:{request.url.port}{request.url.path}"
            seen["query"] = request.url.params["query"]
            seen["agent"] = request.headers["user-agent"]
            return _ok("vector", [{"metric": {}, "value": [1700000000, "7"]}])

        result = await _client(handler).query('count(kube_pod_status_phase{phase="Failed"})')

        assert result.success
        assert result.value == 7.0
        assert result.to_dict()["resultType"] == "vector"
        assert seen["url"] == "prometheus:9090/api/v1/query"
        assert seen["query"] == 'count(kube_pod_status_phase{phase="Failed"})'
        assert seen["agent"].startswith("podscope/")

    @pytest.mark.asyncio
    async def test_query_passes_time(self):
        def handler(request):
            assert float(request.url.params["time"]) == 1700000000.0
            return _ok("vector", [])

        at = datetime.fromtimestamp(1700000000, tz=timezone.utc)
        result = await _client(handler).query("up", time=at)
        assert result.success
        assert result.value is None

    @pytest.mark.asyncio
    async def test_api_error_is_a_failed_result(self):
        def handler(request):
            return httpx.Response(200, json={"status": "error", "error": "parse error"})

        result = await _client(handler).query("sum(")

        assert not result.success
        assert "parse error" in result.error
        assert result.to_dict() == {"success": False, "query": "sum(", "error": result.error}

    @pytest.mark.asyncio
    async def test_http_error_is_a_failed_result(self):
        def handler(request):
            return httpx.Response(503, text="unavailable")

        result = await _client(handler).query("up")
        assert not result.success

    @pytest.mark.asyncio
    async def test_invalid_json_is_a_failed_result(self):
        def handler(request):
            return httpx.Response(200, text="<html>")

        result = await _client(handler).query("up")
        assert not result.success
        assert "Invalid JSON" in result.error

    @pytest.mark.asyncio
    async def test_connection_error_is_a_failed_result(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        result = await _client(handler).query("up")
        assert not result.success

    @pytest.mark.asyncio
    async def test_is_healthy(self):
        assert await _client(lambda request: _ok("vector", [])).is_healthy()
        assert not await _client(lambda request: httpx.Response(500)).is_healthy()

    @pytest.mark.asyncio
    async def test_client_is_shared_until_closed(self):
        client = _client(lambda request: _ok("vector", []))
        await client.query("up")
        shared = client._client
        await client.query("up")
        assert client._client is shared

        await client.aclose()
        assert shared.is_closed
        await client.aclose()

        assert (await client.query("up")).success
        await client.aclose()
