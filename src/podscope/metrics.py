"""
Prometheus client for resolved metrics queries.

Executes a PromQL instant query and normalizes the response so that a
widget receives either samples or an error message, never an exception.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

import httpx
import structlog

from podscope import __version__
from podscope.core.errors import ProviderError

logger = structlog.get_logger()

DEFAULT_USER_AGENT = f"podscope/{__version__}"


class PrometheusQueryError(ProviderError):
    """Raised when Prometheus is unreachable or rejects a query."""


@dataclass(slots=True)
class Sample:
    metric: dict[str, str]
    value: float | None
    timestamp: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "metric": dict(self.metric),
            "value": self.value,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
        }


@dataclass(slots=True)
class PointQueryResult:
    success: bool
    query: str
    result_type: str | None = None
    samples: list[Sample] = field(default_factory=list)
    error: str | None = None

    @property
    def value(self) -> float | None:
        """First sample value, for single-stat widgets."""
        return self.samples[0].value if self.samples else None

    def to_dict(self) -> dict[str, Any]:
        if not self.success:
            return {"success": False, "query": self.query, "error": self.error}
        return {
            "success": True,
            "query": self.query,
            "resultType": self.result_type,
            "samples": [sample.to_dict() for sample in self.samples],
        }


def _to_float(raw: Any) -> float | None:
    try:
        return float(raw)
    except (TypeError, ValueError):
        return None


def _point(pair: Any) -> tuple[datetime | None, float | None]:
    if not isinstance(pair, (list, tuple)) or len(pair) < 2:
        return None, None
    timestamp = datetime.fromtimestamp(float(pair[0]), tz=timezone.utc)
    return timestamp, _to_float(pair[1])


def parse_samples(result_type: str, result: Any) -> list[Sample]:
    """Flatten a Prometheus ``data.result`` into samples (latest point per series)."""
    if result_type in ("scalar", "string"):
        timestamp, value = _point(result)
        return [Sample(metric={}, value=value, timestamp=timestamp)]

    samples = []
    for series in result or []:
        metric = dict(series.get("metric", {}))
        if result_type == "matrix":
            values = series.get("values") or []
            timestamp, value = _point(values[-1]) if values else (None, None)
        else:
            timestamp, value = _point(series.get("value"))
        samples.append(Sample(metric=metric, value=value, timestamp=timestamp))
    return samples


class PrometheusClient:
    """Instant-query client for Prometheus compatible backends."""

    def __init__(
        self,
        url: str,
        *,
        timeout: float = 30.0,
        user_agent: str = DEFAULT_USER_AGENT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = url.rstrip("/")
        self._timeout = timeout
        self._user_agent = user_agent
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self._timeout,
                transport=self._transport,
                headers={"User-Agent": self._user_agent},
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def is_healthy(self) -> bool:
        try:
            await self._request("GET", "/api/v1/query", params={"query": "up"})
        except PrometheusQueryError:
            return False
        return True

    async def query(self, promql: str, time: datetime | None = None) -> PointQueryResult:
        """
        Execute an instant query.

        Args:
            promql: Fully substituted PromQL string
            time: Evaluation time (defaults to now)

        Returns:
            PointQueryResult with samples on success, or the error message
        """
        params: dict[str, Any] = {"query": promql}
        if time is not None:
            params["time"] = time.timestamp()

        try:
            payload = await self._request("GET", "/api/v1/query", params=params)
        except PrometheusQueryError as exc:
            logger.warning("metrics_query_failed", query=promql, error=exc.message)
            return PointQueryResult(success=False, query=promql, error=exc.message)

        data = payload.get("data", {})
        result_type = data.get("resultType", "vector")
        return PointQueryResult(
            success=True,
            query=promql,
            result_type=result_type,
            samples=parse_samples(result_type, data.get("result")),
        )

    async def _request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        url = f"{self._base_url}{path}"
        try:
            resp = await self._get_client().request(method, url, params=params)
            resp.raise_for_status()
            data = resp.json()
        except httpx.HTTPError as exc:
            raise PrometheusQueryError(str(exc), {"url": url}) from exc
        except ValueError as exc:
            raise PrometheusQueryError(f"Invalid JSON from Prometheus: {exc}", {"url": url}) from exc

        if data.get("status") != "success":
            raise PrometheusQueryError(
                f"Prometheus API error: {data.get('error', 'Unknown error')}", {"url": url}
            )
        return data
