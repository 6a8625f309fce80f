"""Per-job dashboard datasets from the reporting API, with sample fallbacks."""
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional, TypeVar

import httpx
from pydantic import ValidationError

from . import samples
from .errors import BackendError, DataShapeError
from .schemas import DefectPareto, DefectTrend, JobMetrics, PerformanceMetric, Task
from .settings import settings

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ReportingClient:
    """JSON-over-HTTP client for the reporting API (``api.base_url``)."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout_s: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.base_url = (base_url or settings.api["base_url"]).rstrip("/")
        self._owns_client = client is None
        self._http = client or httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout_s or float(settings.api.get("timeout_s", 10)),
        )

    async def __aenter__(self) -> "ReportingClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http.aclose()

    async def _send(self, method: str, path: str, params: Any = None, json: Any = None) -> Any:
        try:
            resp = await self._http.request(method, path, params=params, json=json)
        except httpx.HTTPError as e:
            raise BackendError(f"{method} {path} failed: {type(e).__name__}: {e}") from e
        if resp.status_code >= 400:
            raise BackendError(f"{method} {path} returned {resp.status_code}", status=resp.status_code)
        try:
            return resp.json()
        except ValueError as e:
            raise BackendError(f"{method} {path} returned a non-JSON body", status=resp.status_code) from e

    async def get_json(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return await self._send("GET", path, params=params)

    async def patch_json(self, path: str, body: Dict[str, Any]) -> Any:
        return await self._send("PATCH", path, json=body)


def parse_one(model_cls: type, data: Any) -> Any:
    try:
        return model_cls.model_validate(data)
    except ValidationError as e:
        raise DataShapeError(f"Unexpected {model_cls.__name__} payload: {e}") from e


def parse_many(model_cls: type, data: Any) -> List[Any]:
    if not isinstance(data, list):
        raise DataShapeError(f"Expected a list of {model_cls.__name__}, got {type(data).__name__}")
    return [parse_one(model_cls, item) for item in data]


async def with_fallback(label: str, fetch: Callable[[], Any], fallback: Callable[[], T]) -> T:
    """Run ``fetch``; on a failed or malformed response log it and return ``fallback()``."""
    try:
        return await fetch()
    except (BackendError, DataShapeError) as e:
        logger.warning("Failed to fetch %s, using sample data: %s", label, e)
        return fallback()


async def fetch_job_metrics(reporting: ReportingClient, job_id: str) -> JobMetrics:
    async def fetch():
        return parse_one(JobMetrics, await reporting.get_json(f"/jobs/{job_id}/metrics"))

    return await with_fallback("job metrics", fetch, lambda: samples.FALLBACK_METRICS.model_copy())


async def fetch_defect_trends(reporting: ReportingClient, job_id: str, time_range: str = "this_month") -> List[DefectTrend]:
    async def fetch():
        data = await reporting.get_json(f"/jobs/{job_id}/defect-trends", params={"range": time_range})
        return parse_many(DefectTrend, data)

    return await with_fallback("defect trends", fetch, lambda: samples.copies(samples.FALLBACK_DEFECT_TRENDS))


async def fetch_defect_pareto(reporting: ReportingClient, job_id: str, time_range: str = "3_months") -> List[DefectPareto]:
    async def fetch():
        data = await reporting.get_json(
            f"/jobs/{job_id}/defects",
            params={"group_by": "type", "time_range": time_range},
        )
        return parse_many(DefectPareto, data)

    return await with_fallback("defect pareto data", fetch, lambda: samples.copies(samples.FALLBACK_PARETO))


async def fetch_job_tasks(reporting: ReportingClient, job_id: str) -> List[Task]:
    async def fetch():
        return parse_many(Task, await reporting.get_json(f"/jobs/{job_id}/tasks"))

    return await with_fallback(
        "job tasks",
        fetch,
        lambda: [t for t in samples.copies(samples.FALLBACK_TASKS) if t.job_id == job_id],
    )


async def fetch_performance_metrics(
    reporting: ReportingClient, job_id: str, time_range: str = "current_period"
) -> List[PerformanceMetric]:
    async def fetch():
        data = await reporting.get_json(f"/jobs/{job_id}/performance-metrics", params={"time_range": time_range})
        return parse_many(PerformanceMetric, data)

    return await with_fallback("performance metrics", fetch, lambda: samples.copies(samples.FALLBACK_PERFORMANCE))


def calculate_current_pphv(metrics: List[PerformanceMetric]) -> float:
    """Mean performance value rounded to two places; 0 with no data."""
    if not metrics:
        return 0
    return round(sum(m.value for m in metrics) / len(metrics), 2)
