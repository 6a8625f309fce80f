"""State behind the customer job dashboard.

One instance per customer view: it loads the customer's jobs, keeps a
selected job, and refreshes five per-job datasets whenever the job or the
time filter changes.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional

from pydantic import BaseModel

from . import jobs, metrics, samples
from .backend import BackendClient
from .errors import BackendError
from .metrics import ReportingClient
from .notify import Notifier
from .schemas import DashboardJob, DefectPareto, DefectTrend, JobMetrics, PerformanceMetric, Task
from .settings import settings

logger = logging.getLogger(__name__)

JOBS_FALLBACK_MESSAGE = "Failed to load jobs from API. Using sample data."
JOBS_EMPTY_MESSAGE = "No jobs returned from API. Using sample data."
PARTIAL_DATA_MESSAGE = "Some data couldn't be loaded. Showing available information."

_DATASETS = ("metrics", "defect_trends", "pareto_data", "tasks", "performance")


class LoadingState(BaseModel):
    jobs: bool = True
    metrics: bool = False
    defect_trends: bool = False
    pareto_data: bool = False
    tasks: bool = False
    performance: bool = False

    def set_datasets(self, value: bool) -> None:
        for name in _DATASETS:
            setattr(self, name, value)


def time_range_key(time_filter: str) -> str:
    """Lower-cased filter with spaces as underscores, e.g. this_month."""
    return time_filter.lower().replace(" ", "_")


class JobDashboard:
    def __init__(
        self,
        customer_id: str,
        client: Optional[BackendClient],
        reporting: ReportingClient,
        notifier: Optional[Notifier] = None,
        time_filter: Optional[str] = None,
    ) -> None:
        self.customer_id = customer_id
        self.client = client
        self.reporting = reporting
        self.notifier = notifier or Notifier()
        self.time_filter = time_filter or settings.dashboard.get("default_time_filter", "This month")

        self.jobs: List[DashboardJob] = []
        self.selected_job: Optional[DashboardJob] = None
        self.shift = ""
        self.job_search_query = ""

        self.job_metrics: Optional[JobMetrics] = None
        self.defect_trends: List[DefectTrend] = []
        self.pareto_data: List[DefectPareto] = []
        self.tasks: List[Task] = []
        self.performance_metrics: List[PerformanceMetric] = []
        self.current_pphv: float = 0

        self.loading = LoadingState()

    def _select(self, job: DashboardJob) -> None:
        self.selected_job = job
        self.shift = job.shifts[0] if job.shifts else ""

    async def load_jobs(self) -> List[DashboardJob]:
        """Load the customer's jobs, or the sample jobs when that fails, then select the first."""
        self.loading.jobs = True
        try:
            if self.client is None:
                raise BackendError("Backend is not configured")
            fetched = await jobs.fetch_customer_jobs(self.client, self.customer_id)
        except BackendError as e:
            logger.error("Error loading customer jobs: %s", e)
            self.notifier.warning(JOBS_FALLBACK_MESSAGE)
            fetched = None
        else:
            if not isinstance(fetched, list) or not fetched:
                logger.warning("Job query returned no usable rows for %s", self.customer_id)
                self.notifier.warning(JOBS_EMPTY_MESSAGE)
                fetched = None
        finally:
            self.loading.jobs = False

        self.jobs = fetched if fetched is not None else samples.copies(samples.FALLBACK_JOBS)
        self._select(self.jobs[0])
        await self.load_job_data()
        return self.jobs

    async def select_job(self, job_id: str) -> bool:
        job = next((j for j in self.jobs if j.job_id == job_id), None)
        if job is None:
            return False
        self._select(job)
        await self.load_job_data()
        return True

    def set_shift(self, shift: str) -> None:
        self.shift = shift

    async def set_time_filter(self, value: str) -> None:
        self.time_filter = value
        await self.load_job_data()

    @property
    def time_range(self) -> str:
        return time_range_key(self.time_filter)

    async def load_job_data(self) -> None:
        """Fetch the five datasets for the selected job concurrently.

        Datasets that resolved are stored even when others fail; any failure
        produces a single warning. In-flight fetches are not cancelled.
        """
        if self.selected_job is None:
            return
        job_id = self.selected_job.job_id
        self.loading.jobs = False
        self.loading.set_datasets(True)
        try:
            results = await asyncio.gather(
                metrics.fetch_job_metrics(self.reporting, job_id),
                metrics.fetch_defect_trends(self.reporting, job_id, self.time_range),
                metrics.fetch_defect_pareto(self.reporting, job_id),
                metrics.fetch_job_tasks(self.reporting, job_id),
                metrics.fetch_performance_metrics(self.reporting, job_id),
                return_exceptions=True,
            )
        finally:
            self.loading.set_datasets(False)

        failed = [(name, r) for name, r in zip(_DATASETS, results) if isinstance(r, BaseException)]
        job_metrics, trends, pareto, tasks, performance = results
        if not isinstance(job_metrics, BaseException):
            self.job_metrics = job_metrics
        if not isinstance(trends, BaseException):
            self.defect_trends = trends
        if not isinstance(pareto, BaseException):
            self.pareto_data = pareto
        if not isinstance(tasks, BaseException):
            self.tasks = tasks
        if not isinstance(performance, BaseException):
            self.performance_metrics = performance
            self.current_pphv = metrics.calculate_current_pphv(performance)

        if failed:
            for name, err in failed:
                logger.error("Error loading %s for job %s: %r", name, job_id, err)
            self.notifier.warning(PARTIAL_DATA_MESSAGE)

    def toggle_task(self, task_id: str) -> Optional[Task]:
        """Flip a task between completed and in progress. Local only."""
        for i, task in enumerate(self.tasks):
            if task.task_id != task_id:
                continue
            done = task.progress == 100
            self.tasks[i] = task.model_copy(
                update={
                    "progress": 50 if done else 100,
                    "status": "in_progress" if done else "completed",
                }
            )
            return self.tasks[i]
        return None

    @property
    def visible_jobs(self) -> List[DashboardJob]:
        query = self.job_search_query.lower()
        if not query:
            return list(self.jobs)
        return [j for j in self.jobs if query in j.job_id.lower() or query in j.name.lower()]

    def snapshot(self) -> Dict[str, Any]:
        return {
            "customer_id": self.customer_id,
            "time_filter": self.time_filter,
            "selected_job": self.selected_job.model_dump() if self.selected_job else None,
            "shift": self.shift,
            "jobs": [j.model_dump() for j in self.jobs],
            "job_metrics": self.job_metrics.model_dump() if self.job_metrics else None,
            "defect_trends": [t.model_dump() for t in self.defect_trends],
            "pareto_data": [p.model_dump() for p in self.pareto_data],
            "tasks": [t.model_dump() for t in self.tasks],
            "performance_metrics": [m.model_dump() for m in self.performance_metrics],
            "current_pphv": self.current_pphv,
            "loading": self.loading.model_dump(),
            "notices": [{"level": n.level, "message": n.message} for n in self.notifier.notices],
        }
