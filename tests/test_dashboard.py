from __future__ import annotations

import httpx
import pytest

from aql import cli_dashboard, metrics
from aql.dashboard import (
    JOBS_EMPTY_MESSAGE,
    JOBS_FALLBACK_MESSAGE,
    PARTIAL_DATA_MESSAGE,
    JobDashboard,
    time_range_key,
)
from aql.notify import Notifier


JOB_ROWS = [
    {
        "id": 501,
        "title": "Console Latch Audit",
        "customer_id": "cust777",
        "location_id": "loc9",
        "location_data": '{"address": "Flint, MI"}',
        "status": "Active",
        "created_at": "2024-02-01",
        "shifts_data": ["2nd Shift", "3rd Shift"],
    },
    {
        "id": 502,
        "title": "Armrest Stitching",
        "customer_id": "cust777",
        "location_id": None,
        "location_data": None,
        "status": "Pending",
        "created_at": "2024-02-03",
        "shifts_data": None,
    },
]

TASKS = [
    {"task_id": "t1", "job_id": "501", "name": "Latch gap", "status": "in_progress", "progress": 50, "quantity": 10, "updated_at": "2024-02-02"},
    {"task_id": "t2", "job_id": "501", "name": "Scratch", "status": "completed", "progress": 100, "quantity": 3, "updated_at": "2024-02-02"},
]


def reporting_handler(seen=None):
    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        path = request.url.path
        if path.endswith("/metrics"):
            return httpx.Response(
                200,
                json={"total_inspected": 10, "total_defects": 2, "pending_defects": 1, "open_tasks": 1, "completion_rate": 50.0},
            )
        if path.endswith("/defect-trends"):
            return httpx.Response(200, json=[{"date": "Feb 1", "category1": 1.0, "category2": 2.0}])
        if path.endswith("/defects"):
            return httpx.Response(200, json=[{"name": "Gap", "june": 1, "july": 2, "august": 3}])
        if path.endswith("/tasks"):
            return httpx.Response(200, json=TASKS)
        if path.endswith("/performance-metrics"):
            return httpx.Response(200, json=[{"date": "2/1", "value": 10}, {"date": "2/2", "value": 15}])
        return httpx.Response(404)

    return handler


@pytest.mark.asyncio
async def test_offline_customer_gets_sample_jobs_and_one_warning(make_backend, make_reporting, offline_handler):
    notifier = Notifier()
    dashboard = JobDashboard("cust001", make_backend(offline_handler), make_reporting(offline_handler), notifier)

    jobs = await dashboard.load_jobs()

    assert len(jobs) == 4
    assert dashboard.selected_job.job_id == "69-0010039"
    assert dashboard.shift == "1st Shift"
    assert [n.message for n in notifier.notices_at("warning")] == [JOBS_FALLBACK_MESSAGE]
    assert len(notifier.notices) == 1

    # datasets fall back to sample data without further notices
    assert dashboard.job_metrics.total_inspected == 8064
    assert len(dashboard.tasks) == 5
    assert dashboard.current_pphv == 24.67
    assert not any(dashboard.loading.model_dump().values())


@pytest.mark.asyncio
async def test_no_backend_configured_uses_sample_jobs(make_reporting, offline_handler):
    notifier = Notifier()
    dashboard = JobDashboard("cust001", None, make_reporting(offline_handler), notifier)

    await dashboard.load_jobs()

    assert dashboard.selected_job.job_id == "69-0010039"
    assert len(notifier.notices_at("warning")) == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("body", [[], {"unexpected": "object"}])
async def test_empty_or_non_list_job_response_falls_back(make_backend, make_reporting, offline_handler, body):
    backend = make_backend(lambda request: httpx.Response(200, json=body))
    notifier = Notifier()
    dashboard = JobDashboard("cust001", backend, make_reporting(offline_handler), notifier)

    jobs = await dashboard.load_jobs()

    assert [j.job_id for j in jobs] == ["69-0010039", "69-0010040", "69-0010041", "69-0010042"]
    assert dashboard.selected_job.job_id == "69-0010039"
    assert [n.message for n in notifier.notices] == [JOBS_EMPTY_MESSAGE]


@pytest.mark.asyncio
async def test_loads_backend_jobs_and_selects_first(make_backend, make_reporting):
    backend = make_backend(lambda request: httpx.Response(200, json=JOB_ROWS))
    dashboard = JobDashboard("cust777", backend, make_reporting(reporting_handler()))

    jobs = await dashboard.load_jobs()

    assert [j.job_id for j in jobs] == ["501", "502"]
    assert jobs[0].location_name == "Flint, MI"
    assert jobs[1].location_name == "Unknown"
    assert jobs[1].shifts == []
    assert dashboard.shift == "2nd Shift"
    assert dashboard.job_metrics.total_inspected == 10
    assert dashboard.current_pphv == 12.5
    assert dashboard.notifier.notices == []


@pytest.mark.asyncio
async def test_select_job_resets_shift(make_backend, make_reporting):
    backend = make_backend(lambda request: httpx.Response(200, json=JOB_ROWS))
    dashboard = JobDashboard("cust777", backend, make_reporting(reporting_handler()))
    await dashboard.load_jobs()
    dashboard.set_shift("3rd Shift")

    assert await dashboard.select_job("502") is True
    assert dashboard.selected_job.name == "Armrest Stitching"
    assert dashboard.shift == ""
    assert await dashboard.select_job("missing") is False


@pytest.mark.asyncio
async def test_time_filter_becomes_range_key(make_backend, make_reporting):
    seen = []
    backend = make_backend(lambda request: httpx.Response(200, json=JOB_ROWS))
    dashboard = JobDashboard("cust777", backend, make_reporting(reporting_handler(seen)))
    await dashboard.load_jobs()
    seen.clear()

    await dashboard.set_time_filter("Last 3 Months")

    trends = [r for r in seen if r.url.path.endswith("/defect-trends")]
    assert trends[0].url.params["range"] == "last_3_months"
    assert time_range_key("This month") == "this_month"
    assert time_range_key("Last 3 Months") == "last_3_months"


@pytest.mark.asyncio
async def test_failed_dataset_keeps_the_others_and_warns_once(make_backend, make_reporting, monkeypatch):
    async def broken(*args, **kwargs):
        raise RuntimeError("pareto service crashed")

    monkeypatch.setattr(metrics, "fetch_defect_pareto", broken)
    backend = make_backend(lambda request: httpx.Response(200, json=JOB_ROWS))
    dashboard = JobDashboard("cust777", backend, make_reporting(reporting_handler()))

    await dashboard.load_jobs()

    assert dashboard.pareto_data == []
    assert dashboard.job_metrics.total_inspected == 10
    assert len(dashboard.tasks) == 2
    assert [n.message for n in dashboard.notifier.notices] == [PARTIAL_DATA_MESSAGE]
    assert dashboard.loading.pareto_data is False


@pytest.mark.asyncio
async def test_toggle_task_twice_restores_it(make_backend, make_reporting):
    backend = make_backend(lambda request: httpx.Response(200, json=JOB_ROWS))
    dashboard = JobDashboard("cust777", backend, make_reporting(reporting_handler()))
    await dashboard.load_jobs()

    first = dashboard.toggle_task("t1")
    assert (first.progress, first.status) == (100, "completed")
    second = dashboard.toggle_task("t1")
    assert (second.progress, second.status) == (50, "in_progress")

    done = dashboard.toggle_task("t2")
    assert (done.progress, done.status) == (50, "in_progress")
    assert dashboard.toggle_task("nope") is None


@pytest.mark.asyncio
async def test_visible_jobs_searches_id_and_name(make_reporting, offline_handler):
    dashboard = JobDashboard("cust001", None, make_reporting(offline_handler))
    await dashboard.load_jobs()

    dashboard.job_search_query = "door"
    assert [j.job_id for j in dashboard.visible_jobs] == ["69-0010041"]
    dashboard.job_search_query = "0010042"
    assert [j.name for j in dashboard.visible_jobs] == ["Interior Trim Installation"]


def test_dashboard_cli_needs_backend_credentials(monkeypatch, capsys):
    for name in ("SUPABASE_URL", "SUPABASE_ANON_KEY"):
        monkeypatch.delenv(name, raising=False)
    assert cli_dashboard.main(["--customer", "cust001"]) == 1
    assert '"error_type":"ConfigError"' in capsys.readouterr().err
