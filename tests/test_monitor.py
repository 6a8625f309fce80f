from __future__ import annotations

import httpx
import pytest

from aql.monitor import JobsMonitor, describe_job


def test_describe_job_placeholders():
    summary = describe_job({"id": 4, "form_data_json": '{"jobType": "sort", "shift": "1st"}'})
    assert summary["title"] == "[No title]"
    assert summary["status"] == "[No status]"
    assert summary["job_number"] == "[No job number]"
    assert summary["form_data"] == "jobType, shift"


@pytest.mark.asyncio
async def test_poll_reports_inserts_and_updates(make_backend):
    polls = []
    responses = [
        httpx.Response(200, json=[{"id": 1, "title": "A", "updated_at": "2024-03-01T10:00:00"}], headers={"content-range": "0-0/1"}),
        httpx.Response(
            200,
            json=[
                {"id": 1, "title": "A2", "updated_at": "2024-03-01T11:00:00"},
                {"id": 2, "title": "B", "updated_at": "2024-03-01T11:30:00"},
            ],
        ),
        httpx.Response(200, json=[]),
    ]

    def handler(request: httpx.Request) -> httpx.Response:
        polls.append(request)
        return responses[len(polls) - 1]

    monitor = JobsMonitor(make_backend(handler), poll_interval_s=0.01)
    rows = await monitor.snapshot()
    assert len(rows) == 1

    events = await monitor.poll()
    assert [(e.event_type, e.new["id"]) for e in events] == [("UPDATE", 1), ("INSERT", 2)]
    assert events[0].old["title"] == "A"
    assert polls[1].url.params["updated_at"] == "gt.2024-03-01T10:00:00"

    assert await monitor.poll() == []
    assert polls[2].url.params["updated_at"] == "gt.2024-03-01T11:30:00"


@pytest.mark.asyncio
async def test_events_stop(make_backend):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=[{"id": 9, "updated_at": "2024-03-02T00:00:00"}])

    monitor = JobsMonitor(make_backend(handler), poll_interval_s=0.01)
    received = []
    async for event in monitor.events():
        received.append(event)
        monitor.stop()
    assert [e.event_type for e in received] == ["INSERT"]
