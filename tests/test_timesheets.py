from __future__ import annotations

import json

import httpx
import pytest

from aql import storage
from aql.notify import Notifier
from aql.schemas import TimesheetEntry
from aql.timesheets import (
    LOCAL_SAVE_MESSAGE,
    billable_hours_summary,
    clock_out,
    compute_total_hours,
    fetch_job_billable_hours,
    fetch_timesheet_entries,
    update_timesheet_billable_status,
)


def test_compute_total_hours():
    assert compute_total_hours("2024-03-01T08:00:00Z", "2024-03-01T16:30:00Z") == 8.5
    assert compute_total_hours("2024-03-01T08:00:00+00:00", "2024-03-01T08:20:00+00:00") == 0.33


def test_billable_hours_summary():
    entries = [
        TimesheetEntry(timesheet_id="a", user_id="u", job_id="j", hours=8, is_billable=True, date="d"),
        TimesheetEntry(timesheet_id="b", user_id="u", job_id="j", hours=2, is_billable=False, date="d"),
    ]
    summary = billable_hours_summary(entries)
    assert (summary.total, summary.billable, summary.unbillable) == (10, 8, 2)


@pytest.mark.asyncio
async def test_billable_update_saved_locally_when_server_unreachable(make_reporting, offline_handler):
    storage.save_timesheet_entries(
        [TimesheetEntry(timesheet_id="ts-offline", user_id="u1", job_id="job-ts", hours=4, is_billable=True, date="2024-03-01", notes="sorting")]
    )
    notifier = Notifier()

    entry = await update_timesheet_billable_status(
        make_reporting(offline_handler), "ts-offline", False, notifier=notifier, user_id="u1"
    )

    assert entry.is_billable is False
    assert entry.notes == "sorting"
    assert [n.message for n in notifier.notices_at("error")] == [LOCAL_SAVE_MESSAGE]
    logs = storage.audit_logs(entity_type="timesheet", entity_id="ts-offline")
    assert logs[-1].details == "Changed billable status to non-billable"
    assert logs[-1].user_id == "u1"


@pytest.mark.asyncio
async def test_billable_update_on_server(make_reporting):
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.method == "PATCH"
        return httpx.Response(
            200,
            json={"timesheet_id": "9", "user_id": "u", "job_id": "j", "hours": 1, "is_billable": True, "date": "d", "notes": "ok"},
        )

    notifier = Notifier()
    entry = await update_timesheet_billable_status(make_reporting(handler), "9", True, notifier=notifier)
    assert entry.notes == "ok"
    assert notifier.notices == []


@pytest.mark.asyncio
async def test_entries_and_billable_hours_fall_back(make_reporting, offline_handler):
    reporting = make_reporting(offline_handler)
    entries = await fetch_timesheet_entries(reporting, "69-0010040")
    assert [e.timesheet_id for e in entries] == ["4"]

    hours = await fetch_job_billable_hours(reporting, "69-0010039")
    assert (hours.total, hours.billable, hours.unbillable) == (16, 14, 2)


@pytest.mark.asyncio
async def test_clock_out_computes_hours(make_backend):
    def handler(request: httpx.Request) -> httpx.Response:
        if request.method == "GET":
            return httpx.Response(200, json={"id": 3, "inspector_id": "i1", "job_id": "j1", "clock_in": "2024-03-01T08:00:00Z"})

        values = json.loads(request.content)
        return httpx.Response(
            200,
            json={"id": 3, "inspector_id": "i1", "job_id": "j1", "clock_in": "2024-03-01T08:00:00Z", **values},
        )

    sheet = await clock_out(make_backend(handler), "3")
    assert sheet.id == "3"
    assert sheet.clock_out is not None
    assert sheet.total_hours == compute_total_hours("2024-03-01T08:00:00Z", sheet.clock_out)
