from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional, Tuple

from . import codec
from .backend import BackendClient
from .errors import BackendError, DataShapeError, NotFoundError
from .notifications import create_notification
from .numbering import generate_job_number, increment_job_sequence, next_revision_number
from .schemas import Customer, DashboardJob, FieldError, JobRecord
from .storage import utc_now_iso
from .validation import validate_job_form

logger = logging.getLogger(__name__)

ALL = "all"

_COLUMNS_BY_ROLE: Dict[str, List[str]] = {
    "admin": ["Contract #", "Job #", "Customer", "Location", "Start Date", "Status", "Defects", "PPHV", "Inspector", "Part Name", "Billing Status", "Actions"],
    "manager": ["Contract #", "Job #", "Customer", "Location", "Start Date", "Status", "Defects", "PPHV", "Inspector", "Part Name", "Actions"],
    "supervisor": ["Contract #", "Job #", "Customer", "Location", "Start Date", "Status", "Defects", "PPHV", "Inspector", "Part Name", "Actions"],
    "inspector": ["Contract #", "Job #", "Customer", "Location", "Start Date", "Status", "Defects", "Part Name", "Actions"],
    "hr": ["Contract #", "Job #", "Customer", "Location", "Start Date", "Status", "Inspector", "Part Name", "Actions"],
    "accounting": ["Contract #", "Job #", "Customer", "Location", "Start Date", "Status", "PPHV", "Part Name", "Billing Status", "Actions"],
    "customer": ["Contract #", "Job #", "Location", "Start Date", "Status", "Defects", "Part Name", "Actions"],
}


def _location_name(location_data: Any) -> str:
    if location_data is None:
        return "Unknown"
    try:
        data = codec.loads(location_data)
    except DataShapeError:
        return "Unknown"
    if isinstance(data, dict) and data.get("address"):
        return str(data["address"])
    return "Unknown"


def to_dashboard_job(row: Mapping[str, Any]) -> DashboardJob:
    return DashboardJob(
        job_id=str(row.get("id")),
        name=row.get("title") or "",
        customer_id=str(row.get("customer_id") or ""),
        location_id=row.get("location_id"),
        location_name=_location_name(row.get("location_data", row.get("location"))),
        status=row.get("status") or "",
        start_date=row.get("created_at"),
        shifts=list(row.get("shifts_data") or []),
    )


async def fetch_customer_jobs(client: BackendClient, customer_id: str) -> List[DashboardJob]:
    logger.info("Fetching jobs for customer %s", customer_id)
    result = await client.table("jobs").select("*").eq("customer_id", customer_id).execute()
    if not isinstance(result.data, list):
        logger.warning("Job query for %s returned %s instead of a list", customer_id, type(result.data).__name__)
        return []
    jobs = [to_dashboard_job(row) for row in result.data]
    logger.info("Retrieved %d jobs for customer %s", len(jobs), customer_id)
    return jobs


def _decode(row: Dict[str, Any]) -> JobRecord:
    try:
        return codec.decode_job(row)
    except DataShapeError as e:
        logger.error("Stored JSON in job %s is unreadable: %s", row.get("id"), e)
        plain = {k: v for k, v in row.items() if k not in ("customer_data", "location_data", "form_data_json", "form_data", "customer", "location")}
        return codec.decode_job(plain)


# Reads

async def fetch_jobs(client: BackendClient, status: Optional[str] = None) -> List[JobRecord]:
    """Every job, newest first; the source for the job list and its filters."""
    query = client.table("jobs").select("*").order("created_at", ascending=False)
    if status:
        query = query.eq("status", status)
    result = await query.execute()
    return [_decode(row) for row in result.data or []]


async def fetch_job(client: BackendClient, job_id: str) -> Optional[JobRecord]:
    try:
        result = await client.table("jobs").select("*").eq("id", job_id).single().execute()
    except NotFoundError:
        logger.info("Job %s not found", job_id)
        return None
    return _decode(result.data) if result.data else None


async def fetch_inspector_jobs(client: BackendClient, inspector_id: str) -> List[JobRecord]:
    """Jobs whose ``inspector_ids`` include the inspector, drafts excluded."""
    result = await (
        client.table("jobs")
        .select("*")
        .contains("inspector_ids", [inspector_id])
        .neq("status", "draft")
        .order("created_at", ascending=False)
        .execute()
    )
    jobs = [_decode(row) for row in result.data or []]
    logger.info("Found %d jobs for inspector %s", len(jobs), inspector_id)
    return jobs


# Drafts

async def create_or_update_job_draft(client: BackendClient, job: JobRecord) -> JobRecord:
    now = utc_now_iso()
    job = job.model_copy(update={"updated_at": now, "status": job.status or "draft"})
    if not job.id:
        job.created_at = now
        result = await client.table("jobs").insert([codec.encode_job(job)]).select("*").single().execute()
        logger.info("Created job draft %s", result.data.get("id"))
    else:
        result = await client.table("jobs").update(codec.encode_job(job)).eq("id", job.id).select("*").single().execute()
        logger.info("Updated job draft %s", job.id)
    return _decode(result.data)


async def get_job_draft(client: BackendClient, job_id: str) -> Optional[JobRecord]:
    try:
        result = await client.table("jobs").select("*").eq("id", job_id).eq("status", "draft").single().execute()
    except NotFoundError:
        logger.info("Job draft %s not found", job_id)
        return None
    if not result.data:
        return None
    return _decode(result.data)


async def list_job_drafts(client: BackendClient) -> List[JobRecord]:
    result = await (
        client.table("jobs")
        .select("*")
        .eq("status", "draft")
        .order("updated_at", ascending=False)
        .execute()
    )
    return [_decode(row) for row in result.data or []]


async def finalize_job_draft(client: BackendClient, job_id: str, status: str = "pending") -> JobRecord:
    current = await client.table("jobs").select("*").eq("id", job_id).single().execute()
    job = _decode(current.data)
    job = job.model_copy(update={"status": status, "updated_at": utc_now_iso()})
    logger.info("Finalizing job draft %s with status %s", job_id, status)
    result = await client.table("jobs").update(codec.encode_job(job)).eq("id", job_id).select("*").single().execute()
    return _decode(result.data)


async def delete_job_draft(client: BackendClient, job_id: str) -> bool:
    # only rows still in draft are removed
    await client.table("jobs").delete().eq("id", job_id).eq("status", "draft").execute()
    return True


async def submit_job_form(
    client: BackendClient,
    form: Mapping[str, Any],
    location_number: Optional[int] = None,
    user_id: Optional[str] = None,
) -> Tuple[Optional[JobRecord], List[FieldError]]:
    """Validate a creation form and store it as a pending job.

    Returns ``(None, errors)`` without touching the backend when the form is
    incomplete.
    """
    errors = validate_job_form(form)
    if errors:
        return None, errors

    job_number = form.get("job_number")
    if location_number is not None and not job_number:
        sequence = await increment_job_sequence(client, location_number)
        job_number = generate_job_number(location_number, sequence)

    inspector_ids = list(form.get("inspectorIds") or form.get("inspector_ids") or [])
    draft = JobRecord(
        title=form.get("title") or form.get("contractNumber") or "",
        job_number=job_number,
        location_number=location_number,
        revision=1 if job_number else None,
        status="draft",
        customer=Customer(name=form.get("customerName", "")),
        location_id=form.get("location_id"),
        inspector_ids=inspector_ids,
        inspector_id=inspector_ids[0] if inspector_ids else None,
        form_data=dict(form),
        user_id=user_id,
    )
    saved = await create_or_update_job_draft(client, draft)
    return await finalize_job_draft(client, saved.id), []


# Updates

async def update_job_status(client: BackendClient, job_id: str, status: str) -> JobRecord:
    result = await (
        client.table("jobs")
        .update({"status": status, "updated_at": utc_now_iso()})
        .eq("id", job_id)
        .select("*")
        .single()
        .execute()
    )
    return _decode(result.data)


async def assign_inspector(client: BackendClient, job_id: str, inspector_id: str) -> bool:
    """Add an inspector to a job and notify them. False on any failure."""
    try:
        job = await (
            client.table("jobs")
            .select("location_id,title,job_number,inspector_ids")
            .eq("id", job_id)
            .single()
            .execute()
        )
        inspector = await (
            client.table("profiles")
            .select("name,location_id,isAvailable")
            .eq("id", inspector_id)
            .single()
            .execute()
        )
        job_row, insp_row = job.data, inspector.data

        if insp_row.get("isAvailable") is False:
            raise BackendError(f"Inspector {insp_row.get('name')} is not available for assignment")
        if job_row.get("location_id") and insp_row.get("location_id") and job_row["location_id"] != insp_row["location_id"]:
            raise BackendError("Inspector is assigned to a different location")

        inspector_ids = list(job_row.get("inspector_ids") or [])
        if inspector_id not in inspector_ids:
            inspector_ids.append(inspector_id)

        await (
            client.table("jobs")
            .update(
                {
                    "inspector_ids": inspector_ids,
                    "inspector_id": inspector_id,
                    "status": "assigned",
                    "updated_at": utc_now_iso(),
                }
            )
            .eq("id", job_id)
            .execute()
        )
    except BackendError as e:
        logger.error("Error assigning inspector %s to job %s: %s", inspector_id, job_id, e)
        return False

    label = job_row.get("title") or f"#{job_row.get('job_number') or job_id}"
    try:
        await create_notification(
            client,
            user_id=inspector_id,
            message=f"You have been assigned to job: {label}",
            type="assignment",
            job_id=job_id,
        )
    except BackendError as e:
        logger.warning("Failed to create assignment notification: %s", e)
    return True


async def update_job_with_revision(client: BackendClient, job_id: str) -> JobRecord:
    current = await client.table("jobs").select("*").eq("id", job_id).single().execute()
    row = current.data
    job_number, revision = next_revision_number(row.get("job_number"), row.get("location_number"), row.get("revision"))
    logger.info("Updating job %s number to %s", job_id, job_number)
    result = await (
        client.table("jobs")
        .update({"job_number": job_number, "revision": revision, "updated_at": utc_now_iso()})
        .eq("id", job_id)
        .select("*")
        .single()
        .execute()
    )
    return _decode(result.data)


# List helpers

def visible_columns(role: Optional[str]) -> List[str]:
    return list(_COLUMNS_BY_ROLE.get(role or "", _COLUMNS_BY_ROLE["customer"]))


def _job_field(job: JobRecord, name: str) -> str:
    form = job.form_data or {}
    if name == "customer":
        return (job.customer.name if job.customer else "") or form.get("customerName", "")
    if name == "location":
        return (job.location or {}).get("name") or form.get("jobLocation", "") or ""
    if name == "shift":
        return form.get("shift", "") or ""
    if name == "contract":
        return form.get("contractNumber", "") or ""
    if name == "inspector":
        return form.get("inspector", "") or ""
    return ""


def apply_filters(
    jobs: List[JobRecord],
    search: str = "",
    status: str = ALL,
    location: str = ALL,
    customer: str = ALL,
    shift: str = ALL,
) -> List[JobRecord]:
    result = list(jobs)

    if search:
        needle = search.lower()
        result = [
            j for j in result
            if any(
                needle in value.lower()
                for value in (
                    _job_field(j, "contract"),
                    _job_field(j, "customer"),
                    _job_field(j, "location"),
                    _job_field(j, "inspector"),
                    j.job_number or "",
                )
            )
        ]

    if status != ALL:
        result = [j for j in result if j.status == status]

    if location != ALL:
        # prefer ids when any job carries one
        if any(j.location_id for j in result):
            result = [j for j in result if j.location_id == location]
        else:
            result = [j for j in result if _job_field(j, "location") == location]

    if customer != ALL:
        result = [j for j in result if _job_field(j, "customer") == customer]

    if shift != ALL:
        result = [j for j in result if _job_field(j, "shift") == shift]

    return result
