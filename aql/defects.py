from __future__ import annotations

import logging
import uuid
from typing import Dict, List, Optional

from .backend import BackendClient
from .schemas import Defect, DefectComment
from .storage import utc_now_iso

logger = logging.getLogger(__name__)

SEVERITIES = ("minor", "major", "critical")


def _row(defect: Defect) -> dict:
    return defect.model_dump(mode="json", exclude_none=True)


async def report_defect(client: BackendClient, job_id: str, description: str, severity: str) -> Defect:
    """New defects start open with no comments."""
    defect = Defect(
        job_id=job_id,
        description=description,
        severity=severity,
        status="open",
        reported_at=utc_now_iso(),
        comments=[],
    )
    result = await client.table("defects").insert([_row(defect)]).select().single().execute()
    logger.info("Reported %s defect on job %s", severity, job_id)
    return Defect.model_validate(result.data)


async def fetch_defects(client: BackendClient, job_id: Optional[str] = None) -> List[Defect]:
    query = client.table("defects").select("*").order("reported_at", ascending=False)
    if job_id:
        query = query.eq("job_id", job_id)
    result = await query.execute()
    return [Defect.model_validate(row) for row in result.data or []]


async def add_defect_comment(client: BackendClient, defect_id: str, text: str, user_id: str) -> Defect:
    current = await client.table("defects").select("*").eq("id", defect_id).single().execute()
    defect = Defect.model_validate(current.data)
    comment = DefectComment(id=uuid.uuid4().hex, text=text, user_id=user_id, created_at=utc_now_iso())
    # existing comments are carried over untouched
    comments = [c.model_dump(mode="json") for c in defect.comments] + [comment.model_dump(mode="json")]
    result = await (
        client.table("defects")
        .update({"comments": comments})
        .eq("id", defect_id)
        .select()
        .single()
        .execute()
    )
    return Defect.model_validate(result.data)


async def set_defect_status(client: BackendClient, defect_id: str, status: str) -> Defect:
    values = {"status": status}
    if status in ("resolved", "closed"):
        values["resolved_at"] = utc_now_iso()
    result = await client.table("defects").update(values).eq("id", defect_id).select().single().execute()
    return Defect.model_validate(result.data)


def defect_counts_by_severity(defects: List[Defect]) -> Dict[str, int]:
    counts = {s: 0 for s in SEVERITIES}
    for d in defects:
        counts[d.severity] = counts.get(d.severity, 0) + 1
    return counts
