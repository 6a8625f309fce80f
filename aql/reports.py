from __future__ import annotations

import datetime as _dt
import logging
from typing import List, Optional

from .backend import BackendClient
from .schemas import Report
from .storage import utc_now_iso

logger = logging.getLogger(__name__)


async def generate_report(
    client: BackendClient,
    type: str,
    start: str,
    end: str,
    customer_id: Optional[str] = None,
    created_by: str = "system",
) -> Report:
    """Store a report request; the data payload is filled in by the reporting side."""
    report = Report(
        name=f"{type} Report - {_dt.date.today().isoformat()}",
        type=type,
        date_range={"start": start, "end": end},
        customer_id=customer_id,
        created_at=utc_now_iso(),
        created_by=created_by,
    )
    logger.info("Generating %s report for %s..%s", type, start, end)
    result = await client.table("reports").insert([report.model_dump(mode="json", exclude_none=True)]).execute()
    rows = result.data or []
    return Report.model_validate(rows[0]) if rows else report


async def fetch_reports(client: BackendClient, customer_id: Optional[str] = None) -> List[Report]:
    query = client.table("reports").select("*").order("created_at", ascending=False)
    if customer_id:
        query = query.eq("customer_id", customer_id)
    result = await query.execute()
    return [Report.model_validate(row) for row in result.data or []]
