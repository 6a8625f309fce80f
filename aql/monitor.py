"""Watch the ``jobs`` table for inserts and updates.

Changes are found by polling ``updated_at``; deletes are not reported and
there is no replay of events missed while the monitor was not running.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, AsyncIterator, Dict, List, Optional

from pydantic import BaseModel, ConfigDict

from . import codec
from .backend import BackendClient
from .settings import settings

logger = logging.getLogger(__name__)


class ChangeEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    event_type: str  # INSERT or UPDATE
    new: Dict[str, Any]
    old: Optional[Dict[str, Any]] = None


def describe_job(row: Dict[str, Any]) -> Dict[str, Any]:
    form_data = row.get("form_data_json", row.get("form_data"))
    return {
        "id": row.get("id"),
        "title": row.get("title") or "[No title]",
        "status": row.get("status") or "[No status]",
        "job_number": row.get("job_number") or "[No job number]",
        "created_at": row.get("created_at"),
        "form_data": codec.describe_form_data(form_data),
    }


class JobsMonitor:
    def __init__(self, client: BackendClient, poll_interval_s: Optional[float] = None) -> None:
        self.client = client
        self.poll_interval_s = float(poll_interval_s or settings.monitor.get("poll_interval_s", 5))
        self._known: Dict[str, Dict[str, Any]] = {}
        self._cursor: Optional[str] = None
        self._stopped = asyncio.Event()

    def _track(self, row: Dict[str, Any]) -> None:
        self._known[str(row.get("id"))] = row
        stamp = row.get("updated_at") or row.get("created_at")
        if stamp and (self._cursor is None or stamp > self._cursor):
            self._cursor = stamp

    async def snapshot(self) -> List[Dict[str, Any]]:
        """Current rows; also the baseline later polls are compared against."""
        result = await self.client.table("jobs").select("*", count="exact").execute()
        rows = result.data or []
        for row in rows:
            self._track(row)
        logger.info("Found %s jobs in the table", result.count if result.count is not None else len(rows))
        return rows

    async def poll(self) -> List[ChangeEvent]:
        query = self.client.table("jobs").select("*").order("updated_at")
        if self._cursor is not None:
            query = query.gt("updated_at", self._cursor)
        result = await query.execute()

        events = []
        for row in result.data or []:
            old = self._known.get(str(row.get("id")))
            events.append(ChangeEvent(event_type="UPDATE" if old else "INSERT", new=row, old=old))
            self._track(row)
        return events

    async def events(self) -> AsyncIterator[ChangeEvent]:
        while not self._stopped.is_set():
            for event in await self.poll():
                yield event
                if self._stopped.is_set():
                    return
            try:
                await asyncio.wait_for(self._stopped.wait(), timeout=self.poll_interval_s)
            except asyncio.TimeoutError:
                pass

    def stop(self) -> None:
        self._stopped.set()
