from __future__ import annotations

import logging
from typing import List, Optional

from .backend import BackendClient
from .schemas import Notification
from .storage import utc_now_iso

logger = logging.getLogger(__name__)


async def fetch_notifications(client: BackendClient, user_id: Optional[str]) -> List[Notification]:
    if not user_id:
        return []
    result = await (
        client.table("notifications")
        .select("*")
        .eq("user_id", user_id)
        .order("created_at", ascending=False)
        .execute()
    )
    return [Notification.model_validate(row) for row in result.data or []]


async def create_notification(
    client: BackendClient,
    user_id: str,
    message: str,
    type: str = "info",
    job_id: Optional[str] = None,
) -> Notification:
    note = Notification(
        user_id=user_id,
        message=message,
        type=type,
        job_id=job_id,
        is_read=False,
        created_at=utc_now_iso(),
    )
    result = await client.table("notifications").insert([note.model_dump(exclude_none=True)]).execute()
    rows = result.data or []
    return Notification.model_validate(rows[0]) if rows else note


async def mark_notification_as_read(client: BackendClient, notification_id: str) -> None:
    await client.table("notifications").update({"is_read": True}).eq("id", notification_id).execute()


async def mark_all_notifications_as_read(client: BackendClient, user_id: str) -> int:
    result = await (
        client.table("notifications")
        .update({"is_read": True})
        .eq("user_id", user_id)
        .eq("is_read", False)
        .execute()
    )
    updated = len(result.data or [])
    logger.info("Marked %d notifications read for %s", updated, user_id)
    return updated
