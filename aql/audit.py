"""Application audit log: who did what to which entity."""
from __future__ import annotations

import logging
import uuid
from typing import Dict, List, Optional

from . import samples, storage
from .backend import BackendClient
from .errors import BackendError, DataShapeError
from .metrics import ReportingClient, parse_many
from .schemas import AuditLog

logger = logging.getLogger(__name__)


async def record_audit_log(
    client: BackendClient,
    user_id: str,
    action: str,
    entity_type: str,
    entity_id: str,
    details: str = "",
) -> AuditLog:
    # any action string is accepted
    log = AuditLog(
        log_id=uuid.uuid4().hex,
        user_id=user_id,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        timestamp=storage.utc_now_iso(),
        details=details,
    )
    result = await client.table("audit_logs").insert([log.model_dump()]).execute()
    rows = result.data or []
    return AuditLog.model_validate(rows[0]) if rows else log


def _matching(logs: List[AuditLog], entity_type: Optional[str], entity_id: Optional[str]) -> List[AuditLog]:
    if entity_type:
        logs = [log for log in logs if log.entity_type == entity_type]
    if entity_id:
        logs = [log for log in logs if log.entity_id == entity_id]
    return logs


async def fetch_audit_logs(
    reporting: ReportingClient,
    entity_type: Optional[str] = None,
    entity_id: Optional[str] = None,
) -> List[AuditLog]:
    """Audit rows from the reporting API, else the local store, else the sample set."""
    params: Dict[str, str] = {}
    if entity_type:
        params["entity_type"] = entity_type
    if entity_id:
        params["entity_id"] = entity_id
    try:
        return parse_many(AuditLog, await reporting.get_json("/audit-logs", params=params or None))
    except (BackendError, DataShapeError) as e:
        local = storage.audit_logs()
        if local:
            logger.info("Serving local audit logs: %s", e)
            return _matching(local, entity_type, entity_id)
        logger.warning("Failed to fetch audit logs, using sample data: %s", e)
        return _matching(samples.copies(samples.FALLBACK_AUDIT_LOGS), entity_type, entity_id)


def filter_audit_logs(logs: List[AuditLog], search: str = "", action: str = "") -> List[AuditLog]:
    """Case-insensitive search over details, action, entity type and id; exact action match."""
    result = list(logs)
    if search:
        needle = search.lower()
        result = [
            log for log in result
            if needle in log.details.lower()
            or needle in log.action.lower()
            or needle in log.entity_type.lower()
            or needle in log.entity_id.lower()
        ]
    if action:
        result = [log for log in result if log.action == action]
    return result


def action_types(logs: List[AuditLog]) -> List[str]:
    seen: List[str] = []
    for log in logs:
        if log.action not in seen:
            seen.append(log.action)
    return seen
