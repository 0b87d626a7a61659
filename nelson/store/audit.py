"""Audit trail writes."""

from typing import Any, Optional

from nelson.models.records import AuditLog
from nelson.store.base import AUDIT_LOGS, RecordStore, best_effort


async def write_audit(
    store: RecordStore,
    event: str,
    session_id: Optional[str],
    details: dict[str, Any],
) -> Optional[dict[str, Any]]:
    """
    Append an audit event. Failures are logged, never raised.

    Args:
        store: Record store
        event: Event name (e.g., "medical_query_routed")
        session_id: Session the event belongs to; "anonymous" when absent
        details: Structured event details

    Returns:
        The stored row, or None if the write failed
    """
    record = AuditLog(event=event, user_sub_hash=session_id or "anonymous", details=details)
    return await best_effort(
        store.insert(AUDIT_LOGS, record.model_dump(mode="json")),
        f"audit:{event}",
    )
