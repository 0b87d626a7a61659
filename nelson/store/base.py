"""
Record store interface.

The persistent store is an external collaborator reached through typed
single-row reads and writes against logical tables, plus one similarity
search RPC. No multi-row transactions are assumed.
"""

import logging
from typing import Any, Awaitable, Optional, Protocol, TypeVar


logger = logging.getLogger(__name__)


# =============================================================================
# TABLES
# =============================================================================

SESSIONS = "sessions"
QUERIES = "queries"
DIAGNOSTIC_WORKFLOWS = "diagnostic_workflows"
SAFETY_ALERTS = "safety_alerts"
MEDICAL_CLASSIFICATIONS = "medical_classifications"
MEDICAL_CONTEXT_SUMMARY = "medical_context_summary"
AUDIT_LOGS = "audit_logs"
MEDICAL_CHUNKS = "medical_chunks"

ALL_TABLES = (
    SESSIONS,
    QUERIES,
    DIAGNOSTIC_WORKFLOWS,
    SAFETY_ALERTS,
    MEDICAL_CLASSIFICATIONS,
    MEDICAL_CONTEXT_SUMMARY,
    AUDIT_LOGS,
    MEDICAL_CHUNKS,
)

MATCH_MEDICAL_CHUNKS = "match_medical_chunks"


# =============================================================================
# ERRORS
# =============================================================================


class StoreError(RuntimeError):
    """The store could not complete a read or write."""


class RecordNotFoundError(LookupError):
    """A record looked up by id does not exist."""

    def __init__(self, kind: str, record_id: Optional[str]):
        self.kind = kind
        self.record_id = record_id
        super().__init__(f"{kind} not found")


class SessionNotFoundError(RecordNotFoundError):
    def __init__(self, record_id: Optional[str]):
        super().__init__("Session", record_id)


class WorkflowNotFoundError(RecordNotFoundError):
    def __init__(self, record_id: Optional[str]):
        super().__init__("Workflow", record_id)


class AlertNotFoundError(RecordNotFoundError):
    def __init__(self, record_id: Optional[str]):
        super().__init__("Safety alert", record_id)


# =============================================================================
# PROTOCOL
# =============================================================================


class RecordStore(Protocol):
    """
    Protocol for the keyed record store.

    Rows are JSON-compatible dicts carrying an ``id`` key.
    """

    async def get(self, table: str, record_id: str) -> Optional[dict[str, Any]]:
        """Return one row by id, or None."""
        ...

    async def insert(self, table: str, record: dict[str, Any]) -> dict[str, Any]:
        """Insert one row and return it as stored."""
        ...

    async def update(
        self,
        table: str,
        record_id: str,
        changes: dict[str, Any],
    ) -> Optional[dict[str, Any]]:
        """Apply column changes to one row; None if the row is missing."""
        ...

    async def select(
        self,
        table: str,
        filters: Optional[dict[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> list[dict[str, Any]]:
        """Return rows whose columns equal every filter value."""
        ...

    async def rpc(self, name: str, params: dict[str, Any]) -> list[dict[str, Any]]:
        """Invoke a server-side function returning rows."""
        ...

    async def close(self) -> None:
        ...


# =============================================================================
# BEST-EFFORT WRITES
# =============================================================================

T = TypeVar("T")


async def best_effort(operation: Awaitable[T], description: str) -> Optional[T]:
    """
    Await a side-effect write whose failure must not fail the request.

    Args:
        operation: The pending write
        description: What is being written, for the log line

    Returns:
        The write result, or None if it failed
    """
    try:
        return await operation
    except Exception as e:
        logger.warning(f"Best-effort write failed ({description}): {e}")
        return None
