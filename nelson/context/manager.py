"""
Session/Context Manager - Per-session medical context between queries.

Owns every read-merge-write of session context, the append-only
conversation summaries, and the diagnostic workflow records. No locking is
done: two concurrent merges onto the same session are last-writer-wins for
overlapping keys.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Optional, Union

from nelson.context.extraction import (
    basic_summary,
    build_transcript,
    extract_allergies,
    extract_diagnoses,
    extract_medications,
    extract_symptoms,
)
from nelson.llm.gateway import is_fallback
from nelson.models.enums import DIAGNOSTIC_STEPS, RiskLevel
from nelson.models.records import (
    ContextSummary,
    DiagnosticWorkflow,
    SafetyAlert,
    Session,
    utc_now,
)
from nelson.models.results import ContextUpdate, SessionContext
from nelson.store.audit import write_audit
from nelson.store.base import (
    DIAGNOSTIC_WORKFLOWS,
    MEDICAL_CONTEXT_SUMMARY,
    QUERIES,
    SAFETY_ALERTS,
    SESSIONS,
    AlertNotFoundError,
    RecordStore,
    SessionNotFoundError,
    WorkflowNotFoundError,
)
from nelson.utils.protocols import CompletionGatewayProtocol


logger = logging.getLogger(__name__)


RECENT_QUERY_LIMIT = 5
RECENT_SUMMARY_LIMIT = 3
SUMMARY_QUERY_LIMIT = 10
SUMMARY_MAX_TOKENS = 500
SUMMARY_CONFIDENCE = 0.8
ARCHIVED_PREFIX = "[ARCHIVED] "

RECENT_QUERY_FIELDS = ("id", "user_question", "answer", "created_at", "diagnostic_stage")

SUMMARY_SYSTEM_PROMPT = (
    "You are a medical documentation assistant. Create concise, accurate "
    "summaries of pediatric medical conversations."
)

SUMMARY_PROMPT_TEMPLATE = """Summarize this pediatric medical conversation, focusing on key clinical information:

{transcript}

Additional Context: {extra}

Please provide a concise medical summary including:
1. Primary presenting concerns
2. Key symptoms and timeline
3. Any diagnoses discussed
4. Treatment recommendations given
5. Follow-up plans mentioned
6. Important medical history or context

Keep the summary professional, factual, and focused on medically relevant information."""


def _parse_timestamp(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value:
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def context_age(last_query_at: Any, now: Optional[datetime] = None) -> str:
    """
    Bucket the age of the most recent query.

    Returns:
        "unknown", "recent" (under an hour), "<N> hours ago", or "<N> days ago"
    """
    last = _parse_timestamp(last_query_at)
    if last is None:
        return "unknown"

    hours = int(((now or utc_now()) - last).total_seconds() // 3600)
    if hours < 1:
        return "recent"
    if hours < 24:
        return f"{hours} hours ago"
    return f"{hours // 24} days ago"


def _is_canonical_prefix(steps: list[str]) -> bool:
    canonical = [step.value for step in DIAGNOSTIC_STEPS]
    return steps == canonical[:len(steps)]


class ContextManager:
    """Reads, merges, summarizes, and clears session context."""

    def __init__(
        self,
        store: RecordStore,
        gateway: Optional[CompletionGatewayProtocol] = None,
    ):
        """
        Initialize the context manager.

        Args:
            store: Record store
            gateway: Completion gateway for model summaries (optional)
        """
        self.store = store
        self.gateway = gateway

    # =========================================================================
    # SESSIONS
    # =========================================================================

    async def get_session(self, session_id: Optional[str]) -> Session:
        """Load a session or raise SessionNotFoundError."""
        row = await self.store.get(SESSIONS, session_id) if session_id else None
        if row is None:
            raise SessionNotFoundError(session_id)
        return Session.model_validate(row)

    async def create_session(self, user_id: Optional[str]) -> Session:
        session = Session(user_id=user_id)
        row = await self.store.insert(SESSIONS, session.model_dump(mode="json"))
        logger.info(f"Created session {session.id} for user {user_id}")
        return Session.model_validate(row)

    # =========================================================================
    # CONTEXT OPERATIONS
    # =========================================================================

    async def get(self, session_id: str) -> SessionContext:
        """
        Return the merged context of a session.

        Args:
            session_id: Session to read

        Returns:
            SessionContext with the last 5 queries and last 3 summaries
        """
        session = await self.get_session(session_id)

        queries = await self.store.select(
            QUERIES, {"session_id": session_id},
            order_by="created_at", descending=True, limit=RECENT_QUERY_LIMIT,
        )
        summaries = await self.store.select(
            MEDICAL_CONTEXT_SUMMARY, {"session_id": session_id},
            order_by="created_at", descending=True, limit=RECENT_SUMMARY_LIMIT,
        )

        logger.debug(f"Retrieved context for session {session_id}")
        return SessionContext(
            medical_context=session.medical_context,
            patient_context=session.patient_context,
            risk_level=session.risk_level,
            specialty_focus=session.specialty_focus,
            recent_queries=[
                {field: query.get(field) for field in RECENT_QUERY_FIELDS} for query in queries
            ],
            summaries=[ContextSummary.model_validate(row) for row in summaries],
            context_age=context_age(queries[0].get("created_at") if queries else None),
        )

    async def update(
        self,
        session_id: str,
        new_context: Union[ContextUpdate, dict[str, Any], None],
    ) -> Session:
        """
        Shallow-merge new context onto a session.

        Supplied keys override existing ones and all other keys are kept.
        Only the columns the caller supplied are written, so concurrent
        updates to different columns both survive. ``last_updated`` is
        stamped on the medical context whenever it is supplied.

        Args:
            session_id: Session to update
            new_context: Partial context

        Returns:
            The updated session
        """
        if not isinstance(new_context, ContextUpdate):
            new_context = ContextUpdate.model_validate(new_context or {})

        session = await self.get_session(session_id)
        supplied = new_context.model_fields_set

        changes: dict[str, Any] = {}
        if "medical_context" in supplied:
            changes["medical_context"] = {
                **session.medical_context,
                **new_context.medical_context,
                "last_updated": utc_now().isoformat(),
            }
        if "patient_context" in supplied:
            changes["patient_context"] = {**session.patient_context, **new_context.patient_context}
        if new_context.risk_level is not None:
            changes["risk_level"] = new_context.risk_level
        if new_context.specialty_focus is not None:
            changes["specialty_focus"] = new_context.specialty_focus

        if not changes:
            logger.debug(f"No context changes for session {session_id}")
            return session

        row = await self.store.update(SESSIONS, session_id, changes)
        if row is None:
            raise SessionNotFoundError(session_id)

        logger.info(f"Updated context for session {session_id}")
        return Session.model_validate(row)

    async def summarize(
        self,
        session_id: str,
        extra: Optional[dict[str, Any]] = None,
    ) -> Optional[ContextSummary]:
        """
        Summarize the recent conversation and store the summary.

        Args:
            session_id: Session to summarize
            extra: Additional context passed to the model

        Returns:
            The stored summary, or None when there is no history
        """
        await self.get_session(session_id)

        recent = await self.store.select(
            QUERIES, {"session_id": session_id},
            order_by="created_at", descending=True, limit=SUMMARY_QUERY_LIMIT,
        )
        if not recent:
            logger.info(f"No conversation history to summarize for session {session_id}")
            return None

        queries = list(reversed(recent))
        transcript = build_transcript(queries)
        summary_text = await self._generate_summary(transcript, extra)

        summary = ContextSummary(
            session_id=session_id,
            summary_text=summary_text,
            key_symptoms=extract_symptoms(transcript),
            previous_diagnoses=extract_diagnoses(queries),
            medications_mentioned=extract_medications(transcript),
            allergies_mentioned=extract_allergies(transcript),
            summary_confidence=SUMMARY_CONFIDENCE,
        )
        row = await self.store.insert(MEDICAL_CONTEXT_SUMMARY, summary.model_dump(mode="json"))

        logger.info(f"Generated context summary for session {session_id}")
        return ContextSummary.model_validate(row)

    async def _generate_summary(self, transcript: str, extra: Optional[dict[str, Any]]) -> str:
        if self.gateway is None:
            return basic_summary(transcript)

        prompt = SUMMARY_PROMPT_TEMPLATE.format(
            transcript=transcript,
            extra=json.dumps(extra or {}, default=str),
        )
        text = await self.gateway.complete(SUMMARY_SYSTEM_PROMPT, prompt, max_tokens=SUMMARY_MAX_TOKENS)

        if is_fallback(text) or not text.strip():
            logger.warning("Model summary unavailable, using basic summary")
            return basic_summary(transcript)
        return text

    async def clear(self, session_id: str) -> Session:
        """
        Reset a session's context and archive its latest summary.

        The archive is an appended copy of the latest summary with an
        ``[ARCHIVED] `` prefix; nothing is deleted. Clearing twice does not
        archive twice.

        Returns:
            The cleared session
        """
        await self.get_session(session_id)

        row = await self.store.update(SESSIONS, session_id, {
            "medical_context": {},
            "patient_context": {},
            "risk_level": RiskLevel.ROUTINE.value,
            "specialty_focus": None,
        })
        if row is None:
            raise SessionNotFoundError(session_id)

        latest = await self.store.select(
            MEDICAL_CONTEXT_SUMMARY, {"session_id": session_id},
            order_by="created_at", descending=True, limit=1,
        )
        if latest and not latest[0].get("summary_text", "").startswith(ARCHIVED_PREFIX):
            previous = ContextSummary.model_validate(latest[0])
            archived = ContextSummary(
                **previous.model_dump(exclude={"id", "created_at", "summary_text"}),
                summary_text=ARCHIVED_PREFIX + previous.summary_text,
            )
            await self.store.insert(MEDICAL_CONTEXT_SUMMARY, archived.model_dump(mode="json"))

        await write_audit(self.store, "medical_context_cleared", session_id, {
            "archived_summary": bool(latest),
        })

        logger.info(f"Cleared context for session {session_id}")
        return Session.model_validate(row)

    # =========================================================================
    # DIAGNOSTIC WORKFLOWS
    # =========================================================================

    async def create_workflow(self, workflow: DiagnosticWorkflow) -> DiagnosticWorkflow:
        """Persist a new workflow record at step 1."""
        if workflow.completed_steps or workflow.current_step != 1:
            raise ValueError("A new workflow must start at step 1 with no completed steps")
        row = await self.store.insert(DIAGNOSTIC_WORKFLOWS, workflow.model_dump(mode="json"))
        return DiagnosticWorkflow.model_validate(row)

    async def get_workflow(self, workflow_id: str) -> DiagnosticWorkflow:
        row = await self.store.get(DIAGNOSTIC_WORKFLOWS, workflow_id)
        if row is None:
            raise WorkflowNotFoundError(workflow_id)
        return DiagnosticWorkflow.model_validate(row)

    async def update_workflow(self, workflow: DiagnosticWorkflow) -> DiagnosticWorkflow:
        """
        Persist the next state of a workflow.

        The step counter never goes backwards, completed steps always form a
        prefix of the canonical step order and only ever grow, and a
        completed workflow is terminal.

        Args:
            workflow: The new workflow state

        Returns:
            The stored workflow

        Raises:
            WorkflowNotFoundError: If the workflow does not exist
            ValueError: If the new state would break step ordering
        """
        stored = await self.get_workflow(workflow.id)

        if stored.is_complete:
            raise ValueError(f"Workflow {workflow.id} is already complete")
        if workflow.current_step < stored.current_step:
            raise ValueError(
                f"Workflow {workflow.id} cannot move from step {stored.current_step} "
                f"back to step {workflow.current_step}"
            )
        if not _is_canonical_prefix(workflow.completed_steps):
            raise ValueError(f"Completed steps out of order: {workflow.completed_steps}")
        if workflow.completed_steps[:len(stored.completed_steps)] != stored.completed_steps:
            raise ValueError(f"Workflow {workflow.id} cannot drop completed steps")

        changes = workflow.model_dump(
            mode="json",
            include={"current_step", "step_data", "completed_steps", "confidence_scores", "completed_at"},
        )
        changes["updated_at"] = utc_now().isoformat()

        row = await self.store.update(DIAGNOSTIC_WORKFLOWS, workflow.id, changes)
        if row is None:
            raise WorkflowNotFoundError(workflow.id)
        return DiagnosticWorkflow.model_validate(row)

    # =========================================================================
    # SAFETY ALERTS
    # =========================================================================

    async def acknowledge_alert(
        self,
        alert_id: str,
        acknowledged_by: Optional[str] = None,
    ) -> SafetyAlert:
        """
        Mark a safety alert as acknowledged.

        Acknowledgement is the only change ever made to an alert. An alert
        that is already acknowledged is returned unchanged.
        """
        row = await self.store.get(SAFETY_ALERTS, alert_id)
        if row is None:
            raise AlertNotFoundError(alert_id)

        alert = SafetyAlert.model_validate(row)
        if alert.acknowledged:
            return alert

        row = await self.store.update(SAFETY_ALERTS, alert_id, {
            "acknowledged": True,
            "acknowledged_at": utc_now().isoformat(),
            "acknowledged_by": acknowledged_by,
        })
        if row is None:
            raise AlertNotFoundError(alert_id)

        logger.info(f"Safety alert {alert_id} acknowledged by {acknowledged_by}")
        return SafetyAlert.model_validate(row)
