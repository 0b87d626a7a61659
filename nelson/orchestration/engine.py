"""
Orchestration Engine - Top-level sequencing of one inbound query.

    ensure session -> create query (initial) -> classify
        -> emergency: safety screener
        -> otherwise: diagnostic workflow
    -> complete query -> update session context

Gateways and the retriever never raise; their sentinels are handled inside
the components. Store failures on the critical path propagate to the
caller after the query is marked as errored.
"""

import logging
from typing import Any, Optional, Union

from nelson.context.manager import ContextManager
from nelson.diagnosis.engine import DiagnosticWorkflowEngine
from nelson.models.enums import AlertType, DiagnosticStage, UrgencyLevel
from nelson.models.records import MedicalClassification, Query, SafetyAlert, Session
from nelson.models.results import (
    Classification,
    ContextUpdate,
    QueryResponse,
    SafetyScreenResult,
    WorkflowResult,
)
from nelson.routing.classifier import QueryClassifier
from nelson.safety.screener import SafetyScreener
from nelson.store.base import (
    MEDICAL_CLASSIFICATIONS,
    QUERIES,
    SAFETY_ALERTS,
    RecordStore,
    SessionNotFoundError,
    best_effort,
)


logger = logging.getLogger(__name__)


CLASSIFICATION_FAILED_ANSWER = (
    "I apologize, but I wasn't able to process your question. If this is a medical "
    "emergency, call 911 immediately. Otherwise, please try again or consult with a "
    "healthcare professional for medical advice."
)


class OrchestrationEngine:
    """
    Drives one message through classification, screening or diagnosis, and
    persistence.
    """

    def __init__(
        self,
        store: RecordStore,
        classifier: QueryClassifier,
        screener: SafetyScreener,
        workflow_engine: DiagnosticWorkflowEngine,
        context_manager: ContextManager,
    ):
        self.store = store
        self.classifier = classifier
        self.screener = screener
        self.workflow_engine = workflow_engine
        self.context_manager = context_manager

    async def submit_query(
        self,
        message: Optional[str],
        session_id: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> QueryResponse:
        """
        Answer one user message.

        Args:
            message: The user's message; empty is classified, not rejected
            session_id: Existing session to continue (optional)
            user_id: Owner for a new session when none is found (optional)

        Returns:
            QueryResponse
        """
        message = message or ""
        session = await self._resolve_session(session_id, user_id)
        active_session_id = session.id if session else None
        medical_context = session.medical_context if session else {}

        query = Query(session_id=active_session_id, user_question=message)
        await self.store.insert(QUERIES, query.model_dump(mode="json"))
        logger.info(f"Created query {query.id} (session={active_session_id})")

        try:
            classification = await self.classifier.classify(
                message, active_session_id, query.id, medical_context,
            )
        except Exception as e:
            logger.error(f"Classification failed for query {query.id}: {e}")
            await self._mark_error(query.id)
            return QueryResponse(
                success=False,
                answer=CLASSIFICATION_FAILED_ANSWER,
                sessionId=active_session_id,
                queryId=query.id,
                error="Classification failed",
            )

        try:
            return await self._answer(message, query, classification, session)
        except Exception:
            await self._mark_error(query.id)
            raise

    async def _answer(
        self,
        message: str,
        query: Query,
        classification: Classification,
        session: Optional[Session],
    ) -> QueryResponse:
        session_id = session.id if session else None

        await self.store.update(QUERIES, query.id, {
            "urgency_level": classification.urgency_level,
            "medical_specialty": classification.medical_specialty,
            "complexity_score": classification.complexity_score,
        })
        await self._record_classification(query.id, classification)
        await self._persist_classifier_alerts(session_id, query.id, classification)

        outcome: Union[SafetyScreenResult, WorkflowResult]
        if classification.urgency_level == UrgencyLevel.EMERGENCY.value:
            logger.warning(f"Query {query.id} routed to safety screening")
            outcome = await self.screener.screen(message, session_id, query.id)
            updated_context: dict[str, Any] = {}
        else:
            outcome = await self.workflow_engine.run(
                message,
                classification,
                session_id=session_id,
                query_id=query.id,
                medical_context=session.medical_context if session else {},
            )
            updated_context = outcome.updated_context

        await self.store.update(QUERIES, query.id, {
            "answer": outcome.answer,
            "confidence": outcome.confidence,
            "citations": [c.model_dump(mode="json") for c in outcome.citations],
            "reasoning_steps": [s.model_dump(mode="json") for s in outcome.reasoning_steps],
            "safety_flags": list(outcome.safety_flags),
            "diagnostic_stage": DiagnosticStage.COMPLETED.value,
        })

        if session is not None:
            await self.context_manager.update(session.id, ContextUpdate(
                medical_context=updated_context,
                risk_level=classification.urgency_level,
            ))

        logger.info(f"Query {query.id} completed (confidence={outcome.confidence:.2f})")
        return QueryResponse(
            success=True,
            answer=outcome.answer,
            confidence=outcome.confidence,
            citations=outcome.citations,
            sessionId=session_id,
            queryId=query.id,
            urgency_level=classification.urgency_level,
            medical_specialty=classification.medical_specialty,
            safety_alerts=classification.safety_alerts,
            reasoning_steps=outcome.reasoning_steps,
        )

    async def _resolve_session(
        self,
        session_id: Optional[str],
        user_id: Optional[str],
    ) -> Optional[Session]:
        """Existing session, else a new one for the user, else anonymous."""
        if session_id:
            try:
                return await self.context_manager.get_session(session_id)
            except SessionNotFoundError:
                logger.info(f"Session {session_id} not found")

        if user_id:
            return await self.context_manager.create_session(user_id)

        return None

    async def _record_classification(self, query_id: str, classification: Classification) -> None:
        record = MedicalClassification(
            query_id=query_id,
            urgency_level=classification.urgency_level,
            medical_specialty=classification.medical_specialty,
            complexity_score=classification.complexity_score,
            classification_confidence=classification.confidence,
            workflow_type=classification.workflow_type,
        )
        await best_effort(
            self.store.insert(MEDICAL_CLASSIFICATIONS, record.model_dump(mode="json")),
            f"classification for query {query_id}",
        )

    async def _persist_classifier_alerts(
        self,
        session_id: Optional[str],
        query_id: str,
        classification: Classification,
    ) -> None:
        for alert in classification.safety_alerts:
            record = SafetyAlert(
                session_id=session_id,
                query_id=query_id,
                alert_type=AlertType(alert.type),
                alert_message=alert.message,
                triggered_keywords=alert.keywords,
                severity_score=alert.severity,
            )
            await best_effort(
                self.store.insert(SAFETY_ALERTS, record.model_dump(mode="json")),
                f"classifier alert for query {query_id}",
            )

    async def _mark_error(self, query_id: str) -> None:
        await best_effort(
            self.store.update(QUERIES, query_id, {"diagnostic_stage": DiagnosticStage.ERROR.value}),
            f"error stage for query {query_id}",
        )
