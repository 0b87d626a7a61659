"""
Query Classifier - Assign urgency, specialty, and complexity to a query.

Purely rule-based: no model calls and no retries. The only side effect is
the routing audit record, which is written best-effort.
"""

import logging
from typing import Any, Optional

from nelson.models.enums import MedicalSpecialty, UrgencyLevel, WorkflowType
from nelson.models.results import Classification, ClassifierAlert
from nelson.routing.signals import (
    URGENCY_WEIGHTS,
    detect_complexity,
    detect_specialty,
    detect_urgency,
)
from nelson.store.audit import write_audit
from nelson.store.base import RecordStore


logger = logging.getLogger(__name__)


COMPLEX_WORKFLOW_THRESHOLD = 4


def select_workflow_type(
    urgency: UrgencyLevel,
    specialty: MedicalSpecialty,
    complexity: int,
) -> WorkflowType:
    if urgency == UrgencyLevel.EMERGENCY:
        return WorkflowType.EMERGENCY
    if complexity >= COMPLEX_WORKFLOW_THRESHOLD:
        return WorkflowType.COMPLEX
    if specialty != MedicalSpecialty.GENERAL_PEDIATRICS:
        return WorkflowType.SPECIALTY
    return WorkflowType.STANDARD


def emergency_alert(keyword: str) -> ClassifierAlert:
    return ClassifierAlert(
        type="emergency",
        message=(
            f'Emergency keyword detected: "{keyword}". '
            "This may require immediate medical attention."
        ),
        keywords=[keyword],
        severity=10,
    )


class QueryClassifier:
    """
    Deterministic query classifier.

    Urgency comes from the emergency and urgent keyword lists, specialty from
    per-specialty keyword coverage, and complexity from message length,
    history and multi-symptom phrasing, urgency, and prior context.
    """

    def __init__(self, store: Optional[RecordStore] = None):
        """
        Initialize the classifier.

        Args:
            store: Record store for the routing audit trail (optional)
        """
        self.store = store

    async def classify(
        self,
        message: Optional[str],
        session_id: Optional[str] = None,
        query_id: Optional[str] = None,
        medical_context: Optional[dict[str, Any]] = None,
    ) -> Classification:
        """
        Classify a message and record the routing decision.

        Args:
            message: Raw user message; None is treated as empty
            session_id: Session the query belongs to
            query_id: Query being classified
            medical_context: Prior medical context of the session

        Returns:
            Classification
        """
        message = message or ""
        text_lower = message.lower()

        urgency, emergency_keyword = detect_urgency(text_lower)
        alerts = [emergency_alert(emergency_keyword)] if emergency_keyword else []

        specialty, specialty_confidence = detect_specialty(text_lower)
        complexity = detect_complexity(text_lower, urgency, medical_context)

        confidence = min(
            (specialty_confidence + URGENCY_WEIGHTS[urgency] + complexity / 5) / 3,
            1.0,
        )
        workflow_type = select_workflow_type(urgency, specialty, complexity)

        classification = Classification(
            urgency_level=urgency,
            medical_specialty=specialty,
            specialty_confidence=specialty_confidence,
            complexity_score=complexity,
            confidence=confidence,
            workflow_type=workflow_type,
            safety_alerts=alerts,
        )

        logger.info(
            f"Routed query {query_id}: urgency={classification.urgency_level}, "
            f"specialty={classification.medical_specialty}, complexity={complexity}, "
            f"workflow={classification.workflow_type}, alerts={len(alerts)}"
        )

        if self.store is not None:
            await write_audit(self.store, "medical_query_routed", session_id, {
                "query_id": query_id,
                "message_length": len(message),
                "urgency_level": classification.urgency_level,
                "medical_specialty": classification.medical_specialty,
                "complexity_score": complexity,
                "confidence": confidence,
                "workflow_type": classification.workflow_type,
                "safety_alerts_count": len(alerts),
            })

        return classification
