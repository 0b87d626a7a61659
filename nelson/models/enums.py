"""
Nelson Medical Assistant - Enumerations

Centralized enum definitions shared by the classifier, the workflow engine,
and the persisted records.
"""

from enum import Enum


class UrgencyLevel(str, Enum):
    """Urgency assigned to a query by the classifier."""

    ROUTINE = "routine"
    URGENT = "urgent"
    EMERGENCY = "emergency"


class RiskLevel(str, Enum):
    """Risk level carried on a session."""

    ROUTINE = "routine"
    URGENT = "urgent"
    EMERGENCY = "emergency"


class MedicalSpecialty(str, Enum):
    """Specialties recognized by the classifier (enumeration order matters for ties)."""

    CARDIOLOGY = "cardiology"
    NEUROLOGY = "neurology"
    RESPIRATORY = "respiratory"
    GASTROENTEROLOGY = "gastroenterology"
    DERMATOLOGY = "dermatology"
    ORTHOPEDICS = "orthopedics"
    ENDOCRINOLOGY = "endocrinology"
    INFECTIOUS_DISEASE = "infectious_disease"
    GENERAL_PEDIATRICS = "general_pediatrics"  # Default when nothing matches


class WorkflowType(str, Enum):
    """Kind of workflow chosen for a classified query."""

    STANDARD = "standard"
    EMERGENCY = "emergency"
    COMPLEX = "complex"
    SPECIALTY = "specialty"


class DiagnosticStage(str, Enum):
    """Lifecycle stage of a query record."""

    INITIAL = "initial"
    COMPLETED = "completed"
    ERROR = "error"


class DiagnosticStep(str, Enum):
    """The six diagnostic steps, in canonical order."""

    SYMPTOM_ANALYSIS = "symptom_analysis"
    INITIAL_ASSESSMENT = "initial_assessment"
    DIFFERENTIAL_DIAGNOSIS = "differential_diagnosis"
    EVIDENCE_EVALUATION = "evidence_evaluation"
    TREATMENT_RECOMMENDATIONS = "treatment_recommendations"
    FOLLOW_UP_GUIDANCE = "follow_up_guidance"


DIAGNOSTIC_STEPS: list[DiagnosticStep] = list(DiagnosticStep)


class AlertType(str, Enum):
    """Type of a persisted safety alert."""

    EMERGENCY = "emergency"  # severity >= 9
    HIGH_RISK = "high_risk"


class RiskAssessment(str, Enum):
    """Aggregate risk computed by the safety screener."""

    LOW = "low"
    HIGH = "high"
    CRITICAL = "critical"
