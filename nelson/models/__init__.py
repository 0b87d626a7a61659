"""Data models for the medical assistant."""

from nelson.models.enums import (
    DIAGNOSTIC_STEPS,
    AlertType,
    DiagnosticStage,
    DiagnosticStep,
    MedicalSpecialty,
    RiskAssessment,
    RiskLevel,
    UrgencyLevel,
    WorkflowType,
)
from nelson.models.records import (
    AuditLog,
    Citation,
    ContextSummary,
    DiagnosticWorkflow,
    MedicalChunk,
    MedicalClassification,
    Query,
    ReasoningStep,
    SafetyAlert,
    Session,
)
from nelson.models.results import (
    Classification,
    ClassifierAlert,
    ContextUpdate,
    QueryResponse,
    RetrievedPassage,
    SafetyScreenResult,
    ScreenedAlert,
    SessionContext,
    WorkflowResult,
)

__all__ = [
    "DIAGNOSTIC_STEPS",
    "AlertType",
    "DiagnosticStage",
    "DiagnosticStep",
    "MedicalSpecialty",
    "RiskAssessment",
    "RiskLevel",
    "UrgencyLevel",
    "WorkflowType",
    "AuditLog",
    "Citation",
    "ContextSummary",
    "DiagnosticWorkflow",
    "MedicalChunk",
    "MedicalClassification",
    "Query",
    "ReasoningStep",
    "SafetyAlert",
    "Session",
    "Classification",
    "ClassifierAlert",
    "ContextUpdate",
    "QueryResponse",
    "RetrievedPassage",
    "SafetyScreenResult",
    "ScreenedAlert",
    "SessionContext",
    "WorkflowResult",
]
