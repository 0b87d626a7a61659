"""
Data models for pipeline outputs.

These are the in-memory results passed between components and returned
to the API layer. Field names match the JSON contract the chat client
already consumes.
"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from nelson.models.enums import (
    MedicalSpecialty,
    RiskAssessment,
    RiskLevel,
    UrgencyLevel,
    WorkflowType,
)
from nelson.models.records import Citation, ContextSummary, ReasoningStep, utc_now


# =============================================================================
# CLASSIFICATION
# =============================================================================


class ClassifierAlert(BaseModel):
    """Alert raised by the classifier when an emergency keyword matches."""

    type: str = Field(default="emergency")
    message: str
    keywords: list[str] = Field(default_factory=list)
    severity: int = Field(default=10, ge=1, le=10)


class Classification(BaseModel):
    """Urgency, specialty, and complexity assigned to a query."""

    model_config = ConfigDict(use_enum_values=True)

    urgency_level: UrgencyLevel = UrgencyLevel.ROUTINE
    medical_specialty: MedicalSpecialty = MedicalSpecialty.GENERAL_PEDIATRICS
    specialty_confidence: float = Field(default=0.5, ge=0.0, le=1.0)
    complexity_score: int = Field(default=1, ge=1, le=5)
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    workflow_type: WorkflowType = WorkflowType.STANDARD
    safety_alerts: list[ClassifierAlert] = Field(default_factory=list)
    routing_timestamp: datetime = Field(default_factory=utc_now)


# =============================================================================
# SAFETY SCREENING
# =============================================================================


class ScreenedAlert(BaseModel):
    """One category triggered by the safety screener."""

    category: str
    severity: int = Field(..., ge=1, le=10)
    message: str
    triggered_keyword: str
    requires_immediate_action: bool = False


class SafetyScreenResult(BaseModel):
    """Output of the safety screener."""

    model_config = ConfigDict(use_enum_values=True)

    answer: str
    confidence: float = Field(..., ge=0.0, le=1.0)
    safety_alerts: list[ScreenedAlert] = Field(default_factory=list)
    safety_flags: list[str] = Field(default_factory=list)
    risk_assessment: RiskAssessment = RiskAssessment.LOW
    immediate_action_required: bool = False
    reasoning_steps: list[ReasoningStep] = Field(default_factory=list)
    citations: list[Citation] = Field(default_factory=list)


# =============================================================================
# RETRIEVAL
# =============================================================================


class RetrievedPassage(BaseModel):
    """A textbook passage returned by similarity search."""

    id: Optional[str] = None
    book_title: Optional[str] = None
    chapter_title: Optional[str] = None
    section_title: Optional[str] = None
    page_number: Optional[int] = None
    source_url: Optional[str] = None
    chunk_text: str = ""
    similarity: float = 0.0

    def to_citation(self) -> Citation:
        return Citation(
            source=self.book_title,
            chapter=self.chapter_title,
            page=self.page_number,
            relevance=self.similarity,
        )


# =============================================================================
# DIAGNOSTIC WORKFLOW
# =============================================================================


class WorkflowResult(BaseModel):
    """Output of a completed diagnostic workflow."""

    model_config = ConfigDict(use_enum_values=True)

    answer: str
    confidence: float = Field(..., ge=0.0, le=1.0)
    citations: list[Citation] = Field(default_factory=list)
    reasoning_steps: list[ReasoningStep] = Field(default_factory=list)
    safety_flags: list[str] = Field(default_factory=list)
    updated_context: dict[str, Any] = Field(default_factory=dict)
    risk_level: RiskLevel = RiskLevel.ROUTINE
    workflow_id: str


# =============================================================================
# SESSION CONTEXT
# =============================================================================


class ContextUpdate(BaseModel):
    """Partial context to merge onto a session."""

    model_config = ConfigDict(use_enum_values=True)

    medical_context: dict[str, Any] = Field(default_factory=dict)
    patient_context: dict[str, Any] = Field(default_factory=dict)
    risk_level: Optional[RiskLevel] = None
    specialty_focus: Optional[str] = None


class SessionContext(BaseModel):
    """Merged view of a session's context returned by ``get``."""

    model_config = ConfigDict(use_enum_values=True)

    medical_context: dict[str, Any] = Field(default_factory=dict)
    patient_context: dict[str, Any] = Field(default_factory=dict)
    risk_level: RiskLevel = RiskLevel.ROUTINE
    specialty_focus: Optional[str] = None
    recent_queries: list[dict[str, Any]] = Field(default_factory=list)
    summaries: list[ContextSummary] = Field(default_factory=list)
    context_age: str = "unknown"


# =============================================================================
# TOP-LEVEL RESPONSE
# =============================================================================


class QueryResponse(BaseModel):
    """Response for one submitted query."""

    model_config = ConfigDict(use_enum_values=True)

    success: bool = True
    answer: str
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    citations: list[Citation] = Field(default_factory=list)
    sessionId: Optional[str] = None
    queryId: Optional[str] = None
    urgency_level: Optional[UrgencyLevel] = None
    medical_specialty: Optional[MedicalSpecialty] = None
    safety_alerts: list[ClassifierAlert] = Field(default_factory=list)
    reasoning_steps: list[ReasoningStep] = Field(default_factory=list)
    error: Optional[str] = None
