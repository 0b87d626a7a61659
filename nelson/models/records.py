"""
Persisted record models.

Each model maps to one logical table in the record store. Records are
written as JSON-compatible dicts (``model_dump(mode="json")``) and read
back with ``model_validate``.
"""

import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from nelson.models.enums import (
    AlertType,
    DiagnosticStage,
    MedicalSpecialty,
    RiskLevel,
    UrgencyLevel,
    WorkflowType,
)


def utc_now() -> datetime:
    """Timezone-aware current time."""
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


class Citation(BaseModel):
    """A reference to a retrieved textbook passage."""

    source: Optional[str] = Field(default=None, description="Book title")
    chapter: Optional[str] = Field(default=None, description="Chapter title")
    page: Optional[int] = Field(default=None, description="Page number")
    relevance: float = Field(default=0.0, description="Similarity score of the passage")


class ReasoningStep(BaseModel):
    """One entry of the reasoning trail returned to the client."""

    step: str = Field(..., description="Step name")
    result: Any = Field(default=None, description="Step output (text or structured data)")
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    timestamp: datetime = Field(default_factory=utc_now)


class Session(BaseModel):
    """A conversation between one user and the assistant."""

    model_config = ConfigDict(use_enum_values=True)

    id: str = Field(default_factory=new_id)
    user_id: Optional[str] = Field(default=None, description="Owner reference")
    medical_context: dict[str, Any] = Field(default_factory=dict)
    patient_context: dict[str, Any] = Field(default_factory=dict)
    risk_level: RiskLevel = Field(default=RiskLevel.ROUTINE)
    specialty_focus: Optional[str] = None
    started_at: datetime = Field(default_factory=utc_now)
    ended_at: Optional[datetime] = None


class Query(BaseModel):
    """One user message and its eventual answer."""

    model_config = ConfigDict(use_enum_values=True)

    id: str = Field(default_factory=new_id)
    session_id: Optional[str] = None
    user_question: str = ""
    answer: Optional[str] = None
    urgency_level: UrgencyLevel = Field(default=UrgencyLevel.ROUTINE)
    medical_specialty: Optional[MedicalSpecialty] = None
    complexity_score: Optional[int] = Field(default=None, ge=1, le=5)
    confidence: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    citations: list[Citation] = Field(default_factory=list)
    reasoning_steps: list[ReasoningStep] = Field(default_factory=list)
    safety_flags: list[str] = Field(default_factory=list)
    diagnostic_stage: DiagnosticStage = Field(default=DiagnosticStage.INITIAL)
    created_at: datetime = Field(default_factory=utc_now)


class DiagnosticWorkflow(BaseModel):
    """Persisted state of one run of the six-step diagnostic workflow."""

    model_config = ConfigDict(use_enum_values=True)

    id: str = Field(default_factory=new_id)
    session_id: Optional[str] = None
    query_id: Optional[str] = None
    workflow_type: WorkflowType = Field(default=WorkflowType.STANDARD)
    current_step: int = Field(default=1, ge=1, le=6)
    total_steps: int = Field(default=6)
    step_data: dict[str, Any] = Field(default_factory=dict)
    completed_steps: list[str] = Field(default_factory=list)
    confidence_scores: dict[str, float] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    completed_at: Optional[datetime] = None

    @property
    def is_complete(self) -> bool:
        return self.completed_at is not None


class SafetyAlert(BaseModel):
    """A flagged emergency or high-risk condition. Append-only."""

    model_config = ConfigDict(use_enum_values=True)

    id: str = Field(default_factory=new_id)
    session_id: Optional[str] = None
    query_id: Optional[str] = None
    alert_type: AlertType
    alert_message: str
    triggered_keywords: list[str] = Field(default_factory=list)
    severity_score: int = Field(..., ge=1, le=10)
    acknowledged: bool = False
    acknowledged_at: Optional[datetime] = None
    acknowledged_by: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now)


class MedicalClassification(BaseModel):
    """Classification assigned to a query before routing."""

    model_config = ConfigDict(use_enum_values=True)

    id: str = Field(default_factory=new_id)
    query_id: Optional[str] = None
    urgency_level: UrgencyLevel
    medical_specialty: MedicalSpecialty
    complexity_score: int = Field(..., ge=1, le=5)
    classification_confidence: float = Field(..., ge=0.0, le=1.0)
    workflow_type: WorkflowType
    created_at: datetime = Field(default_factory=utc_now)


class MedicalChunk(BaseModel):
    """One retrievable passage of reference text. Read-only to the core."""

    id: str = Field(default_factory=new_id)
    book_title: str = ""
    chapter_title: str = ""
    section_title: str = ""
    page_number: Optional[int] = None
    source_url: Optional[str] = None
    chunk_text: str = ""
    embedding: list[float] = Field(default_factory=list)
    confidence_score: Optional[float] = None


class ContextSummary(BaseModel):
    """A clinical summary of a session's conversation. Append-only."""

    id: str = Field(default_factory=new_id)
    session_id: str
    summary_text: str
    key_symptoms: list[str] = Field(default_factory=list)
    previous_diagnoses: list[str] = Field(default_factory=list)
    medications_mentioned: list[str] = Field(default_factory=list)
    allergies_mentioned: list[str] = Field(default_factory=list)
    summary_confidence: float = Field(default=0.8, ge=0.0, le=1.0)
    created_at: datetime = Field(default_factory=utc_now)


class AuditLog(BaseModel):
    """An append-only audit event."""

    id: str = Field(default_factory=new_id)
    event: str
    user_sub_hash: str = "anonymous"
    details: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utc_now)
