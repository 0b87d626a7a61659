"""Query API schemas."""

from typing import Optional

from pydantic import BaseModel, Field


class QueryRequest(BaseModel):
    """A user message to answer."""
    message: Optional[str] = Field(default="", description="User message; empty is accepted")
    sessionId: Optional[str] = Field(default=None, description="Session to continue")
    userId: Optional[str] = Field(default=None, description="Owner for a new session")


class KnowledgeSearchRequest(BaseModel):
    """Free-text search over the textbook corpus."""
    text: str = Field(..., description="Text to embed and search with")
    keywords: Optional[str] = Field(default=None, description="Keyword filter")
    top_k: int = Field(default=5, ge=1, le=50)


class AcknowledgeAlertRequest(BaseModel):
    """Acknowledgement of a safety alert."""
    acknowledgedBy: Optional[str] = None
