"""Context API schemas."""

from typing import Any, Optional

from pydantic import BaseModel, Field


CONTEXT_OPERATIONS = ("get", "update", "summarize", "clear")


class ContextRequest(BaseModel):
    """One operation on a session's context."""
    operation: str = Field(..., description="get, update, summarize, or clear")
    sessionId: str = Field(..., description="Session to operate on")
    newContext: Optional[dict[str, Any]] = Field(default=None, description="Context to merge (update)")
    conversationData: Optional[dict[str, Any]] = Field(
        default=None,
        description="Additional context for the summary (summarize)",
    )
