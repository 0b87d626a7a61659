"""API schema modules."""

from api.schemas.context import CONTEXT_OPERATIONS, ContextRequest
from api.schemas.query import AcknowledgeAlertRequest, KnowledgeSearchRequest, QueryRequest

__all__ = [
    "CONTEXT_OPERATIONS",
    "AcknowledgeAlertRequest",
    "ContextRequest",
    "KnowledgeSearchRequest",
    "QueryRequest",
]
