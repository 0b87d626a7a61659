"""Knowledge retrieval over the textbook corpus."""

from nelson.retrieval.retriever import (
    DEFAULT_TOP_K,
    EVIDENCE_TOP_K,
    KnowledgeRetriever,
    to_citations,
)

__all__ = ["DEFAULT_TOP_K", "EVIDENCE_TOP_K", "KnowledgeRetriever", "to_citations"]
