"""Completion and embedding gateways."""

from nelson.llm.embeddings import EmbeddingGateway
from nelson.llm.gateway import (
    FALLBACK_RESPONSE,
    CompletionBackend,
    CompletionGateway,
    MockCompletionGateway,
    is_fallback,
)

__all__ = [
    "FALLBACK_RESPONSE",
    "CompletionBackend",
    "CompletionGateway",
    "EmbeddingGateway",
    "MockCompletionGateway",
    "is_fallback",
]
