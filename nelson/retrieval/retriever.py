"""
Knowledge Retriever.

Finds the textbook passages most similar to a query embedding through the
record store's similarity search. An empty result always means "no context
found", whether nothing matched or the store could not be reached.
"""

import logging
from typing import Optional

from pydantic import ValidationError

from nelson.models.records import Citation
from nelson.models.results import RetrievedPassage
from nelson.store.base import MATCH_MEDICAL_CHUNKS, RecordStore, StoreError
from nelson.utils.protocols import EmbeddingGatewayProtocol


logger = logging.getLogger(__name__)


DEFAULT_TOP_K = 5
EVIDENCE_TOP_K = 10


def to_citations(passages: list[RetrievedPassage]) -> list[Citation]:
    """Map passages 1:1 to citations, preserving order."""
    return [passage.to_citation() for passage in passages]


class KnowledgeRetriever:
    """Similarity search over the medical chunk corpus."""

    def __init__(
        self,
        store: RecordStore,
        embedder: Optional[EmbeddingGatewayProtocol] = None,
    ):
        """
        Initialize the retriever.

        Args:
            store: Record store exposing the similarity RPC
            embedder: Embedding gateway, needed only for ``retrieve``
        """
        self.store = store
        self.embedder = embedder

    async def search(
        self,
        embedding: list[float],
        keyword_filter: Optional[str] = None,
        top_k: int = DEFAULT_TOP_K,
    ) -> list[RetrievedPassage]:
        """
        Return the top-K passages for an embedding.

        Args:
            embedding: Query vector; an empty vector yields no results
            keyword_filter: Optional keyword the passage must relate to
            top_k: Maximum number of passages

        Returns:
            Passages ordered by descending similarity
        """
        if not embedding:
            logger.info("Skipping retrieval: embedding unavailable")
            return []

        try:
            rows = await self.store.rpc(MATCH_MEDICAL_CHUNKS, {
                "query_embedding": embedding,
                "keywords": keyword_filter,
                "match_count": top_k,
            })
        except StoreError as e:
            logger.warning(f"Similarity search failed, continuing without context: {e}")
            return []

        passages = []
        for row in rows or []:
            try:
                passages.append(RetrievedPassage.model_validate(row))
            except ValidationError as e:
                logger.warning(f"Discarding malformed passage {row.get('id')}: {e}")

        passages.sort(key=lambda passage: passage.similarity, reverse=True)
        logger.debug(f"Retrieved {len(passages)} passages (filter={keyword_filter}, top_k={top_k})")
        return passages[:top_k]

    async def retrieve(
        self,
        text: str,
        keyword_filter: Optional[str] = None,
        top_k: int = DEFAULT_TOP_K,
    ) -> list[RetrievedPassage]:
        """
        Embed text and search with it.

        Args:
            text: Free text to look up
            keyword_filter: Optional keyword filter
            top_k: Maximum number of passages

        Returns:
            Passages, or [] when no embedder is configured or embedding fails
        """
        if self.embedder is None:
            return []
        embedding = await self.embedder.embed(text)
        return await self.search(embedding, keyword_filter, top_k)
