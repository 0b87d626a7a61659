"""Tests for knowledge retrieval."""

import httpx
import pytest
from unittest.mock import AsyncMock, MagicMock

from nelson.models.results import RetrievedPassage
from nelson.retrieval.retriever import KnowledgeRetriever, to_citations
from nelson.store.base import MATCH_MEDICAL_CHUNKS, StoreError
from nelson.store.postgrest import PostgrestRecordStore


class TestKnowledgeRetriever:
    """Tests for KnowledgeRetriever."""

    @pytest.mark.asyncio
    async def test_search_orders_by_similarity(self, seeded_store):
        """Test that passages come back most similar first."""
        retriever = KnowledgeRetriever(seeded_store)

        passages = await retriever.search([1.0, 0.0, 0.0], top_k=3)

        assert [p.id for p in passages] == ["chunk-cough", "chunk-asthma", "chunk-rash"]
        similarities = [p.similarity for p in passages]
        assert similarities == sorted(similarities, reverse=True)

    @pytest.mark.asyncio
    async def test_search_respects_top_k(self, seeded_store):
        """Test that at most top_k passages are returned."""
        passages = await KnowledgeRetriever(seeded_store).search([1.0, 0.0, 0.0], top_k=1)
        assert [p.id for p in passages] == ["chunk-cough"]

    @pytest.mark.asyncio
    async def test_keyword_filter(self, seeded_store):
        """Test that the filter narrows results."""
        passages = await KnowledgeRetriever(seeded_store).search([0.0, 0.0, 1.0], keyword_filter="respiratory")
        assert {p.id for p in passages} == {"chunk-cough", "chunk-asthma"}

    @pytest.mark.asyncio
    async def test_empty_embedding_skips_store(self):
        """Test that an unavailable embedding means no context."""
        store = MagicMock()
        store.rpc = AsyncMock()

        assert await KnowledgeRetriever(store).search([]) == []
        store.rpc.assert_not_called()

    @pytest.mark.asyncio
    async def test_store_failure_returns_empty(self):
        """Test that a search failure is indistinguishable from no matches."""
        store = MagicMock()
        store.rpc = AsyncMock(side_effect=StoreError("down"))

        assert await KnowledgeRetriever(store).search([0.1, 0.2]) == []

    @pytest.mark.asyncio
    async def test_non_json_store_reply_returns_empty(self):
        """Test that a maintenance page from the store yields no passages."""
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="<html>gateway maintenance</html>")

        client = httpx.AsyncClient(
            base_url="https://project.supabase.co/rest/v1",
            transport=httpx.MockTransport(handler),
        )
        store = PostgrestRecordStore("https://project.supabase.co", "service-key", client=client)

        assert await KnowledgeRetriever(store).search([0.1, 0.2], "respiratory", 10) == []

    @pytest.mark.asyncio
    async def test_rpc_parameters(self):
        """Test the similarity RPC call shape."""
        store = MagicMock()
        store.rpc = AsyncMock(return_value=[])

        await KnowledgeRetriever(store).search([0.1], keyword_filter="cardiology", top_k=10)

        store.rpc.assert_awaited_once_with(MATCH_MEDICAL_CHUNKS, {
            "query_embedding": [0.1],
            "keywords": "cardiology",
            "match_count": 10,
        })

    @pytest.mark.asyncio
    async def test_malformed_rows_discarded(self):
        """Test that rows that fail validation are dropped."""
        store = MagicMock()
        store.rpc = AsyncMock(return_value=[
            {"id": "bad", "similarity": "very"},
            {"id": "good", "chunk_text": "text", "similarity": 0.4},
        ])

        passages = await KnowledgeRetriever(store).search([0.1])
        assert [p.id for p in passages] == ["good"]

    @pytest.mark.asyncio
    async def test_retrieve_embeds_text(self, seeded_store, mock_embedder):
        """Test that retrieve embeds then searches."""
        passages = await KnowledgeRetriever(seeded_store, mock_embedder).retrieve("cough", top_k=1)

        mock_embedder.embed.assert_awaited_once_with("cough")
        assert passages[0].id == "chunk-cough"

    @pytest.mark.asyncio
    async def test_retrieve_without_embedder(self, seeded_store):
        """Test that no embedder means no context."""
        assert await KnowledgeRetriever(seeded_store).retrieve("cough") == []

    @pytest.mark.asyncio
    async def test_retrieve_with_failing_embedder(self, seeded_store, failing_embedder):
        """Test that an embedding failure means no context."""
        assert await KnowledgeRetriever(seeded_store, failing_embedder).retrieve("cough") == []


class TestCitations:
    """Tests for citation mapping."""

    def test_one_citation_per_passage_in_order(self):
        """Test that citations mirror passages."""
        passages = [
            RetrievedPassage(book_title="Nelson", chapter_title="Asthma", page_number=10, similarity=0.9),
            RetrievedPassage(book_title="Nelson", chapter_title="Cough", similarity=0.5),
        ]

        citations = to_citations(passages)

        assert [c.chapter for c in citations] == ["Asthma", "Cough"]
        assert citations[0].page == 10
        assert citations[0].relevance == 0.9
        assert citations[1].page is None
