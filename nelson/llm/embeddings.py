"""
Embedding Gateway.

Turns text into a fixed-length vector through an OpenAI-compatible
embeddings endpoint. Failures never raise: an empty list means the
embedding is unavailable and retrieval should be skipped.
"""

import logging
from typing import Optional

import httpx
import openai
from openai import AsyncOpenAI

from nelson.config import Settings


logger = logging.getLogger(__name__)


class EmbeddingGateway:
    """Async client for the embedding backend."""

    def __init__(self, client: Optional[AsyncOpenAI], model: str = "mistral-embed"):
        """
        Initialize the embedding gateway.

        Args:
            client: OpenAI-compatible client, or None when no backend is configured
            model: Embedding model identifier
        """
        self.client = client
        self.model = model

    @classmethod
    def from_settings(cls, settings: Settings) -> "EmbeddingGateway":
        """Build the gateway against the Mistral embeddings endpoint."""
        if not settings.mistral_api_key:
            logger.warning("MISTRAL_API_KEY not set; embeddings unavailable")
            return cls(client=None, model=settings.embedding_model)

        client = AsyncOpenAI(
            api_key=settings.mistral_api_key,
            base_url=settings.mistral_base_url,
            timeout=settings.llm_timeout_seconds,
            max_retries=0,
        )
        return cls(client=client, model=settings.embedding_model)

    async def embed(self, text: str) -> list[float]:
        """
        Embed a single text.

        Args:
            text: Text to embed

        Returns:
            The embedding vector, or [] if unavailable
        """
        if self.client is None or not text or not text.strip():
            return []

        try:
            response = await self.client.embeddings.create(model=self.model, input=[text])
        except (openai.APIError, httpx.HTTPError) as e:
            logger.error(f"Embedding request failed: {e}")
            return []

        if not response.data:
            logger.error("Embedding response contained no vectors")
            return []

        return list(response.data[0].embedding)
