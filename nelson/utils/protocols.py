"""
Shared Protocol definitions for type hints across the codebase.

These protocols define the interfaces expected from external dependencies
like completion and embedding backends, allowing for dependency injection
and testing.
"""

from typing import Optional, Protocol


class CompletionGatewayProtocol(Protocol):
    """
    Protocol defining the interface for text completion.

    Implementations never raise on backend failure; they return the
    fallback sentinel instead (see ``nelson.llm.gateway.is_fallback``).
    """

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        max_tokens: Optional[int] = None,
    ) -> str:
        """
        Generate text for a system/user prompt pair.

        Args:
            system_prompt: System message
            user_prompt: User message
            max_tokens: Optional completion budget

        Returns:
            Generated text or the fallback sentinel
        """
        ...


class EmbeddingGatewayProtocol(Protocol):
    """Protocol for vector embedding. Returns [] when unavailable."""

    async def embed(self, text: str) -> list[float]:
        ...
