"""
Completion Gateway.

Provides a single ``complete(system_prompt, user_prompt)`` call over one or
more OpenAI-compatible chat backends (Mistral first, then OpenAI). Backends
are tried in a fixed order; a failing backend is logged and skipped, never
retried within the same call. When every backend fails the gateway returns
``FALLBACK_RESPONSE``, which callers must treat as a sentinel.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional, Union

import httpx
import openai
from openai import AsyncOpenAI

from nelson.config import Settings


logger = logging.getLogger(__name__)


FALLBACK_RESPONSE = (
    "I apologize, but I'm currently unable to process your request due to technical "
    "issues. Please consult with a healthcare professional for medical advice."
)

DEFAULT_SYSTEM_PROMPT = (
    "You are Nelson-GPT, a specialized pediatric medical AI assistant. Provide accurate, "
    "evidence-based medical guidance while always emphasizing the need for professional "
    "medical evaluation."
)

DEFAULT_TEMPERATURE = 0.1
DEFAULT_MAX_TOKENS = 2000


def is_fallback(text: Optional[str]) -> bool:
    """Whether a gateway result is the all-backends-failed sentinel."""
    return text == FALLBACK_RESPONSE


@dataclass
class CompletionBackend:
    """One OpenAI-compatible chat backend."""

    name: str
    model: str
    client: AsyncOpenAI


def build_backend(
    name: str,
    api_key: str,
    base_url: str,
    model: str,
    timeout: float,
) -> CompletionBackend:
    """
    Create a backend with SDK retries disabled and a bounded timeout.

    Args:
        name: Label used in logs
        api_key: Provider API key
        base_url: OpenAI-compatible API root
        model: Model identifier sent with every request
        timeout: Per-request timeout in seconds

    Returns:
        CompletionBackend
    """
    client = AsyncOpenAI(
        api_key=api_key,
        base_url=base_url,
        timeout=timeout,
        max_retries=0,
    )
    return CompletionBackend(name=name, model=model, client=client)


class CompletionGateway:
    """
    Ordered-fallback text completion over configured backends.
    """

    def __init__(
        self,
        backends: list[CompletionBackend],
        temperature: float = DEFAULT_TEMPERATURE,
        max_tokens: int = DEFAULT_MAX_TOKENS,
    ):
        """
        Initialize the gateway.

        Args:
            backends: Backends in preference order (primary first)
            temperature: Sampling temperature for every call
            max_tokens: Default completion budget
        """
        self.backends = backends
        self.temperature = temperature
        self.max_tokens = max_tokens

    @classmethod
    def from_settings(cls, settings: Settings) -> "CompletionGateway":
        """Build the gateway from settings, skipping providers without keys."""
        backends = []
        if settings.mistral_api_key:
            backends.append(build_backend(
                "mistral",
                settings.mistral_api_key,
                settings.mistral_base_url,
                settings.mistral_model,
                settings.llm_timeout_seconds,
            ))
        if settings.openai_api_key:
            backends.append(build_backend(
                "openai",
                settings.openai_api_key,
                settings.openai_base_url,
                settings.openai_model,
                settings.llm_timeout_seconds,
            ))
        if not backends:
            logger.warning("No completion backends configured; all completions will fall back")
        return cls(backends)

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        max_tokens: Optional[int] = None,
    ) -> str:
        """
        Generate a completion, trying each backend once in order.

        Args:
            system_prompt: System message
            user_prompt: User message
            max_tokens: Optional override of the default completion budget

        Returns:
            Generated text, or FALLBACK_RESPONSE if every backend failed
        """
        messages = [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt},
        ]

        for backend in self.backends:
            try:
                response = await backend.client.chat.completions.create(
                    model=backend.model,
                    messages=messages,
                    temperature=self.temperature,
                    max_tokens=max_tokens or self.max_tokens,
                )
            except openai.APIStatusError as e:
                logger.warning(f"Completion backend {backend.name} returned {e.status_code}, trying next")
                continue
            except (openai.APIError, httpx.HTTPError) as e:
                logger.warning(f"Completion backend {backend.name} failed: {e}, trying next")
                continue

            content = response.choices[0].message.content if response.choices else None
            if not content:
                logger.warning(f"Completion backend {backend.name} returned no content, trying next")
                continue

            return content

        logger.error("All completion backends failed, returning fallback response")
        return FALLBACK_RESPONSE


class MockCompletionGateway:
    """
    Mock gateway for testing.

    Returns scripted responses without making API calls. Responses are
    consumed in order; once exhausted the last one repeats. A callable
    receives (system_prompt, user_prompt) and returns the text.
    """

    def __init__(
        self,
        responses: Optional[Union[list[str], Callable[[str, str], str]]] = None,
    ):
        self.responses = responses if responses is not None else []
        self.calls: list[dict] = []

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        max_tokens: Optional[int] = None,
    ) -> str:
        """Return the next scripted response."""
        self.calls.append({
            "system_prompt": system_prompt,
            "user_prompt": user_prompt,
            "max_tokens": max_tokens,
        })

        if callable(self.responses):
            return self.responses(system_prompt, user_prompt)
        if not self.responses:
            return FALLBACK_RESPONSE

        index = min(len(self.calls) - 1, len(self.responses) - 1)
        return self.responses[index]
