"""
Service configuration.

Settings are read from environment variables (populated from a ``.env``
file by the API entry point via python-dotenv).
"""

import os
from typing import Optional

from pydantic import BaseModel, Field


def _float_env(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return float(value)


class Settings(BaseModel):
    """Runtime configuration for gateways, store, and logging."""

    # Completion backends, tried in this order
    mistral_api_key: Optional[str] = None
    mistral_base_url: str = "https://api.mistral.ai/v1"
    mistral_model: str = "mistral-large-latest"
    openai_api_key: Optional[str] = None
    openai_base_url: str = "https://api.openai.com/v1"
    openai_model: str = "gpt-4o-mini"

    # Embeddings
    embedding_model: str = "mistral-embed"

    # Bounded time for every outbound call
    llm_timeout_seconds: float = Field(default=30.0, gt=0)
    store_timeout_seconds: float = Field(default=15.0, gt=0)

    # Record store: PostgREST when a URL is configured, in-memory otherwise
    supabase_url: Optional[str] = None
    supabase_service_role_key: Optional[str] = None
    memory_store_path: Optional[str] = None

    log_level: str = "INFO"
    log_file: Optional[str] = None

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from the current environment."""
        defaults = cls()
        return cls(
            mistral_api_key=os.getenv("MISTRAL_API_KEY") or None,
            mistral_base_url=os.getenv("MISTRAL_BASE_URL", defaults.mistral_base_url),
            mistral_model=os.getenv("MISTRAL_MODEL", defaults.mistral_model),
            openai_api_key=os.getenv("OPENAI_API_KEY") or None,
            openai_base_url=os.getenv("OPENAI_BASE_URL", defaults.openai_base_url),
            openai_model=os.getenv("OPENAI_MODEL", defaults.openai_model),
            embedding_model=os.getenv("EMBEDDING_MODEL", defaults.embedding_model),
            llm_timeout_seconds=_float_env("LLM_TIMEOUT_SECONDS", defaults.llm_timeout_seconds),
            store_timeout_seconds=_float_env("STORE_TIMEOUT_SECONDS", defaults.store_timeout_seconds),
            supabase_url=os.getenv("SUPABASE_URL") or None,
            supabase_service_role_key=os.getenv("SUPABASE_SERVICE_ROLE_KEY") or None,
            memory_store_path=os.getenv("MEMORY_STORE_PATH") or None,
            log_level=os.getenv("LOG_LEVEL", defaults.log_level),
            log_file=os.getenv("LOG_FILE") or None,
        )

    @property
    def uses_remote_store(self) -> bool:
        return bool(self.supabase_url and self.supabase_service_role_key)
