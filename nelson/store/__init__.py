"""Record store backends and shared store helpers."""

from pathlib import Path

from nelson.config import Settings
from nelson.store.base import (
    AlertNotFoundError,
    RecordNotFoundError,
    RecordStore,
    SessionNotFoundError,
    StoreError,
    WorkflowNotFoundError,
    best_effort,
)
from nelson.store.memory import InMemoryRecordStore
from nelson.store.postgrest import PostgrestRecordStore


def create_store(settings: Settings) -> RecordStore:
    """Pick the PostgREST store when configured, the in-memory store otherwise."""
    if settings.uses_remote_store:
        return PostgrestRecordStore(
            settings.supabase_url,
            settings.supabase_service_role_key,
            timeout=settings.store_timeout_seconds,
        )
    storage_path = Path(settings.memory_store_path) if settings.memory_store_path else None
    return InMemoryRecordStore(storage_path=storage_path)


__all__ = [
    "AlertNotFoundError",
    "InMemoryRecordStore",
    "PostgrestRecordStore",
    "RecordNotFoundError",
    "RecordStore",
    "SessionNotFoundError",
    "StoreError",
    "WorkflowNotFoundError",
    "best_effort",
    "create_store",
]
