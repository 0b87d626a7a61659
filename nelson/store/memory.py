"""
In-memory record store with optional JSON file persistence.

Used for local runs and tests. Implements the ``match_medical_chunks``
similarity RPC with cosine similarity over stored chunk embeddings.
"""

import copy
import json
import logging
import math
from pathlib import Path
from typing import Any, Optional

from nelson.models.records import new_id, utc_now
from nelson.store.base import ALL_TABLES, MATCH_MEDICAL_CHUNKS, MEDICAL_CHUNKS, StoreError


logger = logging.getLogger(__name__)


def cosine_similarity(a: list[float], b: list[float]) -> float:
    """Cosine similarity of two equal-length vectors (0.0 for zero vectors)."""
    dot = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(y * y for y in b))
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return dot / (norm_a * norm_b)


def _matches_keywords(row: dict[str, Any], keywords: Optional[str]) -> bool:
    if not keywords:
        return True
    needle = keywords.replace("_", " ").lower()
    haystack = " ".join(
        str(row.get(field) or "")
        for field in ("chunk_text", "chapter_title", "section_title")
    ).lower()
    return needle in haystack


class InMemoryRecordStore:
    """
    Dict-backed record store.

    Rows are deep-copied on the way in and out so callers never share
    mutable state with the store.
    """

    def __init__(self, storage_path: Optional[Path] = None):
        """
        Initialize the store.

        Args:
            storage_path: Path to a JSON file for persistence (optional)
        """
        self.storage_path = storage_path
        self._tables: dict[str, dict[str, dict[str, Any]]] = {name: {} for name in ALL_TABLES}

        if storage_path and storage_path.exists():
            self._load_from_storage()

    def _table(self, table: str) -> dict[str, dict[str, Any]]:
        if table not in self._tables:
            raise StoreError(f"Unknown table: {table}")
        return self._tables[table]

    async def get(self, table: str, record_id: str) -> Optional[dict[str, Any]]:
        row = self._table(table).get(record_id)
        return copy.deepcopy(row) if row is not None else None

    async def insert(self, table: str, record: dict[str, Any]) -> dict[str, Any]:
        row = copy.deepcopy(record)
        row.setdefault("id", new_id())
        row.setdefault("created_at", utc_now().isoformat())
        self._table(table)[row["id"]] = row
        self._save_to_storage()
        return copy.deepcopy(row)

    async def update(
        self,
        table: str,
        record_id: str,
        changes: dict[str, Any],
    ) -> Optional[dict[str, Any]]:
        rows = self._table(table)
        if record_id not in rows:
            return None
        rows[record_id].update(copy.deepcopy(changes))
        self._save_to_storage()
        return copy.deepcopy(rows[record_id])

    async def select(
        self,
        table: str,
        filters: Optional[dict[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> list[dict[str, Any]]:
        indexed = [
            (position, row) for position, row in enumerate(self._table(table).values())
            if all(row.get(column) == value for column, value in (filters or {}).items())
        ]
        if order_by:
            # Insertion position breaks ties between equal keys
            indexed.sort(
                key=lambda item: (str(item[1].get(order_by) or ""), item[0]),
                reverse=descending,
            )
        rows = [row for _, row in indexed]
        if limit is not None:
            rows = rows[:limit]
        return copy.deepcopy(rows)

    async def rpc(self, name: str, params: dict[str, Any]) -> list[dict[str, Any]]:
        if name != MATCH_MEDICAL_CHUNKS:
            raise StoreError(f"Unknown function: {name}")

        query_embedding = params.get("query_embedding") or []
        match_count = params.get("match_count", 5)
        keywords = params.get("keywords")

        matches = []
        for row in self._table(MEDICAL_CHUNKS).values():
            embedding = row.get("embedding") or []
            if len(embedding) != len(query_embedding):
                continue
            if not _matches_keywords(row, keywords):
                continue
            matches.append({
                "id": row.get("id"),
                "book_title": row.get("book_title"),
                "chapter_title": row.get("chapter_title"),
                "section_title": row.get("section_title"),
                "page_number": row.get("page_number"),
                "source_url": row.get("source_url"),
                "chunk_text": row.get("chunk_text", ""),
                "similarity": cosine_similarity(query_embedding, embedding),
            })

        matches.sort(key=lambda match: match["similarity"], reverse=True)
        return matches[:match_count]

    async def close(self) -> None:
        self._save_to_storage()

    def _load_from_storage(self) -> None:
        """Load tables from the JSON file."""
        try:
            with open(self.storage_path) as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Failed to load record store from {self.storage_path}: {e}")
            return

        for name, rows in data.get("tables", {}).items():
            if name in self._tables:
                self._tables[name] = {row["id"]: row for row in rows}

        logger.info(f"Loaded record store from {self.storage_path}")

    def _save_to_storage(self) -> None:
        """Save tables to the JSON file."""
        if not self.storage_path:
            return

        self.storage_path.parent.mkdir(parents=True, exist_ok=True)
        data = {"tables": {name: list(rows.values()) for name, rows in self._tables.items()}}
        with open(self.storage_path, "w") as f:
            json.dump(data, f, indent=2, default=str)
