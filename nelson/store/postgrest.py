"""
PostgREST record store.

Talks to a Supabase/PostgREST endpoint over HTTP. Transport errors are
retried a bounded number of times; HTTP error statuses are not.
API documentation: https://postgrest.org/en/stable/references/api.html
"""

import logging
from typing import Any, Optional

import httpx
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from nelson.store.base import StoreError


logger = logging.getLogger(__name__)


_transport_retry = retry(
    retry=retry_if_exception_type(httpx.TransportError),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
    reraise=True,
)


class PostgrestRecordStore:
    """
    Record store backed by PostgREST.

    Owns a single ``httpx.AsyncClient``; call ``close()`` on shutdown.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout: float = 15.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize the store.

        Args:
            base_url: Project URL (``/rest/v1`` is appended)
            api_key: Service role key, sent as apikey and bearer token
            timeout: HTTP request timeout in seconds
            client: Optional preconfigured client (for testing)
        """
        self.base_url = base_url.rstrip("/") + "/rest/v1"
        self.timeout = timeout
        self.client = client or httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            headers={
                "apikey": api_key,
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
                "Prefer": "return=representation",
            },
        )

    @_transport_retry
    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[dict[str, Any]] = None,
        json: Any = None,
    ) -> Any:
        response = await self.client.request(method, path, params=params, json=json)
        if response.is_error:
            raise StoreError(
                f"{method} {path} failed with {response.status_code}: {response.text[:200]}"
            )
        if not response.content:
            return []
        return response.json()

    async def _call(self, method: str, path: str, **kwargs) -> Any:
        try:
            return await self._request(method, path, **kwargs)
        except httpx.HTTPError as e:
            raise StoreError(f"{method} {path} failed: {e}") from e
        except ValueError as e:
            # 2xx body that is not JSON, e.g. a proxy maintenance page
            raise StoreError(f"{method} {path} returned a non-JSON body: {e}") from e

    async def get(self, table: str, record_id: str) -> Optional[dict[str, Any]]:
        rows = await self._call("GET", f"/{table}", params={"id": f"eq.{record_id}", "limit": 1})
        return rows[0] if rows else None

    async def insert(self, table: str, record: dict[str, Any]) -> dict[str, Any]:
        rows = await self._call("POST", f"/{table}", json=record)
        if not rows:
            raise StoreError(f"Insert into {table} returned no row")
        return rows[0]

    async def update(
        self,
        table: str,
        record_id: str,
        changes: dict[str, Any],
    ) -> Optional[dict[str, Any]]:
        rows = await self._call("PATCH", f"/{table}", params={"id": f"eq.{record_id}"}, json=changes)
        return rows[0] if rows else None

    async def select(
        self,
        table: str,
        filters: Optional[dict[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> list[dict[str, Any]]:
        params: dict[str, Any] = {
            column: f"eq.{value}" for column, value in (filters or {}).items()
        }
        if order_by:
            params["order"] = f"{order_by}.{'desc' if descending else 'asc'}"
        if limit is not None:
            params["limit"] = limit
        return await self._call("GET", f"/{table}", params=params)

    async def rpc(self, name: str, params: dict[str, Any]) -> list[dict[str, Any]]:
        return await self._call("POST", f"/rpc/{name}", json=params)

    async def close(self) -> None:
        await self.client.aclose()
