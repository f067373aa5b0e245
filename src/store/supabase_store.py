"""
Supabase relational store.

Talks to the Supabase PostgREST endpoint directly over httpx:
- upsert: POST /rest/v1/{table}?on_conflict=a,b with
  ``Prefer: resolution=merge-duplicates``
- count:  HEAD /rest/v1/{table} with ``Prefer: count=exact``; the total is
  the part after "/" in the Content-Range header
- select_one: GET /rest/v1/{table}?col=eq.value&limit=1
"""

import logging
from typing import Optional, Sequence

import httpx

from .base import conflict_values
from .errors import StoreError


logger = logging.getLogger(__name__)


REQUEST_TIMEOUT_SECONDS = 30.0


def _eq_filters(filters: Optional[dict]) -> dict:
    params = {}
    for column, value in (filters or {}).items():
        if isinstance(value, bool):
            value = str(value).lower()
        params[column] = f"eq.{value}"
    return params


class SupabaseStore:
    """RelationalStore over the Supabase REST API."""

    def __init__(
        self,
        url: str,
        service_key: str,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = REQUEST_TIMEOUT_SECONDS,
    ):
        """
        Initialize SupabaseStore.

        Args:
            url: Project URL (https://<ref>.supabase.co)
            service_key: Service-role key (needs write access)
            http_client: Pre-built httpx client (tests inject MockTransport)
            timeout: Per-request timeout in seconds
        """
        if not url or not service_key:
            raise StoreError("Supabase URL and service key are required")

        self.rest_url = f"{url.rstrip('/')}/rest/v1"
        self._headers = {
            "apikey": service_key,
            "Authorization": f"Bearer {service_key}",
            "Content-Type": "application/json",
        }
        self._http = http_client or httpx.AsyncClient(timeout=timeout)
        self._owns_http = http_client is None

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    async def _send(self, method: str, table: str, **kwargs) -> httpx.Response:
        headers = {**self._headers, **kwargs.pop("headers", {})}
        try:
            response = await self._http.request(
                method, f"{self.rest_url}/{table}", headers=headers, **kwargs
            )
        except httpx.RequestError as e:
            raise StoreError(f"Supabase request to {table} failed: {e}", table=table) from e

        if not 200 <= response.status_code < 300:
            raise StoreError(
                f"Supabase {method} {table} failed: HTTP {response.status_code}: "
                f"{response.text[:200]}",
                table=table,
            )
        return response

    async def upsert(self, table: str, record: dict, conflict_keys: Sequence[str]) -> None:
        """
        Raises:
            StoreError: Missing conflict key or non-2xx response
        """
        try:
            conflict_values(table, record, conflict_keys)
        except ValueError as e:
            raise StoreError(str(e), table=table) from e

        await self._send(
            "POST",
            table,
            params={"on_conflict": ",".join(conflict_keys)},
            json=record,
            headers={"Prefer": "resolution=merge-duplicates,return=minimal"},
        )

    async def count(self, table: str, filters: Optional[dict] = None) -> int:
        response = await self._send(
            "HEAD",
            table,
            params={"select": "*", **_eq_filters(filters)},
            headers={"Prefer": "count=exact"},
        )
        content_range = response.headers.get("content-range", "")
        total = content_range.rpartition("/")[2]
        if not total.isdigit():
            raise StoreError(
                f"Supabase count for {table} returned no total (Content-Range: {content_range!r})",
                table=table,
            )
        return int(total)

    async def select_one(self, table: str, filters: dict) -> Optional[dict]:
        response = await self._send(
            "GET",
            table,
            params={"select": "*", "limit": 1, **_eq_filters(filters)},
        )
        rows = response.json()
        return rows[0] if rows else None
