"""
Supabase storage: uploads objects to Supabase Storage and keeps job records in
PostgREST tables.
"""
from __future__ import annotations

from urllib.parse import quote

import httpx

from sitebundle.config import settings
from sitebundle.errors import StorageError
from sitebundle.storage.base import ObjectStore


class SupabaseClient:
    """Minimal async Supabase client (Storage + PostgREST)."""

    def __init__(
        self,
        url: str | None = None,
        key: str | None = None,
        bucket: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base = (url or settings.supabase_url).rstrip("/")
        self.key = key or settings.supabase_key
        self.bucket = bucket or settings.supabase_bucket
        self._transport = transport
        self._headers = {
            "apikey": self.key,
            "Authorization": f"Bearer {self.key}",
        }

    def _client(self, timeout: float) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=timeout, transport=self._transport)

    def _storage_url(self, path: str) -> str:
        return f"{self.base}/storage/v1/object/{self.bucket}/{quote(path, safe='/')}"

    def public_url(self, path: str) -> str:
        return f"{self.base}/storage/v1/object/public/{self.bucket}/{quote(path, safe='/')}"

    def _rest_url(self, table: str) -> str:
        return f"{self.base}/rest/v1/{table}"

    async def upload(self, remote_path: str, data: bytes, content_type: str = "application/octet-stream") -> str:
        """Upload bytes, return public URL."""
        try:
            async with self._client(60) as client:
                headers = {**self._headers, "Content-Type": content_type}
                res = await client.post(self._storage_url(remote_path), headers=headers, content=data)
                if res.status_code not in (200, 201):
                    # Try upsert
                    res = await client.put(self._storage_url(remote_path), headers=headers, content=data)
                    res.raise_for_status()
        except httpx.HTTPError as exc:
            raise StorageError(f"Supabase upload failed for {remote_path}: {exc}") from exc
        return self.public_url(remote_path)

    async def insert(self, table: str, row: dict) -> dict:
        async with self._client(15) as client:
            headers = {
                **self._headers,
                "Content-Type": "application/json",
                "Prefer": "return=representation",
            }
            res = await client.post(self._rest_url(table), headers=headers, json=row)
            res.raise_for_status()
            return res.json()[0] if res.json() else {}

    async def update(self, table: str, filters: dict, values: dict) -> None:
        params = {k: f"eq.{v}" for k, v in filters.items()}
        async with self._client(15) as client:
            headers = {**self._headers, "Content-Type": "application/json"}
            res = await client.patch(self._rest_url(table), headers=headers, params=params, json=values)
            res.raise_for_status()

    async def select(self, table: str, filters: dict | None = None, order: str | None = None) -> list[dict]:
        params = {}
        if filters:
            for k, v in filters.items():
                params[k] = f"eq.{v}"
        if order:
            params["order"] = order
        async with self._client(15) as client:
            headers = {**self._headers, "Accept": "application/json"}
            res = await client.get(self._rest_url(table), headers=headers, params=params)
            res.raise_for_status()
            return res.json()


_client: SupabaseClient | None = None


def get_supabase() -> SupabaseClient | None:
    if not settings.supabase_enabled:
        return None
    global _client
    if _client is None:
        _client = SupabaseClient()
    return _client


class SupabaseObjectStore(ObjectStore):
    name = "supabase"

    def __init__(self, client: SupabaseClient):
        self.client = client

    async def put(self, key: str, data: bytes, content_type: str) -> str:
        return await self.client.upload(key, data, content_type)
