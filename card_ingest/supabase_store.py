"""Supabase-backed content store and asset storage.

supabase-py is synchronous; every call runs in a worker thread so the
pipeline's event loop keeps ticking.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Set

from dotenv import load_dotenv
from supabase import Client, create_client

from card_ingest.config import StorageConfig
from card_ingest.errors import UploadError

logger = logging.getLogger(__name__)

LIST_PAGE_SIZE = 1000


def create_supabase_client(storage: StorageConfig) -> Client:
    """Create a client from environment credentials (``.env`` is honoured)."""
    load_dotenv()
    url, key = storage.credentials()
    logger.info("Connecting to Supabase at %s", url)
    return create_client(url, key)


def _apply_filters(query: Any, filters: Dict[str, Any]) -> Any:
    for column, value in filters.items():
        if value is None:
            continue
        if isinstance(value, (list, tuple, set)):
            query = query.in_(column, list(value))
        else:
            query = query.eq(column, value)
    return query


class SupabaseContentStore:
    """Card rows in a Postgres table, upserted on the natural key."""

    def __init__(self, client: Client, table: str) -> None:
        self._client = client
        self._table = table

    async def upsert(self, row: Dict[str, Any], conflict_key: str) -> None:
        def _run() -> Any:
            return self._client.table(self._table).upsert(row, on_conflict=conflict_key).execute()

        try:
            await asyncio.to_thread(_run)
        except Exception as exc:
            raise UploadError(f"Upsert into {self._table} failed: {exc}") from exc

    async def query(self, filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        def _run() -> Any:
            q = _apply_filters(self._client.table(self._table).select("*"), filters)
            return q.execute()

        res = await asyncio.to_thread(_run)
        return list(getattr(res, "data", []) or [])


class SupabaseAssetStorage:
    """Card images in a public storage bucket."""

    def __init__(self, client: Client, bucket: str) -> None:
        self._client = client
        self._bucket = bucket

    async def upload(self, data: bytes, key: str) -> str:
        def _run() -> Any:
            return self._client.storage.from_(self._bucket).upload(
                key,
                data,
                {"content-type": "image/webp", "upsert": "true"},
            )

        try:
            await asyncio.to_thread(_run)
        except Exception as exc:
            raise UploadError(f"Upload of {key} to {self._bucket} failed: {exc}") from exc
        return self.public_url(key)

    async def list_keys(self, prefix: str) -> Set[str]:
        def _run(offset: int) -> List[Dict[str, Any]]:
            return self._client.storage.from_(self._bucket).list(
                prefix, {"limit": LIST_PAGE_SIZE, "offset": offset}
            )

        keys: Set[str] = set()
        offset = 0
        while True:
            entries = await asyncio.to_thread(_run, offset)
            for entry in entries or []:
                name = entry.get("name")
                if name:
                    keys.add(f"{prefix}/{name}")
            if not entries or len(entries) < LIST_PAGE_SIZE:
                break
            offset += LIST_PAGE_SIZE
        return keys

    def public_url(self, key: str) -> str:
        return self._client.storage.from_(self._bucket).get_public_url(key).rstrip("?")
