"""Durable key-value job store: interface, in-memory and Supabase backends."""

import asyncio
import copy
import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional

from gasreport.errors import StoreError

logger = logging.getLogger(__name__)

# PostgREST caps a single response at 1000 rows by default
PAGE_SIZE = 1000


class JobStore(ABC):
    """A map from job id to a JSON document. Last write wins per key."""

    @abstractmethod
    async def get_json(self, key: str) -> Optional[Dict[str, Any]]:
        """Return the document stored under key, or None."""
        ...

    @abstractmethod
    async def set_json(self, key: str, value: Dict[str, Any]) -> None:
        """Replace the document stored under key."""
        ...

    @abstractmethod
    async def keys(self, status: Optional[str] = None) -> List[str]:
        """Stored keys, optionally only those whose document has this status.

        Only the stale-job sweep needs this.
        """
        ...


class InMemoryJobStore(JobStore):
    """Process-local store for development and tests."""

    def __init__(self):
        self._data: Dict[str, Dict[str, Any]] = {}

    async def get_json(self, key: str) -> Optional[Dict[str, Any]]:
        value = self._data.get(key)
        return copy.deepcopy(value) if value is not None else None

    async def set_json(self, key: str, value: Dict[str, Any]) -> None:
        self._data[key] = copy.deepcopy(value)

    async def keys(self, status: Optional[str] = None) -> List[str]:
        return [
            key for key, value in self._data.items()
            if status is None or value.get("status") == status
        ]


class SupabaseJobStore(JobStore):
    """One row per job in a table shaped (id text primary key, data jsonb).

    The supabase client is synchronous, so calls run in the default
    thread executor to keep the event loop free.
    """

    def __init__(self, client, table: str = "reports", page_size: int = PAGE_SIZE):
        self._client = client
        self._table = table
        self.page_size = page_size

    async def _run(self, action: str, fn: Callable[[], Any]) -> Any:
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, fn)
        except Exception as e:
            logger.error(f"Job store {action} failed on table '{self._table}': {e}")
            raise StoreError(f"Job store {action} failed: {e}") from e

    async def get_json(self, key: str) -> Optional[Dict[str, Any]]:
        response = await self._run(
            "read",
            lambda: (
                self._client.table(self._table)
                .select("data")
                .eq("id", key)
                .limit(1)
                .execute()
            ),
        )
        rows = response.data or []
        if not rows:
            return None
        return rows[0].get("data")

    async def set_json(self, key: str, value: Dict[str, Any]) -> None:
        await self._run(
            "write",
            lambda: (
                self._client.table(self._table)
                .upsert({"id": key, "data": value})
                .execute()
            ),
        )

    def _id_page(self, status: Optional[str], offset: int):
        query = self._client.table(self._table).select("id")
        if status is not None:
            query = query.eq("data->>status", status)
        return query.order("id").range(offset, offset + self.page_size - 1).execute()

    async def keys(self, status: Optional[str] = None) -> List[str]:
        ids: List[str] = []
        offset = 0
        while True:
            response = await self._run(
                "scan", lambda offset=offset: self._id_page(status, offset)
            )
            rows = response.data or []
            ids.extend(row["id"] for row in rows)
            if len(rows) < self.page_size:
                return ids
            offset += self.page_size


def build_job_store(settings) -> JobStore:
    """Select the store backend named by settings.job_store_backend."""
    backend = settings.job_store_backend.lower()
    if backend == "memory":
        return InMemoryJobStore()
    if backend == "supabase":
        from gasreport.db.supabase_client import get_supabase

        return SupabaseJobStore(get_supabase(), table=settings.job_store_table)
    raise ValueError(f"Unknown job store backend: {settings.job_store_backend}")
