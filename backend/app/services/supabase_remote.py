"""
Supabase Entry Remote
=====================
Same sync-facing interface as RemoteEntryClient, backed by the
`entries` table of a Supabase project.

supabase-py is synchronous, so each call runs in a worker thread to keep
the event loop (and the UI requests it serves) responsive while a sync
pass waits on the network.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from supabase import Client

from app.db.supabase import get_supabase_client
from app.models.entry import DiaryEntry
from app.models.sync import RemoteWriteResult

logger = logging.getLogger(__name__)

_TABLE = "entries"


class SupabaseEntryRemote:
    """Remote writes against a Supabase `entries` table."""

    def __init__(self, client: Client | None = None) -> None:
        self._db = client or get_supabase_client()

    async def write(self, entry: DiaryEntry) -> RemoteWriteResult:
        payload = entry.to_remote_payload()
        try:
            if entry.remote_id:
                rows = await asyncio.to_thread(self._update, entry.remote_id, payload)
            else:
                rows = await asyncio.to_thread(self._insert, payload)
        except Exception as exc:
            # supabase-py surfaces postgrest, httpx and auth errors with no
            # common base class; all of them mean "try again next pass".
            logger.warning("Supabase write for entry %s failed: %s", entry.id, exc)
            return RemoteWriteResult(ok=False, error=f"{type(exc).__name__}: {exc}")

        if not rows:
            logger.warning("Supabase write for entry %s returned no rows", entry.id)
            return RemoteWriteResult(ok=False, error="no rows returned")
        return RemoteWriteResult(ok=True, remote_record=rows[0])

    async def delete(self, remote_id: str) -> bool:
        try:
            await asyncio.to_thread(self._delete, remote_id)
        except Exception as exc:
            logger.warning("Supabase delete of %s failed: %s", remote_id, exc)
            return False
        return True

    async def list_entries(self) -> list[dict[str, Any]]:
        result = await asyncio.to_thread(
            lambda: self._db.table(_TABLE).select("*").execute()
        )
        return list(result.data or [])

    # ---- Blocking calls --------------------------------------------------

    def _insert(self, payload: dict[str, Any]) -> list[dict[str, Any]]:
        return self._db.table(_TABLE).insert(payload).execute().data or []

    def _update(self, remote_id: str, payload: dict[str, Any]) -> list[dict[str, Any]]:
        return (
            self._db.table(_TABLE)
            .update(payload)
            .eq("id", remote_id)
            .execute()
            .data
            or []
        )

    def _delete(self, remote_id: str) -> None:
        self._db.table(_TABLE).delete().eq("id", remote_id).execute()
