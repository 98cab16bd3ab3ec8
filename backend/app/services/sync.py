"""
Sync Coordinator
================
Pushes locally stored entries to the remote system of record and records
the outcome on each local record.

RULES:
- Offline -> return immediately, no store access.
- Each pending entry is pushed independently. A failure (exception,
  timeout, ok=False, no identifier) leaves that record untouched and the
  pass moves on. Nothing is retried within the same pass.
- Only synced and remote_id are ever written here, under the entry's
  lock, and the lock is never held across a network call.
- A success is applied only to the revision that was pushed. If the user
  edited the entry while the request was in flight, the new remote_id is
  kept but synced stays False and the newer revision is pushed as a
  patch straight away.
- At most one remote write per entry is in flight at a time. Once a push
  owns the entry it re-reads the record, so an entry another path synced
  in the meantime is never written twice.

Background callers absorb every remote failure. Only force_sync (in the
lifecycle controller) turns them into exceptions.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Awaitable, Callable, Optional, Union

from app.db.store import EntryStore, StoreError
from app.models.entry import DiaryEntry
from app.models.sync import RemoteWriteResult, SyncSummary
from app.services.connectivity import Connectivity

logger = logging.getLogger(__name__)

RemoteWrite = Callable[[DiaryEntry], Awaitable[Union[RemoteWriteResult, dict]]]
RemoteDelete = Callable[[str], Awaitable[bool]]

# How many times one push follows up on edits made while it was in flight
MAX_STALE_ROUNDS = 3

_SYNCED = "synced"
_FAILED = "failed"
_STALE = "stale"
_SKIPPED = "skipped"
_ALREADY_SYNCED = "already_synced"
_GONE = "gone"


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class SyncUnavailableError(Exception):
    """An explicit sync was requested while the device is offline."""


class RemoteSyncError(Exception):
    """An explicit sync finished with entries that could not be pushed."""

    def __init__(self, summary: SyncSummary) -> None:
        self.summary = summary
        super().__init__(
            f"{summary.failed_count} entries failed to sync: {', '.join(summary.failed_ids)}"
        )


# ---------------------------------------------------------------------------
# Per-entry locks
# ---------------------------------------------------------------------------


class EntryLocks:
    """One asyncio.Lock per entry id, for single-record read-modify-write.

    A lock exists only while some task holds or waits on it, so the map
    stays as small as the number of entries being written right now.
    """

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def lock(self, entry_id: str) -> AsyncIterator[None]:
        lock = self._locks.get(entry_id)
        if lock is None:
            lock = self._locks[entry_id] = asyncio.Lock()
        self._users[entry_id] = self._users.get(entry_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[entry_id] -= 1
            if not self._users[entry_id]:
                del self._users[entry_id]
                del self._locks[entry_id]


# ---------------------------------------------------------------------------
# Coordinator
# ---------------------------------------------------------------------------


class SyncCoordinator:
    def __init__(
        self,
        store: EntryStore,
        connectivity: Connectivity,
        remote_write: Optional[RemoteWrite] = None,
        remote_delete: Optional[RemoteDelete] = None,
        locks: Optional[EntryLocks] = None,
        timeout: float = 10.0,
    ) -> None:
        self._store = store
        self._connectivity = connectivity
        self._remote_write = remote_write
        self._remote_delete = remote_delete
        self._timeout = timeout
        self.locks = locks if locks is not None else EntryLocks()
        self._in_flight: set[str] = set()

    async def sync_pending(self, remote_write: Optional[RemoteWrite] = None) -> SyncSummary:
        """Push every unsynced entry once. Returns counts for the pass."""
        if not await self._connectivity.is_online():
            logger.debug("Offline, skipping sync pass")
            return SyncSummary(online=False)

        writer = self._writer(remote_write)
        pending = self._store.list_unsynced()
        summary = SyncSummary()

        for entry in pending:
            outcome = await self._push(entry, writer)
            if outcome == _SYNCED:
                summary.synced_count += 1
            elif outcome == _FAILED:
                summary.failed_count += 1
                summary.failed_ids.append(entry.id)
            if outcome in (_FAILED, _STALE, _SKIPPED):
                summary.pending_count += 1

        if pending:
            logger.info(
                "Sync pass: %d synced, %d failed, %d pending",
                summary.synced_count,
                summary.failed_count,
                summary.pending_count,
            )
        return summary

    async def push_entry(self, entry_id: str, remote_write: Optional[RemoteWrite] = None) -> bool:
        """Push a single entry. True if it is synced afterwards."""
        if not await self._connectivity.is_online():
            return False

        entry = self._store.get(entry_id)
        if entry is None:
            return False
        if entry.synced:
            return True
        outcome = await self._push(entry, self._writer(remote_write))
        return outcome in (_SYNCED, _ALREADY_SYNCED)

    async def delete_remote(
        self,
        remote_id: str,
        remote_delete: Optional[RemoteDelete] = None,
    ) -> bool:
        """Best-effort remote delete. Failures are logged, never raised."""
        deleter = remote_delete or self._remote_delete
        if deleter is None or not await self._connectivity.is_online():
            return False
        try:
            return bool(await asyncio.wait_for(deleter(remote_id), timeout=self._timeout))
        except Exception:
            logger.warning("Remote delete of %s failed", remote_id, exc_info=True)
            return False

    # ---- Internals -------------------------------------------------------

    def _writer(self, remote_write: Optional[RemoteWrite]) -> RemoteWrite:
        writer = remote_write or self._remote_write
        if writer is None:
            raise RuntimeError("SyncCoordinator has no remote write function")
        return writer

    async def _push(self, entry: DiaryEntry, writer: RemoteWrite) -> str:
        if entry.id in self._in_flight:
            # The running push re-reads the entry when it finishes.
            return _SKIPPED

        self._in_flight.add(entry.id)
        try:
            # The caller's snapshot may predate a push that finished since.
            current = self._store.get(entry.id)
            if current is None:
                return _GONE
            if current.synced:
                return _ALREADY_SYNCED

            outcome = _STALE
            rounds = 0
            while outcome == _STALE and current is not None and rounds < MAX_STALE_ROUNDS:
                rounds += 1
                outcome = await self._push_once(current, writer)
                if outcome == _STALE:
                    current = self._store.get(entry.id)
            return outcome
        finally:
            self._in_flight.discard(entry.id)

    async def _push_once(self, entry: DiaryEntry, writer: RemoteWrite) -> str:
        try:
            result = await asyncio.wait_for(writer(entry), timeout=self._timeout)
            if isinstance(result, dict):
                result = RemoteWriteResult.model_validate(result)
        except asyncio.TimeoutError:
            logger.warning("Remote write for entry %s timed out after %.1fs", entry.id, self._timeout)
            return _FAILED
        except Exception:
            logger.exception("Remote write for entry %s raised", entry.id)
            return _FAILED

        if not result.ok:
            logger.info("Remote write for entry %s failed: %s", entry.id, result.error)
            return _FAILED

        remote_id = result.remote_id or entry.remote_id
        if remote_id is None:
            logger.warning("Remote write for entry %s succeeded without an identifier", entry.id)
            return _FAILED

        return await self._record_success(entry, remote_id)

    async def _record_success(self, pushed: DiaryEntry, remote_id: str) -> str:
        orphaned = False
        async with self.locks.lock(pushed.id):
            try:
                current = self._store.get(pushed.id)
                if current is None:
                    orphaned = pushed.remote_id is None
                    outcome = _GONE
                elif current.revision == pushed.revision:
                    updated = self._store.patch(
                        pushed.id,
                        {"synced": True, "remote_id": remote_id},
                        expected_revision=pushed.revision,
                    )
                    outcome = _SYNCED if updated is not None else _STALE
                else:
                    outcome = _STALE
                if outcome == _STALE and current is not None and current.remote_id != remote_id:
                    self._store.patch(pushed.id, {"remote_id": remote_id})
            except StoreError:
                logger.exception("Recording sync result for entry %s failed", pushed.id)
                return _FAILED

        if orphaned:
            logger.info("Entry %s was deleted while syncing, removing remote copy %s", pushed.id, remote_id)
            await self.delete_remote(remote_id)
        return outcome
