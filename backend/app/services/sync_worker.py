"""
Sync Worker
===========
A single asyncio task that drains a queue of sync jobs. The entry
lifecycle enqueues and returns, so no request handler ever waits on the
network.

Jobs:
    push(entry_id)          after a create or update
    sync_all()              startup, connectivity restored, pull-to-refresh
    delete_remote(remote_id) after a local delete

A job already waiting in the queue is not queued twice. Failures are
logged and the worker carries on with the next job.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass
from typing import Optional

from app.services.sync import SyncCoordinator

logger = logging.getLogger(__name__)

PUSH = "push"
SYNC_ALL = "sync_all"
DELETE_REMOTE = "delete_remote"


@dataclass(frozen=True)
class SyncJob:
    kind: str
    key: Optional[str] = None


class SyncWorker:
    def __init__(self, coordinator: SyncCoordinator, enabled: bool = True) -> None:
        self._coordinator = coordinator
        self._enabled = enabled
        self._queue: asyncio.Queue[SyncJob] = asyncio.Queue()
        self._queued: set[SyncJob] = set()
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def queued(self) -> int:
        return self._queue.qsize()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run(), name="sync-worker")
        logger.info("Sync worker started")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
        logger.info("Sync worker stopped")

    async def join(self) -> None:
        """Wait until every queued job has been processed."""
        await self._queue.join()

    # ---- Enqueue (never blocks) ------------------------------------------

    def enqueue_push(self, entry_id: str) -> bool:
        return self._enqueue(SyncJob(PUSH, entry_id))

    def enqueue_full_sync(self) -> bool:
        return self._enqueue(SyncJob(SYNC_ALL))

    def enqueue_remote_delete(self, remote_id: str) -> bool:
        return self._enqueue(SyncJob(DELETE_REMOTE, remote_id))

    def _enqueue(self, job: SyncJob) -> bool:
        if not self._enabled:
            logger.debug("Background sync disabled, dropping %s job", job.kind)
            return False
        if job in self._queued:
            return False
        self._queued.add(job)
        self._queue.put_nowait(job)
        return True

    # ---- Worker loop -----------------------------------------------------

    async def _run(self) -> None:
        while True:
            job = await self._queue.get()
            self._queued.discard(job)
            try:
                await self._execute(job)
            except Exception:
                logger.exception("Sync job %s(%s) failed", job.kind, job.key or "")
            finally:
                self._queue.task_done()

    async def _execute(self, job: SyncJob) -> None:
        if job.kind == PUSH:
            await self._coordinator.push_entry(job.key)
        elif job.kind == SYNC_ALL:
            await self._coordinator.sync_pending()
        elif job.kind == DELETE_REMOTE:
            await self._coordinator.delete_remote(job.key)
        else:
            logger.error("Unknown sync job kind %r", job.kind)
