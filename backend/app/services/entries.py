"""
Entry Lifecycle Service
=======================
Create, edit and delete diary entries, local-first.

WRITE PATH (create and update):
    1. Validate. Nothing is written if validation fails.
    2. Pick the mood: an explicit choice from the user always wins;
       otherwise the on-device inference engine runs synchronously.
    3. Write to the local entry store. A StoreError propagates to the
       caller: we never report success for a write that did not happen.
    4. Enqueue a push for the entry on the sync worker and return the
       local record immediately. The network is never awaited here.

Deletes are local and immediate. If the entry had reached the remote, a
best-effort remote delete is queued; its failure is only logged.

force_sync() is the one place a remote failure reaches the caller: the
user explicitly asked for it and is looking at the result.
"""

from __future__ import annotations

import logging
import uuid
from datetime import date, datetime, timedelta
from typing import Any, Optional, Union

from pydantic import ValidationError

from app.config import Settings, get_settings
from app.db.store import EntryStore, get_entry_store
from app.models.entry import DiaryEntry, EntryPatch, as_utc, utc_now
from app.models.insights import MoodCounts
from app.models.mood import MoodInference, MoodLabel, VALID_MOOD_LABELS, parse_mood_label
from app.models.sync import SyncSummary
from app.services.connectivity import Connectivity
from app.services.mood_inference import MoodInferenceService, get_mood_inference
from app.services.remote import RemoteEntryClient
from app.services.sync import RemoteSyncError, SyncCoordinator, SyncUnavailableError
from app.services.sync_worker import SyncWorker

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class EntryValidationError(Exception):
    """Input rejected before any write."""

    def __init__(self, message: str, code: str = "invalid_entry") -> None:
        self.message = message
        self.code = code
        super().__init__(message)


class EntryNotFoundError(Exception):
    def __init__(self, entry_id: str) -> None:
        self.entry_id = entry_id
        super().__init__(f"Entry {entry_id} not found")


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


class EntryService:
    def __init__(
        self,
        store: EntryStore,
        inference: MoodInferenceService,
        coordinator: SyncCoordinator,
        worker: SyncWorker,
        connectivity: Connectivity,
        max_notes_length: int = 10_000,
        sync_on_startup: bool = True,
    ) -> None:
        self._store = store
        self._inference = inference
        self._coordinator = coordinator
        self._worker = worker
        self._connectivity = connectivity
        self._max_notes_length = max_notes_length
        self._sync_on_startup = sync_on_startup
        self.locks = coordinator.locks
        connectivity.on_reconnect(worker.enqueue_full_sync)

    # ---- Lifecycle -------------------------------------------------------

    async def start(self) -> None:
        self._worker.start()
        if self._sync_on_startup:
            self._worker.enqueue_full_sync()

    async def stop(self) -> None:
        await self._worker.stop()

    # ---- Mood ------------------------------------------------------------

    def preview_mood(self, text: str) -> MoodInference:
        """Live preview while the user types. Never touches the store."""
        return self._inference.infer(text or "")

    # ---- Write path ------------------------------------------------------

    async def create_entry(
        self,
        notes: str,
        explicit_mood: Optional[Union[str, MoodLabel]] = None,
        date: Optional[Union[str, datetime]] = None,
    ) -> DiaryEntry:
        notes = self._validate_notes(notes)
        mood = self._validate_mood(explicit_mood)
        authored = self._validate_date(date)

        if mood is not None:
            source = "user"
        else:
            mood = self._inference.infer(notes).mood
            source = "inferred"

        now = utc_now()
        entry = DiaryEntry(
            id=uuid.uuid4().hex,
            date=authored or now,
            mood_label=mood,
            mood_source=source,
            notes=notes,
            synced=False,
            remote_id=None,
            revision=0,
            created_at=now,
            updated_at=now,
        )
        self._store.insert(entry)
        logger.info("Created entry %s (%s, %s)", entry.id, mood.value, source)

        self._worker.enqueue_push(entry.id)
        return entry

    async def update_entry(
        self,
        entry_id: str,
        patch: Union[EntryPatch, dict[str, Any]],
    ) -> DiaryEntry:
        if isinstance(patch, dict):
            try:
                patch = EntryPatch.model_validate(patch)
            except ValidationError as exc:
                raise EntryValidationError(str(exc), code="invalid_patch") from exc
        if patch.is_empty():
            raise EntryValidationError("Nothing to update", code="empty_patch")

        fields: dict[str, Any] = {}
        if patch.notes is not None:
            fields["notes"] = self._validate_notes(patch.notes)
        explicit = self._validate_mood(patch.mood)
        if patch.date is not None:
            fields["date"] = self._validate_date(patch.date)

        async with self.locks.lock(entry_id):
            current = self._store.get(entry_id)
            if current is None:
                raise EntryNotFoundError(entry_id)

            if explicit is not None:
                fields["mood_label"] = explicit
                fields["mood_source"] = "user"
            elif "notes" in fields and current.mood_source == "inferred":
                fields["mood_label"] = self._inference.infer(fields["notes"]).mood

            changes = {name: value for name, value in fields.items() if getattr(current, name) != value}
            if not changes:
                return current

            updated = self._store.patch(entry_id, changes)
            if updated is None:
                raise EntryNotFoundError(entry_id)

        logger.info("Updated entry %s (%s)", entry_id, ", ".join(sorted(changes)))
        self._worker.enqueue_push(entry_id)
        return updated

    async def delete_entry(self, entry_id: str) -> bool:
        """Delete locally. Returns False if the entry did not exist."""
        async with self.locks.lock(entry_id):
            current = self._store.get(entry_id)
            if current is None:
                return False
            self._store.remove(entry_id)
        logger.info("Deleted entry %s", entry_id)

        if current.remote_id and self._connectivity.known_state is not False:
            self._worker.enqueue_remote_delete(current.remote_id)
        return True

    # ---- Read path -------------------------------------------------------

    def get_entry(self, entry_id: str) -> DiaryEntry:
        entry = self._store.get(entry_id)
        if entry is None:
            raise EntryNotFoundError(entry_id)
        return entry

    def list_entries(self) -> list[DiaryEntry]:
        return self._store.list_all()

    def mood_counts(self, days: int = 7, today: Optional[date] = None) -> MoodCounts:
        """Entries per mood label dated within the last `days` days, today included."""
        if days < 1:
            raise EntryValidationError("days must be at least 1", code="invalid_window")
        window_end = today or utc_now().date()
        window_start = window_end - timedelta(days=days - 1)

        counts = {label.value: 0 for label in MoodLabel}
        for entry in self._store.list_all():
            if window_start <= as_utc(entry.date).date() <= window_end:
                counts[entry.mood_label.value] += 1

        return MoodCounts(
            counts=counts,
            total=sum(counts.values()),
            days=days,
            window_start=window_start,
            window_end=window_end,
        )

    # ---- Sync ------------------------------------------------------------

    async def force_sync(self) -> SyncSummary:
        """Foreground sync. Raises if offline or if any entry failed."""
        if not await self._connectivity.is_online():
            raise SyncUnavailableError("Device is offline")
        summary = await self._coordinator.sync_pending()
        if not summary.online:
            raise SyncUnavailableError("Device is offline")
        if summary.failed_count:
            raise RemoteSyncError(summary)
        return summary

    def set_online(self, online: bool) -> None:
        """Connectivity signal from the host. Reconnecting queues a full pass."""
        self._connectivity.set_online(online)

    # ---- Validation ------------------------------------------------------

    def _validate_notes(self, notes: Any) -> str:
        if not isinstance(notes, str) or not notes.strip():
            raise EntryValidationError("Notes cannot be empty", code="empty_notes")
        notes = notes.strip()
        if len(notes) > self._max_notes_length:
            raise EntryValidationError(
                f"Notes exceed the maximum length of {self._max_notes_length} characters",
                code="notes_too_long",
            )
        return notes

    def _validate_mood(self, mood: Optional[Union[str, MoodLabel]]) -> Optional[MoodLabel]:
        if mood is None:
            return None
        if isinstance(mood, MoodLabel):
            return mood
        label = parse_mood_label(mood)
        if label is None:
            raise EntryValidationError(
                f"Invalid mood '{mood}'. Must be one of {', '.join(sorted(VALID_MOOD_LABELS))}",
                code="invalid_mood",
            )
        return label

    def _validate_date(self, value: Optional[Union[str, datetime]]) -> Optional[datetime]:
        if value is None:
            return None
        if isinstance(value, datetime):
            return as_utc(value)
        try:
            return as_utc(datetime.fromisoformat(str(value).replace("Z", "+00:00")))
        except ValueError as exc:
            raise EntryValidationError(f"Invalid date '{value}'", code="invalid_date") from exc


# ---------------------------------------------------------------------------
# Wiring
# ---------------------------------------------------------------------------


def build_remote(settings: Settings):
    """Remote transport for settings.remote_backend."""
    backend = settings.remote_backend.lower()
    if backend == "http":
        return RemoteEntryClient.from_settings(settings)
    if backend == "supabase":
        from app.services.supabase_remote import SupabaseEntryRemote

        return SupabaseEntryRemote()
    raise ValueError(f"Unknown remote_backend '{settings.remote_backend}'")


def build_entry_service(settings: Settings | None = None) -> EntryService:
    settings = settings or get_settings()
    store = get_entry_store()
    connectivity = Connectivity.from_settings(settings)
    remote = build_remote(settings)
    coordinator = SyncCoordinator(
        store=store,
        connectivity=connectivity,
        remote_write=remote.write,
        remote_delete=remote.delete,
        # Upper bound in case a transport ignores its own timeout
        timeout=settings.remote_timeout_seconds + 1.0,
    )
    worker = SyncWorker(coordinator, enabled=settings.enable_background_sync)
    return EntryService(
        store=store,
        inference=get_mood_inference(),
        coordinator=coordinator,
        worker=worker,
        connectivity=connectivity,
        max_notes_length=settings.max_notes_length,
        sync_on_startup=settings.sync_on_startup,
    )


# ---------------------------------------------------------------------------
# Singleton
# ---------------------------------------------------------------------------

_default_service: EntryService | None = None


def get_entry_service() -> EntryService:
    global _default_service
    if _default_service is None:
        _default_service = build_entry_service()
    return _default_service
