"""
JSON Entry Store
================
Fallback local store for platforms without SQLite: every entry lives in
one JSON array on disk.

Writes go to a temp file in the same directory and are moved into place
with os.replace, so a crash mid-write leaves the previous file intact.
If the write fails the in-memory state is rolled back and StoreError is
raised; the caller never sees a success that did not reach disk.

A file that exists but cannot be parsed is NOT treated as empty. The
store refuses to open rather than overwrite the user's entries.
Individual records it cannot read (unknown mood, missing notes, a
repeated id) are kept verbatim and written back on every flush. They are
invisible through the store contract but never deleted.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError

from app.db.store import StoreError, check_patch_fields, touches_content
from app.models.entry import DiaryEntry, utc_now
from app.models.mood import parse_mood_label

logger = logging.getLogger(__name__)


def _legacy_timestamp(value: Any) -> Optional[datetime]:
    """Epoch milliseconds (old mobile format) or ISO string."""
    if value is None:
        return None
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


def entry_from_legacy(item: Any) -> Optional[DiaryEntry]:
    """Build a DiaryEntry from a stored record in either key style.

    Accepts this store's own snake_case records and the older camelCase
    mobile records (mood, remoteId, createdAt in epoch ms). Returns None
    for anything unusable.
    """
    if not isinstance(item, dict):
        return None
    try:
        mood = parse_mood_label(item.get("mood_label") or item.get("mood") or "")
        notes = item.get("notes") or item.get("content") or ""
        if mood is None or not item.get("id") or not str(notes).strip():
            logger.warning("Skipping legacy entry %r: missing id, mood or notes", item.get("id"))
            return None

        created = _legacy_timestamp(item.get("created_at", item.get("createdAt"))) or utc_now()
        updated = _legacy_timestamp(item.get("updated_at", item.get("updatedAt"))) or created
        remote_id = item.get("remote_id", item.get("remoteId"))
        return DiaryEntry(
            id=str(item["id"]),
            date=item.get("date") or created,
            mood_label=mood,
            mood_source=item.get("mood_source", "inferred"),
            notes=str(notes),
            synced=bool(item.get("synced", False)) and remote_id is not None,
            remote_id=str(remote_id) if remote_id is not None else None,
            revision=int(item.get("revision", 0)),
            created_at=created,
            updated_at=updated,
        )
    except (ValidationError, ValueError, TypeError) as exc:
        logger.warning("Skipping legacy entry %r: %s", item.get("id"), exc)
        return None


class JsonEntryStore:
    """EntryStore backed by a single JSON file."""

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path).expanduser()
        self._lock = threading.RLock()
        self._unreadable: list[Any] = []
        self._entries: dict[str, DiaryEntry] = self._load()

    def _load(self) -> dict[str, DiaryEntry]:
        if not self._path.exists():
            return {}
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8") or "[]")
        except (OSError, ValueError) as exc:
            raise StoreError(f"Entry file {self._path} is unreadable: {exc}") from exc
        if not isinstance(raw, list):
            raise StoreError(f"Entry file {self._path} does not hold a list")

        entries: dict[str, DiaryEntry] = {}
        for item in raw:
            entry = entry_from_legacy(item)
            if entry is None or entry.id in entries:
                self._unreadable.append(item)
            else:
                entries[entry.id] = entry
        if self._unreadable:
            logger.warning(
                "Entry file %s has %d unreadable records, keeping them as is",
                self._path,
                len(self._unreadable),
            )
        return entries

    def _flush(self, entries: dict[str, DiaryEntry]) -> None:
        payload = [entry.model_dump(mode="json") for entry in entries.values()]
        payload.extend(self._unreadable)
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self._path.name}.", dir=str(self._path.parent)
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    json.dump(payload, handle, indent=2)
                    handle.flush()
                    os.fsync(handle.fileno())
                os.replace(tmp_name, self._path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as exc:
            logger.error("Writing entry file %s failed: %s", self._path, exc)
            raise StoreError(f"Local write failed: {exc}") from exc

    def _commit(self, entries: dict[str, DiaryEntry]) -> None:
        self._flush(entries)
        self._entries = entries

    # ---- Contract --------------------------------------------------------

    def insert(self, entry: DiaryEntry) -> DiaryEntry:
        with self._lock:
            if entry.id in self._entries:
                raise StoreError(f"Entry {entry.id} already exists")
            entries = dict(self._entries)
            entries[entry.id] = entry
            self._commit(entries)
        return entry

    def patch(
        self,
        entry_id: str,
        fields: dict[str, Any],
        expected_revision: Optional[int] = None,
    ) -> Optional[DiaryEntry]:
        check_patch_fields(fields)
        with self._lock:
            current = self._entries.get(entry_id)
            if current is None:
                return None
            if expected_revision is not None and current.revision != expected_revision:
                return None

            update = dict(fields)
            if touches_content(update):
                update["synced"] = False
                update["revision"] = current.revision + 1
                update["updated_at"] = utc_now()
            if not update:
                return current

            try:
                patched = DiaryEntry.model_validate({**current.model_dump(), **update})
            except ValidationError as exc:
                raise StoreError(f"Patch for {entry_id} is invalid: {exc}") from exc

            entries = dict(self._entries)
            entries[entry_id] = patched
            self._commit(entries)
        return patched

    def remove(self, entry_id: str) -> bool:
        with self._lock:
            if entry_id not in self._entries:
                return False
            entries = dict(self._entries)
            del entries[entry_id]
            self._commit(entries)
        return True

    def get(self, entry_id: str) -> Optional[DiaryEntry]:
        with self._lock:
            return self._entries.get(entry_id)

    def list_all(self) -> list[DiaryEntry]:
        with self._lock:
            entries = list(self._entries.values())
        return sorted(entries, key=lambda e: (e.date, e.created_at), reverse=True)

    def list_unsynced(self) -> list[DiaryEntry]:
        with self._lock:
            pending = [e for e in self._entries.values() if not e.synced]
        return sorted(pending, key=lambda e: e.created_at)

    def close(self) -> None:
        return None
