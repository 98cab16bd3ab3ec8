"""
Local Entry Store
=================
The storage contract every core component depends on, plus backend
selection at startup.

Two adapters implement it:
- SQLiteEntryStore: default wherever the interpreter ships sqlite3
- JsonEntryStore: single JSON file, used when SQLite is unavailable
  or explicitly configured

Both enforce the sync invariant themselves: a patch that touches
content fields (notes, mood_label, mood_source, date) resets
synced=False and bumps revision in the same write. Callers cannot
forget to do it.
"""

from __future__ import annotations

import importlib.util
import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Optional, Protocol

from app.config import get_settings
from app.models.entry import DiaryEntry

logger = logging.getLogger(__name__)

# Fields the store accepts in patch(). id/created_at/revision are managed.
PATCHABLE_FIELDS = frozenset({
    "notes", "mood_label", "mood_source", "date", "synced", "remote_id",
})


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class StoreError(Exception):
    """Local storage failed. The operation in progress did not happen."""


# ---------------------------------------------------------------------------
# Contract
# ---------------------------------------------------------------------------

class EntryStore(Protocol):
    def insert(self, entry: DiaryEntry) -> DiaryEntry: ...

    def patch(
        self,
        entry_id: str,
        fields: dict[str, Any],
        expected_revision: Optional[int] = None,
    ) -> Optional[DiaryEntry]:
        """Apply fields to one record atomically.

        Returns the updated entry, or None if the id is unknown or
        expected_revision no longer matches.
        """
        ...

    def remove(self, entry_id: str) -> bool: ...

    def get(self, entry_id: str) -> Optional[DiaryEntry]: ...

    def list_all(self) -> list[DiaryEntry]: ...

    def list_unsynced(self) -> list[DiaryEntry]: ...

    def close(self) -> None: ...


def check_patch_fields(fields: dict[str, Any]) -> None:
    unknown = set(fields) - PATCHABLE_FIELDS
    if unknown:
        raise ValueError(f"Cannot patch fields: {', '.join(sorted(unknown))}")


def touches_content(fields: dict[str, Any]) -> bool:
    return any(name in fields for name in ("notes", "mood_label", "mood_source", "date"))


# ---------------------------------------------------------------------------
# Backend selection
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class StoreCapabilities:
    """What the running platform can offer as local storage."""

    sqlite: bool

    @classmethod
    def detect(cls) -> StoreCapabilities:
        return cls(sqlite=importlib.util.find_spec("_sqlite3") is not None)


def choose_backend(configured: str, capabilities: StoreCapabilities) -> str:
    """Resolve the configured backend name against platform capabilities."""
    configured = configured.lower()
    if configured == "json":
        return "json"
    if configured == "sqlite":
        if not capabilities.sqlite:
            raise StoreError("store_backend=sqlite but this interpreter has no sqlite3 support")
        return "sqlite"
    if configured == "auto":
        return "sqlite" if capabilities.sqlite else "json"
    raise StoreError(f"Unknown store_backend '{configured}'")


def open_entry_store(
    backend: str,
    sqlite_path: str,
    json_path: str,
    legacy_json_path: Optional[str] = None,
) -> EntryStore:
    if backend == "sqlite":
        from app.db.sqlite_store import SQLiteEntryStore

        store = SQLiteEntryStore(sqlite_path)
        if legacy_json_path:
            store.migrate_from_json(legacy_json_path)
        return store

    from app.db.json_store import JsonEntryStore

    return JsonEntryStore(json_path)


@lru_cache
def get_entry_store() -> EntryStore:
    settings = get_settings()
    backend = choose_backend(settings.store_backend, StoreCapabilities.detect())
    logger.info("Opening %s entry store", backend)
    return open_entry_store(
        backend,
        sqlite_path=settings.sqlite_path,
        json_path=settings.json_store_path,
        legacy_json_path=settings.legacy_json_path,
    )
