"""
SQLite Entry Store
==================
Default local store. One `entries` table keyed by the local id, WAL
journal mode, and an index on (synced, created_at) for the pending
query the sync coordinator runs on every pass.

The connection is shared across threads behind a lock; every public
method is a single statement plus commit, which gives the per-record
atomic read-modify-write the sync design relies on.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, Optional

from app.db.json_store import entry_from_legacy
from app.db.store import StoreError, check_patch_fields, touches_content
from app.models.entry import DiaryEntry, utc_now
from app.models.mood import MoodLabel

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS entries (
    id TEXT PRIMARY KEY,
    date TEXT NOT NULL,
    mood_label TEXT NOT NULL,
    mood_source TEXT NOT NULL DEFAULT 'inferred',
    notes TEXT NOT NULL,
    synced INTEGER NOT NULL DEFAULT 0,
    remote_id TEXT,
    revision INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_entries_pending ON entries (synced, created_at);
"""

_COLUMNS = (
    "id", "date", "mood_label", "mood_source", "notes", "synced",
    "remote_id", "revision", "created_at", "updated_at",
)


def _to_column(name: str, value: Any) -> Any:
    if value is None:
        return None
    if name in ("date", "created_at", "updated_at"):
        return value.isoformat()
    if name == "mood_label":
        return value.value if isinstance(value, MoodLabel) else str(value)
    if name == "synced":
        return 1 if value else 0
    return value


def _row_to_entry(row: sqlite3.Row) -> DiaryEntry:
    return DiaryEntry(
        id=row["id"],
        date=row["date"],
        mood_label=row["mood_label"],
        mood_source=row["mood_source"],
        notes=row["notes"],
        synced=bool(row["synced"]),
        remote_id=row["remote_id"],
        revision=row["revision"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


class SQLiteEntryStore:
    """EntryStore backed by a SQLite file (or ":memory:")."""

    def __init__(self, db_path: str | Path) -> None:
        self._path = str(db_path)
        if self._path != ":memory:":
            Path(self._path).expanduser().parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.RLock()
        try:
            self._conn = sqlite3.connect(self._path, check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA journal_mode=WAL")
            self._conn.executescript(_SCHEMA)
            self._conn.commit()
        except sqlite3.Error as exc:
            raise StoreError(f"Could not open entry store at {self._path}: {exc}") from exc

    @contextmanager
    def _guard(self, operation: str) -> Iterator[sqlite3.Connection]:
        with self._lock:
            try:
                yield self._conn
            except sqlite3.Error as exc:
                self._conn.rollback()
                logger.error("Entry store %s failed: %s", operation, exc)
                raise StoreError(f"Local {operation} failed: {exc}") from exc

    # ---- Contract --------------------------------------------------------

    def insert(self, entry: DiaryEntry) -> DiaryEntry:
        values = [_to_column(name, getattr(entry, name)) for name in _COLUMNS]
        placeholders = ", ".join("?" for _ in _COLUMNS)
        with self._guard("insert") as conn:
            conn.execute(
                f"INSERT INTO entries ({', '.join(_COLUMNS)}) VALUES ({placeholders})",
                values,
            )
            conn.commit()
        return entry

    def patch(
        self,
        entry_id: str,
        fields: dict[str, Any],
        expected_revision: Optional[int] = None,
    ) -> Optional[DiaryEntry]:
        check_patch_fields(fields)
        values = dict(fields)
        content_change = touches_content(values)
        if content_change:
            values["synced"] = False

        sets = [f"{name} = ?" for name in values]
        params = [_to_column(name, value) for name, value in values.items()]
        if content_change:
            sets.append("revision = revision + 1")
            sets.append("updated_at = ?")
            params.append(utc_now().isoformat())
        if not sets:
            return self.get(entry_id)

        sql = f"UPDATE entries SET {', '.join(sets)} WHERE id = ?"
        params.append(entry_id)
        if expected_revision is not None:
            sql += " AND revision = ?"
            params.append(expected_revision)

        with self._guard("patch") as conn:
            cursor = conn.execute(sql, params)
            conn.commit()
            if cursor.rowcount == 0:
                return None
            row = conn.execute("SELECT * FROM entries WHERE id = ?", (entry_id,)).fetchone()
        return _row_to_entry(row) if row else None

    def remove(self, entry_id: str) -> bool:
        with self._guard("remove") as conn:
            cursor = conn.execute("DELETE FROM entries WHERE id = ?", (entry_id,))
            conn.commit()
        return cursor.rowcount > 0

    def get(self, entry_id: str) -> Optional[DiaryEntry]:
        with self._guard("read") as conn:
            row = conn.execute("SELECT * FROM entries WHERE id = ?", (entry_id,)).fetchone()
        return _row_to_entry(row) if row else None

    def list_all(self) -> list[DiaryEntry]:
        with self._guard("read") as conn:
            rows = conn.execute(
                "SELECT * FROM entries ORDER BY date DESC, created_at DESC"
            ).fetchall()
        return [_row_to_entry(row) for row in rows]

    def list_unsynced(self) -> list[DiaryEntry]:
        with self._guard("read") as conn:
            rows = conn.execute(
                "SELECT * FROM entries WHERE synced = 0 ORDER BY created_at ASC"
            ).fetchall()
        return [_row_to_entry(row) for row in rows]

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    # ---- Migration -------------------------------------------------------

    def count(self) -> int:
        with self._guard("read") as conn:
            return conn.execute("SELECT COUNT(*) FROM entries").fetchone()[0]

    def migrate_from_json(self, legacy_path: str | Path) -> int:
        """Import entries from a legacy JSON file into an empty store.

        Skipped when the store already has rows or the file is missing.
        Records that cannot be parsed are logged and skipped; a broken
        legacy file never prevents the store from opening.
        """
        path = Path(legacy_path).expanduser()
        if self.count() > 0:
            logger.debug("Entry store already populated, skipping legacy import")
            return 0
        if not path.is_file():
            return 0

        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning("Legacy entries at %s unreadable, skipping import: %s", path, exc)
            return 0
        if not isinstance(raw, list):
            logger.warning("Legacy entries at %s are not a list, skipping import", path)
            return 0

        imported = 0
        for item in raw:
            entry = entry_from_legacy(item)
            if entry is None:
                continue
            values = [_to_column(name, getattr(entry, name)) for name in _COLUMNS]
            with self._guard("migrate") as conn:
                conn.execute(
                    f"INSERT OR IGNORE INTO entries ({', '.join(_COLUMNS)}) "
                    f"VALUES ({', '.join('?' for _ in _COLUMNS)})",
                    values,
                )
                conn.commit()
            imported += 1

        logger.info("Imported %d legacy entries from %s", imported, path)
        return imported
