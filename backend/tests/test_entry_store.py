"""
Tests for the local entry store
===============================
Covers (both SQLite and JSON adapters unless noted):
- insert / get / remove / list ordering
- patch: content change resets synced and bumps revision
- patch: sync bookkeeping leaves revision alone
- patch: expected_revision guard, unknown id, unknown field
- JSON: survives reopen, refuses unreadable file, keeps unreadable records,
  rolls back failed write
- SQLite: duplicate id -> StoreError, legacy JSON import
- Backend selection from capabilities

Run: pytest tests/test_entry_store.py -v
"""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from pathlib import Path
from unittest.mock import patch

import pytest

from app.db.json_store import JsonEntryStore, entry_from_legacy
from app.db.sqlite_store import SQLiteEntryStore
from app.db.store import (
    StoreCapabilities,
    StoreError,
    choose_backend,
    open_entry_store,
)
from app.models.entry import DiaryEntry
from app.models.mood import MoodLabel

# ---------------------------------------------------------------------------
# Fixtures / helpers
# ---------------------------------------------------------------------------

_T0 = datetime(2026, 2, 20, 9, 0, tzinfo=timezone.utc)


def _entry(entry_id: str, minutes: int = 0, **overrides) -> DiaryEntry:
    stamp = _T0 + timedelta(minutes=minutes)
    data = {
        "id": entry_id,
        "date": stamp,
        "mood_label": MoodLabel.HAPPY,
        "notes": f"notes for {entry_id}",
        "created_at": stamp,
        "updated_at": stamp,
    }
    data.update(overrides)
    return DiaryEntry(**data)


@pytest.fixture(params=["sqlite", "json"])
def store(request, tmp_path: Path):
    if request.param == "sqlite":
        s = SQLiteEntryStore(":memory:")
    else:
        s = JsonEntryStore(tmp_path / "entries.json")
    yield s
    s.close()


# ---------------------------------------------------------------------------
# Contract
# ---------------------------------------------------------------------------

class TestStoreContract:

    def test_insert_then_get(self, store):
        entry = _entry("a")
        store.insert(entry)
        assert store.get("a") == entry

    def test_get_unknown_returns_none(self, store):
        assert store.get("missing") is None

    def test_remove(self, store):
        store.insert(_entry("a"))
        assert store.remove("a") is True
        assert store.get("a") is None
        assert store.remove("a") is False

    def test_list_all_newest_date_first(self, store):
        store.insert(_entry("old", minutes=0))
        store.insert(_entry("new", minutes=10))
        store.insert(_entry("mid", minutes=5))
        assert [e.id for e in store.list_all()] == ["new", "mid", "old"]

    def test_list_unsynced_oldest_created_first(self, store):
        store.insert(_entry("second", minutes=5))
        store.insert(_entry("first", minutes=0))
        store.insert(_entry("done", minutes=1, synced=True, remote_id="r1"))
        assert [e.id for e in store.list_unsynced()] == ["first", "second"]


class TestStorePatch:

    def test_content_change_resets_synced_and_bumps_revision(self, store):
        store.insert(_entry("a", synced=True, remote_id="r1"))

        updated = store.patch("a", {"notes": "edited"})

        assert updated.notes == "edited"
        assert updated.synced is False
        assert updated.revision == 1
        assert updated.remote_id == "r1"
        assert updated.updated_at > _T0
        assert store.get("a") == updated

    def test_mood_change_is_content(self, store):
        store.insert(_entry("a", synced=True, remote_id="r1"))
        updated = store.patch("a", {"mood_label": MoodLabel.SAD, "mood_source": "user"})
        assert updated.mood_label == MoodLabel.SAD
        assert updated.mood_source == "user"
        assert updated.synced is False
        assert updated.revision == 1

    def test_sync_bookkeeping_keeps_revision(self, store):
        store.insert(_entry("a"))
        updated = store.patch("a", {"synced": True, "remote_id": "r1"})
        assert updated.synced is True
        assert updated.remote_id == "r1"
        assert updated.revision == 0

    def test_expected_revision_mismatch_changes_nothing(self, store):
        store.insert(_entry("a"))
        store.patch("a", {"notes": "edited"})

        result = store.patch("a", {"synced": True, "remote_id": "r1"}, expected_revision=0)

        assert result is None
        current = store.get("a")
        assert current.synced is False
        assert current.remote_id is None

    def test_expected_revision_match_applies(self, store):
        store.insert(_entry("a"))
        result = store.patch("a", {"synced": True, "remote_id": "r1"}, expected_revision=0)
        assert result is not None
        assert result.synced is True

    def test_unknown_id_returns_none(self, store):
        assert store.patch("missing", {"notes": "x"}) is None

    def test_unknown_field_rejected(self, store):
        store.insert(_entry("a"))
        with pytest.raises(ValueError):
            store.patch("a", {"revision": 5})


# ---------------------------------------------------------------------------
# JSON adapter
# ---------------------------------------------------------------------------

class TestJsonStore:

    def test_survives_reopen(self, tmp_path: Path):
        path = tmp_path / "entries.json"
        first = JsonEntryStore(path)
        first.insert(_entry("a", mood_label=MoodLabel.TIRED))
        first.patch("a", {"synced": True, "remote_id": "r1"})

        reopened = JsonEntryStore(path)
        entry = reopened.get("a")
        assert entry is not None
        assert entry.mood_label == MoodLabel.TIRED
        assert entry.synced is True
        assert entry.remote_id == "r1"
        assert entry.date == _T0

    def test_unreadable_file_is_not_treated_as_empty(self, tmp_path: Path):
        path = tmp_path / "entries.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(StoreError):
            JsonEntryStore(path)
        assert path.read_text(encoding="utf-8") == "{not json"

    def test_unreadable_records_survive_writes(self, tmp_path: Path):
        path = tmp_path / "entries.json"
        odd_mood = {"id": "old1", "mood": "Angry", "notes": "user-authored text", "createdAt": 1700000000000}
        no_notes = {"id": "old2", "mood": "Happy"}
        good = {"id": "old3", "mood": "Sad", "notes": "rainy", "createdAt": 1700000000000}
        repeated = {"id": "old3", "mood": "Happy", "notes": "second copy"}
        path.write_text(json.dumps([odd_mood, no_notes, good, repeated]), encoding="utf-8")

        store = JsonEntryStore(path)
        assert [e.id for e in store.list_all()] == ["old3"]
        store.insert(_entry("e1"))
        store.remove("old3")

        on_disk = json.loads(path.read_text(encoding="utf-8"))
        assert [item["id"] for item in on_disk] == ["e1", "old1", "old2", "old3"]
        assert odd_mood in on_disk
        assert no_notes in on_disk
        assert repeated in on_disk

    def test_failed_write_rolls_back(self, tmp_path: Path):
        store = JsonEntryStore(tmp_path / "entries.json")
        with patch("app.db.json_store.os.replace", side_effect=OSError("disk full")):
            with pytest.raises(StoreError):
                store.insert(_entry("a"))
        assert store.get("a") is None
        assert list(tmp_path.iterdir()) == []

    def test_duplicate_insert_rejected(self, tmp_path: Path):
        store = JsonEntryStore(tmp_path / "entries.json")
        store.insert(_entry("a"))
        with pytest.raises(StoreError):
            store.insert(_entry("a"))


class TestLegacyRecords:

    def test_camel_case_record(self):
        entry = entry_from_legacy({
            "id": "m1",
            "notes": "hello",
            "mood": "happy",
            "createdAt": 1_771_578_000_000,
            "remoteId": "r9",
            "synced": True,
        })
        assert entry is not None
        assert entry.mood_label == MoodLabel.HAPPY
        assert entry.remote_id == "r9"
        assert entry.synced is True
        assert entry.created_at == datetime.fromtimestamp(1_771_578_000, tz=timezone.utc)
        assert entry.date == entry.created_at

    def test_synced_without_remote_id_is_pending(self):
        entry = entry_from_legacy({"id": "m1", "notes": "x", "mood": "Sad", "synced": True})
        assert entry.synced is False

    @pytest.mark.parametrize(
        "item",
        [
            "junk",
            {"id": "b", "notes": "x", "mood": "Bogus"},
            {"id": "c", "notes": "   ", "mood": "Happy"},
            {"notes": "x", "mood": "Happy"},
            {"id": "d", "notes": "x", "mood": "Happy", "createdAt": "yesterday"},
        ],
    )
    def test_unusable_records_skipped(self, item):
        assert entry_from_legacy(item) is None


# ---------------------------------------------------------------------------
# SQLite adapter
# ---------------------------------------------------------------------------

class TestSQLiteStore:

    def test_duplicate_insert_raises_store_error(self):
        store = SQLiteEntryStore(":memory:")
        store.insert(_entry("a"))
        with pytest.raises(StoreError):
            store.insert(_entry("a"))

    def test_persists_to_file(self, tmp_path: Path):
        path = tmp_path / "nested" / "diary.db"
        first = SQLiteEntryStore(path)
        first.insert(_entry("a"))
        first.close()

        reopened = SQLiteEntryStore(path)
        assert reopened.get("a") == _entry("a")
        reopened.close()

    def test_migrates_legacy_json_once(self, tmp_path: Path):
        legacy = tmp_path / "legacy.json"
        legacy.write_text(
            json.dumps([
                {"id": "m1", "notes": "hi", "mood": "happy", "createdAt": 1_771_578_000_000},
                {"id": "m2", "notes": "x", "mood": "Bogus"},
                "junk",
            ]),
            encoding="utf-8",
        )
        store = SQLiteEntryStore(":memory:")

        assert store.migrate_from_json(legacy) == 1
        assert store.get("m1").mood_label == MoodLabel.HAPPY
        assert store.migrate_from_json(legacy) == 0
        assert store.count() == 1

    def test_migration_ignores_missing_or_broken_file(self, tmp_path: Path):
        store = SQLiteEntryStore(":memory:")
        assert store.migrate_from_json(tmp_path / "nope.json") == 0

        broken = tmp_path / "broken.json"
        broken.write_text("[", encoding="utf-8")
        assert store.migrate_from_json(broken) == 0


# ---------------------------------------------------------------------------
# Backend selection
# ---------------------------------------------------------------------------

class TestBackendSelection:

    @pytest.mark.parametrize(
        "configured, sqlite, expected",
        [
            ("auto", True, "sqlite"),
            ("auto", False, "json"),
            ("sqlite", True, "sqlite"),
            ("json", True, "json"),
            ("JSON", False, "json"),
        ],
    )
    def test_choose_backend(self, configured: str, sqlite: bool, expected: str):
        assert choose_backend(configured, StoreCapabilities(sqlite=sqlite)) == expected

    def test_sqlite_requested_but_unavailable(self):
        with pytest.raises(StoreError):
            choose_backend("sqlite", StoreCapabilities(sqlite=False))

    def test_unknown_backend(self):
        with pytest.raises(StoreError):
            choose_backend("indexeddb", StoreCapabilities(sqlite=True))

    def test_open_json_store(self, tmp_path: Path):
        store = open_entry_store(
            "json",
            sqlite_path=str(tmp_path / "x.db"),
            json_path=str(tmp_path / "entries.json"),
        )
        assert isinstance(store, JsonEntryStore)

    def test_open_sqlite_store_imports_legacy(self, tmp_path: Path):
        legacy = tmp_path / "legacy.json"
        legacy.write_text(json.dumps([{"id": "m1", "notes": "hi", "mood": "Sad"}]), encoding="utf-8")
        store = open_entry_store(
            "sqlite",
            sqlite_path=str(tmp_path / "x.db"),
            json_path=str(tmp_path / "entries.json"),
            legacy_json_path=str(legacy),
        )
        assert isinstance(store, SQLiteEntryStore)
        assert store.get("m1") is not None
        store.close()
