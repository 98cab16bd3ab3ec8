"""
Tests for remote transports
===========================
Covers:
- RemoteEntryClient.write: POST for new entries, PATCH once a remote id exists
- Identifier from `id` or `_id`; create without one is a failure
- Optional bearer token
- Non-2xx, timeouts, connection errors and malformed bodies -> ok=False
- delete: 2xx and 404 are success, everything else is not
- SupabaseEntryRemote: insert/update/delete via the table API, failures absorbed

Run: pytest tests/test_remote.py -v
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

import httpx
import pytest
import respx
from httpx import Response

from app.config import Settings
from app.db.supabase import SupabaseConfigError, get_supabase_client
from app.models.entry import DiaryEntry
from app.models.mood import MoodLabel
from app.services.remote import RemoteAPIError, RemoteEntryClient
from app.services.supabase_remote import SupabaseEntryRemote

# ---------------------------------------------------------------------------
# Fixtures / constants
# ---------------------------------------------------------------------------

_BASE = "https://diary.test/api"
_TOKEN = "test-token"


def _entry(remote_id=None) -> DiaryEntry:
    stamp = datetime(2026, 2, 20, 21, 30, tzinfo=timezone.utc)
    return DiaryEntry(
        id="local-1",
        date=stamp,
        mood_label=MoodLabel.ANXIOUS,
        notes="a bit worried about tomorrow",
        remote_id=remote_id,
        created_at=stamp,
        updated_at=stamp,
    )


def _client(token=None) -> RemoteEntryClient:
    return RemoteEntryClient(_BASE, token_provider=(lambda: token) if token else None)


# ---------------------------------------------------------------------------
# HTTP client
# ---------------------------------------------------------------------------

class TestRemoteWrite:

    @pytest.mark.asyncio
    @respx.mock
    async def test_create_posts_payload(self):
        route = respx.post(f"{_BASE}/entries").mock(
            return_value=Response(201, json={"id": "r1", "mood": "Anxious"})
        )

        result = await _client().write(_entry())

        assert result.ok is True
        assert result.remote_id == "r1"
        body = json.loads(route.calls.last.request.content)
        assert body == {
            "notes": "a bit worried about tomorrow",
            "mood": "Anxious",
            "date": "2026-02-20T21:30:00+00:00",
        }

    @pytest.mark.asyncio
    @respx.mock
    async def test_existing_remote_id_patches(self):
        route = respx.patch(f"{_BASE}/entries/r1").mock(
            return_value=Response(200, json={"_id": "r1"})
        )

        result = await _client().write(_entry(remote_id="r1"))

        assert route.called
        assert result.ok is True
        assert result.remote_id == "r1"

    @pytest.mark.asyncio
    @respx.mock
    async def test_mongo_style_id(self):
        respx.post(f"{_BASE}/entries").mock(return_value=Response(201, json={"_id": "abc123"}))
        result = await _client().write(_entry())
        assert result.remote_id == "abc123"

    @pytest.mark.asyncio
    @respx.mock
    async def test_no_token_no_auth_header(self):
        route = respx.post(f"{_BASE}/entries").mock(return_value=Response(201, json={"id": "r1"}))
        await _client().write(_entry())
        assert "Authorization" not in route.calls.last.request.headers

    @pytest.mark.asyncio
    @respx.mock
    async def test_bearer_token_sent(self):
        route = respx.post(f"{_BASE}/entries").mock(return_value=Response(201, json={"id": "r1"}))
        await _client(_TOKEN).write(_entry())
        assert route.calls.last.request.headers["Authorization"] == f"Bearer {_TOKEN}"

    @pytest.mark.asyncio
    @respx.mock
    async def test_server_error_is_not_ok(self):
        respx.post(f"{_BASE}/entries").mock(return_value=Response(500, json={"error": "db down"}))

        result = await _client().write(_entry())

        assert result.ok is False
        assert result.status_code == 500
        assert "db down" in result.error

    @pytest.mark.asyncio
    @respx.mock
    async def test_client_error_is_not_ok(self):
        respx.post(f"{_BASE}/entries").mock(return_value=Response(400, text="bad mood"))
        result = await _client().write(_entry())
        assert result.ok is False
        assert result.status_code == 400

    @pytest.mark.asyncio
    @respx.mock
    async def test_timeout_is_not_ok(self):
        respx.post(f"{_BASE}/entries").mock(side_effect=httpx.ReadTimeout("timed out"))
        result = await _client().write(_entry())
        assert result.ok is False
        assert "ReadTimeout" in result.error

    @pytest.mark.asyncio
    @respx.mock
    async def test_connection_error_is_not_ok(self):
        respx.post(f"{_BASE}/entries").mock(side_effect=httpx.ConnectError("refused"))
        result = await _client().write(_entry())
        assert result.ok is False

    @pytest.mark.asyncio
    @respx.mock
    async def test_malformed_body_is_not_ok(self):
        respx.post(f"{_BASE}/entries").mock(return_value=Response(200, text="<html>oops</html>"))
        result = await _client().write(_entry())
        assert result.ok is False

    @pytest.mark.asyncio
    @respx.mock
    async def test_array_body_is_not_ok(self):
        respx.post(f"{_BASE}/entries").mock(return_value=Response(200, json=[{"id": "r1"}]))
        result = await _client().write(_entry())
        assert result.ok is False

    @pytest.mark.asyncio
    @respx.mock
    async def test_create_without_id_is_not_ok(self):
        respx.post(f"{_BASE}/entries").mock(return_value=Response(201, json={"notes": "x"}))
        result = await _client().write(_entry())
        assert result.ok is False
        assert result.error == "missing id in response"


class TestRemoteDelete:

    @pytest.mark.asyncio
    @respx.mock
    async def test_no_content_is_success(self):
        respx.delete(f"{_BASE}/entries/r1").mock(return_value=Response(204))
        assert await _client().delete("r1") is True

    @pytest.mark.asyncio
    @respx.mock
    async def test_already_gone_is_success(self):
        respx.delete(f"{_BASE}/entries/r1").mock(return_value=Response(404))
        assert await _client().delete("r1") is True

    @pytest.mark.asyncio
    @respx.mock
    async def test_server_error_is_failure(self):
        respx.delete(f"{_BASE}/entries/r1").mock(return_value=Response(503))
        assert await _client().delete("r1") is False

    @pytest.mark.asyncio
    @respx.mock
    async def test_network_error_is_failure(self):
        respx.delete(f"{_BASE}/entries/r1").mock(side_effect=httpx.ConnectError("refused"))
        assert await _client().delete("r1") is False


class TestRawEndpoints:

    @pytest.mark.asyncio
    @respx.mock
    async def test_list_entries(self):
        respx.get(f"{_BASE}/entries").mock(
            return_value=Response(200, json=[{"id": "r1"}, "junk", {"id": "r2"}])
        )
        assert await _client().list_entries() == [{"id": "r1"}, {"id": "r2"}]

    @pytest.mark.asyncio
    @respx.mock
    async def test_raw_call_raises_api_error(self):
        respx.post(f"{_BASE}/entries").mock(return_value=Response(401, json={"error": "no"}))
        with pytest.raises(RemoteAPIError) as exc_info:
            await _client().create_entry({"notes": "x"})
        assert exc_info.value.status_code == 401
        assert exc_info.value.body == "no"

    def test_from_settings(self):
        client = RemoteEntryClient.from_settings(
            Settings(remote_api_url="https://diary.test/api/", remote_api_token="")
        )
        assert client._base_url == "https://diary.test/api"
        assert client._token_provider is None


# ---------------------------------------------------------------------------
# Supabase transport
# ---------------------------------------------------------------------------

class TestSupabaseRemote:

    @pytest.mark.asyncio
    async def test_insert_new_entry(self):
        db = MagicMock()
        db.table.return_value.insert.return_value.execute.return_value.data = [{"id": "s1"}]

        result = await SupabaseEntryRemote(client=db).write(_entry())

        assert result.ok is True
        assert result.remote_id == "s1"
        db.table.assert_called_with("entries")
        db.table.return_value.insert.assert_called_once_with(_entry().to_remote_payload())

    @pytest.mark.asyncio
    async def test_update_existing_entry(self):
        db = MagicMock()
        db.table.return_value.update.return_value.eq.return_value.execute.return_value.data = [
            {"id": "s1"}
        ]

        result = await SupabaseEntryRemote(client=db).write(_entry(remote_id="s1"))

        assert result.ok is True
        db.table.return_value.update.return_value.eq.assert_called_once_with("id", "s1")

    @pytest.mark.asyncio
    async def test_error_is_not_ok(self):
        db = MagicMock()
        db.table.return_value.insert.return_value.execute.side_effect = Exception("JWT expired")

        result = await SupabaseEntryRemote(client=db).write(_entry())

        assert result.ok is False
        assert "JWT expired" in result.error

    @pytest.mark.asyncio
    async def test_no_rows_is_not_ok(self):
        db = MagicMock()
        db.table.return_value.insert.return_value.execute.return_value.data = []
        result = await SupabaseEntryRemote(client=db).write(_entry())
        assert result.ok is False

    @pytest.mark.asyncio
    async def test_delete(self):
        db = MagicMock()
        assert await SupabaseEntryRemote(client=db).delete("s1") is True
        db.table.return_value.delete.return_value.eq.assert_called_once_with("id", "s1")

    @pytest.mark.asyncio
    async def test_delete_failure(self):
        db = MagicMock()
        db.table.return_value.delete.return_value.eq.return_value.execute.side_effect = Exception("down")
        assert await SupabaseEntryRemote(client=db).delete("s1") is False


class TestSupabaseClient:

    def test_missing_service_key(self):
        settings = MagicMock(supabase_url="http://localhost:54321", supabase_service_key="")
        get_supabase_client.cache_clear()
        try:
            with patch("app.db.supabase.get_settings", return_value=settings):
                with pytest.raises(SupabaseConfigError):
                    get_supabase_client()
        finally:
            get_supabase_client.cache_clear()
