"""
Remote Entry Client
===================
httpx transport for the remote entries API, the system of record the
sync coordinator reconciles against.

    POST   /entries              create, returns {id | _id, ...}
    PATCH  /entries/{remote_id}  partial update, same response
    DELETE /entries/{remote_id}  best effort
    GET    /entries              list

write() is the remote-write function handed to the sync coordinator. It
never raises for network trouble: timeouts, connection errors, non-2xx
and malformed bodies all resolve to RemoteWriteResult(ok=False). The
bearer token is optional; when the provider returns nothing no
Authorization header is sent.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional

import httpx

from app.config import Settings, get_settings
from app.models.entry import DiaryEntry
from app.models.sync import RemoteWriteResult

logger = logging.getLogger(__name__)

TokenProvider = Callable[[], Optional[str]]


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class RemoteAPIError(Exception):
    """Non-2xx response from the remote entries API."""

    def __init__(self, status_code: int, body: str) -> None:
        self.status_code = status_code
        self.body = body
        super().__init__(f"Remote API error {status_code}: {body}")


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------


class RemoteEntryClient:
    """Makes (optionally authenticated) requests to the remote entries API."""

    def __init__(
        self,
        base_url: str,
        token_provider: Optional[TokenProvider] = None,
        timeout: float = 10.0,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._token_provider = token_provider
        self._timeout = timeout

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> RemoteEntryClient:
        settings = settings or get_settings()
        token = settings.remote_api_token
        return cls(
            base_url=settings.remote_api_url,
            token_provider=(lambda: token) if token else None,
            timeout=settings.remote_timeout_seconds,
        )

    # ---- Sync-facing API (never raises) ---------------------------------

    async def write(self, entry: DiaryEntry) -> RemoteWriteResult:
        """Create the entry remotely, or patch it if it already has a remote_id."""
        try:
            if entry.remote_id:
                record = await self.patch_entry(entry.remote_id, entry.to_remote_payload())
            else:
                record = await self.create_entry(entry.to_remote_payload())
        except RemoteAPIError as exc:
            logger.warning("Remote rejected entry %s: %s", entry.id, exc)
            return RemoteWriteResult(ok=False, status_code=exc.status_code, error=str(exc))
        except httpx.HTTPError as exc:
            logger.warning("Remote unreachable for entry %s: %s", entry.id, exc)
            return RemoteWriteResult(ok=False, error=f"{type(exc).__name__}: {exc}")
        except ValueError as exc:
            logger.warning("Remote returned malformed body for entry %s: %s", entry.id, exc)
            return RemoteWriteResult(ok=False, error=f"malformed response: {exc}")

        result = RemoteWriteResult(ok=True, remote_record=record)
        if not entry.remote_id and result.remote_id is None:
            logger.warning("Remote create for entry %s returned no identifier", entry.id)
            return RemoteWriteResult(ok=False, remote_record=record, error="missing id in response")
        return result

    async def delete(self, remote_id: str) -> bool:
        """Best-effort delete. True on 2xx or 404, False otherwise."""
        try:
            await self._request("DELETE", f"/entries/{remote_id}")
        except RemoteAPIError as exc:
            if exc.status_code == 404:
                return True
            logger.warning("Remote delete of %s failed: %s", remote_id, exc)
            return False
        except httpx.HTTPError as exc:
            logger.warning("Remote delete of %s failed: %s", remote_id, exc)
            return False
        return True

    # ---- Raw endpoints (raise RemoteAPIError / httpx.HTTPError) ----------

    async def create_entry(self, payload: dict[str, Any]) -> dict[str, Any]:
        """POST /entries."""
        return _expect_object(await self._request("POST", "/entries", json=payload))

    async def patch_entry(self, remote_id: str, payload: dict[str, Any]) -> dict[str, Any]:
        """PATCH /entries/{remote_id}."""
        return _expect_object(
            await self._request("PATCH", f"/entries/{remote_id}", json=payload)
        )

    async def list_entries(self) -> list[dict[str, Any]]:
        """GET /entries."""
        data = await self._request("GET", "/entries")
        if not isinstance(data, list):
            raise ValueError("expected a JSON array")
        return [item for item in data if isinstance(item, dict)]

    async def _request(self, method: str, path: str, json: Any = None) -> Any:
        """Shared async call. Raises RemoteAPIError on non-2xx."""
        headers = {"Accept": "application/json"}
        token = self._token_provider() if self._token_provider else None
        if token:
            headers["Authorization"] = f"Bearer {token}"

        async with httpx.AsyncClient(timeout=self._timeout) as client:
            response = await client.request(
                method,
                f"{self._base_url}{path}",
                json=json,
                headers=headers,
            )
        if not response.is_success:
            raise RemoteAPIError(response.status_code, _error_text(response))
        if response.status_code == 204 or not response.content:
            return None
        return response.json()


def _expect_object(data: Any) -> dict[str, Any]:
    if not isinstance(data, dict):
        raise ValueError("expected a JSON object")
    return data


def _error_text(response: httpx.Response) -> str:
    """Prefer the API's {"error": ...} message over the raw body."""
    try:
        body = response.json()
    except ValueError:
        return response.text
    if isinstance(body, dict) and body.get("error"):
        return str(body["error"])
    return response.text
