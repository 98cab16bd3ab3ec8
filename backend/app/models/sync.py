"""
Sync Schemas
============
Results exchanged between the sync coordinator and remote transports.
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, Field


class RemoteWriteResult(BaseModel):
    """Outcome of one remote create or patch.

    Transports never raise for network or server failures; they resolve
    to ok=False with a short error string instead.
    """

    ok: bool
    remote_record: Optional[dict[str, Any]] = Field(
        default=None,
        validation_alias=AliasChoices("remote_record", "remoteRecord"),
    )
    status_code: Optional[int] = None
    error: Optional[str] = None

    @property
    def remote_id(self) -> Optional[str]:
        """Identifier assigned by the remote, from either `id` or `_id`."""
        if not self.remote_record:
            return None
        for key in ("id", "_id"):
            value = self.remote_record.get(key)
            if value is not None and str(value).strip():
                return str(value)
        return None


class SyncSummary(BaseModel):
    """Returned by a sync pass."""

    synced_count: int = 0
    failed_count: int = 0
    failed_ids: list[str] = Field(default_factory=list)
    pending_count: int = Field(
        default=0,
        description="Entries still unsynced after the pass.",
    )
    online: bool = True
