"""
Diary Entry Schemas
===================
Pydantic models for diary entries as stored locally and as exchanged
with the presentation layer.

Key design decisions:
- synced/remote_id/revision are owned by the core and never accepted
  from the client.
- mood_source records whether the label was inferred or chosen by the
  user, so an edit to the notes only re-infers labels the user never
  overrode.
- Date fields are timezone-aware UTC; naive input is assumed UTC.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator

from app.models.mood import MoodLabel

MoodSource = Literal["inferred", "user"]

# Fields whose change makes the remote copy stale
CONTENT_FIELDS = frozenset({"notes", "mood_label", "mood_source", "date"})


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# ---------------------------------------------------------------------------
# Stored record
# ---------------------------------------------------------------------------

class DiaryEntry(BaseModel):
    """One diary entry as held by the local entry store."""

    id: str = Field(..., description="Locally generated id, never reused.")
    date: datetime = Field(..., description="When the user authored the entry.")
    mood_label: MoodLabel
    mood_source: MoodSource = "inferred"
    notes: str
    synced: bool = False
    remote_id: Optional[str] = None
    revision: int = Field(
        default=0,
        ge=0,
        description="Bumped on every local content mutation.",
    )
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @field_validator("date", "created_at", "updated_at")
    @classmethod
    def _normalise_tz(cls, value: datetime) -> datetime:
        return as_utc(value)

    def to_remote_payload(self) -> dict:
        """Body for POST/PATCH /entries."""
        return {
            "notes": self.notes,
            "mood": self.mood_label.value,
            "date": self.date.isoformat(),
        }


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------

class EntryCreateRequest(BaseModel):
    """Payload the app sends when the user submits a new entry."""

    notes: str = Field(..., description="Free-text diary content.")
    mood: Optional[str] = Field(
        default=None,
        description="Explicit mood override. Inferred from notes when omitted.",
    )
    date: Optional[datetime] = Field(
        default=None,
        description="Authoring time. Defaults to now.",
    )


class EntryPatch(BaseModel):
    """Partial update. Omitted fields are left unchanged."""

    notes: Optional[str] = None
    mood: Optional[str] = None
    date: Optional[datetime] = None

    def is_empty(self) -> bool:
        return self.notes is None and self.mood is None and self.date is None


class ConnectivityUpdate(BaseModel):
    """Connectivity signal pushed by the host platform."""

    online: bool
