"""
Insight Schemas
===============
Read-only summaries computed from the local entry store.

counts always carries every MoodLabel (zero when no entry in the window
has it) so the insights screen can render a stable list.
"""

from __future__ import annotations

from datetime import date

from pydantic import BaseModel, Field


class MoodCounts(BaseModel):
    """Entry counts per mood label over the last `days` calendar days."""

    counts: dict[str, int] = Field(..., description="Entries per mood label, every label present.")
    total: int
    days: int
    window_start: date = Field(..., description="First day included (UTC).")
    window_end: date = Field(..., description="Last day included (UTC), normally today.")
