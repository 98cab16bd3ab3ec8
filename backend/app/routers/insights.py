"""
Insights Router
===============
GET /api/v1/insights/moods  entry counts per mood for the last N days.

Backs the weekly overview on the insights screen. Computed from the
local store only, so it works offline and includes entries that have
not reached the remote yet.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, Query, status

from app.db.store import StoreError
from app.models.insights import MoodCounts
from app.services.entries import get_entry_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/insights", tags=["insights"])


@router.get(
    "/moods",
    response_model=MoodCounts,
    status_code=status.HTTP_200_OK,
    summary="Count entries per mood",
    description=(
        "Counts entries per mood label whose date falls within the last `days` "
        "calendar days (UTC), today included. Every label is present, zero when unused."
    ),
)
async def get_mood_counts(
    days: int = Query(7, ge=1, le=365, description="Window length in days"),
) -> MoodCounts:
    try:
        return get_entry_service().mood_counts(days=days)
    except StoreError as exc:
        logger.error("Local store failure computing mood counts: %s", exc)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"message": "Could not read entries on this device", "code": "store_error"},
        ) from exc
