"""
Mood Router
===========
POST /api/v1/mood/preview classifies the text currently in the editor.

Called on (debounced) keystrokes by the add-entry screen, so it does no
I/O at all: no store access, no network. The same engine labels the
entry when it is saved, so the preview always matches the saved mood
unless the user picks one by hand.
"""

from __future__ import annotations

from fastapi import APIRouter

from app.models.mood import MoodInference, MoodPreviewRequest
from app.services.entries import get_entry_service

router = APIRouter(prefix="/api/v1/mood", tags=["mood"])


@router.post(
    "/preview",
    response_model=MoodInference,
    summary="Preview the inferred mood for some text",
)
async def preview_mood(body: MoodPreviewRequest) -> MoodInference:
    return get_entry_service().preview_mood(body.text)
