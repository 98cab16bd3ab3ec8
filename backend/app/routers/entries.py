"""
Diary Entries Router
====================
Local CRUD for diary entries, called by the app's screens.

    POST   /api/v1/entries        create (mood inferred unless given)
    GET    /api/v1/entries        list, newest first
    GET    /api/v1/entries/{id}   one entry
    PATCH  /api/v1/entries/{id}   edit notes / mood / date
    DELETE /api/v1/entries/{id}   delete locally, remote delete queued

Every write completes against the local store before the response is
sent; syncing happens afterwards on the sync worker. A 201/200 here
means the entry is on disk, not that it reached the remote. Check the
`synced` flag for that.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, Response, status

from app.db.store import StoreError
from app.models.entry import DiaryEntry, EntryCreateRequest, EntryPatch
from app.services.entries import (
    EntryNotFoundError,
    EntryValidationError,
    get_entry_service,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/entries", tags=["entries"])


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _validation_error(exc: EntryValidationError) -> HTTPException:
    return HTTPException(
        status_code=422,
        detail={"message": exc.message, "code": exc.code},
    )


def _not_found(exc: EntryNotFoundError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail={"message": str(exc), "code": "entry_not_found"},
    )


def _store_error(exc: StoreError) -> HTTPException:
    logger.error("Local store failure: %s", exc)
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail={"message": "Failed to save entry on this device", "code": "store_error"},
    )


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post(
    "",
    response_model=DiaryEntry,
    status_code=status.HTTP_201_CREATED,
    summary="Create a diary entry",
    responses={
        201: {"description": "Entry saved locally (synced=false until pushed)"},
        422: {"description": "Empty notes, notes too long, invalid mood or date"},
        500: {"description": "Local storage failure, nothing was saved"},
    },
)
async def create_entry(body: EntryCreateRequest) -> DiaryEntry:
    service = get_entry_service()
    try:
        return await service.create_entry(body.notes, explicit_mood=body.mood, date=body.date)
    except EntryValidationError as exc:
        raise _validation_error(exc) from exc
    except StoreError as exc:
        raise _store_error(exc) from exc


@router.get("", response_model=list[DiaryEntry], summary="List diary entries")
async def list_entries() -> list[DiaryEntry]:
    try:
        return get_entry_service().list_entries()
    except StoreError as exc:
        raise _store_error(exc) from exc


@router.get("/{entry_id}", response_model=DiaryEntry, summary="Get one diary entry")
async def get_entry(entry_id: str) -> DiaryEntry:
    try:
        return get_entry_service().get_entry(entry_id)
    except EntryNotFoundError as exc:
        raise _not_found(exc) from exc
    except StoreError as exc:
        raise _store_error(exc) from exc


@router.patch(
    "/{entry_id}",
    response_model=DiaryEntry,
    summary="Edit a diary entry",
    responses={
        404: {"description": "No entry with this id"},
        422: {"description": "Invalid or empty patch"},
    },
)
async def update_entry(entry_id: str, body: EntryPatch) -> DiaryEntry:
    service = get_entry_service()
    try:
        return await service.update_entry(entry_id, body)
    except EntryValidationError as exc:
        raise _validation_error(exc) from exc
    except EntryNotFoundError as exc:
        raise _not_found(exc) from exc
    except StoreError as exc:
        raise _store_error(exc) from exc


@router.delete(
    "/{entry_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a diary entry",
)
async def delete_entry(entry_id: str) -> Response:
    service = get_entry_service()
    try:
        deleted = await service.delete_entry(entry_id)
    except StoreError as exc:
        raise _store_error(exc) from exc
    if not deleted:
        raise _not_found(EntryNotFoundError(entry_id))
    return Response(status_code=status.HTTP_204_NO_CONTENT)
