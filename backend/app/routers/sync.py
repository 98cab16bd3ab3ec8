"""
Sync Router
===========
POST /api/v1/sync          explicit "sync now" (pull-to-refresh)
PUT  /api/v1/connectivity  host reports network state changes

Background sync never reports errors to the app. An explicit sync is
the exception: the user asked for it, so offline and per-entry failures
come back as 503 and 502 with the summary attached.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, status

from app.db.store import StoreError
from app.models.entry import ConnectivityUpdate
from app.models.sync import SyncSummary
from app.services.entries import get_entry_service
from app.services.sync import RemoteSyncError, SyncUnavailableError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["sync"])


@router.post(
    "/sync",
    response_model=SyncSummary,
    summary="Push every pending entry now",
    responses={
        502: {"description": "Some entries could not be pushed"},
        503: {"description": "Device is offline"},
    },
)
async def force_sync() -> SyncSummary:
    service = get_entry_service()
    try:
        return await service.force_sync()
    except SyncUnavailableError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={"message": str(exc), "code": "offline"},
        ) from exc
    except RemoteSyncError as exc:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={
                "message": str(exc),
                "code": "sync_failed",
                "summary": exc.summary.model_dump(),
            },
        ) from exc
    except StoreError as exc:
        logger.error("Local store failure during explicit sync: %s", exc)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"message": "Could not read entries on this device", "code": "store_error"},
        ) from exc


@router.put(
    "/connectivity",
    summary="Report network state",
    description="An offline -> online transition queues a full sync pass.",
)
async def update_connectivity(body: ConnectivityUpdate) -> dict:
    get_entry_service().set_online(body.online)
    return {"online": body.online}
