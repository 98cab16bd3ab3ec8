"""
MoodDiary API
=============
FastAPI application entry point. Mount routers here.

The lifespan starts the sync worker and queues one full sync pass, the
"app came to the foreground" trigger.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.config import get_settings
from app.routers import entries, insights, mood, sync
from app.services.entries import get_entry_service

settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    service = get_entry_service()
    await service.start()
    try:
        yield
    finally:
        await service.stop()


app = FastAPI(
    title="MoodDiary API",
    description="Offline-first mood journal: on-device mood inference and background sync",
    version="0.1.0",
    docs_url="/api/docs" if settings.environment != "production" else None,
    redoc_url="/api/redoc" if settings.environment != "production" else None,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(entries.router)
app.include_router(mood.router)
app.include_router(sync.router)
app.include_router(insights.router)


@app.get("/api/v1/health")
async def health_check() -> dict:
    return {"status": "ok", "service": "mooddiary-api"}
