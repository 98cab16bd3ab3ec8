"""
MoodDiary Configuration
=======================
All environment variables in one place. Pydantic Settings validates
types at startup so a bad store path or remote URL fails on boot, not
halfway through a sync pass.
"""

from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Loaded from environment variables or a .env file."""

    # --- Local entry store ---
    # auto | sqlite | json. "auto" picks SQLite when the interpreter was
    # built with it and falls back to the JSON file otherwise.
    store_backend: str = "auto"
    sqlite_path: str = "data/mood_diary.db"
    json_store_path: str = "data/entries.json"
    # Entries found here are imported into an empty SQLite store on first open
    legacy_json_path: Optional[str] = None

    # --- Remote system of record ---
    remote_backend: str = "http"  # http | supabase
    remote_api_url: str = "http://localhost:3001"
    remote_api_token: str = ""  # optional bearer token, sent only when set
    remote_timeout_seconds: float = 10.0

    # --- Supabase (remote_backend == "supabase") ---
    supabase_url: str = "http://localhost:54321"
    supabase_service_key: str = ""

    # --- Connectivity ---
    # When set and the host has not pushed an explicit state, the device
    # is considered online if a GET here answers within the timeout.
    connectivity_probe_url: Optional[str] = None
    connectivity_probe_timeout_seconds: float = 2.0

    # --- App settings ---
    environment: str = "development"  # development | staging | production
    log_level: str = "INFO"
    cors_origins: list[str] = ["http://localhost:8081", "http://localhost:19006"]

    # --- Entries ---
    max_notes_length: int = 10_000

    # --- Feature flags ---
    # Kill switch: if False, entries are still saved locally but nothing
    # is pushed until sync is re-enabled or forced from the UI.
    enable_background_sync: bool = True
    sync_on_startup: bool = True

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


@lru_cache
def get_settings() -> Settings:
    return Settings()
