"""
Supabase Client
===============
Configured Supabase client for deployments that use a Supabase project
as the remote system of record instead of the REST entries API
(remote_backend = "supabase").

Only the sync path talks to it. Local reads and writes never wait on
this client, and the default http remote never creates one.
"""

from functools import lru_cache

from supabase import Client, create_client

from app.config import get_settings


class SupabaseConfigError(Exception):
    """remote_backend is "supabase" but the project credentials are missing."""


@lru_cache
def get_supabase_client() -> Client:
    settings = get_settings()
    if not settings.supabase_service_key:
        raise SupabaseConfigError(
            "remote_backend=supabase requires SUPABASE_SERVICE_KEY to be set"
        )
    return create_client(settings.supabase_url, settings.supabase_service_key)
