"""Supabase client initialization."""

from functools import lru_cache

from supabase import Client, create_client

from app.core.config import get_settings


@lru_cache(maxsize=1)
def get_supabase() -> Client:
    """
    Get Supabase client instance (cached singleton).

    Chats, AI state, knowledge entries, owner settings and the pgvector
    knowledge records all live behind this one client.

    Returns:
        Supabase client configured with service role key

    Raises:
        RuntimeError: If settings are incomplete or client initialization fails
    """
    try:
        settings = get_settings()
        return create_client(settings.SUPABASE_URL, settings.SUPABASE_SERVICE_ROLE_KEY)
    except Exception as e:
        raise RuntimeError(f"Failed to initialize Supabase client: {e}") from e
