from functools import lru_cache

from supabase import Client, create_client

from config.settings import SUPABASE_SERVICE_KEY, SUPABASE_URL


@lru_cache(maxsize=1)
def get_supabase_client() -> Client:
    """Shared Supabase client, created on first use with the service role key."""
    if not SUPABASE_URL or not SUPABASE_SERVICE_KEY:
        raise ValueError("SUPABASE_URL and SUPABASE_SERVICE_KEY must be set")

    return create_client(SUPABASE_URL, SUPABASE_SERVICE_KEY)
