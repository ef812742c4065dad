from functools import lru_cache

from supabase import create_client, Client
from app.core.config import settings


@lru_cache
def get_supabase() -> Client:
    if not settings.supabase_url or not settings.supabase_key:
        raise RuntimeError("SUPABASE_URL and SUPABASE_KEY must be set for the supabase blob backend")
    return create_client(settings.supabase_url, settings.supabase_key)
