from supabase import create_client, Client
from functools import lru_cache
from marketplace.config import get_settings


@lru_cache()
def get_supabase_client() -> Client:
    """Get a cached Supabase client instance."""
    settings = get_settings()
    return create_client(
        settings.supabase_url,
        settings.supabase_service_key
    )


def first_row(response):
    """First row of a query response, or None."""
    if response is None or not response.data:
        return None
    return response.data[0]
