"""
Backend-as-a-service client factory.
"""
from typing import Optional

from supabase import Client, create_client

from ..config.settings import Settings, get_settings


class SupabaseNotConfigured(RuntimeError):
    """Raised when a client is requested without a URL and key."""


_client: Optional[Client] = None


def get_supabase_client(settings: Optional[Settings] = None) -> Client:
    """Get the shared client, creating it on first use."""
    global _client
    if _client is None:
        settings = settings or get_settings()
        if not settings.supabase_configured:
            raise SupabaseNotConfigured(
                "Missing SUPABASE_URL / SUPABASE_SERVICE_ROLE_KEY env vars."
            )
        _client = create_client(settings.supabase_url, settings.supabase_key)
    return _client
