from __future__ import annotations

from supabase import Client, create_client

from src.config import settings


_client: Client | None = None


def get_supabase() -> Client:
    global _client
    if _client is None:
        _client = create_client(settings.supabase_url, settings.supabase_service_role_key)
    return _client
