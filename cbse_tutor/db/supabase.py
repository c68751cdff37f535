"""Async Supabase client shared by every repository.

Import using: from cbse_tutor.db.supabase import get_supabase
"""
from __future__ import annotations

import asyncio
from typing import Optional

from supabase import AsyncClient, create_async_client

from cbse_tutor.core.config import get_settings

_client: Optional[AsyncClient] = None
_lock = asyncio.Lock()


class SupabaseNotConfiguredError(RuntimeError):
    pass


async def get_supabase() -> AsyncClient:
    """Return the process-wide `AsyncClient`, creating it on first use.

    Settings are read at call time so tests and scripts can set the env first.
    """
    global _client
    if _client is not None:
        return _client
    async with _lock:
        if _client is None:
            settings = get_settings()
            if not settings.supabase_url or not settings.supabase_key:
                raise SupabaseNotConfiguredError("SUPABASE_URL and SUPABASE_ANON_KEY must be set")
            _client = await create_async_client(settings.supabase_url, settings.supabase_key)
    return _client


__all__ = ["SupabaseNotConfiguredError", "get_supabase"]
