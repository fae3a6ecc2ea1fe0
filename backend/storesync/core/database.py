"""
Connection to the authoritative store (Supabase)

All remote access goes through the async Supabase client so that every
store call is a suspension point on the event loop.

Author: StoreSync
"""
import logging
from typing import Optional

from supabase import acreate_client, AsyncClient

from .config import settings

logger = logging.getLogger(__name__)


_supabase: Optional[AsyncClient] = None


async def get_supabase() -> AsyncClient:
    """
    FastAPI dependency returning the shared async Supabase client

    The client is created on first use.

    Usage:
        @app.get("/data")
        async def get_data(sb: AsyncClient = Depends(get_supabase)):
            ...
    """
    global _supabase

    if _supabase is None:
        if not settings.SUPABASE_URL or not settings.SUPABASE_SERVICE_ROLE_KEY:
            raise Exception("SUPABASE_URL / SUPABASE_SERVICE_ROLE_KEY not configured")

        logger.info("Creating Supabase client")
        _supabase = await acreate_client(settings.SUPABASE_URL, settings.SUPABASE_SERVICE_ROLE_KEY)

    return _supabase
