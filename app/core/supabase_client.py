import logging
from typing import Optional
from supabase import create_client, Client
from app.core.config import settings

logger = logging.getLogger(__name__)


def get_supabase_client() -> Optional[Client]:
    """Create a Supabase client from `settings`.

    Returns None when storage is not configured so the API can still boot;
    uploads then fail with a 502.
    """
    supabase_url = settings.SUPABASE_URL
    supabase_key = settings.SUPABASE_SERVICE_ROLE or settings.SUPABASE_ANON_PUBLIC

    if not supabase_url or not supabase_key:
        logger.warning("Supabase configuration missing: set SUPABASE_URL and SUPABASE_SERVICE_ROLE; file uploads are disabled")
        return None

    if settings.SUPABASE_SERVICE_ROLE is None:
        logger.warning("SUPABASE_SERVICE_ROLE not set; falling back to SUPABASE_ANON_PUBLIC (reduced privileges)")

    masked_url = supabase_url.split('://')[-1]
    masked_key = f"{supabase_key[:4]}...{supabase_key[-4:]}" if len(supabase_key) > 8 else "<hidden>"
    logger.debug(f"Using Supabase URL host: {masked_url} and key: {masked_key}")

    return create_client(supabase_url, supabase_key)
