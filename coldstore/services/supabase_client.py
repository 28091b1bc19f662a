import logging
from typing import Optional

from supabase import Client, SupabaseException, create_client

from coldstore.config import load_settings

logger = logging.getLogger(__name__)

_client: Client | None = None


def get_supabase_client() -> Optional[Client]:
    """Return a cached Supabase client if available.

    The client is initialised from ``SUPABASE_URL`` and ``SUPABASE_KEY``
    (environment or Streamlit secrets). If configuration is missing or the
    connection fails, ``None`` is returned and the error is logged. The
    initialisation is performed once and the resulting client is cached for
    subsequent calls.
    """

    global _client
    if _client is not None:
        return _client

    settings = load_settings()
    if not settings.supabase_url or not settings.supabase_key:
        logger.warning("Supabase is not configured")
        return None
    try:  # pragma: no cover - network interaction
        _client = create_client(settings.supabase_url, settings.supabase_key)
    except SupabaseException:  # pragma: no cover - network interaction
        logger.exception("Failed to initialise Supabase client")
        return None
    return _client


def reset_client() -> None:
    """Forget the cached client so the next call reconnects."""
    global _client
    _client = None
