"""
Supabase connection.

One cached client serves the product and store repositories and the
product_maps mapping store.
"""

from supabase import create_client, Client
from functools import lru_cache
import structlog

from config.settings import settings

logger = structlog.get_logger(__name__)

# Tables the sync backend reads or writes
HEALTH_CHECK_TABLES = ("products", "stores", "product_maps")


class DatabaseError(Exception):
    """Base exception for database errors."""
    pass


class ConnectionError(DatabaseError):
    """Failed to connect to database."""
    pass


@lru_cache()
def get_supabase_client() -> Client:
    """
    Cached Supabase client.

    Call get_supabase_client.cache_clear() to reconnect.

    Raises:
        ConnectionError: Client could not be created
    """
    logger.info("connecting_to_supabase", url=settings.supabase_url[:30] + "...")

    try:
        client = create_client(settings.supabase_url, settings.supabase_key)
    except Exception as e:
        logger.error(
            "supabase_connection_failed",
            error=str(e),
            error_type=type(e).__name__
        )
        raise ConnectionError(f"Failed to connect to Supabase: {e}") from e

    logger.info("supabase_connected")
    return client


def check_connection() -> dict:
    """
    Row counts of every table the backend uses.

    Returns:
        {"status": "healthy", "<table>_count": n, ...} or
        {"status": "unhealthy", "error": "..."}
    """
    try:
        client = get_supabase_client()
        counts = {
            f"{table}_count": client.table(table).select("id", count="exact").execute().count
            for table in HEALTH_CHECK_TABLES
        }
    except Exception as e:
        return {"status": "unhealthy", "error": str(e)}

    return {"status": "healthy", **counts}
