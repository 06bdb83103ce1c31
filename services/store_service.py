"""
Store repository.

Connected stores and their Admin API credentials, read from the stores table.
"""

from typing import Optional
import structlog

from config import get_supabase_client
from models.store import Store
from exceptions import StoreNotFoundError, DatabaseError

logger = structlog.get_logger(__name__)


class StoreService:

    def __init__(self):
        self.db = get_supabase_client()
        self.table = "stores"

    def get_by_id(self, store_id: str) -> Store:
        """
        Get an active store by ID.

        Raises:
            StoreNotFoundError: Missing or inactive store
        """
        try:
            result = (
                self.db.table(self.table)
                .select("*")
                .eq("id", store_id)
                .execute()
            )
        except Exception as e:
            logger.error("get_store_failed", store_id=store_id, error=str(e))
            raise DatabaseError("select", str(e))

        if not result.data:
            raise StoreNotFoundError(store_id)

        store = Store.model_validate(result.data[0])
        if not store.is_active:
            logger.warning("store_inactive", store_id=store_id)
            raise StoreNotFoundError(store_id)

        return store

    def get_many(self, store_ids: list[str]) -> dict[str, Store]:
        """Stores keyed by id, inactive ones included."""
        if not store_ids:
            return {}
        try:
            result = (
                self.db.table(self.table)
                .select("*")
                .in_("id", list(store_ids))
                .execute()
            )
        except Exception as e:
            logger.error("get_stores_failed", error=str(e))
            raise DatabaseError("select", str(e))

        return {row["id"]: Store.model_validate(row) for row in result.data or []}


_store_service: Optional[StoreService] = None

def get_store_service() -> StoreService:
    """Get or create StoreService instance."""
    global _store_service
    if _store_service is None:
        _store_service = StoreService()
    return _store_service
