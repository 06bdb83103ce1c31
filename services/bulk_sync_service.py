"""
Bulk sync coordinator.

Pushes many products into one store in sequential batches. Products inside
a batch sync concurrently; a fixed pause between batches keeps the store's
API rate limit happy. A failing product becomes an error entry and never
stops the others.
"""

import asyncio
from typing import Optional
import structlog

from config import settings
from models.sync import BulkSyncFailure, BulkSyncItem, BulkSyncResult, SyncRequest
from exceptions import AppError, ValidationError
from services.store_service import get_store_service
from services.store_sync_service import get_store_sync_service

logger = structlog.get_logger(__name__)


def partition(items: list[str], size: int) -> list[list[str]]:
    """Consecutive chunks of at most `size` items."""
    return [items[i:i + size] for i in range(0, len(items), size)]


class BulkSyncService:

    def __init__(self):
        self.stores = get_store_service()
        self.sync_service = get_store_sync_service()
        self.batch_delay = settings.bulk_sync_batch_delay_seconds

    async def bulk_sync(
        self,
        store_id: str,
        product_ids: list[str],
        batch_size: Optional[int] = None,
        actor: Optional[str] = None,
    ) -> BulkSyncResult:
        """
        Sync several products into one store.

        Args:
            store_id: Store UUID
            product_ids: Master product UUIDs, processed in order
            batch_size: Products per batch (default from settings)
            actor: User triggering the sync

        Returns:
            BulkSyncResult; successful + failed always equals total

        Raises:
            ValidationError: Empty id list or batch size below 1
            StoreNotFoundError: Missing or inactive store
        """
        if not product_ids:
            raise ValidationError("Product IDs are required", code="BULK_SYNC_PRODUCTS_REQUIRED")

        batch_size = batch_size if batch_size is not None else settings.bulk_sync_batch_size
        if batch_size < 1:
            raise ValidationError(
                "Batch size must be at least 1",
                code="BULK_SYNC_INVALID_BATCH_SIZE",
                details={"provided": batch_size}
            )

        self.stores.get_by_id(store_id)

        batches = partition(list(product_ids), batch_size)
        result = BulkSyncResult(
            store_id=store_id,
            total=len(product_ids),
            successful=0,
            failed=0,
            batches=len(batches),
        )

        logger.info(
            "bulk_sync_started",
            store_id=store_id,
            total=len(product_ids),
            batches=len(batches),
            batch_size=batch_size
        )

        for batch_num, batch in enumerate(batches, 1):
            outcomes = await asyncio.gather(
                *(self._sync_one(product_id, store_id, actor) for product_id in batch),
                return_exceptions=True,
            )

            for product_id, outcome in zip(batch, outcomes):
                if isinstance(outcome, BaseException):
                    message = outcome.message if isinstance(outcome, AppError) else str(outcome)
                    logger.warning(
                        "bulk_sync_item_failed",
                        store_id=store_id,
                        product_id=product_id,
                        error=message
                    )
                    result.errors.append(BulkSyncFailure(product_id=product_id, error=message))
                    continue

                result.results.append(BulkSyncItem(
                    product_id=product_id,
                    operation=outcome.operation,
                    external_product_id=outcome.external_product.id,
                    handle=outcome.external_product.handle,
                ))

            logger.info(
                "bulk_sync_batch_completed",
                store_id=store_id,
                batch=batch_num,
                of=len(batches)
            )

            if batch_num < len(batches):
                await asyncio.sleep(self.batch_delay)

        result.successful = len(result.results)
        result.failed = len(result.errors)

        logger.info(
            "bulk_sync_completed",
            store_id=store_id,
            successful=result.successful,
            failed=result.failed
        )

        return result

    async def _sync_one(self, product_id: str, store_id: str, actor: Optional[str]):
        return await asyncio.to_thread(
            self.sync_service.sync,
            product_id,
            store_id,
            SyncRequest(),
            actor,
        )


_bulk_sync_service: Optional[BulkSyncService] = None

def get_bulk_sync_service() -> BulkSyncService:
    """Get or create BulkSyncService instance."""
    global _bulk_sync_service
    if _bulk_sync_service is None:
        _bulk_sync_service = BulkSyncService()
    return _bulk_sync_service
