"""
Single product → store sync.

Pipeline: load master product and store, validate sync-time assignments,
build the productSet payload, upsert, then reconcile the result into the
product map. Nothing is persisted unless the upsert succeeded.
"""

import time
from typing import Optional
import structlog

from models.product_map import MappingStatus, StoreSyncStatus
from models.sync import MappingReference, SyncRequest, SyncResult
from exceptions import AppError, ConflictError, MappingNotFoundError
from integrations.shopify import get_shopify_client
from services.sync_engine import build_upsert_payload
from services.inventory_service import build_store_summary, validate_assignment
from services.product_service import get_product_service
from services.store_service import get_store_service
from services.product_map_service import get_product_map_service

logger = structlog.get_logger(__name__)


class StoreSyncService:
    """
    Pushes master products into stores.

    Usage:
        service = get_store_sync_service()
        result = service.sync(product_id, store_id, SyncRequest())
    """

    def __init__(self):
        self.products = get_product_service()
        self.stores = get_store_service()
        self.product_maps = get_product_map_service()

    # ===================
    # SYNC
    # ===================

    def sync(
        self,
        product_id: str,
        store_id: str,
        request: Optional[SyncRequest] = None,
        actor: Optional[str] = None,
        location_id: Optional[str] = None,
    ) -> SyncResult:
        """
        Create or update one master product in one store.

        Args:
            product_id: Master product UUID
            store_id: Store UUID
            request: Overrides and sync-time inventory assignments
            actor: User triggering the sync
            location_id: Store location for variant inventory quantities

        Returns:
            SyncResult with operation "created" or "updated"

        Raises:
            ProductNotFoundError, StoreNotFoundError: Unknown product or store
            ValidationError: Option/variant limits, missing price, bad assignment
            ConflictError: Mapping paused and force_sync not set
            ExternalServiceError: Upsert failed
        """
        request = request or SyncRequest()

        logger.info(
            "store_sync_started",
            product_id=product_id,
            store_id=store_id,
            force_sync=request.force_sync,
            overrides=len(request.variant_overrides),
            assignments=len(request.assigned_inventory)
        )

        product = self.products.get_by_id(product_id)
        store = self.stores.get_by_id(store_id)

        existing = self.product_maps.get_store_mapping(product_id, store_id)
        if existing and existing.status == MappingStatus.PAUSED and not request.force_sync:
            raise ConflictError(
                "Sync is paused for this store; use force_sync to override",
                code="MAPPING_PAUSED",
                details={"product_id": product_id, "store_id": store_id}
            )

        for index, quantity in request.assigned_inventory.items():
            if quantity is not None and quantity >= 0:
                validate_assignment(product, int(index), quantity)

        payload = build_upsert_payload(product, request.variant_overrides, location_id)

        started = time.monotonic()
        try:
            upsert_result = get_shopify_client(store).product_set(payload)
        except AppError as e:
            duration_ms = int((time.monotonic() - started) * 1000)
            logger.error(
                "store_sync_failed",
                product_id=product_id,
                store_id=store_id,
                error=e.message,
                duration_ms=duration_ms
            )
            if existing is not None:
                self._record_failure(product_id, store_id, e.message, duration_ms)
            raise
        duration_ms = int((time.monotonic() - started) * 1000)

        operation, product_map = self.product_maps.reconcile(
            product_id,
            store_id,
            upsert_result,
            overrides_used=request.variant_overrides,
            assigned_inventory=request.assigned_inventory,
            actor=actor,
            duration_ms=duration_ms,
            master_product=product,
        )
        mapping = product_map.get_store_mapping(store_id)

        logger.info(
            "store_sync_completed",
            product_id=product_id,
            store_id=store_id,
            operation=operation,
            external_product_id=upsert_result.id,
            duration_ms=duration_ms
        )

        return SyncResult(
            operation=operation,
            external_product=upsert_result,
            mapping=MappingReference(
                dashboard_product_id=product_id,
                external_product_id=mapping.external_product_id,
                store_id=mapping.store_id,
                handle=mapping.external_handle,
            ),
            inventory=build_store_summary(mapping),
        )

    def _record_failure(self, product_id: str, store_id: str, error: str, duration_ms: int) -> None:
        """Best effort: a bookkeeping failure must not hide the upstream error."""
        try:
            self.product_maps.record_sync_failure(product_id, store_id, error, duration_ms)
        except AppError as e:
            logger.error(
                "record_sync_failure_failed",
                product_id=product_id,
                store_id=store_id,
                error=e.message
            )

    # ===================
    # REMOVAL
    # ===================

    def remove_from_store(self, product_id: str, store_id: str) -> dict:
        """
        Delete the product in the store and soft-remove its mapping.

        Raises:
            MappingNotFoundError: Product not synced to this store
            ExternalServiceError: Remote delete failed (mapping left as is)
        """
        store = self.stores.get_by_id(store_id)
        _, mapping = self.product_maps.require_store_mapping(product_id, store_id)

        deleted_id = get_shopify_client(store).delete_product(mapping.external_product_id)
        removed = self.product_maps.remove_store_mapping(product_id, store_id)

        logger.info(
            "product_removed_from_store",
            product_id=product_id,
            store_id=store_id,
            external_product_id=mapping.external_product_id
        )

        return {
            "deleted_product_id": deleted_id or mapping.external_product_id,
            "mapping": {
                "dashboard_product_id": product_id,
                "store_id": removed.store_id,
                "status": removed.status.value,
            },
        }

    # ===================
    # STATUS
    # ===================

    def get_product_sync_status(self, product_id: str) -> list[StoreSyncStatus]:
        """
        Sync status of a product in every store it was pushed to.

        Raises:
            ProductNotFoundError: Unknown product
            MappingNotFoundError: Never synced anywhere
        """
        self.products.get_by_id(product_id)
        product_map = self.product_maps.get_by_product(product_id)
        if product_map is None:
            raise MappingNotFoundError(product_id)

        stores = self.stores.get_many([m.store_id for m in product_map.store_mappings])

        statuses = []
        for mapping in product_map.store_mappings:
            store = stores.get(mapping.store_id)
            statuses.append(StoreSyncStatus(
                store_id=mapping.store_id,
                store_name=store.display_name if store else None,
                shop_domain=store.shop_domain if store else None,
                is_synced=mapping.status != MappingStatus.DELETED,
                sync_status=mapping.status.value,
                last_sync_at=mapping.last_sync_at,
                last_sync_error=mapping.last_sync_error,
                external_product_id=mapping.external_product_id,
                external_handle=mapping.external_handle,
                variant_count=len(mapping.variant_mappings),
            ))
        return statuses


_store_sync_service: Optional[StoreSyncService] = None

def get_store_sync_service() -> StoreSyncService:
    """Get or create StoreSyncService instance."""
    global _store_sync_service
    if _store_sync_service is None:
        _store_sync_service = StoreSyncService()
    return _store_sync_service
