"""
Product map service.

Persists the ProductMap aggregate (one row per master product in
product_maps, store mappings embedded as jsonb) and reconciles productSet
results into it.

Every write is a compare-and-swap on the row's version column: the update
only matches when the stored version is still the one that was read, and
bumps it by one. Mutations go through _mutate(), which reloads and retries
on conflict.
"""

from typing import Callable, Mapping, Optional, TypeVar
import structlog

from config import get_supabase_client, settings
from models.product import MasterProduct
from models.product_map import (
    FieldChange,
    MappingStats,
    MappingStatus,
    ProductMap,
    StoreMapping,
    SyncHistoryEntry,
    SyncType,
    VariantMapping,
    utcnow,
)
from models.sync import UpsertResult
from exceptions import (
    DatabaseError,
    MappingNotFoundError,
    MappingVersionConflictError,
)
from services.sync_engine import OverridesInput, coerce_overrides

logger = structlog.get_logger(__name__)

T = TypeVar("T")

SYNC_TIME_ASSIGNMENT_REASON = "sync-time assignment"


def record_sync_stats(
    stats: MappingStats,
    success: bool,
    duration_ms: Optional[int] = None,
) -> None:
    """Bump sync counters and fold the duration into the running average."""
    stats.total_syncs += 1
    if success:
        stats.successful_syncs += 1
    else:
        stats.failed_syncs += 1
    stats.last_global_sync = utcnow()

    if duration_ms:
        previous = stats.average_sync_duration or 0
        stats.average_sync_duration = (
            previous * (stats.total_syncs - 1) + duration_ms
        ) / stats.total_syncs


class ProductMapService:
    """
    Mapping store for product ↔ store links.

    Usage:
        service = get_product_map_service()
        operation, product_map = service.reconcile(product_id, store_id, upsert_result)
    """

    def __init__(self):
        self.db = get_supabase_client()
        self.table = "product_maps"
        self.max_retries = settings.mapping_cas_max_retries

    # ===================
    # READ OPERATIONS
    # ===================

    def get_by_product(self, product_id: str) -> Optional[ProductMap]:
        """Product map of a master product, or None if it was never synced."""
        try:
            result = (
                self.db.table(self.table)
                .select("*")
                .eq("dashboard_product_id", product_id)
                .eq("is_deleted", False)
                .execute()
            )
        except Exception as e:
            logger.error("get_product_map_failed", product_id=product_id, error=str(e))
            raise DatabaseError("select", str(e))

        if not result.data:
            return None
        return ProductMap.model_validate(result.data[0])

    def get_store_mapping(self, product_id: str, store_id: str) -> Optional[StoreMapping]:
        product_map = self.get_by_product(product_id)
        if product_map is None:
            return None
        return product_map.get_store_mapping(store_id)

    def require_store_mapping(
        self,
        product_id: str,
        store_id: str,
    ) -> tuple[ProductMap, StoreMapping]:
        """
        Product map and its live store mapping.

        Raises:
            MappingNotFoundError: Never synced to this store, or removed from it
        """
        product_map = self.get_by_product(product_id)
        mapping = product_map.get_store_mapping(store_id) if product_map else None

        if mapping is None or mapping.status == MappingStatus.DELETED:
            raise MappingNotFoundError(product_id, store_id)

        return product_map, mapping

    # ===================
    # WRITE OPERATIONS
    # ===================

    def save(self, product_map: ProductMap) -> ProductMap:
        """
        Write the aggregate if nobody else has since the read.

        Inserts when the map has no id yet; otherwise updates where
        version matches the version that was read.

        Raises:
            MappingVersionConflictError: The stored row moved on
            DatabaseError: Storage failure
        """
        expected_version = product_map.version
        row = product_map.to_row()
        row["version"] = expected_version + 1
        row["updated_at"] = utcnow().isoformat()

        if product_map.id is None:
            try:
                result = self.db.table(self.table).insert(row).execute()
            except Exception as e:
                # Unique index on dashboard_product_id: someone else created it first
                if "duplicate" in str(e).lower() or "23505" in str(e):
                    raise MappingVersionConflictError(
                        product_map.dashboard_product_id, expected_version
                    )
                logger.error(
                    "insert_product_map_failed",
                    product_id=product_map.dashboard_product_id,
                    error=str(e)
                )
                raise DatabaseError("insert", str(e))
        else:
            try:
                result = (
                    self.db.table(self.table)
                    .update(row)
                    .eq("id", product_map.id)
                    .eq("version", expected_version)
                    .execute()
                )
            except Exception as e:
                logger.error(
                    "update_product_map_failed",
                    product_id=product_map.dashboard_product_id,
                    error=str(e)
                )
                raise DatabaseError("update", str(e))

            if not result.data:
                raise MappingVersionConflictError(
                    product_map.dashboard_product_id, expected_version
                )

        if not result.data:
            raise DatabaseError("insert", "No data returned")

        return ProductMap.model_validate(result.data[0])

    def _mutate(
        self,
        product_id: str,
        apply: Callable[[ProductMap], T],
        create: bool = False,
        created_by: Optional[str] = None,
    ) -> tuple[T, ProductMap]:
        """
        Read-modify-write with bounded retry on version conflicts.

        apply() receives a freshly loaded aggregate on every attempt and may
        raise to abort without writing.
        """
        attempt = 0
        while True:
            product_map = self.get_by_product(product_id)
            if product_map is None:
                if not create:
                    raise MappingNotFoundError(product_id)
                product_map = ProductMap(
                    dashboard_product_id=product_id,
                    created_by=created_by,
                )

            value = apply(product_map)

            try:
                return value, self.save(product_map)
            except MappingVersionConflictError:
                attempt += 1
                if attempt > self.max_retries:
                    logger.error(
                        "product_map_conflict_retries_exhausted",
                        product_id=product_id,
                        attempts=attempt
                    )
                    raise
                logger.warning(
                    "product_map_version_conflict",
                    product_id=product_id,
                    expected_version=product_map.version,
                    attempt=attempt
                )

    # ===================
    # RECONCILIATION
    # ===================

    def reconcile(
        self,
        product_id: str,
        store_id: str,
        upsert_result: UpsertResult,
        overrides_used: OverridesInput = None,
        assigned_inventory: Optional[Mapping[int, int]] = None,
        actor: Optional[str] = None,
        duration_ms: Optional[int] = None,
        master_product: Optional[MasterProduct] = None,
    ) -> tuple[str, ProductMap]:
        """
        Fold a successful productSet result into the product map.

        Args:
            product_id: Master product UUID
            store_id: Store UUID
            upsert_result: Identity returned by the store
            overrides_used: Overrides sent with the upsert, by variant index
            assigned_inventory: Units to assign, by variant index; negative
                entries are ignored
            actor: User performing the sync
            duration_ms: Wall time of the upsert call
            master_product: Used to resolve echoed variant keys to indexes

        Returns:
            ("created" | "updated", saved ProductMap)
        """
        overrides = coerce_overrides(overrides_used)
        key_index = {}
        if master_product is not None:
            key_index = {
                v.variant_key: i
                for i, v in enumerate(master_product.variants)
                if v.variant_key
            }

        def apply(product_map: ProductMap) -> str:
            now = utcnow()
            stats = product_map.mapping_stats
            mapping = product_map.get_store_mapping(store_id)
            operation = "updated" if mapping else "created"
            changes = []

            if mapping is None:
                mapping = StoreMapping(
                    store_id=str(store_id),
                    external_product_id=upsert_result.id,
                    external_handle=upsert_result.handle,
                    created_at=now,
                )
                product_map.store_mappings.append(mapping)
                stats.total_stores += 1
                stats.active_stores += 1
            else:
                if mapping.status == MappingStatus.DELETED:
                    stats.active_stores += 1
                if mapping.external_handle != upsert_result.handle:
                    changes.append(FieldChange(
                        field="handle",
                        old_value=mapping.external_handle,
                        new_value=upsert_result.handle,
                    ))
                if mapping.external_product_id != upsert_result.id:
                    changes.append(FieldChange(
                        field="external_product_id",
                        old_value=mapping.external_product_id,
                        new_value=upsert_result.id,
                    ))

            mapping.external_product_id = upsert_result.id
            mapping.external_handle = upsert_result.handle
            mapping.status = MappingStatus.ACTIVE
            mapping.last_sync_at = now
            mapping.last_successful_sync_at = now
            mapping.last_sync_error = None
            mapping.updated_at = now

            for position, external in enumerate(upsert_result.variants):
                index = _resolve_variant_index(position, external.variant_key, key_index, mapping)
                variant_key = external.variant_key
                if not variant_key and master_product is not None:
                    variant = master_product.variant_at(index)
                    variant_key = variant.variant_key if variant else None

                variant_mapping = mapping.get_variant_mapping(index)
                if variant_mapping is None:
                    variant_mapping = VariantMapping(
                        dashboard_variant_index=index,
                        variant_key=variant_key,
                        external_variant_id=external.id,
                    )
                    mapping.variant_mappings.append(variant_mapping)
                else:
                    variant_mapping.external_variant_id = external.id
                    variant_mapping.is_active = True
                    if variant_key:
                        variant_mapping.variant_key = variant_key

                override = overrides.get(index)
                if override is not None:
                    if override.price is not None:
                        variant_mapping.custom_price = override.price
                    if override.compare_at_price is not None:
                        variant_mapping.custom_compare_at_price = override.compare_at_price
                    if override.sku:
                        variant_mapping.custom_sku = override.sku

            for index, quantity in (assigned_inventory or {}).items():
                if quantity is None or quantity < 0:
                    logger.warning(
                        "sync_assignment_skipped",
                        product_id=product_id,
                        variant_index=index,
                        quantity=quantity
                    )
                    continue
                variant_mapping = mapping.get_variant_mapping(int(index))
                if variant_mapping is None:
                    continue
                variant_mapping.record_assignment(
                    quantity,
                    actor=actor,
                    reason=SYNC_TIME_ASSIGNMENT_REASON,
                )

            mapping.sync_history.append(SyncHistoryEntry(
                sync_type=SyncType.CREATE if operation == "created" else SyncType.UPDATE,
                timestamp=now,
                success=True,
                changes=changes,
                sync_duration_ms=duration_ms,
            ))
            record_sync_stats(stats, success=True, duration_ms=duration_ms)
            return operation

        operation, saved = self._mutate(product_id, apply, create=True, created_by=actor)

        logger.info(
            "product_map_reconciled",
            product_id=product_id,
            store_id=store_id,
            operation=operation,
            variants=len(upsert_result.variants),
            version=saved.version
        )

        return operation, saved

    # ===================
    # FAILURES & REMOVAL
    # ===================

    def record_sync_failure(
        self,
        product_id: str,
        store_id: str,
        error: str,
        duration_ms: Optional[int] = None,
    ) -> Optional[ProductMap]:
        """
        Log a failed sync against an existing store mapping.

        A product never synced to the store has nothing to record against:
        returns None and creates nothing.
        """
        existing = self.get_store_mapping(product_id, store_id)
        if existing is None:
            return None

        def apply(product_map: ProductMap) -> None:
            now = utcnow()
            mapping = product_map.get_store_mapping(store_id)
            if mapping is None:
                raise MappingNotFoundError(product_id, store_id)

            mapping.sync_history.append(SyncHistoryEntry(
                sync_type=SyncType.UPDATE,
                timestamp=now,
                success=False,
                error=error,
                sync_duration_ms=duration_ms,
            ))
            # A removed mapping stays removed until a sync succeeds
            if mapping.status != MappingStatus.DELETED:
                mapping.status = MappingStatus.ERROR
            mapping.last_sync_error = error
            mapping.last_sync_at = now
            mapping.updated_at = now
            record_sync_stats(product_map.mapping_stats, success=False, duration_ms=duration_ms)

        _, saved = self._mutate(product_id, apply)

        logger.warning(
            "sync_failure_recorded",
            product_id=product_id,
            store_id=store_id,
            error=error
        )
        return saved

    def remove_store_mapping(self, product_id: str, store_id: str) -> StoreMapping:
        """
        Soft-remove a product from a store.

        The mapping and its history stay; status becomes deleted.

        Raises:
            MappingNotFoundError: No mapping for this store
        """
        def apply(product_map: ProductMap) -> None:
            mapping = product_map.get_store_mapping(store_id)
            if mapping is None:
                raise MappingNotFoundError(product_id, store_id)

            if mapping.status != MappingStatus.DELETED:
                product_map.mapping_stats.active_stores = max(
                    0, product_map.mapping_stats.active_stores - 1
                )
            mapping.status = MappingStatus.DELETED
            mapping.updated_at = utcnow()

        _, saved = self._mutate(product_id, apply)

        logger.info("store_mapping_removed", product_id=product_id, store_id=store_id)
        return saved.get_store_mapping(store_id)

    def update_store_mapping(
        self,
        product_id: str,
        store_id: str,
        apply: Callable[[StoreMapping], T],
    ) -> tuple[T, ProductMap]:
        """
        Run apply() on a live store mapping and save with CAS retry.

        Raises:
            MappingNotFoundError: Never synced to this store, or removed from it
        """
        def apply_to_map(product_map: ProductMap) -> T:
            mapping = product_map.get_store_mapping(store_id)
            if mapping is None or mapping.status == MappingStatus.DELETED:
                raise MappingNotFoundError(product_id, store_id)
            mapping.updated_at = utcnow()
            return apply(mapping)

        return self._mutate(product_id, apply_to_map)


def _resolve_variant_index(
    position: int,
    variant_key: Optional[str],
    key_index: dict[str, int],
    mapping: StoreMapping,
) -> int:
    """Master variant index for an external variant: by echoed key, else by position."""
    if variant_key:
        if variant_key in key_index:
            return key_index[variant_key]
        known = mapping.get_variant_mapping_by_key(variant_key)
        if known is not None:
            return known.dashboard_variant_index
    return position


# Singleton instance for convenience
_product_map_service: Optional[ProductMapService] = None

def get_product_map_service() -> ProductMapService:
    """Get or create ProductMapService instance."""
    global _product_map_service
    if _product_map_service is None:
        _product_map_service = ProductMapService()
    return _product_map_service
