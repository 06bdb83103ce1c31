"""
Inventory ledger.

Per store and variant, two quantities are kept side by side:
- assigned_quantity: what the dashboard intends the store to hold
- last_known_external_quantity: what the store last reported

Assignments write the first, syncs from the store write the second. Neither
touches the other. Every change appends an immutable history entry.
"""

from typing import Optional
import structlog

from models.product import MasterProduct, ProductVariant
from models.product_map import (
    InventoryHistoryEntry,
    ProductInventorySummary,
    MasterVariantInventory,
    InventoryHistoryItem,
    StoreInventorySummary,
    StoreMapping,
    VariantInventorySummary,
)
from models.inventory import AssignmentRecord, InventorySyncRecord, VariantAssignment
from exceptions import (
    InsufficientInventoryError,
    InvalidQuantityError,
    MappingNotFoundError,
    VariantNotFoundError,
)
from integrations.shopify import get_shopify_client
from services.product_service import get_product_service
from services.store_service import get_store_service
from services.product_map_service import get_product_map_service

logger = structlog.get_logger(__name__)


MANUAL_ASSIGNMENT_REASON = "manual assignment"
STORE_SYNC_REASON = "inventory sync from store"
DEFAULT_HISTORY_LIMIT = 50


# ===================
# PURE HELPERS
# ===================

def validate_assignment(
    product: MasterProduct,
    variant_index: int,
    quantity: int,
) -> ProductVariant:
    """
    Check one assignment against the master product.

    Raises:
        VariantNotFoundError: No variant at this index
        InvalidQuantityError: Negative or non-integer quantity
        InsufficientInventoryError: More than the master variant holds
    """
    variant = product.variant_at(variant_index)
    if variant is None:
        raise VariantNotFoundError(product.id, variant_index)

    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 0:
        raise InvalidQuantityError(quantity)

    available = variant.inventory_quantity or 0
    if quantity > available:
        raise InsufficientInventoryError(variant_index, quantity, available)

    return variant


def apply_external_quantity(
    store_mapping: StoreMapping,
    variant_index: int,
    observed_quantity: int,
) -> Optional[InventoryHistoryEntry]:
    """
    Record a quantity reported by the store for one variant.

    Only last_known_external_quantity moves. Returns the appended history
    entry, or None when the variant has no mapping in this store.
    """
    variant_mapping = store_mapping.get_variant_mapping(variant_index)
    if variant_mapping is None:
        return None
    return variant_mapping.record_external_quantity(
        int(observed_quantity),
        reason=STORE_SYNC_REASON,
    )


def build_store_summary(mapping: StoreMapping) -> StoreInventorySummary:
    """Assigned vs. last-known quantities of one store mapping."""
    variants = [
        VariantInventorySummary(
            variant_index=vm.dashboard_variant_index,
            variant_key=vm.variant_key,
            external_variant_id=vm.external_variant_id,
            assigned_quantity=vm.inventory_tracking.assigned_quantity,
            last_known_external_quantity=vm.inventory_tracking.last_known_external_quantity,
            assigned_at=vm.inventory_tracking.assigned_at,
            last_external_sync_at=vm.inventory_tracking.last_external_sync_at,
            is_active=vm.is_active,
        )
        for vm in sorted(mapping.variant_mappings, key=lambda vm: vm.dashboard_variant_index)
    ]
    return StoreInventorySummary(
        store_id=mapping.store_id,
        external_product_id=mapping.external_product_id,
        status=mapping.status,
        total_assigned=sum(v.assigned_quantity for v in variants),
        total_last_known_external=sum(v.last_known_external_quantity for v in variants),
        variants=variants,
    )


# ===================
# SERVICE
# ===================

class InventoryService:
    """
    Inventory assignment and store inventory bookkeeping.

    Usage:
        service = get_inventory_service()
        summary = service.assign_inventory_to_store(product_id, store_id, 0, 10)
    """

    def __init__(self):
        self.products = get_product_service()
        self.stores = get_store_service()
        self.product_maps = get_product_map_service()

    # ===================
    # ASSIGNMENT
    # ===================

    def assign_inventory_to_store(
        self,
        product_id: str,
        store_id: str,
        variant_index: int,
        quantity: int,
        location_id: Optional[str] = None,
        actor: Optional[str] = None,
        reason: str = MANUAL_ASSIGNMENT_REASON,
    ) -> StoreInventorySummary:
        """
        Assign units of one master variant to a store.

        Args:
            product_id: Master product UUID
            store_id: Store UUID
            variant_index: Master variant position
            quantity: Units the store should hold (replaces the previous value)
            location_id: Store location the units go to, if known
            actor: User making the assignment

        Returns:
            StoreInventorySummary after the write

        Raises:
            MappingNotFoundError: Product not synced to this store
            VariantNotFoundError: Variant index missing on master or mapping
            InvalidQuantityError: Negative quantity
            InsufficientInventoryError: Quantity above master inventory
        """
        _, summary = self.assign_inventory_batch(
            product_id,
            store_id,
            [VariantAssignment(variant_index=variant_index, assigned_quantity=quantity)],
            location_id=location_id,
            actor=actor,
            reason=reason,
        )
        return summary

    def assign_inventory_batch(
        self,
        product_id: str,
        store_id: str,
        assignments: list[VariantAssignment],
        location_id: Optional[str] = None,
        actor: Optional[str] = None,
        reason: str = MANUAL_ASSIGNMENT_REASON,
    ) -> tuple[list[AssignmentRecord], StoreInventorySummary]:
        """
        Assign several variants at once.

        Every item is validated before anything is written: one bad item
        rejects the whole batch.
        """
        logger.info(
            "assigning_inventory",
            product_id=product_id,
            store_id=store_id,
            items=len(assignments),
            location_id=location_id
        )

        _, existing = self.product_maps.require_store_mapping(product_id, store_id)
        product = self.products.get_by_id(product_id)

        validated = []
        for item in assignments:
            variant = validate_assignment(product, item.variant_index, item.assigned_quantity)
            if existing.get_variant_mapping(item.variant_index) is None:
                raise VariantNotFoundError(product_id, item.variant_index)
            validated.append((item, variant))

        def apply(mapping: StoreMapping) -> list[AssignmentRecord]:
            records = []
            for item, variant in validated:
                variant_mapping = mapping.get_variant_mapping(item.variant_index)
                if variant_mapping is None:
                    raise VariantNotFoundError(product_id, item.variant_index)
                entry = variant_mapping.record_assignment(
                    item.assigned_quantity,
                    actor=actor,
                    reason=reason,
                    location_id=location_id,
                )
                records.append(AssignmentRecord(
                    variant_index=item.variant_index,
                    variant_sku=variant.sku,
                    assigned_quantity=entry.quantity,
                    previous_quantity=entry.previous_quantity,
                    master_quantity=variant.inventory_quantity or 0,
                ))
            return records

        records, saved = self.product_maps.update_store_mapping(product_id, store_id, apply)

        logger.info(
            "inventory_assigned",
            product_id=product_id,
            store_id=store_id,
            items=len(records)
        )

        return records, build_store_summary(saved.get_store_mapping(store_id))

    # ===================
    # SYNC FROM STORE
    # ===================

    def sync_inventory_from_shopify(
        self,
        product_id: str,
        store_id: str,
    ) -> list[InventorySyncRecord]:
        """
        Pull live quantities from the store into last_known_external_quantity.

        Store variants without a mapping are skipped.

        Raises:
            StoreNotFoundError: Missing or inactive store
            MappingNotFoundError: Product not synced to this store
            ExternalServiceError: Store query failed
        """
        store = self.stores.get_by_id(store_id)
        _, mapping = self.product_maps.require_store_mapping(product_id, store_id)

        live = get_shopify_client(store).get_product_inventory(mapping.external_product_id)

        index_by_external_id = {
            vm.external_variant_id: vm.dashboard_variant_index
            for vm in mapping.variant_mappings
        }
        observed = []
        for variant in live.variants:
            index = index_by_external_id.get(variant.variant_id)
            if index is None:
                logger.warning(
                    "unmapped_store_variant",
                    product_id=product_id,
                    store_id=store_id,
                    external_variant_id=variant.variant_id
                )
                continue
            observed.append((index, variant))

        def apply(store_mapping: StoreMapping) -> list[InventorySyncRecord]:
            records = []
            for index, variant in observed:
                entry = apply_external_quantity(store_mapping, index, variant.total_quantity)
                if entry is None:
                    continue
                records.append(InventorySyncRecord(
                    variant_index=index,
                    external_variant_id=variant.variant_id,
                    current_quantity=entry.quantity,
                    sku=variant.sku,
                ))
            return records

        records, _ = self.product_maps.update_store_mapping(product_id, store_id, apply)

        logger.info(
            "inventory_synced_from_store",
            product_id=product_id,
            store_id=store_id,
            variants=len(records)
        )

        return records

    # ===================
    # READ OPERATIONS
    # ===================

    def get_inventory_summary(
        self,
        product_id: str,
        store_id: Optional[str] = None,
    ) -> ProductInventorySummary:
        """
        Master quantities plus assigned vs. last-known per store.

        Raises:
            ProductNotFoundError: Unknown product
            MappingNotFoundError: No mapping (for the given store, when filtered)
        """
        product = self.products.get_by_id(product_id)
        product_map = self.product_maps.get_by_product(product_id)

        if product_map is None:
            raise MappingNotFoundError(product_id, store_id)

        mappings = product_map.store_mappings
        if store_id:
            mappings = [m for m in mappings if m.store_id == str(store_id)]
            if not mappings:
                raise MappingNotFoundError(product_id, store_id)

        return ProductInventorySummary(
            product_id=product.id,
            product_title=product.title,
            master_inventory=[
                MasterVariantInventory(
                    variant_index=index,
                    sku=variant.sku,
                    master_quantity=variant.inventory_quantity or 0,
                    price=variant.price,
                )
                for index, variant in enumerate(product.variants)
            ],
            store_inventory=[build_store_summary(m) for m in mappings],
        )

    def get_inventory_history(
        self,
        product_id: str,
        store_id: str,
        variant_index: Optional[int] = None,
        limit: int = DEFAULT_HISTORY_LIMIT,
    ) -> list[InventoryHistoryItem]:
        """Inventory history of one store mapping, newest first."""
        product_map = self.product_maps.get_by_product(product_id)
        mapping = product_map.get_store_mapping(store_id) if product_map else None
        if mapping is None:
            raise MappingNotFoundError(product_id, store_id)

        items = []
        for vm in mapping.variant_mappings:
            if variant_index is not None and vm.dashboard_variant_index != variant_index:
                continue
            items.extend(
                InventoryHistoryItem(
                    variant_index=vm.dashboard_variant_index,
                    **entry.model_dump(),
                )
                for entry in vm.inventory_tracking.inventory_history
            )

        items.sort(key=lambda item: item.timestamp, reverse=True)
        return items[:limit]


# Singleton instance for convenience
_inventory_service: Optional[InventoryService] = None

def get_inventory_service() -> InventoryService:
    """Get or create InventoryService instance."""
    global _inventory_service
    if _inventory_service is None:
        _inventory_service = InventoryService()
    return _inventory_service
