"""
Product map schemas.

One ProductMap per master product. It embeds one StoreMapping per store the
product has been pushed to, so "all stores for this product" is a single
row read. The row carries a version used for compare-and-swap writes.

Persisted as the product_maps table:
    id, dashboard_product_id, created_by, store_mappings (jsonb),
    global_sync_settings (jsonb), mapping_stats (jsonb), is_active,
    is_deleted, deleted_at, version, created_at, updated_at
"""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from pydantic import ConfigDict, Field

from models.base import BaseSchema


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ===================
# ENUMS
# ===================

class MappingStatus(str, Enum):
    """Lifecycle of a store mapping."""
    ACTIVE = "active"
    SYNCING = "syncing"
    ERROR = "error"
    PAUSED = "paused"
    DELETED = "deleted"


class SyncType(str, Enum):
    """Kind of sync recorded in a mapping's history."""
    CREATE = "create"
    UPDATE = "update"
    PRICE = "price"
    INVENTORY = "inventory"
    MEDIA = "media"
    FULL = "full"


class InventoryAction(str, Enum):
    """Kind of inventory history entry."""
    ASSIGNED = "assigned"
    SYNCED = "synced"
    ADJUSTED = "adjusted"


class PriceAdjustmentType(str, Enum):
    NONE = "none"
    PERCENTAGE = "percentage"
    FIXED = "fixed"
    MARKUP = "markup"
    MARKDOWN = "markdown"


class SyncFrequency(str, Enum):
    MANUAL = "manual"
    REAL_TIME = "real-time"
    HOURLY = "hourly"
    DAILY = "daily"
    WEEKLY = "weekly"


# ===================
# STORE-LEVEL SETTINGS
# ===================

class SyncSettings(BaseSchema):
    """Which fields follow the master product into this store."""

    auto_sync: bool = True
    sync_title: bool = True
    sync_description: bool = True
    sync_price: bool = True
    sync_inventory: bool = False
    sync_media: bool = True
    sync_seo: bool = True
    sync_tags: bool = True
    sync_variants: bool = True
    sync_status: bool = True


class CustomMetafield(BaseSchema):
    namespace: str
    key: str
    value: str
    type: str = "single_line_text_field"


class StoreCustomizations(BaseSchema):
    """Per-store presentation tweaks."""

    title_prefix: Optional[str] = None
    title_suffix: Optional[str] = None
    description_append: Optional[str] = None
    description_prepend: Optional[str] = None
    additional_tags: list[str] = Field(default_factory=list)
    exclude_tags: list[str] = Field(default_factory=list)
    custom_handle: Optional[str] = None
    custom_metafields: list[CustomMetafield] = Field(default_factory=list)


class PriceAdjustments(BaseSchema):
    """Store-wide price rule."""

    type: PriceAdjustmentType = PriceAdjustmentType.NONE
    value: Decimal = Decimal("0")
    round_to: Decimal = Decimal("0.01")
    apply_to_compare_at: bool = True


# ===================
# HISTORY ENTRIES
# ===================

class InventoryHistoryEntry(BaseSchema):
    """Immutable record of one inventory change."""

    model_config = ConfigDict(frozen=True)

    action: InventoryAction
    quantity: int
    previous_quantity: int
    reason: Optional[str] = None
    timestamp: datetime = Field(default_factory=utcnow)
    actor: Optional[str] = None
    location_id: Optional[str] = None


class FieldChange(BaseSchema):
    model_config = ConfigDict(frozen=True)

    field: str
    old_value: Any = None
    new_value: Any = None


class SyncHistoryEntry(BaseSchema):
    """Immutable record of one sync attempt."""

    model_config = ConfigDict(frozen=True)

    sync_type: SyncType
    timestamp: datetime = Field(default_factory=utcnow)
    success: bool
    changes: list[FieldChange] = Field(default_factory=list)
    error: Optional[str] = None
    sync_duration_ms: Optional[int] = None


# ===================
# VARIANT / MEDIA MAPPINGS
# ===================

class LocationInventory(BaseSchema):
    location_id: str
    quantity: int = Field(0, ge=0)
    updated_at: datetime = Field(default_factory=utcnow)


class InventoryTracking(BaseSchema):
    """
    Inventory bookkeeping for one variant in one store.

    assigned_quantity is what the dashboard intends the store to hold;
    last_known_external_quantity is what the store last reported. The two
    are never reconciled automatically.
    """

    assigned_quantity: int = Field(0, ge=0)
    assigned_at: Optional[datetime] = None
    assigned_by: Optional[str] = None
    last_known_external_quantity: int = 0
    last_external_sync_at: Optional[datetime] = None
    inventory_policy: str = "deny"
    track_quantity: bool = True
    location_inventory: list[LocationInventory] = Field(default_factory=list)
    inventory_history: list[InventoryHistoryEntry] = Field(default_factory=list)


class VariantMapping(BaseSchema):
    """Link between one master variant and its store variant."""

    dashboard_variant_index: int = Field(..., ge=0)
    variant_key: Optional[str] = None
    external_variant_id: str
    custom_price: Optional[Decimal] = None
    custom_compare_at_price: Optional[Decimal] = None
    custom_sku: Optional[str] = None
    is_active: bool = True
    inventory_tracking: InventoryTracking = Field(default_factory=InventoryTracking)

    def record_assignment(
        self,
        quantity: int,
        actor: Optional[str] = None,
        reason: Optional[str] = None,
        location_id: Optional[str] = None,
    ) -> InventoryHistoryEntry:
        """Set the assigned quantity and append an `assigned` history entry."""
        tracking = self.inventory_tracking
        now = utcnow()
        entry = InventoryHistoryEntry(
            action=InventoryAction.ASSIGNED,
            quantity=quantity,
            previous_quantity=tracking.assigned_quantity,
            reason=reason,
            timestamp=now,
            actor=actor,
            location_id=location_id,
        )

        tracking.assigned_quantity = quantity
        tracking.assigned_at = now
        tracking.assigned_by = actor

        if location_id:
            level = next(
                (l for l in tracking.location_inventory if l.location_id == location_id),
                None,
            )
            if level is None:
                tracking.location_inventory.append(
                    LocationInventory(location_id=location_id, quantity=quantity, updated_at=now)
                )
            else:
                level.quantity = quantity
                level.updated_at = now

        tracking.inventory_history.append(entry)
        return entry

    def record_external_quantity(
        self,
        quantity: int,
        reason: Optional[str] = None,
    ) -> InventoryHistoryEntry:
        """Store the quantity the store reported. assigned_quantity is left alone."""
        tracking = self.inventory_tracking
        now = utcnow()
        entry = InventoryHistoryEntry(
            action=InventoryAction.SYNCED,
            quantity=quantity,
            previous_quantity=tracking.last_known_external_quantity,
            reason=reason,
            timestamp=now,
        )

        tracking.last_known_external_quantity = quantity
        tracking.last_external_sync_at = now
        tracking.inventory_history.append(entry)
        return entry


class MediaMapping(BaseSchema):
    dashboard_media_index: int = Field(..., ge=0)
    external_media_id: Optional[str] = None
    external_url: Optional[str] = None
    upload_status: str = "pending"


# ===================
# STORE MAPPING
# ===================

class StoreMapping(BaseSchema):
    """How one master product is represented inside one store."""

    store_id: str
    external_product_id: str
    external_handle: str
    status: MappingStatus = MappingStatus.ACTIVE
    sync_settings: SyncSettings = Field(default_factory=SyncSettings)
    store_customizations: StoreCustomizations = Field(default_factory=StoreCustomizations)
    price_adjustments: PriceAdjustments = Field(default_factory=PriceAdjustments)
    variant_mappings: list[VariantMapping] = Field(default_factory=list)
    media_mappings: list[MediaMapping] = Field(default_factory=list)
    sync_history: list[SyncHistoryEntry] = Field(default_factory=list)
    last_sync_at: Optional[datetime] = None
    last_successful_sync_at: Optional[datetime] = None
    last_sync_error: Optional[str] = None
    is_published: bool = False
    published_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    def get_variant_mapping(self, variant_index: int) -> Optional[VariantMapping]:
        for mapping in self.variant_mappings:
            if mapping.dashboard_variant_index == variant_index:
                return mapping
        return None

    def get_variant_mapping_by_key(self, variant_key: str) -> Optional[VariantMapping]:
        for mapping in self.variant_mappings:
            if mapping.variant_key == variant_key:
                return mapping
        return None


# ===================
# PRODUCT MAP
# ===================

class SyncTriggers(BaseSchema):
    on_title_change: bool = True
    on_description_change: bool = True
    on_price_change: bool = True
    on_inventory_change: bool = False
    on_media_change: bool = True
    on_variant_change: bool = True
    on_status_change: bool = True
    on_tag_change: bool = True


class GlobalSyncSettings(BaseSchema):
    auto_sync_on_dashboard_update: bool = True
    sync_frequency: SyncFrequency = SyncFrequency.MANUAL
    batch_sync: bool = False
    triggers: SyncTriggers = Field(default_factory=SyncTriggers)


class MappingStats(BaseSchema):
    total_stores: int = 0
    active_stores: int = 0
    total_syncs: int = 0
    successful_syncs: int = 0
    failed_syncs: int = 0
    last_global_sync: Optional[datetime] = None
    average_sync_duration: Optional[float] = None


class ProductMap(BaseSchema):
    """Aggregate root: every store mapping of one master product."""

    id: Optional[str] = Field(None, description="Row UUID; None until first insert")
    dashboard_product_id: str
    created_by: Optional[str] = None
    store_mappings: list[StoreMapping] = Field(default_factory=list)
    global_sync_settings: GlobalSyncSettings = Field(default_factory=GlobalSyncSettings)
    mapping_stats: MappingStats = Field(default_factory=MappingStats)
    is_active: bool = True
    is_deleted: bool = False
    deleted_at: Optional[datetime] = None
    version: int = Field(0, ge=0)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def get_store_mapping(self, store_id: str) -> Optional[StoreMapping]:
        for mapping in self.store_mappings:
            if mapping.store_id == str(store_id):
                return mapping
        return None

    def to_row(self) -> dict:
        """Serialize for the product_maps table (JSON-safe)."""
        return self.model_dump(mode="json", exclude={"id", "created_at"})


# ===================
# RESPONSE SCHEMAS
# ===================

class VariantInventorySummary(BaseSchema):
    variant_index: int
    variant_key: Optional[str] = None
    external_variant_id: str
    assigned_quantity: int
    last_known_external_quantity: int
    assigned_at: Optional[datetime] = None
    last_external_sync_at: Optional[datetime] = None
    is_active: bool = True


class StoreInventorySummary(BaseSchema):
    """Assigned vs. last-known quantities for one store."""

    store_id: str
    external_product_id: str
    status: MappingStatus
    total_assigned: int
    total_last_known_external: int
    variants: list[VariantInventorySummary]


class MasterVariantInventory(BaseSchema):
    variant_index: int
    sku: Optional[str] = None
    master_quantity: int
    price: Optional[Decimal] = None


class ProductInventorySummary(BaseSchema):
    product_id: str
    product_title: str
    master_inventory: list[MasterVariantInventory]
    store_inventory: list[StoreInventorySummary]


class InventoryHistoryItem(BaseSchema):
    variant_index: int
    action: InventoryAction
    quantity: int
    previous_quantity: int
    reason: Optional[str] = None
    timestamp: datetime
    actor: Optional[str] = None
    location_id: Optional[str] = None


class StoreSyncStatus(BaseSchema):
    """Sync status of one product in one store."""

    store_id: str
    store_name: Optional[str] = None
    shop_domain: Optional[str] = None
    is_synced: bool
    sync_status: str
    last_sync_at: Optional[datetime] = None
    last_sync_error: Optional[str] = None
    external_product_id: Optional[str] = None
    external_handle: Optional[str] = None
    variant_count: int = 0
