"""
Pydantic models for validation and serialization.
"""

from models.base import (
    BaseSchema,
    ApiResponse,
)
from models.product import (
    InventoryPolicy,
    WeightUnit,
    OptionValue,
    ProductOption,
    VariantOptionValue,
    Metafield,
    SEO,
    ProductMedia,
    ProductVariant,
    MasterProduct,
)
from models.store import (
    Store,
    Location,
    StoreLocations,
)
from models.product_map import (
    MappingStatus,
    SyncType,
    InventoryAction,
    SyncSettings,
    StoreCustomizations,
    PriceAdjustments,
    InventoryHistoryEntry,
    SyncHistoryEntry,
    InventoryTracking,
    VariantMapping,
    MediaMapping,
    StoreMapping,
    MappingStats,
    ProductMap,
    StoreInventorySummary,
    ProductInventorySummary,
    InventoryHistoryItem,
    StoreSyncStatus,
)
from models.sync import (
    VariantOverride,
    SyncRequest,
    BulkSyncRequest,
    ProductSetInput,
    VariantSetInput,
    OptionSetInput,
    UpsertVariant,
    UpsertResult,
    SyncResult,
    BulkSyncResult,
)
from models.inventory import (
    AllocationStrategy,
    AssignInventoryRequest,
    LocationLevel,
    LiveProductInventory,
    AllocationRequest,
    AllocationSuggestion,
    AllocationRecommendations,
)

__all__ = [
    # Base
    "BaseSchema",
    "ApiResponse",

    # Master product
    "InventoryPolicy",
    "WeightUnit",
    "OptionValue",
    "ProductOption",
    "VariantOptionValue",
    "Metafield",
    "SEO",
    "ProductMedia",
    "ProductVariant",
    "MasterProduct",

    # Store
    "Store",
    "Location",
    "StoreLocations",

    # Product map
    "MappingStatus",
    "SyncType",
    "InventoryAction",
    "SyncSettings",
    "StoreCustomizations",
    "PriceAdjustments",
    "InventoryHistoryEntry",
    "SyncHistoryEntry",
    "InventoryTracking",
    "VariantMapping",
    "MediaMapping",
    "StoreMapping",
    "MappingStats",
    "ProductMap",
    "StoreInventorySummary",
    "ProductInventorySummary",
    "InventoryHistoryItem",
    "StoreSyncStatus",

    # Sync
    "VariantOverride",
    "SyncRequest",
    "BulkSyncRequest",
    "ProductSetInput",
    "VariantSetInput",
    "OptionSetInput",
    "UpsertVariant",
    "UpsertResult",
    "SyncResult",
    "BulkSyncResult",

    # Inventory
    "AllocationStrategy",
    "AssignInventoryRequest",
    "LocationLevel",
    "LiveProductInventory",
    "AllocationRequest",
    "AllocationSuggestion",
    "AllocationRecommendations",
]
