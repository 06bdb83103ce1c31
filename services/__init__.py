"""
Business logic services.

Each service handles one domain area.
"""

from services.product_service import ProductService, get_product_service
from services.store_service import StoreService, get_store_service
from services.product_map_service import ProductMapService, get_product_map_service
from services.inventory_service import InventoryService, get_inventory_service
from services.allocation_service import AllocationService, get_allocation_service
from services.store_sync_service import StoreSyncService, get_store_sync_service
from services.bulk_sync_service import BulkSyncService, get_bulk_sync_service

__all__ = [
    "ProductService",
    "get_product_service",
    "StoreService",
    "get_store_service",
    "ProductMapService",
    "get_product_map_service",
    "InventoryService",
    "get_inventory_service",
    "AllocationService",
    "get_allocation_service",
    "StoreSyncService",
    "get_store_sync_service",
    "BulkSyncService",
    "get_bulk_sync_service",
]
