"""
Inventory assignment and allocation schemas.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import Field

from models.base import BaseSchema


class AllocationStrategy(str, Enum):
    """How recommendations spread units over locations."""
    BALANCED = "balanced"
    PRIORITY = "priority"


# ===================
# ASSIGNMENT
# ===================

class VariantAssignment(BaseSchema):
    variant_index: int = Field(..., ge=0)
    assigned_quantity: int = Field(..., description="Units the store should hold")


class AssignInventoryRequest(BaseSchema):
    """Assign units of one or more master variants to a store."""

    variant_inventory: list[VariantAssignment] = Field(..., min_length=1)
    location_id: Optional[str] = None


class AssignmentRecord(BaseSchema):
    variant_index: int
    variant_sku: Optional[str] = None
    assigned_quantity: int
    previous_quantity: int
    master_quantity: int


class InventorySyncRecord(BaseSchema):
    variant_index: int
    external_variant_id: str
    current_quantity: int
    sku: Optional[str] = None


# ===================
# LIVE INVENTORY
# ===================

class LocationLevel(BaseSchema):
    """Available units of one inventory item at one location."""

    location_id: str
    location_name: str = ""
    available: int = 0
    is_active: Optional[bool] = None
    fulfills_online_orders: Optional[bool] = None


class LiveVariantInventory(BaseSchema):
    variant_id: str
    variant_title: Optional[str] = None
    sku: Optional[str] = None
    total_quantity: int = 0
    inventory_policy: Optional[str] = None
    location_breakdown: list[LocationLevel] = Field(default_factory=list)


class LiveProductInventory(BaseSchema):
    product_id: str
    product_title: Optional[str] = None
    total_inventory: int = 0
    variants: list[LiveVariantInventory] = Field(default_factory=list)


# ===================
# ALLOCATION
# ===================

class AllocationRequest(BaseSchema):
    product_ids: list[str] = Field(..., min_length=1, description="Master product UUIDs")
    allocation_strategy: AllocationStrategy = AllocationStrategy.BALANCED


class AllocationSuggestion(BaseSchema):
    location_id: str
    location_name: str = ""
    suggested_allocation: int = Field(..., ge=0)
    current_available: int = 0
    is_priority: Optional[bool] = None


class VariantAllocation(BaseSchema):
    variant_id: str
    variant_title: Optional[str] = None
    sku: Optional[str] = None
    total_available: int
    current_distribution: list[LocationLevel]
    recommended_allocation: list[AllocationSuggestion]
    allocation_efficiency: int = Field(..., ge=0, le=100)


class ProductAllocation(BaseSchema):
    product_id: str
    external_product_id: str
    product_title: Optional[str] = None
    total_inventory: int = 0
    variants: list[VariantAllocation] = Field(default_factory=list)


class AllocationRecommendations(BaseSchema):
    """Advisory only: nothing here is written back."""

    recommendations: list[ProductAllocation]
    allocation_strategy: AllocationStrategy
    active_locations: int
    total_products: int
    generated_at: datetime
