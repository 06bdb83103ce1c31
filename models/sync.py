"""
Sync schemas: per-call overrides, the productSet payload, the upsert
result and the sync/bulk-sync responses.

The payload classes mirror Shopify's ProductSetInput. Every optional field
defaults to None and is dropped on serialization, so the wire shape is
visible here instead of being assembled key by key.
"""

from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from models.base import BaseSchema
from models.product_map import StoreInventorySummary


# Metafield carrying the stable variant key to the store and back
VARIANT_KEY_NAMESPACE = "dashboard_sync"
VARIANT_KEY_KEY = "variant_key"


# ===================
# REQUEST SCHEMAS
# ===================

class VariantOverride(BaseSchema):
    """Per-store values that replace the master variant's for one sync."""

    price: Optional[Decimal] = Field(None, ge=0)
    compare_at_price: Optional[Decimal] = Field(None, ge=0)
    sku: Optional[str] = Field(None, max_length=255)


class SyncRequest(BaseSchema):
    """Body of a single-product sync."""

    force_sync: bool = False
    variant_overrides: dict[int, VariantOverride] = Field(
        default_factory=dict,
        description="Keyed by master variant index"
    )
    assigned_inventory: dict[int, int] = Field(
        default_factory=dict,
        description="Units to assign per master variant index"
    )


class BulkSyncRequest(BaseSchema):
    product_ids: list[str] = Field(..., min_length=1)
    batch_size: Optional[int] = Field(None, ge=1, le=50)


# ===================
# PRODUCT SET PAYLOAD
# ===================

class PayloadSchema(BaseModel):
    """Base for payload structs: camelCase on the wire, immutable once built."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True
    )

    def to_input(self) -> dict:
        """Serialize to the GraphQL input shape, dropping unset fields."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class NamedValueInput(PayloadSchema):
    name: str


class OptionSetInput(PayloadSchema):
    name: str
    position: int
    values: list[NamedValueInput]


class VariantOptionValueInput(PayloadSchema):
    option_name: str
    name: str


class MetafieldInput(PayloadSchema):
    namespace: str
    key: str
    value: str
    type: str


class SEOInput(PayloadSchema):
    title: Optional[str] = None
    description: Optional[str] = None


class InventoryQuantityInput(PayloadSchema):
    location_id: str
    available_quantity: int


class WeightInput(PayloadSchema):
    value: float
    unit: str


class MeasurementInput(PayloadSchema):
    weight: WeightInput


class InventoryItemInput(PayloadSchema):
    measurement: MeasurementInput


class VariantSetInput(PayloadSchema):
    price: str
    compare_at_price: Optional[str] = None
    sku: Optional[str] = None
    barcode: Optional[str] = None
    tax_code: Optional[str] = None
    taxable: Optional[bool] = None
    inventory_policy: Optional[str] = None
    inventory_quantities: Optional[list[InventoryQuantityInput]] = None
    inventory_item: Optional[InventoryItemInput] = None
    option_values: list[VariantOptionValueInput]
    metafields: Optional[list[MetafieldInput]] = None


class ProductSetInput(PayloadSchema):
    title: str
    handle: str
    description_html: Optional[str] = None
    vendor: Optional[str] = None
    product_type: Optional[str] = None
    tags: Optional[list[str]] = None
    status: Optional[str] = None
    gift_card: Optional[bool] = None
    gift_card_template_suffix: Optional[str] = None
    seo: Optional[SEOInput] = None
    product_options: Optional[list[OptionSetInput]] = None
    variants: Optional[list[VariantSetInput]] = None
    metafields: Optional[list[MetafieldInput]] = None


# ===================
# UPSERT RESULT
# ===================

class UpsertVariant(BaseSchema):
    id: str
    title: Optional[str] = None
    sku: Optional[str] = None
    price: Optional[str] = None
    variant_key: Optional[str] = Field(None, description="Echoed stable key, when present")


class UpsertResult(BaseSchema):
    """Authoritative identity returned by productSet."""

    id: str
    handle: str
    title: Optional[str] = None
    status: Optional[str] = None
    variants: list[UpsertVariant] = Field(default_factory=list)


# ===================
# RESPONSE SCHEMAS
# ===================

class MappingReference(BaseSchema):
    dashboard_product_id: str
    external_product_id: str
    store_id: str
    handle: str


class SyncResult(BaseSchema):
    """Outcome of one product-to-store sync."""

    operation: str = Field(..., description="created or updated")
    external_product: UpsertResult
    mapping: MappingReference
    inventory: Optional[StoreInventorySummary] = None


class BulkSyncItem(BaseSchema):
    product_id: str
    operation: str
    external_product_id: str
    handle: str


class BulkSyncFailure(BaseSchema):
    product_id: str
    error: str


class BulkSyncResult(BaseSchema):
    store_id: str
    total: int
    successful: int
    failed: int
    batches: int
    results: list[BulkSyncItem] = Field(default_factory=list)
    errors: list[BulkSyncFailure] = Field(default_factory=list)
