"""
Master product schemas.

The dashboard product is the source of truth pushed to every store. This
service only reads it; creation and editing live in the catalog service.
"""

from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import Field, model_validator

from models.base import BaseSchema


class InventoryPolicy(str, Enum):
    """What the store does when a variant is out of stock."""
    DENY = "deny"
    CONTINUE = "continue"


class WeightUnit(str, Enum):
    """Units the dashboard stores weights in."""
    GRAMS = "g"
    KILOGRAMS = "kg"
    OUNCES = "oz"
    POUNDS = "lb"


class OptionValue(BaseSchema):
    """One declared value of a product option (e.g. "Red")."""

    name: str = Field("", max_length=255)
    position: int = 0


class ProductOption(BaseSchema):
    """Product option such as Size or Color."""

    name: str = Field(..., min_length=1, max_length=255)
    position: int = 0
    option_values: list[OptionValue] = Field(default_factory=list)


class VariantOptionValue(BaseSchema):
    """The value a variant takes for one option."""

    option_name: Optional[str] = None
    name: Optional[str] = None


class Metafield(BaseSchema):
    """Custom namespaced field."""

    namespace: str = Field(..., max_length=255)
    key: str = Field(..., max_length=255)
    value: str
    type: str = "single_line_text_field"


class SEO(BaseSchema):
    """Search engine listing overrides."""

    title: Optional[str] = Field(None, max_length=320)
    description: Optional[str] = Field(None, max_length=320)


class ProductMedia(BaseSchema):
    """Media reference; uploading is handled by the media service."""

    url: Optional[str] = None
    alt: Optional[str] = None
    media_content_type: str = "IMAGE"


class ProductVariant(BaseSchema):
    """
    Master variant.

    variant_key is the stable identity carried to the store and echoed
    back, so store variants can be matched without relying on order.
    """

    variant_key: Optional[str] = Field(None, description="Stable variant identity")
    price: Optional[Decimal] = Field(None, ge=0, le=Decimal("999999.99"))
    compare_at_price: Optional[Decimal] = Field(None, ge=0)
    sku: Optional[str] = Field(None, max_length=255)
    barcode: Optional[str] = Field(None, max_length=255)
    tax_code: Optional[str] = None
    inventory_quantity: Optional[int] = Field(0, ge=0)
    inventory_policy: Optional[InventoryPolicy] = InventoryPolicy.DENY
    inventory_management: Optional[str] = None
    taxable: Optional[bool] = True
    weight: Optional[Decimal] = Field(None, ge=0)
    weight_unit: Optional[str] = WeightUnit.GRAMS.value
    option_values: list[VariantOptionValue] = Field(default_factory=list)
    metafields: list[Metafield] = Field(default_factory=list)
    position: int = 0


class MasterProduct(BaseSchema):
    """
    Dashboard product as read from the products table.

    Option and variant counts are not limited here; the sync engine
    enforces the store's limits at translation time.
    """

    id: str = Field(..., description="Product UUID")
    title: str = Field(..., min_length=1, max_length=255)
    description_html: Optional[str] = None
    vendor: Optional[str] = None
    product_type: Optional[str] = None
    handle: Optional[str] = None
    status: Optional[str] = None
    gift_card: bool = False
    gift_card_template_suffix: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    seo: Optional[SEO] = None
    metafields: list[Metafield] = Field(default_factory=list)
    options: list[ProductOption] = Field(default_factory=list)
    variants: list[ProductVariant] = Field(default_factory=list)
    media: list[ProductMedia] = Field(default_factory=list)

    @model_validator(mode="after")
    def fill_variant_keys(self) -> "MasterProduct":
        """Older rows carry no variant_key; derive one from id and position."""
        for index, variant in enumerate(self.variants):
            if not variant.variant_key:
                variant.variant_key = f"{self.id}:{index}"
        return self

    def variant_at(self, index: int) -> Optional[ProductVariant]:
        """Variant at a positional index, or None when out of range."""
        if 0 <= index < len(self.variants):
            return self.variants[index]
        return None
