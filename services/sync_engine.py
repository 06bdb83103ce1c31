"""
Sync engine: master product + per-sync overrides → productSet payload.

Pure translation, no I/O. The same inputs always produce the same payload,
which is what makes a retried productSet call idempotent.

Rules, in order:
1. Copy simple fields (title, description, vendor, type, tags, status,
   SEO, metafields, gift card) when present
2. Handle = explicit handle, else slugified title
3. No options but some variants → inject option "Title" with value "Default"
   (the store requires every variant to reference an option value).
   Blank option values are dropped
4. Translate each variant, applying overrides and aligning its option
   values to exactly one value per defined option
"""

from decimal import Decimal
from typing import Mapping, Optional, Union

import structlog

from config import settings
from exceptions import (
    MissingPriceError,
    OptionLimitExceededError,
    VariantLimitExceededError,
)
from models.product import MasterProduct, ProductOption, ProductVariant, OptionValue
from models.sync import (
    VARIANT_KEY_KEY,
    VARIANT_KEY_NAMESPACE,
    InventoryItemInput,
    InventoryQuantityInput,
    MeasurementInput,
    MetafieldInput,
    NamedValueInput,
    OptionSetInput,
    ProductSetInput,
    SEOInput,
    VariantOptionValueInput,
    VariantOverride,
    VariantSetInput,
    WeightInput,
)
from utils.text_utils import is_blank, slugify_handle

logger = structlog.get_logger(__name__)


# Synthetic option injected for option-less products
DEFAULT_OPTION_NAME = "Title"
DEFAULT_OPTION_VALUE = "Default"

WEIGHT_UNITS = {
    "g": "GRAMS",
    "kg": "KILOGRAMS",
    "oz": "OUNCES",
    "lb": "POUNDS",
}

OverridesInput = Optional[Mapping[int, Union[VariantOverride, dict]]]


def format_money(value: Decimal) -> str:
    """Render a price the way the store expects it: a plain decimal string."""
    return format(Decimal(value), "f")


def normalize_weight_unit(unit: Optional[str]) -> str:
    """Map dashboard weight units onto the store's uppercase enum."""
    if not unit:
        return WEIGHT_UNITS["g"]
    return WEIGHT_UNITS.get(unit.strip().lower(), unit.strip().upper())


def coerce_overrides(overrides: OverridesInput) -> dict[int, VariantOverride]:
    if not overrides:
        return {}
    return {
        int(index): (
            value if isinstance(value, VariantOverride)
            else VariantOverride.model_validate(value)
        )
        for index, value in overrides.items()
        if value is not None
    }


class ProductSetPayloadBuilder:
    """
    Builds a ProductSetInput step by step.

    Usage:
        payload = (
            ProductSetPayloadBuilder(product)
            .with_overrides({0: VariantOverride(price=Decimal("9.99"))})
            .at_location("gid://shopify/Location/1")
            .build()
        )
    """

    def __init__(
        self,
        product: MasterProduct,
        max_options: Optional[int] = None,
        max_variants: Optional[int] = None,
    ):
        self.product = product
        self.max_options = max_options or settings.max_product_options
        self.max_variants = max_variants or settings.max_product_variants
        self._overrides: dict[int, VariantOverride] = {}
        self._location_id: Optional[str] = None

    def with_overrides(self, overrides: OverridesInput) -> "ProductSetPayloadBuilder":
        self._overrides = coerce_overrides(overrides)
        return self

    def at_location(self, location_id: Optional[str]) -> "ProductSetPayloadBuilder":
        self._location_id = location_id
        return self

    # ===================
    # BUILD
    # ===================

    def build(self) -> ProductSetInput:
        """
        Compose the payload.

        Raises:
            OptionLimitExceededError: More options than the store accepts
            VariantLimitExceededError: More variants than the store accepts
            MissingPriceError: A variant has neither a price nor an override price
        """
        product = self.product

        if len(product.options) > self.max_options:
            raise OptionLimitExceededError(len(product.options), self.max_options)
        if len(product.variants) > self.max_variants:
            raise VariantLimitExceededError(len(product.variants), self.max_variants)

        options = self._defined_options()

        variants = None
        if product.variants:
            variants = [
                self._variant_input(index, variant, options)
                for index, variant in enumerate(product.variants)
            ]

        payload = ProductSetInput(
            title=product.title,
            handle=product.handle or slugify_handle(product.title),
            description_html=product.description_html or None,
            vendor=product.vendor or None,
            product_type=product.product_type or None,
            tags=list(product.tags) if product.tags else None,
            status=product.status or None,
            gift_card=True if product.gift_card else None,
            gift_card_template_suffix=product.gift_card_template_suffix or None,
            seo=self._seo_input(),
            product_options=[
                OptionSetInput(
                    name=option.name,
                    position=option.position,
                    values=[NamedValueInput(name=v.name) for v in option.option_values],
                )
                for option in options
            ] or None,
            variants=variants,
            metafields=[
                MetafieldInput(namespace=m.namespace, key=m.key, value=m.value, type=m.type)
                for m in product.metafields
            ] or None,
        )

        logger.debug(
            "upsert_payload_built",
            product_id=product.id,
            options=len(options),
            variants=len(variants or []),
            overrides=len(self._overrides),
            location_id=self._location_id,
        )

        return payload

    # ===================
    # HELPERS
    # ===================

    def _seo_input(self) -> Optional[SEOInput]:
        seo = self.product.seo
        if not seo or not (seo.title or seo.description):
            return None
        return SEOInput(title=seo.title or None, description=seo.description or None)

    def _defined_options(self) -> list[ProductOption]:
        """Options as the store will see them: blank values dropped, synthetic default when needed."""
        product = self.product

        if not product.options:
            if not product.variants:
                return []
            return [
                ProductOption(
                    name=DEFAULT_OPTION_NAME,
                    position=1,
                    option_values=[OptionValue(name=DEFAULT_OPTION_VALUE)],
                )
            ]

        return [
            ProductOption(
                name=option.name,
                position=option.position,
                option_values=[v for v in option.option_values if not is_blank(v.name)],
            )
            for option in product.options
        ]

    def _variant_input(
        self,
        index: int,
        variant: ProductVariant,
        options: list[ProductOption],
    ) -> VariantSetInput:
        override = self._overrides.get(index) or VariantOverride()

        price = override.price if override.price is not None else variant.price
        if price is None:
            raise MissingPriceError(index)

        compare_at = (
            override.compare_at_price
            if override.compare_at_price is not None
            else variant.compare_at_price
        )

        inventory_quantities = None
        if self._location_id and variant.inventory_quantity is not None:
            inventory_quantities = [
                InventoryQuantityInput(
                    location_id=self._location_id,
                    available_quantity=variant.inventory_quantity,
                )
            ]

        inventory_item = None
        if variant.weight:
            inventory_item = InventoryItemInput(
                measurement=MeasurementInput(
                    weight=WeightInput(
                        value=float(variant.weight),
                        unit=normalize_weight_unit(variant.weight_unit),
                    )
                )
            )

        metafields = [
            MetafieldInput(namespace=m.namespace, key=m.key, value=m.value, type=m.type)
            for m in variant.metafields
        ]
        if variant.variant_key:
            metafields.append(
                MetafieldInput(
                    namespace=VARIANT_KEY_NAMESPACE,
                    key=VARIANT_KEY_KEY,
                    value=variant.variant_key,
                    type="single_line_text_field",
                )
            )

        return VariantSetInput(
            price=format_money(price),
            compare_at_price=format_money(compare_at) if compare_at is not None else None,
            sku=override.sku or variant.sku or None,
            barcode=variant.barcode or None,
            tax_code=variant.tax_code or None,
            # Gift cards cannot be taxable: omit the field entirely
            taxable=(
                variant.taxable
                if not self.product.gift_card and variant.taxable is not None
                else None
            ),
            inventory_policy=(
                variant.inventory_policy.value.upper() if variant.inventory_policy else None
            ),
            inventory_quantities=inventory_quantities,
            inventory_item=inventory_item,
            option_values=align_option_values(variant, options),
            metafields=metafields or None,
        )


def align_option_values(
    variant: ProductVariant,
    options: list[ProductOption],
) -> list[VariantOptionValueInput]:
    """
    Exactly one value per defined option.

    For each option: the incoming value with the same option name, else the
    incoming value at the same position, else the option's first declared
    value, else "Default".
    """
    incoming = variant.option_values
    aligned = []

    for position, option in enumerate(options):
        match = next((ov for ov in incoming if ov.option_name == option.name), None)
        if match is None and position < len(incoming):
            match = incoming[position]

        if match is not None and not is_blank(match.name):
            value = match.name
        elif option.option_values:
            value = option.option_values[0].name
        else:
            value = DEFAULT_OPTION_VALUE

        aligned.append(VariantOptionValueInput(option_name=option.name, name=value))

    return aligned


def build_upsert_payload(
    master_product: MasterProduct,
    variant_overrides: OverridesInput = None,
    target_location_id: Optional[str] = None,
) -> ProductSetInput:
    """
    Translate a master product into a productSet payload.

    Args:
        master_product: Dashboard product
        variant_overrides: {variant_index: {price?, compare_at_price?, sku?}}
        target_location_id: When given, variant inventory is set at this
            location; otherwise inventory is left for a later assignment

    Returns:
        ProductSetInput; call .to_input() for the GraphQL variables
    """
    return (
        ProductSetPayloadBuilder(master_product)
        .with_overrides(variant_overrides)
        .at_location(target_location_id)
        .build()
    )
