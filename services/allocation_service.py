"""
Allocation planner.

Suggests how a variant's units could be spread over a store's fulfillment
locations. Recommendations are advisory: nothing is written back.

Strategies:
- balanced: even split, remainder one unit each to the first locations
- priority: half to online-fulfilling locations, the rest to the others
"""

import math
from datetime import datetime, timezone
from typing import Optional
import structlog

from models.store import Location, StoreLocations
from models.product_map import MappingStatus
from models.inventory import (
    AllocationRecommendations,
    AllocationStrategy,
    AllocationSuggestion,
    LiveProductInventory,
    LocationLevel,
    ProductAllocation,
    VariantAllocation,
)
from exceptions import InvalidAllocationStrategyError, ValidationError
from integrations.shopify import get_shopify_client
from services.store_service import get_store_service
from services.product_map_service import get_product_map_service

logger = structlog.get_logger(__name__)


# ===================
# PURE PLANNERS
# ===================

def active_locations(locations: list[Location]) -> list[Location]:
    """Locations that can hold stock: active and shipping inventory."""
    return [loc for loc in locations if loc.is_active and loc.ships_inventory]


def _current(levels: list[LocationLevel], location_id: str) -> int:
    return next((l.available for l in levels if l.location_id == location_id), 0)


def plan_balanced(
    total: int,
    locations: list[Location],
    levels: Optional[list[LocationLevel]] = None,
) -> list[AllocationSuggestion]:
    """
    Even split in list order.

    17 over 4 locations → [5, 4, 4, 4].
    """
    if not locations:
        return []

    levels = levels or []
    per_location, remainder = divmod(max(0, total), len(locations))

    return [
        AllocationSuggestion(
            location_id=loc.id,
            location_name=loc.name,
            suggested_allocation=per_location + (1 if i < remainder else 0),
            current_available=_current(levels, loc.id),
        )
        for i, loc in enumerate(locations)
    ]


def plan_priority(
    total: int,
    locations: list[Location],
    levels: Optional[list[LocationLevel]] = None,
) -> list[AllocationSuggestion]:
    """
    Half of the units (floored) to primary locations, the rest to secondary.

    Primary locations fulfill online orders. Each partition splits its share
    evenly with floor division. When one partition is empty the other takes
    the whole total.
    """
    if not locations:
        return []

    levels = levels or []
    total = max(0, total)
    primary = [loc for loc in locations if loc.fulfills_online_orders]
    secondary = [loc for loc in locations if not loc.fulfills_online_orders]

    if primary and secondary:
        primary_share = total // 2
        secondary_share = total - primary_share
    elif primary:
        primary_share, secondary_share = total, 0
    else:
        primary_share, secondary_share = 0, total

    per_primary = primary_share // len(primary) if primary else 0
    per_secondary = secondary_share // len(secondary) if secondary else 0

    return [
        AllocationSuggestion(
            location_id=loc.id,
            location_name=loc.name,
            suggested_allocation=max(0, per_primary if loc.fulfills_online_orders else per_secondary),
            current_available=_current(levels, loc.id),
            is_priority=loc.fulfills_online_orders,
        )
        for loc in locations
    ]


PLANNERS = {
    AllocationStrategy.BALANCED: plan_balanced,
    AllocationStrategy.PRIORITY: plan_priority,
}


def allocation_efficiency(levels: list[LocationLevel], active_location_count: int) -> int:
    """
    Score 0-100 for how well units are spread today.

    70% coverage (locations holding stock / active locations) plus 30%
    balance (100 - 10 * variance / mean, floored at 0). Zero stock scores 0.
    """
    quantities = [level.available for level in levels]
    total = sum(quantities)
    if total <= 0 or not quantities:
        return 0

    stocked = sum(1 for q in quantities if q > 0)
    coverage = (
        min(100.0, stocked / active_location_count * 100)
        if active_location_count > 0 else 0.0
    )

    mean = total / len(quantities)
    variance = sum((q - mean) ** 2 for q in quantities) / len(quantities)
    balance = max(0.0, 100 - (variance / mean) * 10)

    # Half-up rounding, not banker's
    return int(math.floor(coverage * 0.7 + balance * 0.3 + 0.5))


def parse_strategy(strategy) -> AllocationStrategy:
    if isinstance(strategy, AllocationStrategy):
        return strategy
    try:
        return AllocationStrategy(str(strategy).lower())
    except ValueError:
        raise InvalidAllocationStrategyError(str(strategy))


def plan_product(
    product_id: str,
    live: LiveProductInventory,
    locations: list[Location],
    strategy: AllocationStrategy,
) -> ProductAllocation:
    """Recommendations for every variant of one product."""
    planner = PLANNERS[strategy]
    variants = []

    for variant in live.variants:
        levels = variant.location_breakdown
        total_available = sum(level.available for level in levels)
        variants.append(VariantAllocation(
            variant_id=variant.variant_id,
            variant_title=variant.variant_title,
            sku=variant.sku,
            total_available=total_available,
            current_distribution=levels,
            recommended_allocation=planner(total_available, locations, levels),
            allocation_efficiency=allocation_efficiency(levels, len(locations)),
        ))

    return ProductAllocation(
        product_id=product_id,
        external_product_id=live.product_id,
        product_title=live.product_title,
        total_inventory=live.total_inventory,
        variants=variants,
    )


# ===================
# SERVICE
# ===================

class AllocationService:
    """Live-data wrapper around the planners."""

    def __init__(self):
        self.stores = get_store_service()
        self.product_maps = get_product_map_service()

    def get_allocation_recommendations(
        self,
        store_id: str,
        product_ids: list[str],
        strategy=AllocationStrategy.BALANCED,
    ) -> AllocationRecommendations:
        """
        Allocation suggestions for master products already synced to a store.

        Products without a live mapping in the store are skipped.

        Raises:
            ValidationError: No product ids
            InvalidAllocationStrategyError: Unknown strategy
            StoreNotFoundError: Missing or inactive store
        """
        if not product_ids:
            raise ValidationError("Product IDs are required", code="ALLOCATION_PRODUCTS_REQUIRED")

        strategy = parse_strategy(strategy)
        store = self.stores.get_by_id(store_id)

        external_ids = {}
        for product_id in product_ids:
            mapping = self.product_maps.get_store_mapping(product_id, store_id)
            if mapping is None or mapping.status == MappingStatus.DELETED:
                logger.warning(
                    "allocation_product_not_synced",
                    product_id=product_id,
                    store_id=store_id
                )
                continue
            external_ids[mapping.external_product_id] = product_id

        client = get_shopify_client(store)
        locations = active_locations(client.get_locations())
        live_products = client.get_inventory_allocation_summary(list(external_ids))

        recommendations = [
            plan_product(external_ids.get(live.product_id, live.product_id), live, locations, strategy)
            for live in live_products
        ]

        logger.info(
            "allocation_recommendations_generated",
            store_id=store_id,
            strategy=strategy.value,
            products=len(recommendations),
            active_locations=len(locations)
        )

        return AllocationRecommendations(
            recommendations=recommendations,
            allocation_strategy=strategy,
            active_locations=len(locations),
            total_products=len(product_ids),
            generated_at=datetime.now(timezone.utc),
        )

    def get_store_locations(self, store_id: str) -> StoreLocations:
        """
        Every location the store reports, including inactive ones.

        Raises:
            StoreNotFoundError: Missing or inactive store
        """
        store = self.stores.get_by_id(store_id)
        locations = get_shopify_client(store).get_locations()

        logger.info(
            "store_locations_retrieved",
            store_id=store_id,
            locations=len(locations),
            active=len(active_locations(locations))
        )

        return StoreLocations(
            store_id=store.id,
            store_name=store.display_name,
            shop_domain=store.shop_domain,
            locations=locations,
            count=len(locations),
            retrieved_at=datetime.now(timezone.utc),
        )

    def get_live_inventory(self, product_id: str, store_id: str) -> LiveProductInventory:
        """
        Per-variant, per-location inventory straight from the store.

        Raises:
            StoreNotFoundError: Missing or inactive store
            MappingNotFoundError: Product not synced to this store
        """
        store = self.stores.get_by_id(store_id)
        _, mapping = self.product_maps.require_store_mapping(product_id, store_id)
        return get_shopify_client(store).get_product_inventory(mapping.external_product_id)


_allocation_service: Optional[AllocationService] = None

def get_allocation_service() -> AllocationService:
    """Get or create AllocationService instance."""
    global _allocation_service
    if _allocation_service is None:
        _allocation_service = AllocationService()
    return _allocation_service
