"""
Unit tests for the allocation planner.

Run: pytest tests/unit/test_allocation_service.py -v
"""

import pytest
from unittest.mock import MagicMock, patch

from models.store import Location
from models.inventory import AllocationStrategy, LocationLevel
from services.allocation_service import (
    AllocationService,
    active_locations,
    allocation_efficiency,
    parse_strategy,
    plan_balanced,
    plan_priority,
)
from integrations.shopify import parse_product_inventory
from exceptions import InvalidAllocationStrategyError, StoreNotFoundError, ValidationError

from tests.factories import ProductMapFactory, ShopifyFactory, StoreFactory


def make_locations(count: int, online: int = 0) -> list[Location]:
    """`count` active locations, the first `online` of them fulfilling online orders."""
    return [
        Location(
            id=f"gid://shopify/Location/{i + 1}",
            name=f"Location {i + 1}",
            fulfills_online_orders=i < online,
        )
        for i in range(count)
    ]


def levels(*quantities: int) -> list[LocationLevel]:
    return [
        LocationLevel(location_id=f"gid://shopify/Location/{i + 1}", available=q)
        for i, q in enumerate(quantities)
    ]


class TestBalanced:
    """Tests for plan_balanced()"""

    def test_remainder_goes_to_first_locations(self):
        """Should split 17 over 4 as [5, 4, 4, 4]."""
        plan = plan_balanced(17, make_locations(4))

        assert [s.suggested_allocation for s in plan] == [5, 4, 4, 4]

    def test_sum_preserved(self):
        for total in (0, 1, 7, 100, 101):
            plan = plan_balanced(total, make_locations(3))
            assert sum(s.suggested_allocation for s in plan) == total

    def test_no_locations_empty_plan(self):
        assert plan_balanced(10, []) == []

    def test_current_available_reported(self):
        plan = plan_balanced(4, make_locations(2), levels(3, 1))

        assert [s.current_available for s in plan] == [3, 1]


class TestPriority:
    """Tests for plan_priority()"""

    def test_half_to_online_locations(self):
        """Should give 20 over 2 online + 2 other as 5 each."""
        plan = plan_priority(20, make_locations(4, online=2))

        assert [s.suggested_allocation for s in plan] == [5, 5, 5, 5]
        assert [s.is_priority for s in plan] == [True, True, False, False]

    def test_odd_total_extra_unit_to_secondary(self):
        """Should floor the primary half: 21 over 1 + 1 → 10 / 11."""
        plan = plan_priority(21, make_locations(2, online=1))

        assert [s.suggested_allocation for s in plan] == [10, 11]

    def test_only_primary_locations_take_everything(self):
        plan = plan_priority(9, make_locations(3, online=3))

        assert [s.suggested_allocation for s in plan] == [3, 3, 3]

    def test_only_secondary_locations_take_everything(self):
        plan = plan_priority(10, make_locations(2, online=0))

        assert [s.suggested_allocation for s in plan] == [5, 5]

    def test_never_negative(self):
        plan = plan_priority(1, make_locations(3, online=1))

        assert all(s.suggested_allocation >= 0 for s in plan)

    def test_no_locations_empty_plan(self):
        assert plan_priority(10, []) == []


class TestEfficiency:
    """Tests for allocation_efficiency()"""

    def test_even_full_coverage_scores_100(self):
        assert allocation_efficiency(levels(5, 5), 2) == 100

    def test_all_in_one_location(self):
        """Should score 50 for [10, 0] over 2 locations."""
        # coverage 50 → 35; variance 25 / mean 5 → balance 50 → 15
        assert allocation_efficiency(levels(10, 0), 2) == 50

    def test_zero_stock_scores_zero(self):
        assert allocation_efficiency(levels(0, 0), 2) == 0
        assert allocation_efficiency([], 2) == 0

    def test_zero_active_locations_no_coverage(self):
        assert allocation_efficiency(levels(5, 5), 0) == 30

    def test_score_within_bounds(self):
        score = allocation_efficiency(levels(1, 50, 0, 3), 2)

        assert 0 <= score <= 100


class TestHelpers:

    def test_inactive_and_non_shipping_locations_filtered(self):
        locations = [
            Location(id="a", is_active=True, ships_inventory=True),
            Location(id="b", is_active=False, ships_inventory=True),
            Location(id="c", is_active=True, ships_inventory=False),
        ]

        assert [loc.id for loc in active_locations(locations)] == ["a"]

    def test_parse_strategy(self):
        assert parse_strategy("PRIORITY") == AllocationStrategy.PRIORITY
        assert parse_strategy(AllocationStrategy.BALANCED) == AllocationStrategy.BALANCED

    def test_unknown_strategy_rejected(self):
        with pytest.raises(InvalidAllocationStrategyError):
            parse_strategy("random")


class TestAllocationService:
    """Tests for get_allocation_recommendations()"""

    @pytest.fixture
    def store_client(self, mock_db, mock_supabase):
        mock_supabase.set_table_data("stores", [StoreFactory.create(id="store-1")])
        mock_supabase.set_table_data("product_maps", [
            ProductMapFactory.create("prod-1", "store-1"),
            ProductMapFactory.create("prod-2", "store-1", status="deleted"),
        ])
        client = MagicMock()
        client.get_locations.return_value = make_locations(2, online=1) + [
            Location(id="gid://shopify/Location/9", is_active=False)
        ]
        client.get_inventory_allocation_summary.return_value = [
            parse_product_inventory(ShopifyFactory.inventory_node(levels_per_variant=[
                [("gid://shopify/Location/1", 6), ("gid://shopify/Location/2", 2)],
            ]))
        ]
        with patch("services.allocation_service.get_shopify_client", return_value=client):
            yield client

    def test_recommendations_for_synced_products(self, store_client):
        """Should plan synced products and skip deleted or unmapped ones."""
        # Arrange
        service = AllocationService()

        # Act
        result = service.get_allocation_recommendations(
            "store-1", ["prod-1", "prod-2", "prod-3"], "balanced"
        )

        # Assert
        store_client.get_inventory_allocation_summary.assert_called_once_with(
            ["gid://shopify/Product/1"]
        )
        assert result.active_locations == 2
        assert result.total_products == 3
        product = result.recommendations[0]
        assert product.product_id == "prod-1"
        variant = product.variants[0]
        assert variant.total_available == 8
        assert [s.suggested_allocation for s in variant.recommended_allocation] == [4, 4]

    def test_priority_strategy(self, store_client):
        service = AllocationService()

        result = service.get_allocation_recommendations("store-1", ["prod-1"], "priority")

        suggestions = result.recommendations[0].variants[0].recommended_allocation
        assert [s.suggested_allocation for s in suggestions] == [4, 4]
        assert result.allocation_strategy == AllocationStrategy.PRIORITY

    def test_empty_product_ids_rejected(self, store_client):
        service = AllocationService()

        with pytest.raises(ValidationError) as exc_info:
            service.get_allocation_recommendations("store-1", [])

        assert exc_info.value.code == "ALLOCATION_PRODUCTS_REQUIRED"

    def test_unknown_store_rejected(self, store_client):
        service = AllocationService()

        with pytest.raises(StoreNotFoundError):
            service.get_allocation_recommendations("missing", ["prod-1"])


class TestStoreLocations:
    """Tests for get_store_locations()"""

    def test_lists_every_location_with_count(self, mock_db, mock_supabase):
        """Should include inactive locations and count them."""
        mock_supabase.set_table_data("stores", [
            StoreFactory.create(id="store-1", shop_domain="demo.myshopify.com", shop_name="Demo")
        ])
        client = MagicMock()
        client.get_locations.return_value = make_locations(2, online=1) + [
            Location(id="gid://shopify/Location/9", is_active=False)
        ]
        service = AllocationService()

        with patch("services.allocation_service.get_shopify_client", return_value=client):
            result = service.get_store_locations("store-1")

        assert result.count == 3
        assert result.store_name == "Demo"
        assert result.shop_domain == "demo.myshopify.com"
        assert [loc.is_active for loc in result.locations] == [True, True, False]

    def test_unknown_store(self, mock_db, mock_supabase):
        service = AllocationService()

        with pytest.raises(StoreNotFoundError):
            service.get_store_locations("missing")
