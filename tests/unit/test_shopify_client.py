"""
Unit tests for the Shopify GraphQL client.

Run: pytest tests/unit/test_shopify_client.py -v
"""

import pytest
import requests
from unittest.mock import MagicMock, patch

from models.product import MasterProduct
from models.store import Store
from services.sync_engine import build_upsert_payload
from integrations.shopify import ShopifyClient, parse_product_inventory
from exceptions import ExternalServiceError, ShopifyUserErrorsError

from tests.factories import MasterProductFactory, ShopifyFactory, StoreFactory


def make_response(body: dict, status_code: int = 200) -> MagicMock:
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = body
    return response


@pytest.fixture
def client() -> ShopifyClient:
    store = Store.model_validate(StoreFactory.create(shop_domain="demo.myshopify.com"))
    return ShopifyClient(store, api_version="2024-10", timeout=5)


@pytest.fixture
def payload():
    product = MasterProduct.model_validate(MasterProductFactory.create(id="prod-1"))
    return build_upsert_payload(product)


class TestExecute:
    """Tests for execute()"""

    def test_posts_to_admin_graphql_with_token(self, client):
        with patch("integrations.shopify.requests.post") as post:
            post.return_value = make_response({"data": {"shop": {"name": "Demo"}}})

            data = client.execute("{ shop { name } }")

        assert data == {"shop": {"name": "Demo"}}
        args, kwargs = post.call_args
        assert args[0] == "https://demo.myshopify.com/admin/api/2024-10/graphql.json"
        assert kwargs["headers"]["X-Shopify-Access-Token"] == "shpat_test_token"
        assert kwargs["json"] == {"query": "{ shop { name } }"}
        assert kwargs["timeout"] == 5

    def test_transport_failure(self, client):
        with patch("integrations.shopify.requests.post") as post:
            post.side_effect = requests.exceptions.ConnectionError("refused")

            with pytest.raises(ExternalServiceError) as exc_info:
                client.execute("{ shop { name } }")

        assert exc_info.value.code == "SHOPIFY_ERROR"
        assert "refused" in exc_info.value.message

    def test_non_200_status(self, client):
        with patch("integrations.shopify.requests.post") as post:
            post.return_value = make_response({}, status_code=401)

            with pytest.raises(ExternalServiceError) as exc_info:
                client.execute("{ shop { name } }")

        assert exc_info.value.details["status_code"] == 401

    def test_non_json_body(self, client):
        """Should surface an HTML error page as an upstream failure."""
        response = make_response({})
        response.json.side_effect = requests.exceptions.JSONDecodeError(
            "Expecting value", "<html>Bad gateway</html>", 0
        )
        with patch("integrations.shopify.requests.post", return_value=response):
            with pytest.raises(ExternalServiceError) as exc_info:
                client.execute("{ shop { name } }")

        assert exc_info.value.code == "SHOPIFY_ERROR"
        assert "not JSON" in exc_info.value.message

    def test_top_level_graphql_errors(self, client):
        with patch("integrations.shopify.requests.post") as post:
            post.return_value = make_response({"errors": [{"message": "Throttled"}]})

            with pytest.raises(ExternalServiceError) as exc_info:
                client.execute("{ shop { name } }")

        assert exc_info.value.message == "GraphQL operation failed: Throttled"


class TestProductSet:
    """Tests for product_set()"""

    def test_parses_product_and_echoed_keys(self, client, payload):
        with patch("integrations.shopify.requests.post") as post:
            post.return_value = make_response(
                ShopifyFactory.product_set_response(variant_keys=["prod-1:0", "prod-1:1"])
            )

            result = client.product_set(payload)

        assert result.id == "gid://shopify/Product/1"
        assert result.handle == "test-product"
        assert [v.variant_key for v in result.variants] == ["prod-1:0", "prod-1:1"]
        sent = post.call_args[1]["json"]["variables"]["input"]
        assert sent["handle"] == payload.handle

    def test_user_errors_raise(self, client, payload):
        with patch("integrations.shopify.requests.post") as post:
            post.return_value = make_response(ShopifyFactory.product_set_response(
                user_errors=[{"field": ["handle"], "message": "Handle has already been taken"}]
            ))

            with pytest.raises(ShopifyUserErrorsError) as exc_info:
                client.product_set(payload)

        assert exc_info.value.message == "Shopify product sync failed: Handle has already been taken"
        assert exc_info.value.user_errors[0]["field"] == ["handle"]

    def test_missing_metafield_gives_no_key(self, client, payload):
        with patch("integrations.shopify.requests.post") as post:
            post.return_value = make_response(ShopifyFactory.product_set_response(variant_keys=[None]))

            result = client.product_set(payload)

        assert result.variants[0].variant_key is None


class TestQueries:

    def test_product_inventory_sums_locations(self):
        node = ShopifyFactory.inventory_node(levels_per_variant=[
            [("gid://shopify/Location/1", 2), ("gid://shopify/Location/2", 5)],
        ])

        live = parse_product_inventory(node)

        variant = live.variants[0]
        assert variant.total_quantity == 7
        assert [level.available for level in variant.location_breakdown] == [2, 5]

    def test_legacy_available_field_accepted(self):
        node = ShopifyFactory.inventory_node()
        level = node["variants"]["edges"][0]["node"]["inventoryItem"]["inventoryLevels"]["edges"][0]["node"]
        del level["quantities"]
        level["available"] = 9

        live = parse_product_inventory(node)

        assert live.variants[0].location_breakdown[0].available == 9

    def test_missing_product_is_404(self, client):
        with patch("integrations.shopify.requests.post") as post:
            post.return_value = make_response({"data": {"product": None}})

            with pytest.raises(ExternalServiceError) as exc_info:
                client.get_product_inventory("gid://shopify/Product/404")

        assert exc_info.value.status_code == 404

    def test_allocation_summary_skips_round_trip_for_no_ids(self, client):
        with patch("integrations.shopify.requests.post") as post:
            assert client.get_inventory_allocation_summary([]) == []

        post.assert_not_called()

    def test_locations_parsed(self, client):
        with patch("integrations.shopify.requests.post") as post:
            post.return_value = make_response(ShopifyFactory.locations_response([
                {"id": "gid://shopify/Location/1", "name": "Warehouse", "isActive": True,
                 "fulfillsOnlineOrders": True, "shipsInventory": True},
                {"id": "gid://shopify/Location/2", "name": "Popup", "isActive": False,
                 "fulfillsOnlineOrders": False, "shipsInventory": False},
            ]))

            locations = client.get_locations()

        assert [(loc.name, loc.is_active, loc.ships_inventory) for loc in locations] == [
            ("Warehouse", True, True),
            ("Popup", False, False),
        ]
