"""
Shopify Admin GraphQL integration.

The upsert gateway (productSet) plus the inventory and location queries
used by the inventory ledger and the allocation planner. Retries and
backoff are not handled here; one call is one HTTP request.
"""

from typing import Any, Optional

import requests
import structlog

from config import settings
from exceptions import ExternalServiceError, ShopifyUserErrorsError
from models.inventory import LiveProductInventory, LiveVariantInventory, LocationLevel
from models.store import Location, Store
from models.sync import (
    VARIANT_KEY_KEY,
    VARIANT_KEY_NAMESPACE,
    ProductSetInput,
    UpsertResult,
    UpsertVariant,
)

logger = structlog.get_logger(__name__)


# ===================
# GRAPHQL DOCUMENTS
# ===================

PRODUCT_SET_MUTATION = f"""
mutation productSet($input: ProductSetInput!) {{
  productSet(input: $input) {{
    product {{
      id
      title
      handle
      status
      variants(first: 250) {{
        edges {{
          node {{
            id
            title
            price
            sku
            metafield(namespace: "{VARIANT_KEY_NAMESPACE}", key: "{VARIANT_KEY_KEY}") {{
              value
            }}
          }}
        }}
      }}
    }}
    userErrors {{
      field
      message
    }}
  }}
}}
"""

INVENTORY_LEVELS_FRAGMENT = """
fragment ProductInventory on Product {
  id
  title
  totalInventory
  variants(first: 250) {
    edges {
      node {
        id
        title
        sku
        inventoryQuantity
        inventoryPolicy
        inventoryItem {
          id
          tracked
          inventoryLevels(first: 50) {
            edges {
              node {
                quantities(names: ["available"]) {
                  name
                  quantity
                }
                location {
                  id
                  name
                  isActive
                  fulfillsOnlineOrders
                }
              }
            }
          }
        }
      }
    }
  }
}
"""

PRODUCT_INVENTORY_QUERY = INVENTORY_LEVELS_FRAGMENT + """
query productInventory($id: ID!) {
  product(id: $id) {
    ...ProductInventory
  }
}
"""

ALLOCATION_SUMMARY_QUERY = INVENTORY_LEVELS_FRAGMENT + """
query inventoryAllocationSummary($ids: [ID!]!) {
  nodes(ids: $ids) {
    ... on Product {
      ...ProductInventory
    }
  }
}
"""

LOCATIONS_QUERY = """
query locations {
  locations(first: 50) {
    edges {
      node {
        id
        name
        isActive
        fulfillsOnlineOrders
        shipsInventory
      }
    }
  }
}
"""

PRODUCT_DELETE_MUTATION = """
mutation productDelete($input: ProductDeleteInput!) {
  productDelete(input: $input) {
    deletedProductId
    userErrors {
      field
      message
    }
  }
}
"""


# ===================
# RESPONSE PARSING
# ===================

def _edges(connection: Optional[dict]) -> list[dict]:
    if not connection:
        return []
    return [edge["node"] for edge in connection.get("edges", []) if edge.get("node")]


def _available(level: dict) -> int:
    """Available units of an inventory level (quantities list or legacy field)."""
    if level.get("available") is not None:
        return int(level["available"])
    for quantity in level.get("quantities") or []:
        if quantity.get("name") == "available":
            return int(quantity.get("quantity") or 0)
    return 0


def parse_upsert_result(product: dict) -> UpsertResult:
    variants = []
    for node in _edges(product.get("variants")):
        metafield = node.get("metafield") or {}
        variants.append(
            UpsertVariant(
                id=node["id"],
                title=node.get("title"),
                sku=node.get("sku"),
                price=str(node["price"]) if node.get("price") is not None else None,
                variant_key=metafield.get("value"),
            )
        )
    return UpsertResult(
        id=product["id"],
        handle=product["handle"],
        title=product.get("title"),
        status=product.get("status"),
        variants=variants,
    )


def parse_product_inventory(product: dict) -> LiveProductInventory:
    variants = []
    for node in _edges(product.get("variants")):
        item = node.get("inventoryItem") or {}
        levels = [
            LocationLevel(
                location_id=level["location"]["id"],
                location_name=level["location"].get("name") or "",
                available=_available(level),
                is_active=level["location"].get("isActive"),
                fulfills_online_orders=level["location"].get("fulfillsOnlineOrders"),
            )
            for level in _edges(item.get("inventoryLevels"))
        ]
        variants.append(
            LiveVariantInventory(
                variant_id=node["id"],
                variant_title=node.get("title"),
                sku=node.get("sku"),
                total_quantity=node.get("inventoryQuantity") or 0,
                inventory_policy=node.get("inventoryPolicy"),
                location_breakdown=levels,
            )
        )
    return LiveProductInventory(
        product_id=product["id"],
        product_title=product.get("title"),
        total_inventory=product.get("totalInventory") or 0,
        variants=variants,
    )


# ===================
# CLIENT
# ===================

class ShopifyClient:
    """
    GraphQL client bound to one store.

    Usage:
        client = get_shopify_client(store)
        result = client.product_set(payload)
    """

    def __init__(
        self,
        store: Store,
        api_version: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self.store = store
        self.api_version = api_version or settings.shopify_api_version
        self.timeout = timeout or settings.shopify_request_timeout_seconds

    @property
    def graphql_url(self) -> str:
        domain = self.store.shop_domain
        if not domain.startswith(("http://", "https://")):
            domain = f"https://{domain}"
        return f"{domain.rstrip('/')}/admin/api/{self.api_version}/graphql.json"

    def execute(self, query: str, variables: Optional[dict] = None) -> dict[str, Any]:
        """
        Run one GraphQL document.

        Raises:
            ExternalServiceError: Transport failure, non-200 status or top-level GraphQL errors
        """
        payload: dict[str, Any] = {"query": query}
        if variables:
            payload["variables"] = variables

        headers = {
            "Content-Type": "application/json",
            "X-Shopify-Access-Token": self.store.access_token,
        }

        try:
            response = requests.post(
                self.graphql_url,
                json=payload,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            logger.error(
                "shopify_request_failed",
                shop=self.store.shop_domain,
                error=str(e),
            )
            raise ExternalServiceError("shopify", f"Shopify request failed: {e}") from e

        if response.status_code != 200:
            logger.error(
                "shopify_http_error",
                shop=self.store.shop_domain,
                status_code=response.status_code,
            )
            raise ExternalServiceError(
                "shopify",
                f"Shopify returned HTTP {response.status_code}",
                details={"status_code": response.status_code},
            )

        try:
            body = response.json()
        except ValueError as e:
            logger.error(
                "shopify_invalid_response",
                shop=self.store.shop_domain,
                error=str(e),
            )
            raise ExternalServiceError(
                "shopify",
                "Shopify returned a response that is not JSON",
                details={"status_code": response.status_code},
            ) from e

        if body.get("errors"):
            messages = "; ".join(
                str(e.get("message", e)) if isinstance(e, dict) else str(e)
                for e in body["errors"]
            )
            logger.error(
                "shopify_graphql_errors",
                shop=self.store.shop_domain,
                errors=messages,
            )
            raise ExternalServiceError(
                "shopify",
                f"GraphQL operation failed: {messages}",
                details={"errors": body["errors"]},
            )

        return body.get("data") or {}

    # ===================
    # MUTATIONS
    # ===================

    def product_set(self, payload: ProductSetInput) -> UpsertResult:
        """
        Create-or-update a product with productSet.

        Raises:
            ShopifyUserErrorsError: The store rejected one or more fields
            ExternalServiceError: Transport or GraphQL failure
        """
        logger.info(
            "shopify_product_set",
            shop=self.store.shop_domain,
            handle=payload.handle,
            variants=len(payload.variants or []),
        )

        data = self.execute(PRODUCT_SET_MUTATION, {"input": payload.to_input()})
        result = data.get("productSet") or {}

        user_errors = result.get("userErrors") or []
        if user_errors:
            logger.warning(
                "shopify_product_set_rejected",
                shop=self.store.shop_domain,
                errors=user_errors,
            )
            raise ShopifyUserErrorsError("product sync", user_errors)

        if not result.get("product"):
            raise ExternalServiceError("shopify", "productSet returned no product")

        return parse_upsert_result(result["product"])

    def delete_product(self, external_product_id: str) -> Optional[str]:
        """Delete a product in the store; returns the deleted id."""
        data = self.execute(PRODUCT_DELETE_MUTATION, {"input": {"id": external_product_id}})
        result = data.get("productDelete") or {}

        user_errors = result.get("userErrors") or []
        if user_errors:
            raise ShopifyUserErrorsError("product deletion", user_errors)

        return result.get("deletedProductId")

    # ===================
    # QUERIES
    # ===================

    def get_product_inventory(self, external_product_id: str) -> LiveProductInventory:
        """Live per-variant, per-location inventory of one product."""
        data = self.execute(PRODUCT_INVENTORY_QUERY, {"id": external_product_id})
        product = data.get("product")
        if not product:
            raise ExternalServiceError(
                "shopify",
                "Product not found in Shopify",
                status_code=404,
                details={"external_product_id": external_product_id},
            )
        return parse_product_inventory(product)

    def get_inventory_allocation_summary(
        self,
        external_product_ids: list[str],
    ) -> list[LiveProductInventory]:
        """Live inventory for several products in one round trip."""
        if not external_product_ids:
            return []
        data = self.execute(ALLOCATION_SUMMARY_QUERY, {"ids": external_product_ids})
        return [
            parse_product_inventory(node)
            for node in data.get("nodes") or []
            if node
        ]

    def get_locations(self) -> list[Location]:
        data = self.execute(LOCATIONS_QUERY)
        return [
            Location(
                id=node["id"],
                name=node.get("name") or "",
                is_active=bool(node.get("isActive")),
                fulfills_online_orders=bool(node.get("fulfillsOnlineOrders")),
                ships_inventory=bool(node.get("shipsInventory")),
            )
            for node in _edges(data.get("locations"))
        ]


def get_shopify_client(store: Store) -> ShopifyClient:
    """Client for one store's Admin API."""
    return ShopifyClient(store)
