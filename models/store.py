"""
Store schemas.

A store is one connected Shopify shop. OAuth and token issuance happen
elsewhere; this service only reads the resulting credentials.
"""

from datetime import datetime
from typing import Optional

from pydantic import Field

from models.base import BaseSchema


class Store(BaseSchema):
    """Connected store with the credentials needed for Admin API calls."""

    id: str = Field(..., description="Store UUID")
    shop_domain: str = Field(..., description="myshopify.com domain")
    shop_name: Optional[str] = Field(None, description="Display name")
    access_token: str = Field(..., repr=False, description="Admin API access token")
    is_active: bool = True

    @property
    def display_name(self) -> str:
        return self.shop_name or self.shop_domain


class Location(BaseSchema):
    """Fulfillment location as reported by the store."""

    id: str
    name: str = ""
    is_active: bool = True
    fulfills_online_orders: bool = False
    ships_inventory: bool = True


class StoreLocations(BaseSchema):
    """Every location a store reports, active or not."""

    store_id: str
    store_name: str
    shop_domain: str
    locations: list[Location]
    count: int
    retrieved_at: datetime
