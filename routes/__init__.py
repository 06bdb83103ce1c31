"""
API route modules.

Each module defines routes for one domain area.
"""

from routes.sync import router as sync_router
from routes.inventory import router as inventory_router

__all__ = [
    "sync_router",
    "inventory_router",
]
