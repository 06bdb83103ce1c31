"""
Inventory API routes.

Store inventory assignment, sync from the store, summaries, history, live
levels, store locations and allocation recommendations.
"""

from fastapi import APIRouter, Header, Query
from fastapi.responses import JSONResponse
from typing import Optional
import structlog

from models.base import ApiResponse
from models.inventory import AllocationRequest, AssignInventoryRequest
from services.inventory_service import get_inventory_service
from services.allocation_service import get_allocation_service
from exceptions import AppError

logger = structlog.get_logger(__name__)

router = APIRouter()


# ===================
# EXCEPTION HANDLER
# ===================

def handle_error(e: Exception) -> JSONResponse:
    """Convert exception to JSON response."""
    if isinstance(e, AppError):
        return JSONResponse(
            status_code=e.status_code,
            content=e.to_dict()
        )
    # Unexpected error
    logger.error("unexpected_error", error=str(e), type=type(e).__name__)
    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "message": "An unexpected error occurred",
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred"
            }
        }
    )


# ===================
# ASSIGNMENT & SYNC
# ===================

@router.post("/products/{product_id}/stores/{store_id}/assign", response_model=ApiResponse)
async def assign_inventory(
    product_id: str,
    store_id: str,
    data: AssignInventoryRequest,
    x_user_id: Optional[str] = Header(None),
):
    """
    Assign master inventory to a store.

    All items are validated before any is written.

    Raises:
        404: Mapping or variant not found
        422: Negative quantity or more than the master variant holds
    """
    try:
        service = get_inventory_service()
        records, summary = service.assign_inventory_batch(
            product_id,
            store_id,
            data.variant_inventory,
            location_id=data.location_id,
            actor=x_user_id,
        )
        return ApiResponse.ok(
            "Inventory assigned to store",
            {
                "assignments": [r.model_dump(mode="json") for r in records],
                "inventory": summary.model_dump(mode="json"),
            },
        )

    except Exception as e:
        return handle_error(e)


@router.post("/products/{product_id}/stores/{store_id}/sync", response_model=ApiResponse)
async def sync_inventory(product_id: str, store_id: str):
    """Pull live quantities from the store. Assigned quantities are not touched."""
    try:
        service = get_inventory_service()
        records = service.sync_inventory_from_shopify(product_id, store_id)
        return ApiResponse.ok(
            "Inventory synced from store",
            {
                "synced_variants": len(records),
                "variants": [r.model_dump(mode="json") for r in records],
            },
        )

    except Exception as e:
        return handle_error(e)


# ===================
# READ
# ===================

@router.get("/products/{product_id}/summary", response_model=ApiResponse)
async def get_inventory_summary(
    product_id: str,
    store_id: Optional[str] = Query(None, description="Limit to one store"),
):
    """Master inventory next to assigned and last-known store quantities."""
    try:
        service = get_inventory_service()
        summary = service.get_inventory_summary(product_id, store_id)
        return ApiResponse.ok("Inventory summary retrieved", summary.model_dump(mode="json"))

    except Exception as e:
        return handle_error(e)


@router.get("/products/{product_id}/stores/{store_id}/history", response_model=ApiResponse)
async def get_inventory_history(
    product_id: str,
    store_id: str,
    variant_index: Optional[int] = Query(None, ge=0, description="Limit to one variant"),
    limit: int = Query(50, ge=1, le=500, description="Max entries"),
):
    """Inventory history of a product in a store, newest first."""
    try:
        service = get_inventory_service()
        history = service.get_inventory_history(
            product_id,
            store_id,
            variant_index=variant_index,
            limit=limit,
        )
        return ApiResponse.ok(
            "Inventory history retrieved",
            [item.model_dump(mode="json") for item in history],
        )

    except Exception as e:
        return handle_error(e)


@router.get("/products/{product_id}/stores/{store_id}/live", response_model=ApiResponse)
async def get_live_inventory(product_id: str, store_id: str):
    """Per-variant, per-location levels straight from the store."""
    try:
        service = get_allocation_service()
        live = service.get_live_inventory(product_id, store_id)
        return ApiResponse.ok("Live inventory retrieved", live.model_dump(mode="json"))

    except Exception as e:
        return handle_error(e)


@router.get("/stores/{store_id}/locations", response_model=ApiResponse)
async def get_store_locations(store_id: str):
    """Store locations with their fulfillment flags."""
    try:
        service = get_allocation_service()
        result = service.get_store_locations(store_id)
        return ApiResponse.ok(
            f"Store locations for {result.store_name} retrieved",
            result.model_dump(mode="json"),
        )

    except Exception as e:
        return handle_error(e)


# ===================
# ALLOCATION
# ===================

@router.post("/stores/{store_id}/allocation-recommendations", response_model=ApiResponse)
async def get_allocation_recommendations(store_id: str, data: AllocationRequest):
    """
    Suggested distribution of each variant's units over active locations.

    Advisory only; nothing is written.
    """
    try:
        service = get_allocation_service()
        recommendations = service.get_allocation_recommendations(
            store_id,
            data.product_ids,
            data.allocation_strategy,
        )
        return ApiResponse.ok(
            "Allocation recommendations generated",
            recommendations.model_dump(mode="json"),
        )

    except Exception as e:
        return handle_error(e)
