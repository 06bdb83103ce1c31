"""
Product sync API routes.

Push master products into stores, remove them, and report per-store status.
"""

from fastapi import APIRouter, Header, Query
from fastapi.responses import JSONResponse
from typing import Optional
import structlog

from models.base import ApiResponse
from models.sync import BulkSyncRequest, SyncRequest
from services.store_sync_service import get_store_sync_service
from services.bulk_sync_service import get_bulk_sync_service
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
# SINGLE PRODUCT
# ===================

@router.post("/products/{product_id}/stores/{store_id}", response_model=ApiResponse)
async def sync_product(
    product_id: str,
    store_id: str,
    data: Optional[SyncRequest] = None,
    location_id: Optional[str] = Query(None, description="Store location for variant quantities"),
    x_user_id: Optional[str] = Header(None),
):
    """
    Create or update a product in a store.

    Raises:
        404: Product, store not found
        422: Option/variant limits, missing price, invalid assignment
        502/503: Store rejected or could not be reached
    """
    try:
        service = get_store_sync_service()
        result = service.sync(
            product_id,
            store_id,
            data or SyncRequest(),
            actor=x_user_id,
            location_id=location_id,
        )
        return ApiResponse.ok(
            f"Product {result.operation} in store",
            result.model_dump(mode="json"),
        )

    except Exception as e:
        return handle_error(e)


@router.delete("/products/{product_id}/stores/{store_id}", response_model=ApiResponse)
async def remove_product(product_id: str, store_id: str):
    """
    Delete a product from a store; the mapping is kept with status deleted.

    Raises:
        404: Mapping not found
    """
    try:
        service = get_store_sync_service()
        result = service.remove_from_store(product_id, store_id)
        return ApiResponse.ok("Product deleted from store", result)

    except Exception as e:
        return handle_error(e)


@router.get("/products/{product_id}/status", response_model=ApiResponse)
async def get_sync_status(product_id: str):
    """Sync status of a product in every store it was pushed to."""
    try:
        service = get_store_sync_service()
        statuses = service.get_product_sync_status(product_id)
        return ApiResponse.ok(
            "Sync status retrieved",
            [s.model_dump(mode="json") for s in statuses],
        )

    except Exception as e:
        return handle_error(e)


# ===================
# BULK
# ===================

@router.post("/stores/{store_id}/bulk", response_model=ApiResponse)
async def bulk_sync(
    store_id: str,
    data: BulkSyncRequest,
    x_user_id: Optional[str] = Header(None),
):
    """
    Sync many products into one store in rate-limited batches.

    Per-product failures are reported in `errors`; the call itself
    succeeds unless the request is invalid.
    """
    try:
        service = get_bulk_sync_service()
        result = await service.bulk_sync(
            store_id,
            data.product_ids,
            batch_size=data.batch_size,
            actor=x_user_id,
        )
        return ApiResponse.ok(
            f"Bulk sync completed: {result.successful} succeeded, {result.failed} failed",
            result.model_dump(mode="json"),
        )

    except Exception as e:
        return handle_error(e)
