"""
Store Sync API

Pushes master products into connected Shopify stores, keeps the per-store
product maps, and tracks inventory assigned to each store.
"""

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import logging
import structlog
from datetime import datetime, timezone

from config import settings, check_connection
from exceptions import AppError

API_VERSION = "0.1.0"

logging.basicConfig(format="%(message)s", level=settings.log_level)
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.JSONRenderer() if settings.is_production
            else structlog.dev.ConsoleRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger(__name__)


def _utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Startup: log sync configuration and verify the product/product_maps tables.
    """
    logger.info(
        "store_sync_starting",
        environment=settings.environment,
        shopify_api_version=settings.shopify_api_version,
        bulk_sync_batch_size=settings.bulk_sync_batch_size,
        bulk_sync_batch_delay_seconds=settings.bulk_sync_batch_delay_seconds
    )

    db_status = check_connection()
    if db_status["status"] == "healthy":
        logger.info(
            "mapping_store_ready",
            products=db_status["products_count"],
            product_maps=db_status["product_maps_count"]
        )
    else:
        logger.error("mapping_store_unavailable", error=db_status.get("error"))

    yield

    logger.info("store_sync_stopping")


app = FastAPI(
    title="Store Sync",
    description="Product-to-store synchronization, inventory assignment and allocation",
    version=API_VERSION,
    lifespan=lifespan,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ===================
# META ENDPOINTS
# ===================

@app.get("/health")
async def health_check():
    """Database reachability plus the Shopify API version in use."""
    db_status = check_connection()

    return {
        "status": "healthy" if db_status["status"] == "healthy" else "degraded",
        "timestamp": _utc_timestamp(),
        "environment": settings.environment,
        "shopify_api_version": settings.shopify_api_version,
        "database": db_status
    }


@app.get("/")
async def root():
    return {
        "name": "Store Sync API",
        "version": API_VERSION,
        "docs": "/docs" if settings.debug else "Disabled in production",
        "health": "/health",
        "endpoints": {
            "sync_product": "POST /api/sync/products/{product_id}/stores/{store_id}",
            "remove_product": "DELETE /api/sync/products/{product_id}/stores/{store_id}",
            "sync_status": "GET /api/sync/products/{product_id}/status",
            "bulk_sync": "POST /api/sync/stores/{store_id}/bulk",
            "inventory": "/api/inventory",
            "store_locations": "GET /api/inventory/stores/{store_id}/locations",
        }
    }


# ===================
# ERROR HANDLERS
# ===================

@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    """AppErrors that escape a route still get the standard envelope."""
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Malformed request bodies and parameters, in the standard envelope."""
    logger.warning(
        "request_validation_failed",
        path=request.url.path,
        errors=len(exc.errors())
    )
    return JSONResponse(
        status_code=422,
        content={
            "success": False,
            "message": "Request validation failed",
            "error": {
                "code": "REQUEST_VALIDATION_ERROR",
                "message": "Request validation failed",
                "details": {"errors": jsonable_errors(exc)},
                "timestamp": _utc_timestamp()
            }
        }
    )


def jsonable_errors(exc: RequestValidationError) -> list[dict]:
    return [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg"), "type": err.get("type")}
        for err in exc.errors()
    ]


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Unhandled exceptions become a 500 envelope."""
    logger.error(
        "unhandled_exception",
        path=request.url.path,
        method=request.method,
        error=str(exc),
        error_type=type(exc).__name__
    )

    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "message": "An unexpected error occurred",
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred",
                "details": str(exc) if settings.debug else None,
                "timestamp": _utc_timestamp()
            }
        }
    )


# ===================
# ROUTERS
# ===================
from routes import sync_router, inventory_router

app.include_router(sync_router, prefix="/api/sync", tags=["Sync"])
app.include_router(inventory_router, prefix="/api/inventory", tags=["Inventory"])


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug
    )
