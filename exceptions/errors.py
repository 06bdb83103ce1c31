"""
Custom exception classes for the application.

Four families matter to callers: NotFound (404), Validation (422),
upstream failures (502/503) and Conflict (409). Routes turn any AppError
into the standard error envelope via to_dict().
"""

from typing import Optional, Any
from datetime import datetime, timezone


class AppError(Exception):
    """
    Base exception for all application errors.

    All custom exceptions inherit from this.

    Attributes:
        code: Error code (e.g., "PRODUCT_NOT_FOUND")
        message: Human-readable message
        status_code: HTTP status code
        details: Additional context
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        details: Optional[dict[str, Any]] = None
    ):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        self.timestamp = datetime.now(timezone.utc).isoformat()
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert to API response format."""
        return {
            "success": False,
            "message": self.message,
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
                "timestamp": self.timestamp
            }
        }


class NotFoundError(AppError):
    """Resource not found (404)."""

    def __init__(
        self,
        resource: str,
        identifier: str,
        code: Optional[str] = None,
        message: Optional[str] = None,
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code or f"{resource.upper()}_NOT_FOUND",
            message=message or f"{resource} not found",
            status_code=404,
            details={"id": identifier, **(details or {})}
        )


class ValidationError(AppError):
    """Validation failed (422)."""

    def __init__(
        self,
        message: str,
        code: str = "VALIDATION_ERROR",
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=422,
            details=details
        )


class ConflictError(AppError):
    """Conflict with existing resource (409)."""

    def __init__(
        self,
        message: str,
        code: str = "CONFLICT",
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=409,
            details=details
        )


class ExternalServiceError(AppError):
    """External service failure (503)."""

    def __init__(
        self,
        service: str,
        message: str,
        details: Optional[dict] = None,
        status_code: int = 503
    ):
        super().__init__(
            code=f"{service.upper()}_ERROR",
            message=message,
            status_code=status_code,
            details={"service": service, **(details or {})}
        )


class DatabaseError(AppError):
    """Database operation failed (500)."""

    def __init__(
        self,
        operation: str,
        message: str,
        details: Optional[dict] = None
    ):
        super().__init__(
            code="DATABASE_ERROR",
            message=f"Database {operation} failed: {message}",
            status_code=500,
            details={"operation": operation, **(details or {})}
        )


# ===================
# NOT FOUND
# ===================

class ProductNotFoundError(NotFoundError):
    """Master product not found."""

    def __init__(self, product_id: str):
        super().__init__(
            resource="Product",
            identifier=product_id,
            code="PRODUCT_NOT_FOUND"
        )


class StoreNotFoundError(NotFoundError):
    """Store not found or inactive."""

    def __init__(self, store_id: str):
        super().__init__(
            resource="Store",
            identifier=store_id,
            code="STORE_NOT_FOUND",
            message="Store not found or inactive"
        )


class MappingNotFoundError(NotFoundError):
    """No store mapping for (product, store). The product must be synced first."""

    def __init__(self, product_id: str, store_id: Optional[str] = None):
        super().__init__(
            resource="Mapping",
            identifier=product_id,
            code="MAPPING_NOT_FOUND",
            message=(
                "Product mapping not found. Product must be synced to store first."
                if store_id else "No product mappings found"
            ),
            details={"store_id": store_id} if store_id else None
        )


class VariantNotFoundError(NotFoundError):
    """Variant index does not exist on the master product."""

    def __init__(self, product_id: str, variant_index: int):
        super().__init__(
            resource="Variant",
            identifier=product_id,
            code="VARIANT_NOT_FOUND",
            message=f"Variant at index {variant_index} not found",
            details={"variant_index": variant_index}
        )


# ===================
# VALIDATION
# ===================

class OptionLimitExceededError(ValidationError):
    """Product defines more options than the store accepts."""

    def __init__(self, count: int, limit: int):
        super().__init__(
            code="PRODUCT_OPTION_LIMIT_EXCEEDED",
            message=f"Product has {count} options; stores accept at most {limit}",
            details={"provided": count, "limit": limit}
        )


class VariantLimitExceededError(ValidationError):
    """Product defines more variants than the store accepts."""

    def __init__(self, count: int, limit: int):
        super().__init__(
            code="PRODUCT_VARIANT_LIMIT_EXCEEDED",
            message=f"Product has {count} variants; stores accept at most {limit}",
            details={"provided": count, "limit": limit}
        )


class MissingPriceError(ValidationError):
    """Variant has no price and no override price."""

    def __init__(self, variant_index: int):
        super().__init__(
            code="VARIANT_PRICE_REQUIRED",
            message=f"Variant at index {variant_index} has no price",
            details={"variant_index": variant_index}
        )


class InvalidQuantityError(ValidationError):
    """Negative or non-integer inventory quantity."""

    def __init__(self, quantity: Any):
        super().__init__(
            code="INVENTORY_INVALID_QUANTITY",
            message="Quantity must be a non-negative integer",
            details={"provided": quantity}
        )


class InsufficientInventoryError(ValidationError):
    """Assignment exceeds the master variant's own inventory."""

    def __init__(self, variant_index: int, requested: int, available: int):
        super().__init__(
            code="INVENTORY_EXCEEDS_MASTER",
            message=(
                f"Cannot assign {requested} units. "
                f"Master variant only has {available} available."
            ),
            details={
                "variant_index": variant_index,
                "requested": requested,
                "available": available
            }
        )


class InvalidAllocationStrategyError(ValidationError):
    """Unknown allocation strategy."""

    def __init__(self, strategy: str):
        super().__init__(
            code="ALLOCATION_INVALID_STRATEGY",
            message="Allocation strategy must be balanced or priority",
            details={"provided": strategy, "valid": ["balanced", "priority"]}
        )


# ===================
# UPSTREAM
# ===================

class ShopifyUserErrorsError(ExternalServiceError):
    """Shopify accepted the request but returned field-level userErrors."""

    def __init__(self, operation: str, user_errors: list[dict]):
        messages = ", ".join(
            e.get("message", "unknown error") for e in user_errors
        )
        super().__init__(
            service="shopify",
            message=f"Shopify {operation} failed: {messages}",
            status_code=502,
            details={"operation": operation, "user_errors": user_errors}
        )
        self.user_errors = user_errors


# ===================
# CONFLICT
# ===================

class MappingVersionConflictError(ConflictError):
    """The product map changed between read and write."""

    def __init__(self, product_id: str, expected_version: int):
        super().__init__(
            code="MAPPING_VERSION_CONFLICT",
            message="Product mapping was modified concurrently; retry the operation",
            details={"product_id": product_id, "expected_version": expected_version}
        )
