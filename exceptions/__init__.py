"""
Custom exceptions module.
"""

from exceptions.errors import (
    # Base exceptions
    AppError,
    NotFoundError,
    ValidationError,
    ConflictError,
    ExternalServiceError,
    DatabaseError,

    # Not found
    ProductNotFoundError,
    StoreNotFoundError,
    MappingNotFoundError,
    VariantNotFoundError,

    # Validation
    OptionLimitExceededError,
    VariantLimitExceededError,
    MissingPriceError,
    InvalidQuantityError,
    InsufficientInventoryError,
    InvalidAllocationStrategyError,

    # Upstream
    ShopifyUserErrorsError,

    # Conflict
    MappingVersionConflictError,
)

__all__ = [
    # Base
    "AppError",
    "NotFoundError",
    "ValidationError",
    "ConflictError",
    "ExternalServiceError",
    "DatabaseError",

    # Not found
    "ProductNotFoundError",
    "StoreNotFoundError",
    "MappingNotFoundError",
    "VariantNotFoundError",

    # Validation
    "OptionLimitExceededError",
    "VariantLimitExceededError",
    "MissingPriceError",
    "InvalidQuantityError",
    "InsufficientInventoryError",
    "InvalidAllocationStrategyError",

    # Upstream
    "ShopifyUserErrorsError",

    # Conflict
    "MappingVersionConflictError",
]
