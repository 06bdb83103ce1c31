"""
Base schemas for all models.
"""

from pydantic import BaseModel, ConfigDict
from typing import Any, Optional


class BaseSchema(BaseModel):
    """
    Base for all schemas.

    Features:
        - Auto-trim whitespace from strings
        - Validate on attribute assignment
        - Allow ORM objects (from_attributes)
    """
    model_config = ConfigDict(
        from_attributes=True,
        str_strip_whitespace=True,
        validate_assignment=True
    )


class ApiResponse(BaseModel):
    """
    Standard response envelope.

    Every sync/inventory endpoint answers with {success, message, data}.
    """
    success: bool = True
    message: str
    data: Optional[Any] = None

    @classmethod
    def ok(cls, message: str, data: Any = None) -> "ApiResponse":
        """Build a success envelope."""
        return cls(success=True, message=message, data=data)
