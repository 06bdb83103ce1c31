"""
Master product repository.

Read-only: the catalog service owns writes to the products table.
"""

from typing import Optional
import structlog

from config import get_supabase_client
from models.product import MasterProduct
from exceptions import ProductNotFoundError, DatabaseError

logger = structlog.get_logger(__name__)


class ProductService:
    """Reads master products from the products table."""

    def __init__(self):
        self.db = get_supabase_client()
        self.table = "products"

    def get_by_id(self, product_id: str) -> MasterProduct:
        """
        Get a single master product by ID.

        Args:
            product_id: Product UUID

        Returns:
            MasterProduct with variant keys filled in

        Raises:
            ProductNotFoundError: If product doesn't exist
        """
        logger.debug("getting_product", product_id=product_id)

        try:
            result = (
                self.db.table(self.table)
                .select("*")
                .eq("id", product_id)
                .execute()
            )

            if not result.data:
                raise ProductNotFoundError(product_id)

            return MasterProduct.model_validate(result.data[0])

        except ProductNotFoundError:
            raise
        except Exception as e:
            logger.error(
                "get_product_failed",
                product_id=product_id,
                error=str(e)
            )
            raise DatabaseError("select", str(e))


# Singleton instance for convenience
_product_service: Optional[ProductService] = None

def get_product_service() -> ProductService:
    """Get or create ProductService instance."""
    global _product_service
    if _product_service is None:
        _product_service = ProductService()
    return _product_service
