"""Variant-aware stock resolution."""

import logging
from typing import Optional

from .exceptions import LineValidationException
from .models import Product

logger = logging.getLogger(__name__)


def resolve_stock(product: Product, variant: Optional[str] = None) -> int:
    """
    Return the authoritative available quantity for a product variant.

    Products without variants use their scalar stock. For products that declare
    variants the variant is mandatory, and a variant with no stock entry has
    zero stock.

    Args:
        product: Product record (size stock already normalized by the model)
        variant: Variant selector such as a shoe size

    Returns:
        Available quantity, never negative

    Raises:
        LineValidationException: If the product has variants and none was given
    """
    if not product.has_variants:
        return max(product.stock, 0)

    if not variant:
        raise LineValidationException("Please select a size", product_id=product.id)

    stock = product.size_stock.get(variant)
    if stock is None:
        logger.debug(f"No stock entry for {product.id} size {variant}, treating as 0")
        return 0
    return max(stock, 0)
