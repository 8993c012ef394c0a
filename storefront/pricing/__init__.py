"""
Pricing — shared by the cart and order engines.

    from storefront import pricing as P

    P.final_unit_price(product, variant_id)   # Decimal
"""

from storefront.pricing._calc import (
    UnitPrice,
    effective_price,
    effective_discount,
    apply_discount,
    unit_price,
    final_unit_price,
    line_subtotal,
    total,
)

__all__ = (
    "UnitPrice",
    "effective_price",
    "effective_discount",
    "apply_discount",
    "unit_price",
    "final_unit_price",
    "line_subtotal",
    "total",
)
