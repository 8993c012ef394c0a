"""
Pricing — variant-first unit price and discount resolution.

Pure functions. No rounding happens here: subtotals stay exact and callers
quantize once per stored total.
"""

from __future__ import annotations

from dataclasses import dataclass

from storefront._types import Money, ZERO, HUNDRED, VariantId, quantize
from storefront.catalog._types import Product


@dataclass(frozen=True, slots=True)
class UnitPrice:
    """Resolved pricing for one unit of a (product, variant?) pair."""

    price: Money  # Before discount
    discount: Money  # Percent, 0..100
    final: Money  # price × (1 − discount/100)


def effective_price(product: Product, variant_id: VariantId | None = None) -> Money:
    """Variant price if the variant exists, else the product base price."""
    variant = product.variant(variant_id)
    return variant.price if variant is not None else product.price


def effective_discount(product: Product, variant_id: VariantId | None = None) -> Money:
    """Variant discount if the variant exists, else the product discount."""
    variant = product.variant(variant_id)
    return variant.discount if variant is not None else product.discount


def apply_discount(price: Money, discount: Money) -> Money:
    return price * (1 - discount / HUNDRED)


def unit_price(product: Product, variant_id: VariantId | None = None) -> UnitPrice:
    price = effective_price(product, variant_id)
    discount = effective_discount(product, variant_id)
    return UnitPrice(price=price, discount=discount, final=apply_discount(price, discount))


def final_unit_price(product: Product, variant_id: VariantId | None = None) -> Money:
    return unit_price(product, variant_id).final


def line_subtotal(unit: UnitPrice, quantity: int) -> Money:
    return unit.final * quantity


def total(subtotals: list[Money]) -> Money:
    """Sum exact subtotals, round once."""
    return quantize(sum(subtotals, ZERO))


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
