"""
Core types for storefront.

Re-exports from kungfu + money helpers and identity aliases.
"""

from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP

# Re-export from kungfu
from kungfu import Result, Ok, Error, LazyCoroResult

# ═══════════════════════════════════════════════════════════════════════════════
# Identity Aliases
# ═══════════════════════════════════════════════════════════════════════════════

type ShopId = int
type UserId = int
type ProductId = int
type OrderId = int
type VariantId = str

# ═══════════════════════════════════════════════════════════════════════════════
# Money
# ═══════════════════════════════════════════════════════════════════════════════

type Money = Decimal
"""Money is always Decimal. Never float."""

ZERO = Decimal("0")
HUNDRED = Decimal("100")
CENT = Decimal("0.01")


def money(value: Decimal | int | str | float) -> Money:
    """
    Coerce a value into Decimal money without rounding.

    Note: floats go through str() so 0.1 stays 0.1.
    """
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def quantize(value: Money) -> Money:
    """Round to 2 places, half-up. Applied once per stored total."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = (
    # Re-exports from kungfu
    "Result",
    "Ok",
    "Error",
    "LazyCoroResult",
    # Identity
    "ShopId",
    "UserId",
    "ProductId",
    "OrderId",
    "VariantId",
    # Money
    "Money",
    "ZERO",
    "HUNDRED",
    "CENT",
    "money",
    "quantize",
)
