"""
Cart — per-shopper, per-shop line lists.

    from storefront import cart as C

    engine = C.CartEngine(C.MemoryCartStore(), catalog)
    key = C.CartKey(shop_id=1, user_id=42)

    await engine.add_line(key, product_id=7, quantity=2)
    match await engine.validate(key):
        case Ok(report) if not report.valid:
            print(report.messages)
"""

from storefront.cart._types import (
    CartKey,
    LineRef,
    CartLine,
    Cart,
    EnrichedLine,
    CartView,
    ProblemKind,
    Problem,
    ValidationReport,
    sum_lines,
)
from storefront.cart._store import (
    Mutation,
    MergeMutation,
    CartStore,
    MemoryCartStore,
)
from storefront.cart._sqlalchemy import SQLAlchemyCartStore
from storefront.cart._engine import (
    AddLineInput,
    SetQuantityInput,
    RemoveLineInput,
    CartEngine,
)

__all__ = (
    # Types
    "CartKey",
    "LineRef",
    "CartLine",
    "Cart",
    "EnrichedLine",
    "CartView",
    "ProblemKind",
    "Problem",
    "ValidationReport",
    "sum_lines",
    # Stores
    "Mutation",
    "MergeMutation",
    "CartStore",
    "MemoryCartStore",
    "SQLAlchemyCartStore",
    # Engine
    "AddLineInput",
    "SetQuantityInput",
    "RemoveLineInput",
    "CartEngine",
)
