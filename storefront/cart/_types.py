"""
Cart types — stored lines, derived views and the validation report.

Cart values are immutable: every mutation returns a new Cart, and stores
swap the whole value atomically.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, UTC
from enum import Enum
from collections.abc import Iterable

from storefront._types import Money, ZERO, ProductId, ShopId, UserId, VariantId
from storefront.catalog._types import Product, Variant
from storefront.pricing._calc import UnitPrice

# ═══════════════════════════════════════════════════════════════════════════════
# Key + Line
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True, order=True)
class CartKey:
    """One cart per shopper per shop."""

    shop_id: ShopId
    user_id: UserId


type LineRef = tuple[ProductId, VariantId | None]


@dataclass(frozen=True, slots=True)
class CartLine:
    product_id: ProductId
    quantity: int
    variant_id: VariantId | None = None

    @property
    def ref(self) -> LineRef:
        return (self.product_id, self.variant_id)


def now() -> datetime:
    return datetime.now(UTC)


def sum_lines(base: Iterable[CartLine], extra: Iterable[CartLine]) -> tuple[CartLine, ...]:
    """Quantity-sum `extra` into `base` on (product, variant); new refs append."""
    merged: dict[LineRef, CartLine] = {line.ref: line for line in base}
    for line in extra:
        existing = merged.get(line.ref)
        if existing is None:
            merged[line.ref] = line
        else:
            merged[line.ref] = replace(existing, quantity=existing.quantity + line.quantity)
    return tuple(merged.values())


# ═══════════════════════════════════════════════════════════════════════════════
# Cart
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Cart:
    """
    Stored cart. Lines never hold quantity 0.

    Note: lines keep insertion order; a re-added ref keeps its position.
    """

    key: CartKey
    lines: tuple[CartLine, ...]
    created_at: datetime
    updated_at: datetime
    version: int = 0

    @classmethod
    def empty(cls, key: CartKey) -> Cart:
        ts = now()
        return cls(key=key, lines=(), created_at=ts, updated_at=ts)

    @property
    def total_items(self) -> int:
        return sum(line.quantity for line in self.lines)

    def find(self, product_id: ProductId, variant_id: VariantId | None) -> CartLine | None:
        ref = (product_id, variant_id)
        return next((line for line in self.lines if line.ref == ref), None)

    def _with_lines(self, lines: Iterable[CartLine]) -> Cart:
        return replace(
            self,
            lines=tuple(line for line in lines if line.quantity > 0),
            updated_at=now(),
        )

    def added(self, line: CartLine) -> Cart:
        return self._with_lines(sum_lines(self.lines, [line]))

    def with_quantity(
        self,
        product_id: ProductId,
        variant_id: VariantId | None,
        quantity: int,
    ) -> Cart:
        ref = (product_id, variant_id)
        return self._with_lines(
            replace(line, quantity=quantity) if line.ref == ref else line
            for line in self.lines
        )

    def without(self, product_id: ProductId, variant_id: VariantId | None) -> Cart:
        ref = (product_id, variant_id)
        return self._with_lines(line for line in self.lines if line.ref != ref)

    def cleared(self) -> Cart:
        return self._with_lines(())

    def merged(self, lines: Iterable[CartLine]) -> Cart:
        return self._with_lines(sum_lines(self.lines, lines))

    def subtracted(self, lines: Iterable[CartLine]) -> Cart:
        """Take quantities off matching refs. Lines that reach 0 are dropped."""
        taken: dict[LineRef, int] = {}
        for line in lines:
            taken[line.ref] = taken.get(line.ref, 0) + line.quantity
        return self._with_lines(
            replace(line, quantity=line.quantity - taken.get(line.ref, 0))
            for line in self.lines
        )


# ═══════════════════════════════════════════════════════════════════════════════
# Derived Views
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class EnrichedLine:
    """Line joined against the live catalog."""

    product_id: ProductId
    variant_id: VariantId | None
    quantity: int
    product: Product
    variant: Variant | None
    unit: UnitPrice
    subtotal: Money  # Exact, unrounded


@dataclass(frozen=True, slots=True)
class CartView:
    """Materialized cart. Lines whose product vanished are excluded here only."""

    key: CartKey
    lines: tuple[EnrichedLine, ...]
    total_items: int
    total_amount: Money
    created_at: datetime | None
    updated_at: datetime | None

    @classmethod
    def empty(cls, key: CartKey) -> CartView:
        return cls(key, (), 0, ZERO, None, None)

    @property
    def is_empty(self) -> bool:
        return not self.lines


class ProblemKind(Enum):
    MISSING_PRODUCT = "missing_product"
    INACTIVE_PRODUCT = "inactive_product"
    MISSING_VARIANT = "missing_variant"
    INSUFFICIENT_STOCK = "insufficient_stock"


@dataclass(frozen=True, slots=True)
class Problem:
    kind: ProblemKind
    product_id: ProductId
    variant_id: VariantId | None
    message: str


@dataclass(frozen=True, slots=True)
class ValidationReport:
    """
    Result of validate(): problems found plus the corrected line list.

    Note: corrected lines clamp to available stock and drop zero-stock lines.
    The stored cart is untouched; callers decide whether to persist.
    """

    problems: tuple[Problem, ...]
    lines: tuple[CartLine, ...]

    @property
    def valid(self) -> bool:
        return not self.problems

    @property
    def messages(self) -> list[str]:
        return [p.message for p in self.problems]


__all__ = (
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
    "now",
)
