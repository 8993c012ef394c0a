"""
Catalog types — products and variants as point-in-time snapshots.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from collections.abc import Mapping

from storefront._types import (
    Money,
    ZERO,
    HUNDRED,
    ProductId,
    ShopId,
    VariantId,
    money,
)

# ═══════════════════════════════════════════════════════════════════════════════
# Product Status
# ═══════════════════════════════════════════════════════════════════════════════


class ProductStatus(Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    OUT_OF_STOCK = "out_of_stock"


def new_variant_id() -> VariantId:
    return uuid.uuid4().hex[:12]


def _check_discount(discount: Money) -> None:
    if not ZERO <= discount <= HUNDRED:
        raise ValueError(f"discount must be within [0, 100], got {discount}")


# ═══════════════════════════════════════════════════════════════════════════════
# Variant
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Variant:
    """
    Purchasable sub-configuration of a product.

    Note: id is a stable surrogate assigned at creation.
    Position inside Product.variants is only a display hint.
    """

    attributes: Mapping[str, str]
    price: Money
    discount: Money = ZERO
    stock_quantity: int = 0
    is_default: bool = False
    id: VariantId = field(default_factory=new_variant_id)

    def __post_init__(self) -> None:
        object.__setattr__(self, "attributes", MappingProxyType(dict(self.attributes)))
        object.__setattr__(self, "price", money(self.price))
        object.__setattr__(self, "discount", money(self.discount))
        if self.price < ZERO:
            raise ValueError("variant price must be non-negative")
        if self.stock_quantity < 0:
            raise ValueError("variant stock must be non-negative")
        _check_discount(self.discount)

    def matches(self, selection: Mapping[str, str]) -> bool:
        """Every selected key/value pair equals this variant's attribute."""
        return all(self.attributes.get(k) == v for k, v in selection.items())


# ═══════════════════════════════════════════════════════════════════════════════
# Product
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Product:
    """
    Catalog product snapshot. Read-only to the pipeline.

    Invariant: at most one variant has is_default, variant ids are unique.
    """

    id: ProductId
    shop_id: ShopId
    name: str
    price: Money
    discount: Money = ZERO
    stock_quantity: int = 0
    status: ProductStatus = ProductStatus.ACTIVE
    slug: str = ""
    category_ids: frozenset[int] = frozenset()
    variants: tuple[Variant, ...] = ()
    sales_count: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "price", money(self.price))
        object.__setattr__(self, "discount", money(self.discount))
        object.__setattr__(self, "category_ids", frozenset(self.category_ids))
        object.__setattr__(self, "variants", tuple(self.variants))
        if self.price < ZERO:
            raise ValueError("product price must be non-negative")
        if self.stock_quantity < 0:
            raise ValueError("product stock must be non-negative")
        _check_discount(self.discount)

        if sum(1 for v in self.variants if v.is_default) > 1:
            raise ValueError(f"product {self.id} has more than one default variant")
        ids = [v.id for v in self.variants]
        if len(ids) != len(set(ids)):
            raise ValueError(f"product {self.id} has duplicate variant ids")

    @property
    def is_active(self) -> bool:
        return self.status is ProductStatus.ACTIVE

    def variant(self, variant_id: VariantId | None) -> Variant | None:
        if variant_id is None:
            return None
        return next((v for v in self.variants if v.id == variant_id), None)

    def variant_position(self, variant_id: VariantId | None) -> int | None:
        """Current list position of a variant (display hint only)."""
        for position, v in enumerate(self.variants):
            if v.id == variant_id:
                return position
        return None

    def stock_for(self, variant_id: VariantId | None) -> int:
        """Variant stock when the line has a variant, else product stock."""
        v = self.variant(variant_id)
        return v.stock_quantity if v is not None else self.stock_quantity


__all__ = (
    "ProductStatus",
    "Variant",
    "Product",
    "new_variant_id",
)
