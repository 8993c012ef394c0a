"""
Catalog store — read interface for the pipeline plus stock adjustment.

All methods are async; stock adjustment returns Result so the checkout
sequence can compensate instead of raising.
"""

from __future__ import annotations

import asyncio
from dataclasses import replace
from typing import Protocol

import structlog
from kungfu import Result, Ok, Error

from storefront._types import ProductId, ShopId, VariantId
from storefront.catalog._types import Product, ProductStatus, Variant
from storefront.errors import Errors, PipelineError

logger = structlog.get_logger(__name__)


# ═══════════════════════════════════════════════════════════════════════════════
# Catalog Protocol
# ═══════════════════════════════════════════════════════════════════════════════


class CatalogStore(Protocol):
    """
    Catalog read interface consumed by the cart and order engines.

    Note: adjust_stock must be atomic and never drive stock below zero.
    """

    async def get_product(self, product_id: ProductId) -> Product | None:
        """Point-in-time product snapshot, or None."""
        ...

    async def get_variant(
        self, product: Product, variant_id: VariantId
    ) -> Variant | None:
        """Variant of the given product snapshot, or None."""
        ...

    async def adjust_stock(
        self,
        product_id: ProductId,
        variant_id: VariantId | None,
        delta: int,
    ) -> Result[Product, PipelineError]:
        """Add delta to stock (negative reserves). Fails instead of going below 0."""
        ...

    async def record_sale(self, product_id: ProductId, quantity: int) -> None:
        """Increment sales counter."""
        ...

    async def low_stock(self, shop_id: ShopId, threshold: int = 5) -> list[Product]:
        """Active products with stock at or below threshold, lowest first."""
        ...

    async def best_selling(self, shop_id: ShopId, limit: int = 10) -> list[Product]:
        """Active products ordered by sales count."""
        ...


# ═══════════════════════════════════════════════════════════════════════════════
# Memory Catalog
# ═══════════════════════════════════════════════════════════════════════════════


class MemoryCatalog:
    """
    In-memory catalog.

    Note: single-process only. Snapshots are immutable, so readers never
    see a half-applied stock change.
    """

    def __init__(self, products: list[Product] | None = None) -> None:
        self._products: dict[ProductId, Product] = {p.id: p for p in products or []}
        self._lock = asyncio.Lock()

    # Catalog management (outside the pipeline)

    def put(self, product: Product) -> None:
        self._products[product.id] = product

    def remove(self, product_id: ProductId) -> bool:
        return self._products.pop(product_id, None) is not None

    # Pipeline interface

    async def get_product(self, product_id: ProductId) -> Product | None:
        return self._products.get(product_id)

    async def get_variant(
        self, product: Product, variant_id: VariantId
    ) -> Variant | None:
        return product.variant(variant_id)

    async def adjust_stock(
        self,
        product_id: ProductId,
        variant_id: VariantId | None,
        delta: int,
    ) -> Result[Product, PipelineError]:
        async with self._lock:
            product = self._products.get(product_id)
            if product is None:
                return Error(Errors.not_found("Product", product_id))

            if variant_id is None:
                stock = product.stock_quantity + delta
                if stock < 0:
                    return Error(Errors.insufficient_stock(
                        f'Insufficient stock for "{product.name}". '
                        f"Available: {product.stock_quantity}, Requested: {-delta}"
                    ))
                updated = replace(product, stock_quantity=stock)
            else:
                variant = product.variant(variant_id)
                if variant is None:
                    return Error(Errors.not_found("Variant", variant_id))
                stock = variant.stock_quantity + delta
                if stock < 0:
                    return Error(Errors.insufficient_stock(
                        f'Insufficient stock for "{product.name}". '
                        f"Available: {variant.stock_quantity}, Requested: {-delta}"
                    ))
                variants = tuple(
                    replace(v, stock_quantity=stock) if v.id == variant_id else v
                    for v in product.variants
                )
                updated = replace(product, variants=variants)

            self._products[product_id] = updated
            logger.debug(
                "stock_adjusted",
                product_id=product_id,
                variant_id=variant_id,
                delta=delta,
                stock=stock,
            )
            return Ok(updated)

    async def record_sale(self, product_id: ProductId, quantity: int) -> None:
        async with self._lock:
            product = self._products.get(product_id)
            if product is not None:
                self._products[product_id] = replace(
                    product, sales_count=product.sales_count + quantity
                )

    async def low_stock(self, shop_id: ShopId, threshold: int = 5) -> list[Product]:
        found = [
            p
            for p in self._products.values()
            if p.shop_id == shop_id
            and p.status is ProductStatus.ACTIVE
            and p.stock_quantity <= threshold
        ]
        return sorted(found, key=lambda p: p.stock_quantity)

    async def best_selling(self, shop_id: ShopId, limit: int = 10) -> list[Product]:
        found = [
            p
            for p in self._products.values()
            if p.shop_id == shop_id and p.status is ProductStatus.ACTIVE
        ]
        return sorted(found, key=lambda p: p.sales_count, reverse=True)[:limit]


__all__ = (
    "CatalogStore",
    "MemoryCatalog",
)
