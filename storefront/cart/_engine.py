"""
Cart engine — add/update/remove/merge/validate over a CartStore.

All operations are scoped by CartKey and return Result[T, PipelineError].
Input is validated before storage is touched.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any, cast

import structlog
from kungfu import Result, Ok, Error
from pydantic import BaseModel, ConfigDict, Field, ValidationError, ValidationInfo, field_validator

from storefront import pricing
from storefront.cart._store import CartStore
from storefront.cart._types import (
    Cart,
    CartKey,
    CartLine,
    CartView,
    EnrichedLine,
    Problem,
    ProblemKind,
    ValidationReport,
)
from storefront.catalog._store import CatalogStore
from storefront.catalog._types import ProductStatus
from storefront.config import Settings
from storefront.errors import Errors, FieldError, PipelineError, from_store, from_validation
from storefront._types import ProductId, VariantId

logger = structlog.get_logger(__name__)


# ═══════════════════════════════════════════════════════════════════════════════
# Input Models
# ═══════════════════════════════════════════════════════════════════════════════


class _LineInput(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    product_id: int = Field(ge=1)
    variant_id: str | None = Field(default=None, min_length=1)


class AddLineInput(_LineInput):
    quantity: int = Field(ge=1)

    @field_validator("quantity")
    @classmethod
    def _within_max(cls, value: int, info: ValidationInfo) -> int:
        limit = (info.context or {}).get("max_quantity")
        if limit is not None and value > limit:
            raise ValueError(f"must be at most {limit}")
        return value


class SetQuantityInput(_LineInput):
    quantity: int = Field(ge=0)

    @field_validator("quantity")
    @classmethod
    def _within_max(cls, value: int, info: ValidationInfo) -> int:
        limit = (info.context or {}).get("max_quantity")
        if limit is not None and value > limit:
            raise ValueError(f"must be at most {limit}")
        return value


class RemoveLineInput(_LineInput):
    pass


# ═══════════════════════════════════════════════════════════════════════════════
# Cart Engine
# ═══════════════════════════════════════════════════════════════════════════════


class CartEngine:
    def __init__(
        self,
        store: CartStore,
        catalog: CatalogStore,
        settings: Settings | None = None,
    ) -> None:
        self._store = store
        self._catalog = catalog
        self._settings = settings or Settings()

    def _parse[M: BaseModel](self, model: type[M], **data: Any) -> Result[M, PipelineError]:
        try:
            return Ok(model.model_validate(
                data,
                context={"max_quantity": self._settings.max_line_quantity},
            ))
        except ValidationError as e:
            return Error(from_validation(e))

    # ───────────────────────────────────────────────────────────────────────
    # Reads
    # ───────────────────────────────────────────────────────────────────────

    async def get(self, key: CartKey) -> Result[Cart | None, PipelineError]:
        match await self._store.get(key):
            case Ok(cart):
                return Ok(cart)
            case Error(err):
                return Error(from_store(err))

    async def item_count(self, key: CartKey) -> Result[int, PipelineError]:
        match await self.get(key):
            case Ok(cart):
                return Ok(cart.total_items if cart is not None else 0)
            case Error(err):
                return Error(err)

    async def materialize(self, key: CartKey) -> Result[CartView, PipelineError]:
        """
        Join stored lines against the live catalog.

        Lines whose product no longer exists are left out of the view but
        stay stored, so a reappearing product comes back automatically.
        """
        match await self.get(key):
            case Ok(None):
                return Ok(CartView.empty(key))
            case Ok(cart):
                return Ok(await self.view(cart))
            case Error(err):
                return Error(err)

    async def view(self, cart: Cart) -> CartView:
        """materialize() for a cart snapshot already in hand."""
        lines = await self.enrich(cart.lines)
        return CartView(
            key=cart.key,
            lines=lines,
            total_items=sum(line.quantity for line in lines),
            total_amount=pricing.total([line.subtotal for line in lines]),
            created_at=cart.created_at,
            updated_at=cart.updated_at,
        )

    async def enrich(self, lines: tuple[CartLine, ...]) -> tuple[EnrichedLine, ...]:
        enriched: list[EnrichedLine] = []
        for line in lines:
            product = await self._catalog.get_product(line.product_id)
            if product is None:
                continue
            unit = pricing.unit_price(product, line.variant_id)
            enriched.append(EnrichedLine(
                product_id=line.product_id,
                variant_id=line.variant_id,
                quantity=line.quantity,
                product=product,
                variant=product.variant(line.variant_id),
                unit=unit,
                subtotal=pricing.line_subtotal(unit, line.quantity),
            ))
        return tuple(enriched)

    async def validate(self, key: CartKey) -> Result[ValidationReport, PipelineError]:
        """
        Check every stored line against live catalog state.

        Missing/inactive products are reported and dropped from the
        corrected list; short stock is reported and clamped. Nothing is
        written back.
        """
        match await self.get(key):
            case Ok(None):
                return Ok(ValidationReport((), ()))
            case Ok(cart):
                return Ok(await self.check(cart))
            case Error(err):
                return Error(err)

    async def check(self, cart: Cart) -> ValidationReport:
        """validate() for a cart snapshot already in hand."""
        key = cart.key
        problems: list[Problem] = []
        corrected: list[CartLine] = []

        for line in cart.lines:
            product = await self._catalog.get_product(line.product_id)
            if product is None or product.shop_id != key.shop_id:
                problems.append(Problem(
                    ProblemKind.MISSING_PRODUCT,
                    line.product_id,
                    line.variant_id,
                    f"Product with ID {line.product_id} no longer exists",
                ))
                continue

            if product.status is not ProductStatus.ACTIVE:
                problems.append(Problem(
                    ProblemKind.INACTIVE_PRODUCT,
                    line.product_id,
                    line.variant_id,
                    f'Product "{product.name}" is no longer available',
                ))
                continue

            if line.variant_id is not None and product.variant(line.variant_id) is None:
                problems.append(Problem(
                    ProblemKind.MISSING_VARIANT,
                    line.product_id,
                    line.variant_id,
                    f'Selected option of "{product.name}" is no longer available',
                ))
                continue

            available = product.stock_for(line.variant_id)
            if available < line.quantity:
                problems.append(Problem(
                    ProblemKind.INSUFFICIENT_STOCK,
                    line.product_id,
                    line.variant_id,
                    f'Insufficient stock for "{product.name}". '
                    f"Available: {available}, Requested: {line.quantity}",
                ))
                if available > 0:
                    corrected.append(CartLine(line.product_id, available, line.variant_id))
            else:
                corrected.append(line)

        if problems:
            logger.info("cart_validation_problems", key=key, problems=len(problems))
        return ValidationReport(tuple(problems), tuple(corrected))

    # ───────────────────────────────────────────────────────────────────────
    # Mutations
    # ───────────────────────────────────────────────────────────────────────

    async def add_line(
        self,
        key: CartKey,
        product_id: ProductId,
        quantity: int,
        variant_id: VariantId | None = None,
    ) -> Result[Cart, PipelineError]:
        """
        Add quantity to the (product, variant) line, creating cart/line as needed.

        Note: no stock clamp here. Stock is enforced at validation time.
        """
        match self._parse(AddLineInput, product_id=product_id, quantity=quantity, variant_id=variant_id):
            case Ok(data):
                pass
            case Error(err):
                return Error(err)

        product = await self._catalog.get_product(data.product_id)
        if product is None or product.shop_id != key.shop_id:
            return Error(Errors.not_found("Product", data.product_id))
        if data.variant_id is not None and await self._catalog.get_variant(product, data.variant_id) is None:
            return Error(Errors.not_found("Variant", data.variant_id))

        line = CartLine(data.product_id, data.quantity, data.variant_id)

        def add(cart: Cart | None) -> Cart:
            return (cart or Cart.empty(key)).added(line)

        match await self._store.update(key, add):
            case Ok(cart):
                logger.debug("cart_line_added", key=key, product_id=product_id, quantity=quantity)
                return Ok(cast(Cart, cart))
            case Error(err):
                return Error(from_store(err))

    async def set_quantity(
        self,
        key: CartKey,
        product_id: ProductId,
        quantity: int,
        variant_id: VariantId | None = None,
    ) -> Result[Cart | None, PipelineError]:
        """
        Set (not increment) a line's quantity. 0 removes the line.

        Setting 0 on an absent line is a no-op; a positive quantity on an
        absent line is NOT_FOUND.
        """
        match self._parse(SetQuantityInput, product_id=product_id, quantity=quantity, variant_id=variant_id):
            case Ok(data):
                pass
            case Error(err):
                return Error(err)

        if data.quantity == 0:
            return await self.remove_line(key, data.product_id, data.variant_id)

        missing = False

        def set_qty(cart: Cart | None) -> Cart | None:
            nonlocal missing
            if cart is None or cart.find(data.product_id, data.variant_id) is None:
                missing = True
                return None
            return cart.with_quantity(data.product_id, data.variant_id, data.quantity)

        match await self._store.update(key, set_qty):
            case Ok(_) if missing:
                return Error(Errors.not_found("Cart line", data.product_id))
            case Ok(cart):
                logger.debug("cart_line_set", key=key, product_id=product_id, quantity=quantity)
                return Ok(cart)
            case Error(err):
                return Error(from_store(err))

    async def remove_line(
        self,
        key: CartKey,
        product_id: ProductId,
        variant_id: VariantId | None = None,
    ) -> Result[Cart | None, PipelineError]:
        """Delete the matching line if present. No-op otherwise."""
        match self._parse(RemoveLineInput, product_id=product_id, variant_id=variant_id):
            case Ok(data):
                pass
            case Error(err):
                return Error(err)

        def remove(cart: Cart | None) -> Cart | None:
            if cart is None or cart.find(data.product_id, data.variant_id) is None:
                return None
            return cart.without(data.product_id, data.variant_id)

        match await self._store.update(key, remove):
            case Ok(cart):
                return Ok(cart)
            case Error(err):
                return Error(from_store(err))

    async def clear(self, key: CartKey) -> Result[Cart | None, PipelineError]:
        """Empty all lines. The cart record itself stays."""
        match await self._store.update(key, lambda cart: cart.cleared() if cart else None):
            case Ok(cart):
                return Ok(cart)
            case Error(err):
                return Error(from_store(err))

    async def remove_ordered(self, key: CartKey, lines: Iterable[CartLine]) -> Result[Cart | None, PipelineError]:
        """
        Take exactly the ordered quantities off the cart.

        Lines added while the order was being placed stay in the cart.
        """
        ordered = tuple(lines)
        match await self._store.update(key, lambda cart: cart.subtracted(ordered) if cart else None):
            case Ok(cart):
                return Ok(cart)
            case Error(err):
                return Error(from_store(err))

    async def delete(self, key: CartKey) -> Result[bool, PipelineError]:
        match await self._store.delete(key):
            case Ok(existed):
                return Ok(existed)
            case Error(err):
                return Error(from_store(err))

    # ───────────────────────────────────────────────────────────────────────
    # Merge
    # ───────────────────────────────────────────────────────────────────────

    async def merge_lines(
        self,
        target: CartKey,
        lines: list[CartLine],
    ) -> Result[Cart | None, PipelineError]:
        """
        Quantity-sum external lines (e.g. a pre-login cart) into target.

        Empty input is a no-op returning the target as stored (None if absent).
        Lines for products of another shop are rejected.
        """
        fields: list[FieldError] = []
        for i, line in enumerate(lines):
            match self._parse(AddLineInput, product_id=line.product_id, quantity=line.quantity, variant_id=line.variant_id):
                case Error(err):
                    fields.extend(FieldError(f"lines.{i}.{f.path}", f.message) for f in err.fields)
                case _:
                    pass
        if fields:
            return Error(Errors.validation("Invalid merge lines", *fields))

        for product_id in {line.product_id for line in lines}:
            product = await self._catalog.get_product(product_id)
            if product is not None and product.shop_id != target.shop_id:
                return Error(Errors.validation(
                    "Some products do not belong to this shop",
                    FieldError("lines", f"product {product_id} belongs to another shop"),
                ))

        if not lines:
            return await self.get(target)

        def merge(cart: Cart | None) -> Cart:
            return (cart or Cart.empty(target)).merged(lines)

        match await self._store.update(target, merge):
            case Ok(cart):
                logger.info("cart_merged", target=target, lines=len(lines))
                return Ok(cart)
            case Error(err):
                return Error(from_store(err))

    async def merge_from(
        self,
        target: CartKey,
        source: CartKey,
    ) -> Result[Cart | None, PipelineError]:
        """
        Merge another stored cart into target, then delete the source.

        Used on guest → login. Runs as one atomic section; an absent or
        empty source is a no-op that still returns the target.
        """
        if source.shop_id != target.shop_id:
            return Error(Errors.validation(
                "Carts belong to different shops",
                FieldError("source.shop_id", "must equal target.shop_id"),
            ))

        def merge(src: Cart | None, tgt: Cart | None) -> Cart | None:
            if src is None or not src.lines:
                return None
            return (tgt or Cart.empty(target)).merged(src.lines)

        match await self._store.merge_from(source, target, merge):
            case Ok(cart):
                logger.info("cart_merged_from", source=source, target=target)
                return Ok(cart)
            case Error(err):
                return Error(from_store(err))


__all__ = (
    "AddLineInput",
    "SetQuantityInput",
    "RemoveLineInput",
    "CartEngine",
)
