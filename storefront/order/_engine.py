"""
Order engine — snapshot enriched cart lines into orders and drive their state.

    engine = OrderEngine(MemoryOrderStore())

    match await engine.create(user_id, shop_id, view.lines, shipping_address=addr, tax_rate=10):
        case Ok(order):
            print(order.tracking_id, order.final_amount)
        case Error(err):
            ...

Every state change is read → transition → conditional write. If the stored
state moved in between, the call fails with CONFLICT instead of overwriting.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import replace
from collections.abc import Callable, Mapping, Sequence
from datetime import timedelta
from decimal import Decimal
from typing import Any

import structlog
from kungfu import Result, Ok, Error
from pydantic import BaseModel, ValidationError

from storefront import pricing
from storefront._types import ZERO, HUNDRED, OrderId, ShopId, UserId, quantize
from storefront.cart._types import EnrichedLine, now
from storefront.config import Settings
from storefront.errors import Errors, FieldError, PipelineError, from_store, from_validation
from storefront.order._machine import apply_payment, apply_status
from storefront.order._store import OrderStore
from storefront.order._tracking import new_tracking_id
from storefront.order._types import (
    Address,
    CreateOrderInput,
    Order,
    OrderFilter,
    OrderLine,
    OrderPage,
    OrderStatus,
    PaymentStatus,
    ShopStats,
    TopProduct,
    UpdatePaymentInput,
    UpdateStatusInput,
)

logger = structlog.get_logger(__name__)

TRACKING_ATTEMPTS = 5


def _parse[M: BaseModel](model: type[M], **data: Any) -> Result[M, PipelineError]:
    try:
        return Ok(model.model_validate(data))
    except ValidationError as e:
        return Error(from_validation(e))


def freeze_line(line: EnrichedLine) -> OrderLine:
    """Copy the currently resolved price/discount into a permanent line."""
    return OrderLine(
        product_id=line.product_id,
        product_name=line.product.name,
        quantity=line.quantity,
        unit_price=line.unit.price,
        discount=line.unit.discount,
        subtotal=line.subtotal,
        variant_id=line.variant_id,
        variant_position=line.product.variant_position(line.variant_id),
        variant_attributes=line.variant.attributes if line.variant is not None else {},
    )


class OrderEngine:
    def __init__(self, store: OrderStore, settings: Settings | None = None) -> None:
        self._store = store
        self._settings = settings or Settings()

    # ═══════════════════════════════════════════════════════════════════════
    # Create
    # ═══════════════════════════════════════════════════════════════════════

    async def create(
        self,
        user_id: UserId,
        shop_id: ShopId,
        lines: Sequence[EnrichedLine],
        shipping_address: Address | Mapping[str, Any],
        billing_address: Address | Mapping[str, Any] | None = None,
        payment_method: str | None = None,
        notes: str | None = None,
        tax_rate: Decimal | int | str = ZERO,
        shipping_cost: Decimal | int | str = ZERO,
        discount_amount: Decimal | int | str = ZERO,
    ) -> Result[Order, PipelineError]:
        """
        Freeze lines into a new pending order.

        total = Σ subtotal, tax = total × rate/100,
        final = total + tax + shipping − discount. Each total is rounded once.
        """
        match _parse(
            CreateOrderInput,
            shipping_address=shipping_address,
            billing_address=billing_address,
            payment_method=payment_method,
            notes=notes,
            tax_rate=tax_rate,
            shipping_cost=shipping_cost,
            discount_amount=discount_amount,
        ):
            case Ok(data):
                pass
            case Error(err):
                return Error(err)

        if not lines:
            return Error(Errors.validation(
                "Cannot create an order without lines",
                FieldError("lines", "must not be empty"),
            ))

        total_amount = pricing.total([line.subtotal for line in lines])
        tax_amount = quantize(total_amount * data.tax_rate / HUNDRED)
        shipping_amount = quantize(data.shipping_cost)
        discount = quantize(data.discount_amount)
        final_amount = quantize(total_amount + tax_amount + shipping_amount - discount)

        if final_amount < ZERO:
            return Error(Errors.validation(
                "Discount exceeds order total",
                FieldError("discount_amount", f"must be at most {total_amount + tax_amount + shipping_amount}"),
            ))

        ts = now()
        draft = Order(
            id=0,
            user_id=user_id,
            shop_id=shop_id,
            tracking_id="",
            lines=tuple(freeze_line(line) for line in lines),
            total_amount=total_amount,
            discount_amount=discount,
            tax_amount=tax_amount,
            shipping_amount=shipping_amount,
            final_amount=final_amount,
            shipping_address=data.shipping_address,
            billing_address=data.billing_address or data.shipping_address,
            created_at=ts,
            updated_at=ts,
            payment_method=data.payment_method,
            notes=data.notes,
        )

        for _ in range(TRACKING_ATTEMPTS):
            candidate = replace(draft, tracking_id=new_tracking_id(self._settings.tracking_prefix))
            match await self._store.insert(candidate):
                case Ok(None):
                    logger.warning("tracking_id_collision", tracking_id=candidate.tracking_id)
                    continue
                case Ok(order):
                    logger.info(
                        "order_created",
                        order_id=order.id,
                        tracking_id=order.tracking_id,
                        shop_id=shop_id,
                        user_id=user_id,
                        final_amount=str(order.final_amount),
                    )
                    return Ok(order)
                case Error(err):
                    return Error(from_store(err))

        return Error(Errors.conflict("Could not allocate a unique tracking id"))

    # ═══════════════════════════════════════════════════════════════════════
    # Lookups
    # ═══════════════════════════════════════════════════════════════════════

    async def get(self, order_id: OrderId) -> Result[Order, PipelineError]:
        match await self._store.get(order_id):
            case Ok(None):
                return Error(Errors.not_found("Order", order_id))
            case Ok(order):
                return Ok(order)
            case Error(err):
                return Error(from_store(err))

    async def get_by_tracking(self, tracking_id: str) -> Result[Order, PipelineError]:
        match await self._store.get_by_tracking(tracking_id.strip().upper()):
            case Ok(None):
                return Error(Errors.not_found("Order", tracking_id))
            case Ok(order):
                return Ok(order)
            case Error(err):
                return Error(from_store(err))

    def _page_bounds(self, limit: int | None, offset: int) -> tuple[int, int]:
        limit = self._settings.default_page_size if limit is None else limit
        return max(1, min(limit, self._settings.max_page_size)), max(0, offset)

    async def _page(
        self,
        where: OrderFilter,
        limit: int | None,
        offset: int,
    ) -> Result[OrderPage, PipelineError]:
        limit, offset = self._page_bounds(limit, offset)
        match await self._store.find(where, limit=limit, offset=offset):
            case Ok(orders):
                pass
            case Error(err):
                return Error(from_store(err))
        match await self._store.count(where):
            case Ok(total):
                return Ok(OrderPage(tuple(orders), total, limit, offset))
            case Error(err):
                return Error(from_store(err))

    async def list_for_user(
        self,
        user_id: UserId,
        status: OrderStatus | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> Result[OrderPage, PipelineError]:
        return await self._page(OrderFilter(user_id=user_id, status=status), limit, offset)

    async def list_for_shop(
        self,
        shop_id: ShopId,
        status: OrderStatus | None = None,
        payment_status: PaymentStatus | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> Result[OrderPage, PipelineError]:
        where = OrderFilter(shop_id=shop_id, status=status, payment_status=payment_status)
        return await self._page(where, limit, offset)

    async def list_for_user_in_shop(
        self,
        user_id: UserId,
        shop_id: ShopId,
        status: OrderStatus | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> Result[OrderPage, PipelineError]:
        where = OrderFilter(user_id=user_id, shop_id=shop_id, status=status)
        return await self._page(where, limit, offset)

    async def recent(self, shop_id: ShopId, limit: int = 10) -> Result[list[Order], PipelineError]:
        limit, _ = self._page_bounds(limit, 0)
        match await self._store.find(OrderFilter(shop_id=shop_id), limit=limit):
            case Ok(orders):
                return Ok(orders)
            case Error(err):
                return Error(from_store(err))

    # ═══════════════════════════════════════════════════════════════════════
    # Aggregates
    # ═══════════════════════════════════════════════════════════════════════

    def _days(self, days: int | None) -> int:
        return self._settings.stats_window_days if days is None else days

    async def _window(self, shop_id: ShopId, days: int | None) -> Result[list[Order], PipelineError]:
        since = now() - timedelta(days=self._days(days))
        match await self._store.find(OrderFilter(shop_id=shop_id, since=since)):
            case Ok(orders):
                return Ok(orders)
            case Error(err):
                return Error(from_store(err))

    async def shop_stats(self, shop_id: ShopId, days: int | None = None) -> Result[ShopStats, PipelineError]:
        """Order counts and revenue over the trailing window."""
        match await self._window(shop_id, days):
            case Ok(orders):
                pass
            case Error(err):
                return Error(err)

        by_status = Counter(order.status for order in orders)
        return Ok(ShopStats(
            shop_id=shop_id,
            days=self._days(days),
            total_orders=len(orders),
            total_revenue=quantize(sum((order.final_amount for order in orders), ZERO)),
            pending_orders=by_status[OrderStatus.PENDING],
            completed_orders=by_status[OrderStatus.DELIVERED],
            cancelled_orders=by_status[OrderStatus.CANCELLED],
            by_status={status: by_status[status] for status in OrderStatus},
        ))

    async def top_products(
        self,
        shop_id: ShopId,
        limit: int = 10,
        days: int | None = None,
    ) -> Result[list[TopProduct], PipelineError]:
        """Products ranked by quantity sold in non-cancelled orders."""
        match await self._window(shop_id, days):
            case Ok(orders):
                pass
            case Error(err):
                return Error(err)

        quantity: Counter[int] = Counter()
        revenue: dict[int, Decimal] = {}
        names: dict[int, str] = {}
        for order in orders:
            if order.status is OrderStatus.CANCELLED:
                continue
            for line in order.lines:
                quantity[line.product_id] += line.quantity
                revenue[line.product_id] = revenue.get(line.product_id, ZERO) + line.subtotal
                names.setdefault(line.product_id, line.product_name)

        return Ok([
            TopProduct(pid, names[pid], sold, quantize(revenue[pid]))
            for pid, sold in quantity.most_common(max(1, limit))
        ])

    # ═══════════════════════════════════════════════════════════════════════
    # Transitions
    # ═══════════════════════════════════════════════════════════════════════

    async def _transition(
        self,
        order_id: OrderId,
        fn: Callable[[Order], Result[Order, PipelineError]],
    ) -> Result[Order, PipelineError]:
        match await self.get(order_id):
            case Ok(current):
                pass
            case Error(err):
                return Error(err)

        match fn(current):
            case Ok(updated) if updated is current:
                return Ok(current)
            case Ok(updated):
                pass
            case Error(err):
                logger.info("order_transition_rejected", order_id=order_id, reason=err.message)
                return Error(err)

        updated = replace(updated, version=current.version + 1)
        match await self._store.replace_if(updated, current.version):
            case Ok(True):
                logger.info(
                    "order_status_changed",
                    order_id=order_id,
                    status=updated.status.value,
                    payment_status=updated.payment_status.value,
                    previous_status=current.status.value,
                    previous_payment_status=current.payment_status.value,
                )
                return Ok(updated)
            case Ok(False):
                logger.warning("order_transition_conflict", order_id=order_id)
                return Error(Errors.conflict(f"Order {order_id} was changed concurrently"))
            case Error(err):
                return Error(from_store(err))

    async def update_status(
        self,
        order_id: OrderId,
        status: OrderStatus | str,
        admin_notes: str | None = None,
    ) -> Result[Order, PipelineError]:
        match _parse(UpdateStatusInput, status=status, admin_notes=admin_notes):
            case Ok(data):
                return await self._transition(
                    order_id,
                    lambda order: apply_status(order, data.status, admin_notes=data.admin_notes),
                )
            case Error(err):
                return Error(err)

    async def update_payment_status(
        self,
        order_id: OrderId,
        payment_status: PaymentStatus | str,
        payment_method: str | None = None,
    ) -> Result[Order, PipelineError]:
        """Paid on a pending order also confirms it in the same write."""
        match _parse(UpdatePaymentInput, payment_status=payment_status, payment_method=payment_method):
            case Ok(data):
                return await self._transition(
                    order_id,
                    lambda order: apply_payment(order, data.payment_status, method=data.payment_method),
                )
            case Error(err):
                return Error(err)

    async def cancel(self, order_id: OrderId, reason: str | None = None) -> Result[Order, PipelineError]:
        """Only pending/confirmed/processing orders can be cancelled."""
        note = f"Cancellation reason: {reason}" if reason else None

        def cancel_order(order: Order) -> Result[Order, PipelineError]:
            if order.status is OrderStatus.CANCELLED:
                return Error(Errors.invalid_transition("order", order.status.value, OrderStatus.CANCELLED.value))
            return apply_status(order, OrderStatus.CANCELLED, admin_notes=note)

        return await self._transition(order_id, cancel_order)

    async def delete(self, order_id: OrderId) -> Result[None, PipelineError]:
        """Administrative removal."""
        match await self._store.delete(order_id):
            case Ok(True):
                logger.info("order_deleted", order_id=order_id)
                return Ok(None)
            case Ok(False):
                return Error(Errors.not_found("Order", order_id))
            case Error(err):
                return Error(from_store(err))


__all__ = (
    "OrderEngine",
    "freeze_line",
)
