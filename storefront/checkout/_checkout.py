"""
Checkout — cart → order → payment session, with compensation.

    checkout = Checkout(carts, orders, catalog, gateway)

    match await checkout.place_order(key, shipping_address=addr, tax_rate=10):
        case Ok(result):
            redirect(result.redirect_url)
        case Error(err) if err.kind is ErrorKind.INSUFFICIENT_STOCK:
            show(err.details.messages)

Steps:
    1. validate cart (stock problems stop here, nothing is written)
    2. reserve stock per line        ← undo: restore stock
    3. create order                  ← undo: delete order
    4. open payment session
    5. take the ordered lines off the cart
"""

from __future__ import annotations

from collections import OrderedDict
from collections.abc import Mapping
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

import structlog
from kungfu import Result, Ok, Error

from storefront._types import ZERO, OrderId, ProductId, UserId, VariantId
from storefront.cart._engine import CartEngine
from storefront.cart._types import CartKey, CartLine, ProblemKind
from storefront.catalog._store import CatalogStore
from storefront.catalog._types import Product
from storefront.checkout._gateway import PaymentEvent, PaymentGateway, PaymentOutcome
from storefront.checkout._saga import Saga, SagaStep, from_async, from_result
from storefront.config import Settings
from storefront.errors import Errors, PipelineError
from storefront.order._engine import OrderEngine
from storefront.order._types import Address, Order, OrderStatus, PaymentStatus

logger = structlog.get_logger(__name__)

UNPAYABLE_STATUSES = frozenset({OrderStatus.CANCELLED, OrderStatus.REFUNDED})


@dataclass(frozen=True, slots=True)
class CheckoutResult:
    order: Order
    redirect_url: str


class Checkout:
    def __init__(
        self,
        carts: CartEngine,
        orders: OrderEngine,
        catalog: CatalogStore,
        gateway: PaymentGateway,
        settings: Settings | None = None,
    ) -> None:
        self._carts = carts
        self._orders = orders
        self._catalog = catalog
        self._gateway = gateway
        self._settings = settings or Settings()
        self._events: OrderedDict[str, None] = OrderedDict()  # Oldest first

    # ───────────────────────────────────────────────────────────────────────
    # Compensators
    # ───────────────────────────────────────────────────────────────────────

    def _restore(self, product_id: ProductId, variant_id: VariantId | None, quantity: int):
        async def restore(_: Product) -> None:
            match await self._catalog.adjust_stock(product_id, variant_id, quantity):
                case Error(err):
                    raise RuntimeError(f"Could not restore stock of product {product_id}: {err}")
                case _:
                    pass

        return restore

    async def _discard(self, order: Order) -> None:
        match await self._orders.delete(order.id):
            case Error(err):
                raise RuntimeError(f"Could not discard order {order.id}: {err}")
            case _:
                pass

    def _session(self, order: Order) -> SagaStep[str, PipelineError]:
        return from_async(
            "payment_session",
            lambda: self._gateway.create_session(order),
            on_error=lambda e: Errors.payment(f"Failed to create checkout session: {e}"),
        )

    # ───────────────────────────────────────────────────────────────────────
    # Place Order
    # ───────────────────────────────────────────────────────────────────────

    async def place_order(
        self,
        key: CartKey,
        shipping_address: Address | Mapping[str, Any],
        billing_address: Address | Mapping[str, Any] | None = None,
        payment_method: str | None = None,
        notes: str | None = None,
        tax_rate: Decimal | int | str = ZERO,
        shipping_cost: Decimal | int | str = ZERO,
        discount_amount: Decimal | int | str = ZERO,
    ) -> Result[CheckoutResult, PipelineError]:
        """
        Turn the shopper's cart into a pending order and a payment redirect.

        Stock problems are reported with the validation report in
        `err.details`. On any later failure completed steps are undone.
        """
        match await self._carts.get(key):
            case Ok(None):
                return Error(Errors.validation("Cart is empty"))
            case Ok(cart):
                pass
            case Error(err):
                return Error(err)

        # Validation, order lines and cart cleanup all use this one snapshot
        report = await self._carts.check(cart)
        if not report.valid:
            kinds = {p.kind for p in report.problems}
            message = "; ".join(report.messages)
            logger.info("checkout_rejected", key=key, problems=len(report.problems))
            if kinds == {ProblemKind.INSUFFICIENT_STOCK}:
                return Error(Errors.insufficient_stock(message, details=report))
            return Error(Errors.validation(message, details=report))

        view = await self._carts.view(cart)
        if view.is_empty:
            return Error(Errors.validation("Cart is empty"))

        saga = Saga()

        async def fail(err: PipelineError) -> Result[CheckoutResult, PipelineError]:
            rollback = await saga.rollback()
            logger.warning(
                "checkout_failed",
                key=key,
                kind=err.kind.value,
                reason=err.message,
                compensators_run=rollback.compensators_run,
                rollback_complete=rollback.complete,
            )
            return Error(err)

        if self._settings.reserve_stock_on_checkout:
            for line in view.lines:
                reserve = from_result(
                    f"reserve:{line.product_id}",
                    lambda line=line: self._catalog.adjust_stock(line.product_id, line.variant_id, -line.quantity),
                    compensate=self._restore(line.product_id, line.variant_id, line.quantity),
                )
                match await saga.run(reserve):
                    case Error(err):
                        return await fail(err)
                    case _:
                        pass

        create = from_result(
            "create_order",
            lambda: self._orders.create(
                key.user_id,
                key.shop_id,
                view.lines,
                shipping_address=shipping_address,
                billing_address=billing_address,
                payment_method=payment_method,
                notes=notes,
                tax_rate=tax_rate,
                shipping_cost=shipping_cost,
                discount_amount=discount_amount,
            ),
            compensate=self._discard,
        )
        match await saga.run(create):
            case Ok(order):
                pass
            case Error(err):
                return await fail(err)

        match await saga.run(self._session(order)):
            case Ok(redirect_url):
                pass
            case Error(err):
                return await fail(err)

        ordered = [CartLine(line.product_id, line.quantity, line.variant_id) for line in view.lines]
        match await self._carts.remove_ordered(key, ordered):
            case Error(err):
                # Order and payment session already exist
                logger.warning("checkout_cart_not_cleared", key=key, reason=err.message)
            case _:
                pass

        logger.info("checkout_completed", key=key, order_id=order.id, tracking_id=order.tracking_id)
        return Ok(CheckoutResult(order, redirect_url))

    # ───────────────────────────────────────────────────────────────────────
    # Cancel
    # ───────────────────────────────────────────────────────────────────────

    async def cancel_order(self, order_id: OrderId, reason: str | None = None) -> Result[Order, PipelineError]:
        """
        Cancel an order and give its reserved units back to the catalog.

        Note: a line whose product or variant was removed since purchase is
        skipped and logged; the cancellation itself still stands.
        """
        match await self._orders.cancel(order_id, reason):
            case Ok(order):
                pass
            case Error(err):
                return Error(err)

        if self._settings.reserve_stock_on_checkout:
            for line in order.lines:
                match await self._catalog.adjust_stock(line.product_id, line.variant_id, line.quantity):
                    case Error(err):
                        logger.warning(
                            "stock_not_restored",
                            order_id=order.id,
                            product_id=line.product_id,
                            variant_id=line.variant_id,
                            reason=err.message,
                        )
                    case _:
                        pass

        logger.info("order_cancelled", order_id=order.id, tracking_id=order.tracking_id)
        return Ok(order)

    # ───────────────────────────────────────────────────────────────────────
    # Payment
    # ───────────────────────────────────────────────────────────────────────

    async def resume_payment(
        self,
        tracking_id: str,
        user_id: UserId | None = None,
    ) -> Result[CheckoutResult, PipelineError]:
        """New payment session for an order that is not paid yet."""
        match await self._orders.get_by_tracking(tracking_id):
            case Ok(order) if user_id is not None and order.user_id != user_id:
                return Error(Errors.not_found("Order", tracking_id))
            case Ok(order):
                pass
            case Error(err):
                return Error(err)

        if order.status in UNPAYABLE_STATUSES or order.payment_status not in (
            PaymentStatus.PENDING,
            PaymentStatus.FAILED,
        ):
            return Error(Errors.invalid_transition("payment", order.payment_status.value, PaymentStatus.PAID.value))

        match await self._session(order).action:
            case Ok(redirect_url):
                logger.info("payment_resumed", tracking_id=order.tracking_id)
                return Ok(CheckoutResult(order, redirect_url))
            case Error(err):
                logger.warning("payment_resume_failed", tracking_id=order.tracking_id, reason=err.message)
                return Error(err)

    async def handle_payment_event(self, event: PaymentEvent) -> Result[Order | None, PipelineError]:
        """
        Apply a gateway callback at most once per event id.

        Ok(None) for an already-processed event. A failed attempt releases
        the id so a redelivery can retry. Only the newest
        `payment_event_memory` ids are remembered.
        """
        if event.event_id in self._events:
            logger.info("payment_event_duplicate", event_id=event.event_id)
            return Ok(None)
        self._events[event.event_id] = None
        while len(self._events) > self._settings.payment_event_memory:
            self._events.popitem(last=False)

        match await self._orders.get_by_tracking(event.tracking_id):
            case Ok(order):
                pass
            case Error(err):
                self._events.pop(event.event_id, None)
                return Error(err)

        target = PaymentStatus.PAID if event.outcome is PaymentOutcome.SUCCEEDED else PaymentStatus.FAILED
        match await self._orders.update_payment_status(order.id, target, event.payment_method):
            case Ok(updated):
                pass
            case Error(err):
                self._events.pop(event.event_id, None)
                logger.warning("payment_event_rejected", event_id=event.event_id, reason=err.message)
                return Error(err)

        if target is PaymentStatus.PAID and order.payment_status is not PaymentStatus.PAID:
            for line in updated.lines:
                await self._catalog.record_sale(line.product_id, line.quantity)

        logger.info(
            "payment_event_applied",
            event_id=event.event_id,
            tracking_id=event.tracking_id,
            payment_status=updated.payment_status.value,
        )
        return Ok(updated)


__all__ = (
    "CheckoutResult",
    "Checkout",
)
