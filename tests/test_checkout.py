"""Tests for the checkout sequence and payment callbacks."""

from __future__ import annotations

from decimal import Decimal
from typing import Any

import pytest
from kungfu import Ok, Error, LazyCoroResult

from storefront.cart import CartEngine, CartKey, CartLine, MemoryCartStore, ValidationReport
from storefront.catalog import MemoryCatalog
from storefront.checkout import Checkout, PaymentEvent, PaymentOutcome, Saga, from_async, from_result, step
from storefront.config import Settings
from storefront.errors import ErrorKind, Errors, PipelineError
from storefront.order import Order, OrderEngine, OrderStatus, PaymentStatus


def ok(result: Any) -> Any:
    assert isinstance(result, Ok), result
    return result.value


def err(result: Any) -> PipelineError:
    assert isinstance(result, Error), result
    return result.value


async def stock(catalog: MemoryCatalog, product_id: int, variant_id: str | None = None) -> int:
    product = await catalog.get_product(product_id)
    assert product is not None
    return product.stock_for(variant_id)


class TestPlaceOrder:
    """Tests for place_order."""

    async def test_happy_path(
        self,
        checkout: Checkout,
        carts: CartEngine,
        catalog: MemoryCatalog,
        gateway: Any,
        key: CartKey,
        address: dict[str, Any],
    ) -> None:
        await carts.add_line(key, 1, 2)
        await carts.add_line(key, 2, 1, "shirt-red-m")

        result = ok(await checkout.place_order(key, shipping_address=address, tax_rate=10, shipping_cost=5))
        assert result.order.final_amount == Decimal("61.10")
        assert result.redirect_url.endswith(result.order.tracking_id)
        assert gateway.sessions == [result.order]

        # Stock reserved, cart cleared
        assert await stock(catalog, 1) == 1
        assert await stock(catalog, 2, "shirt-red-m") == 4
        assert ok(await carts.item_count(key)) == 0

    async def test_empty_cart(self, checkout: Checkout, key: CartKey, address: dict[str, Any]) -> None:
        assert err(await checkout.place_order(key, shipping_address=address)).kind is ErrorKind.VALIDATION

    async def test_insufficient_stock_carries_report(
        self, checkout: Checkout, carts: CartEngine, orders: OrderEngine, key: CartKey, address: dict[str, Any]
    ) -> None:
        await carts.add_line(key, 1, 10)
        error = err(await checkout.place_order(key, shipping_address=address))
        assert error.kind is ErrorKind.INSUFFICIENT_STOCK
        assert isinstance(error.details, ValidationReport)
        assert error.details.lines[0].quantity == 3
        assert ok(await orders.list_for_shop(key.shop_id)).total == 0

    async def test_inactive_product_is_validation(
        self, checkout: Checkout, carts: CartEngine, catalog: MemoryCatalog, key: CartKey, address: dict[str, Any]
    ) -> None:
        await carts.add_line(key, 1, 1)
        catalog.remove(1)
        error = err(await checkout.place_order(key, shipping_address=address))
        assert error.kind is ErrorKind.VALIDATION
        assert error.message == "Product with ID 1 no longer exists"

    async def test_gateway_failure_rolls_back(
        self,
        checkout: Checkout,
        carts: CartEngine,
        orders: OrderEngine,
        catalog: MemoryCatalog,
        gateway: Any,
        key: CartKey,
        address: dict[str, Any],
    ) -> None:
        await carts.add_line(key, 1, 2)
        gateway.fail = True

        error = err(await checkout.place_order(key, shipping_address=address))
        assert error.kind is ErrorKind.PAYMENT
        assert await stock(catalog, 1) == 3
        assert ok(await orders.list_for_shop(key.shop_id)).total == 0
        assert ok(await carts.item_count(key)) == 2

    async def test_bad_address_rolls_back_stock(
        self, checkout: Checkout, carts: CartEngine, catalog: MemoryCatalog, key: CartKey, address: dict[str, Any]
    ) -> None:
        await carts.add_line(key, 1, 2)
        del address["country"]
        assert err(await checkout.place_order(key, shipping_address=address)).kind is ErrorKind.VALIDATION
        assert await stock(catalog, 1) == 3

    async def test_concurrent_stock_drop_rolls_back_earlier_reservations(
        self, checkout: Checkout, carts: CartEngine, catalog: MemoryCatalog, key: CartKey, address: dict[str, Any]
    ) -> None:
        """Stock sold elsewhere between validation and reservation."""
        await carts.add_line(key, 1, 1)
        await carts.add_line(key, 2, 2, "shirt-blue-l")

        original = catalog.adjust_stock
        calls = 0

        async def racing(product_id: int, variant_id: str | None, delta: int) -> Any:
            nonlocal calls
            calls += 1
            if calls == 2:
                await original(2, "shirt-blue-l", -2)
            return await original(product_id, variant_id, delta)

        catalog.adjust_stock = racing  # type: ignore[method-assign]

        error = err(await checkout.place_order(key, shipping_address=address))
        assert error.kind is ErrorKind.INSUFFICIENT_STOCK
        assert await stock(catalog, 1) == 3

    async def test_lines_added_during_payment_session_survive(
        self,
        carts: CartEngine,
        orders: OrderEngine,
        catalog: MemoryCatalog,
        settings: Settings,
        key: CartKey,
        address: dict[str, Any],
    ) -> None:
        """Only the ordered lines leave the cart; a line added mid-checkout stays."""

        class AddingGateway:
            async def create_session(self, order: Order) -> str:
                ok(await carts.add_line(key, 2, 1, "shirt-red-m"))
                ok(await carts.add_line(key, 1, 1))
                return f"https://pay.example/session/{order.tracking_id}"

        checkout = Checkout(carts, orders, catalog, AddingGateway(), settings)
        await carts.add_line(key, 1, 1)

        result = ok(await checkout.place_order(key, shipping_address=address))
        assert [(line.product_id, line.quantity) for line in result.order.lines] == [(1, 1)]

        cart = ok(await carts.get(key))
        assert cart.lines == (CartLine(1, 1), CartLine(2, 1, "shirt-red-m"))

    async def test_order_uses_validated_snapshot(
        self,
        checkout: Checkout,
        carts: CartEngine,
        cart_store: MemoryCartStore,
        key: CartKey,
        address: dict[str, Any],
    ) -> None:
        await carts.add_line(key, 1, 2)
        reads = 0
        original = cart_store.get

        async def counting_get(k: CartKey) -> Any:
            nonlocal reads
            reads += 1
            return await original(k)

        cart_store.get = counting_get  # type: ignore[method-assign]
        result = ok(await checkout.place_order(key, shipping_address=address))
        assert reads == 1
        assert result.order.lines[0].quantity == 2


class TestCancel:
    """Tests for cancelling a placed order."""

    @pytest.fixture
    async def placed(self, checkout: Checkout, carts: CartEngine, key: CartKey, address: dict[str, Any]) -> Any:
        await carts.add_line(key, 1, 3)
        await carts.add_line(key, 2, 2, "shirt-red-m")
        return ok(await checkout.place_order(key, shipping_address=address)).order

    async def test_cancel_restores_reserved_stock(
        self, checkout: Checkout, catalog: MemoryCatalog, placed: Any
    ) -> None:
        assert await stock(catalog, 1) == 0
        assert await stock(catalog, 2, "shirt-red-m") == 3

        order = ok(await checkout.cancel_order(placed.id, "changed mind"))
        assert order.status is OrderStatus.CANCELLED
        assert order.admin_notes == "Cancellation reason: changed mind"
        assert await stock(catalog, 1) == 3
        assert await stock(catalog, 2, "shirt-red-m") == 5

    async def test_second_cancel_restores_nothing(
        self, checkout: Checkout, catalog: MemoryCatalog, placed: Any
    ) -> None:
        ok(await checkout.cancel_order(placed.id))
        assert err(await checkout.cancel_order(placed.id)).kind is ErrorKind.INVALID_TRANSITION
        assert await stock(catalog, 1) == 3

    async def test_shipped_order_keeps_stock(
        self, checkout: Checkout, orders: OrderEngine, catalog: MemoryCatalog, placed: Any
    ) -> None:
        ok(await orders.update_status(placed.id, OrderStatus.SHIPPED))
        assert err(await checkout.cancel_order(placed.id)).kind is ErrorKind.INVALID_TRANSITION
        assert await stock(catalog, 1) == 0

    async def test_removed_product_is_skipped(
        self, checkout: Checkout, catalog: MemoryCatalog, placed: Any
    ) -> None:
        catalog.remove(1)
        order = ok(await checkout.cancel_order(placed.id))
        assert order.status is OrderStatus.CANCELLED
        assert await stock(catalog, 2, "shirt-red-m") == 5


class TestPayment:
    """Tests for payment callbacks and resuming payment."""

    @pytest.fixture
    async def placed(self, checkout: Checkout, carts: CartEngine, key: CartKey, address: dict[str, Any]) -> Any:
        await carts.add_line(key, 1, 2)
        return ok(await checkout.place_order(key, shipping_address=address)).order

    async def test_success_event_confirms_and_counts_sales(
        self, checkout: Checkout, catalog: MemoryCatalog, placed: Any
    ) -> None:
        event = PaymentEvent("evt_1", placed.tracking_id, PaymentOutcome.SUCCEEDED, "card")
        order = ok(await checkout.handle_payment_event(event))
        assert order.payment_status is PaymentStatus.PAID
        assert order.status is OrderStatus.CONFIRMED

        mug = await catalog.get_product(1)
        assert mug is not None
        assert mug.sales_count == 2

    async def test_duplicate_event_ignored(self, checkout: Checkout, catalog: MemoryCatalog, placed: Any) -> None:
        event = PaymentEvent("evt_1", placed.tracking_id, PaymentOutcome.SUCCEEDED)
        ok(await checkout.handle_payment_event(event))
        assert ok(await checkout.handle_payment_event(event)) is None

        mug = await catalog.get_product(1)
        assert mug is not None
        assert mug.sales_count == 2

    async def test_failed_event(self, checkout: Checkout, placed: Any) -> None:
        event = PaymentEvent("evt_2", placed.tracking_id, PaymentOutcome.FAILED)
        order = ok(await checkout.handle_payment_event(event))
        assert order.payment_status is PaymentStatus.FAILED
        assert order.status is OrderStatus.PENDING

    async def test_unknown_order_event_can_be_redelivered(self, checkout: Checkout) -> None:
        event = PaymentEvent("evt_3", "ORD-NOPE-000000", PaymentOutcome.SUCCEEDED)
        assert err(await checkout.handle_payment_event(event)).kind is ErrorKind.NOT_FOUND
        assert err(await checkout.handle_payment_event(event)).kind is ErrorKind.NOT_FOUND

    async def test_resume_payment(self, checkout: Checkout, gateway: Any, placed: Any) -> None:
        result = ok(await checkout.resume_payment(placed.tracking_id, user_id=placed.user_id))
        assert result.order.id == placed.id
        assert len(gateway.sessions) == 2

    async def test_resume_other_users_order(self, checkout: Checkout, placed: Any) -> None:
        error = err(await checkout.resume_payment(placed.tracking_id, user_id=placed.user_id + 1))
        assert error.kind is ErrorKind.NOT_FOUND

    async def test_resume_paid_order(self, checkout: Checkout, placed: Any) -> None:
        await checkout.handle_payment_event(PaymentEvent("evt_4", placed.tracking_id, PaymentOutcome.SUCCEEDED))
        error = err(await checkout.resume_payment(placed.tracking_id))
        assert error.kind is ErrorKind.INVALID_TRANSITION

    async def test_event_memory_is_bounded(
        self,
        carts: CartEngine,
        orders: OrderEngine,
        catalog: MemoryCatalog,
        gateway: Any,
        key: CartKey,
        address: dict[str, Any],
    ) -> None:
        checkout = Checkout(carts, orders, catalog, gateway, Settings(_env_file=None, payment_event_memory=2))
        await carts.add_line(key, 1, 2)
        placed = ok(await checkout.place_order(key, shipping_address=address)).order

        for event_id in ("evt_a", "evt_b", "evt_c"):
            ok(await checkout.handle_payment_event(PaymentEvent(event_id, placed.tracking_id, PaymentOutcome.SUCCEEDED)))
        assert list(checkout._events) == ["evt_b", "evt_c"]

        # A forgotten id is applied again; paid stays paid and sales are not recounted
        again = ok(await checkout.handle_payment_event(PaymentEvent("evt_a", placed.tracking_id, PaymentOutcome.SUCCEEDED)))
        assert again.payment_status is PaymentStatus.PAID
        mug = await catalog.get_product(1)
        assert mug is not None
        assert mug.sales_count == 2


class TestSaga:
    """Tests for the compensation runner."""

    async def test_rollback_in_reverse(self) -> None:
        undone: list[str] = []

        async def action(name: str) -> Any:
            return Ok(name)

        async def undo(name: str) -> None:
            undone.append(name)

        saga = Saga()
        for name in ("a", "b", "c"):
            ok(await saga.run(from_result(name, lambda name=name: action(name), compensate=undo)))
        rollback = await saga.rollback()

        assert undone == ["c", "b", "a"]
        assert rollback.complete
        assert rollback.compensators_run == 3

    async def test_raising_action_becomes_error(self) -> None:
        async def boom() -> str:
            raise RuntimeError("down")

        saga = Saga()
        error = err(await saga.run(from_async("boom", boom, on_error=lambda e: Errors.payment(str(e)))))
        assert error.kind is ErrorKind.PAYMENT
        assert saga.recorded == 0

    async def test_failing_compensator_is_counted(self) -> None:
        async def action() -> Any:
            return Ok(1)

        async def undo(_: int) -> None:
            raise RuntimeError("cannot undo")

        saga = Saga()
        await saga.run(from_result("x", action, compensate=undo))
        rollback = await saga.rollback()
        assert not rollback.complete
        assert rollback.compensators_failed == 1

    async def test_step_without_compensator(self) -> None:
        async def action() -> Any:
            return Ok("done")

        saga = Saga()
        assert ok(await saga.run(step("plain", LazyCoroResult(action)))) == "done"
        assert saga.recorded == 0
        assert (await saga.rollback()).compensators_run == 0
