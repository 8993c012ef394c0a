"""Tests for the combined status / payment transition functions."""

from __future__ import annotations

from datetime import datetime, timedelta, UTC
from decimal import Decimal

import pytest
from kungfu import Ok, Error

from storefront.errors import ErrorKind
from storefront.order import (
    Address,
    Order,
    OrderStatus,
    PaymentStatus,
    apply_payment,
    apply_status,
    can_move,
)

T0 = datetime(2026, 1, 1, 12, 0, tzinfo=UTC)


def make_order(status: OrderStatus = OrderStatus.PENDING, payment: PaymentStatus = PaymentStatus.PENDING) -> Order:
    address = Address(
        name="A",
        phone="1",
        address_line_1="Main St 1",
        city="X",
        state="Y",
        postal_code="00000",
        country="US",
    )
    return Order(
        id=1,
        user_id=1,
        shop_id=1,
        tracking_id="ORD-TEST-AAAAAA",
        lines=(),
        total_amount=Decimal("10.00"),
        discount_amount=Decimal("0.00"),
        tax_amount=Decimal("0.00"),
        shipping_amount=Decimal("0.00"),
        final_amount=Decimal("10.00"),
        shipping_address=address,
        billing_address=address,
        created_at=T0,
        updated_at=T0,
        status=status,
        payment_status=payment,
    )


class TestStatus:
    """Tests for apply_status."""

    @pytest.mark.parametrize("current", [OrderStatus.PENDING, OrderStatus.CONFIRMED, OrderStatus.PROCESSING])
    def test_cancel_allowed(self, current: OrderStatus) -> None:
        result = apply_status(make_order(current), OrderStatus.CANCELLED, at=T0)
        assert isinstance(result, Ok)
        assert result.value.status is OrderStatus.CANCELLED
        assert result.value.cancelled_at == T0

    @pytest.mark.parametrize("current", [OrderStatus.SHIPPED, OrderStatus.DELIVERED, OrderStatus.REFUNDED])
    def test_cancel_rejected(self, current: OrderStatus) -> None:
        result = apply_status(make_order(current), OrderStatus.CANCELLED)
        assert isinstance(result, Error)
        assert result.value.kind is ErrorKind.INVALID_TRANSITION

    def test_forward_may_skip(self) -> None:
        assert can_move(OrderStatus.PENDING, OrderStatus.SHIPPED)
        assert can_move(OrderStatus.CONFIRMED, OrderStatus.DELIVERED)

    def test_admin_may_step_back(self) -> None:
        result = apply_status(make_order(OrderStatus.SHIPPED), OrderStatus.PROCESSING, admin_notes="label lost")
        assert isinstance(result, Ok)
        assert result.value.status is OrderStatus.PROCESSING
        assert can_move(OrderStatus.DELIVERED, OrderStatus.SHIPPED)

    def test_refund_from_any_open_status(self) -> None:
        assert can_move(OrderStatus.DELIVERED, OrderStatus.REFUNDED)
        assert can_move(OrderStatus.PENDING, OrderStatus.REFUNDED)

    @pytest.mark.parametrize("current", [OrderStatus.CANCELLED, OrderStatus.REFUNDED])
    @pytest.mark.parametrize("target", [OrderStatus.PENDING, OrderStatus.CONFIRMED, OrderStatus.DELIVERED])
    def test_terminal_states_stay(self, current: OrderStatus, target: OrderStatus) -> None:
        result = apply_status(make_order(current), target)
        assert isinstance(result, Error)
        assert result.value.kind is ErrorKind.INVALID_TRANSITION

    def test_timestamps_set_once(self) -> None:
        shipped = apply_status(make_order(OrderStatus.PROCESSING), OrderStatus.SHIPPED, at=T0)
        assert isinstance(shipped, Ok)
        later = T0 + timedelta(days=2)
        again = apply_status(shipped.value, OrderStatus.SHIPPED, admin_notes="re-sent label", at=later)
        assert isinstance(again, Ok)
        assert again.value.shipped_at == T0
        assert again.value.admin_notes == "re-sent label"

        delivered = apply_status(again.value, OrderStatus.DELIVERED, at=later)
        assert isinstance(delivered, Ok)
        assert delivered.value.shipped_at == T0
        assert delivered.value.delivered_at == later

    def test_same_state_without_note_is_identity(self) -> None:
        order = make_order(OrderStatus.CONFIRMED)
        result = apply_status(order, OrderStatus.CONFIRMED)
        assert isinstance(result, Ok)
        assert result.value is order

    def test_notes_append(self) -> None:
        first = apply_status(make_order(), OrderStatus.CONFIRMED, admin_notes="called customer")
        assert isinstance(first, Ok)
        second = apply_status(first.value, OrderStatus.PROCESSING, admin_notes="packed")
        assert isinstance(second, Ok)
        assert second.value.admin_notes == "called customer\npacked"


class TestPayment:
    """Tests for apply_payment and its coupling to status."""

    def test_paid_confirms_pending_order(self) -> None:
        result = apply_payment(make_order(), PaymentStatus.PAID, method="card")
        assert isinstance(result, Ok)
        assert result.value.payment_status is PaymentStatus.PAID
        assert result.value.status is OrderStatus.CONFIRMED
        assert result.value.payment_method == "card"

    def test_paid_leaves_later_status_alone(self) -> None:
        result = apply_payment(make_order(OrderStatus.PROCESSING), PaymentStatus.PAID)
        assert isinstance(result, Ok)
        assert result.value.status is OrderStatus.PROCESSING

    def test_repeat_is_noop(self) -> None:
        order = make_order(OrderStatus.CONFIRMED, PaymentStatus.PAID)
        result = apply_payment(order, PaymentStatus.PAID)
        assert isinstance(result, Ok)
        assert result.value is order

    def test_paid_to_refunded(self) -> None:
        result = apply_payment(make_order(OrderStatus.CONFIRMED, PaymentStatus.PAID), PaymentStatus.REFUNDED)
        assert isinstance(result, Ok)
        assert result.value.payment_status is PaymentStatus.REFUNDED

    def test_refunded_is_terminal(self) -> None:
        result = apply_payment(make_order(payment=PaymentStatus.REFUNDED), PaymentStatus.PAID)
        assert isinstance(result, Error)
        assert result.value.kind is ErrorKind.INVALID_TRANSITION

    def test_failed_can_be_retried(self) -> None:
        result = apply_payment(make_order(payment=PaymentStatus.FAILED), PaymentStatus.PAID)
        assert isinstance(result, Ok)
        assert result.value.status is OrderStatus.CONFIRMED
