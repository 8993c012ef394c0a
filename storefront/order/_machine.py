"""
Order state machine — status and payment status as one transition function.

    match apply_payment(order, PaymentStatus.PAID, method="card"):
        case Ok(updated):
            assert updated.status is OrderStatus.CONFIRMED
        case Error(err):
            ...

Status:
    pending → confirmed → processing → shipped → delivered   (admins may skip or step back)
    pending | confirmed | processing → cancelled
    any non-terminal status          → refunded
    cancelled, refunded              → terminal

Payment:
    pending → paid | failed | refunded
    paid    → failed | refunded
    failed  → paid                                      (retried payment)

Paid on a pending order confirms it in the same transition.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime

from kungfu import Result, Ok, Error

from storefront.cart._types import now
from storefront.errors import Errors, PipelineError
from storefront.order._types import Order, OrderStatus, PaymentStatus

# ═══════════════════════════════════════════════════════════════════════════════
# Tables
# ═══════════════════════════════════════════════════════════════════════════════

CANCELLABLE: frozenset[OrderStatus] = frozenset({
    OrderStatus.PENDING,
    OrderStatus.CONFIRMED,
    OrderStatus.PROCESSING,
})

TERMINAL: frozenset[OrderStatus] = frozenset({
    OrderStatus.CANCELLED,
    OrderStatus.REFUNDED,
})

PAYMENT_TRANSITIONS: dict[PaymentStatus, frozenset[PaymentStatus]] = {
    PaymentStatus.PENDING: frozenset({PaymentStatus.PAID, PaymentStatus.FAILED, PaymentStatus.REFUNDED}),
    PaymentStatus.PAID: frozenset({PaymentStatus.FAILED, PaymentStatus.REFUNDED}),
    PaymentStatus.FAILED: frozenset({PaymentStatus.PAID}),
    PaymentStatus.REFUNDED: frozenset(),
}


def can_move(current: OrderStatus, target: OrderStatus) -> bool:
    """Whether status may change from current to target (excluding same-state)."""
    if current in TERMINAL:
        return False
    if target is OrderStatus.CANCELLED:
        return current in CANCELLABLE
    return True


def can_pay(current: PaymentStatus, target: PaymentStatus) -> bool:
    return target in PAYMENT_TRANSITIONS[current]


def append_note(existing: str | None, note: str | None) -> str | None:
    if not note:
        return existing
    return f"{existing}\n{note}" if existing else note


# ═══════════════════════════════════════════════════════════════════════════════
# Transitions
# ═══════════════════════════════════════════════════════════════════════════════


def _stamped(order: Order, target: OrderStatus, at: datetime) -> Order:
    """Move to target, stamping shipped/delivered/cancelled once."""
    return replace(
        order,
        status=target,
        updated_at=at,
        shipped_at=order.shipped_at or (at if target is OrderStatus.SHIPPED else None),
        delivered_at=order.delivered_at or (at if target is OrderStatus.DELIVERED else None),
        cancelled_at=order.cancelled_at or (at if target is OrderStatus.CANCELLED else None),
    )


def apply_status(
    order: Order,
    target: OrderStatus,
    *,
    admin_notes: str | None = None,
    at: datetime | None = None,
) -> Result[Order, PipelineError]:
    """
    Change order status.

    Re-entering the current status changes nothing but the appended note.
    An illegal move is INVALID_TRANSITION, never a silent no-op.
    """
    at = at or now()

    if target is order.status:
        if not admin_notes:
            return Ok(order)
        return Ok(replace(order, admin_notes=append_note(order.admin_notes, admin_notes), updated_at=at))

    if not can_move(order.status, target):
        return Error(Errors.invalid_transition("order", order.status.value, target.value))

    moved = _stamped(order, target, at)
    return Ok(replace(moved, admin_notes=append_note(order.admin_notes, admin_notes)))


def apply_payment(
    order: Order,
    target: PaymentStatus,
    *,
    method: str | None = None,
    at: datetime | None = None,
) -> Result[Order, PipelineError]:
    """
    Change payment status.

    Re-entering the current payment status is a no-op so repeated gateway
    callbacks are harmless. paid on a pending order also confirms it.
    """
    at = at or now()

    if target is order.payment_status:
        return Ok(order)

    if not can_pay(order.payment_status, target):
        return Error(Errors.invalid_transition("payment", order.payment_status.value, target.value))

    updated = replace(
        order,
        payment_status=target,
        payment_method=method or order.payment_method,
        updated_at=at,
    )
    if target is PaymentStatus.PAID and order.status is OrderStatus.PENDING:
        updated = _stamped(updated, OrderStatus.CONFIRMED, at)
    return Ok(updated)


__all__ = (
    "CANCELLABLE",
    "TERMINAL",
    "PAYMENT_TRANSITIONS",
    "can_move",
    "can_pay",
    "append_note",
    "apply_status",
    "apply_payment",
)
