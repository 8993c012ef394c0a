"""
Order — frozen snapshots of a cart plus their status/payment state machine.

    from storefront import order as O

    orders = O.OrderEngine(O.MemoryOrderStore())
    await orders.update_payment_status(order_id, O.PaymentStatus.PAID, "card")
    # pending order is now confirmed
"""

from storefront.order._types import (
    OrderStatus,
    PaymentStatus,
    Address,
    OrderLine,
    Order,
    CreateOrderInput,
    UpdateStatusInput,
    UpdatePaymentInput,
    OrderFilter,
    OrderPage,
    ShopStats,
    TopProduct,
)
from storefront.order._machine import (
    CANCELLABLE,
    TERMINAL,
    PAYMENT_TRANSITIONS,
    can_move,
    can_pay,
    append_note,
    apply_status,
    apply_payment,
)
from storefront.order._tracking import (
    base36,
    new_tracking_id,
    is_tracking_id,
)
from storefront.order._store import (
    OrderStore,
    MemoryOrderStore,
)
from storefront.order._sqlalchemy import SQLAlchemyOrderStore
from storefront.order._engine import (
    OrderEngine,
    freeze_line,
)

__all__ = (
    # Types
    "OrderStatus",
    "PaymentStatus",
    "Address",
    "OrderLine",
    "Order",
    "CreateOrderInput",
    "UpdateStatusInput",
    "UpdatePaymentInput",
    "OrderFilter",
    "OrderPage",
    "ShopStats",
    "TopProduct",
    # State machine
    "CANCELLABLE",
    "TERMINAL",
    "PAYMENT_TRANSITIONS",
    "can_move",
    "can_pay",
    "append_note",
    "apply_status",
    "apply_payment",
    # Tracking
    "base36",
    "new_tracking_id",
    "is_tracking_id",
    # Stores
    "OrderStore",
    "MemoryOrderStore",
    "SQLAlchemyOrderStore",
    # Engine
    "OrderEngine",
    "freeze_line",
)
