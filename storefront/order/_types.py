"""
Order types — frozen orders, their lines and the create input.

An Order is immutable except through the transition functions in
_machine.py; every change produces a new Order value.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from types import MappingProxyType
from collections.abc import Mapping
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, StringConstraints

from storefront._types import Money, ZERO, OrderId, ProductId, ShopId, UserId, VariantId

# ═══════════════════════════════════════════════════════════════════════════════
# Status Enums
# ═══════════════════════════════════════════════════════════════════════════════


class OrderStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"


# ═══════════════════════════════════════════════════════════════════════════════
# Address
# ═══════════════════════════════════════════════════════════════════════════════

_Required = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=255)]


class Address(BaseModel):
    """Shipping/billing address snapshot."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: _Required
    phone: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=32)]
    address_line_1: _Required
    address_line_2: str | None = None
    city: _Required
    state: _Required
    postal_code: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=20)]
    country: _Required


# ═══════════════════════════════════════════════════════════════════════════════
# Order Line
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class OrderLine:
    """
    Line frozen at purchase time.

    unit_price and discount are historical values: later catalog changes
    never touch them. variant_position is a display hint only.
    """

    product_id: ProductId
    product_name: str
    quantity: int
    unit_price: Money  # Before discount
    discount: Money  # Percent
    subtotal: Money  # unit_price × (1 − discount/100) × quantity, exact
    variant_id: VariantId | None = None
    variant_position: int | None = None
    variant_attributes: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "variant_attributes", MappingProxyType(dict(self.variant_attributes)))


# ═══════════════════════════════════════════════════════════════════════════════
# Order
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Order:
    """
    Persisted order.

    id is 0 until a store assigns one on insert. version guards
    conditional writes: a store only replaces the version it was given.
    """

    id: OrderId
    user_id: UserId
    shop_id: ShopId
    tracking_id: str
    lines: tuple[OrderLine, ...]

    total_amount: Money
    discount_amount: Money
    tax_amount: Money
    shipping_amount: Money
    final_amount: Money

    shipping_address: Address
    billing_address: Address

    created_at: datetime
    updated_at: datetime

    status: OrderStatus = OrderStatus.PENDING
    payment_status: PaymentStatus = PaymentStatus.PENDING
    payment_method: str | None = None
    notes: str | None = None
    admin_notes: str | None = None

    shipped_at: datetime | None = None
    delivered_at: datetime | None = None
    cancelled_at: datetime | None = None

    version: int = 1  # Bumped on every write

    @property
    def item_count(self) -> int:
        return sum(line.quantity for line in self.lines)


# ═══════════════════════════════════════════════════════════════════════════════
# Inputs
# ═══════════════════════════════════════════════════════════════════════════════


class CreateOrderInput(BaseModel):
    """Order options supplied by the shopper / checkout."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    shipping_address: Address
    billing_address: Address | None = None
    payment_method: Annotated[str, StringConstraints(min_length=1, max_length=50)] | None = None
    notes: Annotated[str, StringConstraints(max_length=500)] | None = None
    tax_rate: Decimal = Field(default=ZERO, ge=0, le=100)
    shipping_cost: Decimal = Field(default=ZERO, ge=0)
    discount_amount: Decimal = Field(default=ZERO, ge=0)


class UpdateStatusInput(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    status: OrderStatus
    admin_notes: Annotated[str, StringConstraints(max_length=1000)] | None = None


class UpdatePaymentInput(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    payment_status: PaymentStatus
    payment_method: Annotated[str, StringConstraints(min_length=1, max_length=50)] | None = None


# ═══════════════════════════════════════════════════════════════════════════════
# Query Results
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class OrderFilter:
    """Store query. None means "any"."""

    user_id: UserId | None = None
    shop_id: ShopId | None = None
    status: OrderStatus | None = None
    payment_status: PaymentStatus | None = None
    since: datetime | None = None


@dataclass(frozen=True, slots=True)
class OrderPage:
    orders: tuple[Order, ...]
    total: int
    limit: int
    offset: int

    @property
    def has_more(self) -> bool:
        return self.offset + len(self.orders) < self.total


@dataclass(frozen=True, slots=True)
class ShopStats:
    """Aggregates over a trailing window of days."""

    shop_id: ShopId
    days: int
    total_orders: int
    total_revenue: Money
    pending_orders: int
    completed_orders: int  # delivered
    cancelled_orders: int
    by_status: Mapping[OrderStatus, int]


@dataclass(frozen=True, slots=True)
class TopProduct:
    product_id: ProductId
    product_name: str
    quantity_sold: int
    revenue: Money


__all__ = (
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
)
