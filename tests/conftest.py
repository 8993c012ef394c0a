"""Shared pytest fixtures for storefront tests.

Provides a seeded in-memory catalog, engines wired over memory stores and
a fake payment gateway.
"""

from __future__ import annotations

import logging
import sys
from decimal import Decimal
from typing import Any

import pytest
import structlog

from storefront.cart import CartEngine, CartKey, MemoryCartStore
from storefront.catalog import MemoryCatalog, Product, ProductStatus, Variant
from storefront.checkout import Checkout
from storefront.config import Settings
from storefront.order import MemoryOrderStore, Order, OrderEngine

SHOP = 1
OTHER_SHOP = 2
USER = 42
GUEST = 9001


@pytest.fixture(autouse=True)
def configure_structlog_for_tests() -> None:
    """Configure structlog to output to stdout for test capture."""
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(colors=False),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(logging.DEBUG),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=False,  # Important for test isolation
    )


@pytest.fixture
def settings() -> Settings:
    return Settings(_env_file=None)


def seed_products() -> list[Product]:
    """
    P1 "Mug": 20.00, 10% off, stock 3.
    P2 "Shirt": two variants, red/M at 15.00 and blue/L at 17.00 (5% off).
    P3 "Poster": inactive.
    P4 "Lamp": belongs to another shop.
    """
    return [
        Product(
            id=1,
            shop_id=SHOP,
            name="Mug",
            slug="mug",
            price=Decimal("20"),
            discount=Decimal("10"),
            stock_quantity=3,
        ),
        Product(
            id=2,
            shop_id=SHOP,
            name="Shirt",
            slug="shirt",
            price=Decimal("25"),
            stock_quantity=0,
            variants=(
                Variant({"color": "red", "size": "M"}, price=Decimal("15"), stock_quantity=5, id="shirt-red-m"),
                Variant(
                    {"color": "blue", "size": "L"},
                    price=Decimal("17"),
                    discount=Decimal("5"),
                    stock_quantity=2,
                    is_default=True,
                    id="shirt-blue-l",
                ),
            ),
        ),
        Product(
            id=3,
            shop_id=SHOP,
            name="Poster",
            price=Decimal("10"),
            stock_quantity=10,
            status=ProductStatus.INACTIVE,
        ),
        Product(id=4, shop_id=OTHER_SHOP, name="Lamp", price=Decimal("40"), stock_quantity=10),
    ]


@pytest.fixture
def catalog() -> MemoryCatalog:
    return MemoryCatalog(seed_products())


@pytest.fixture
def cart_store() -> MemoryCartStore:
    return MemoryCartStore()


@pytest.fixture
def carts(cart_store: MemoryCartStore, catalog: MemoryCatalog, settings: Settings) -> CartEngine:
    return CartEngine(cart_store, catalog, settings)


@pytest.fixture
def order_store() -> MemoryOrderStore:
    return MemoryOrderStore()


@pytest.fixture
def orders(order_store: MemoryOrderStore, settings: Settings) -> OrderEngine:
    return OrderEngine(order_store, settings)


@pytest.fixture
def key() -> CartKey:
    return CartKey(shop_id=SHOP, user_id=USER)


@pytest.fixture
def guest_key() -> CartKey:
    return CartKey(shop_id=SHOP, user_id=GUEST)


@pytest.fixture
def address() -> dict[str, Any]:
    return {
        "name": "Ada Lovelace",
        "phone": "+44 20 7946 0000",
        "address_line_1": "12 St James's Square",
        "city": "London",
        "state": "Greater London",
        "postal_code": "SW1Y 4JH",
        "country": "GB",
    }


class FakeGateway:
    """Records sessions; fails when `fail` is set."""

    def __init__(self) -> None:
        self.sessions: list[Order] = []
        self.fail = False

    async def create_session(self, order: Order) -> str:
        if self.fail:
            raise ConnectionError("gateway unreachable")
        self.sessions.append(order)
        return f"https://pay.example/session/{order.tracking_id}"


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def checkout(
    carts: CartEngine,
    orders: OrderEngine,
    catalog: MemoryCatalog,
    gateway: FakeGateway,
    settings: Settings,
) -> Checkout:
    return Checkout(carts, orders, catalog, gateway, settings)
