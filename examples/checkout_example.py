"""
Checkout — cart to paid order over SQLite.

storefront.cart      → lines, merge on login
storefront.checkout  → reserve stock, create order, open payment session
storefront.order     → payment callback confirms the order
"""

import asyncio
from decimal import Decimal

from kungfu import Ok, Error

from storefront import configure_logging, Settings
from storefront.cart import CartEngine, CartKey, SQLAlchemyCartStore
from storefront.catalog import MemoryCatalog, Product, Variant
from storefront.checkout import Checkout, PaymentEvent, PaymentOutcome
from storefront.db import create_database
from storefront.order import Order, OrderEngine, SQLAlchemyOrderStore
from storefront.variants import available_values, resolve


class PrintGateway:
    async def create_session(self, order: Order) -> str:
        print(f"  → payment session for {order.tracking_id}: {order.final_amount}")
        return f"https://pay.example.com/{order.tracking_id}"


def banner(title: str) -> None:
    print(f"\n{'─' * 50}\n{title}\n{'─' * 50}")


async def main() -> None:
    settings = Settings(_env_file=None, log_level="WARNING")
    configure_logging(settings)

    catalog = MemoryCatalog([
        Product(id=1, shop_id=1, name="Mug", price=Decimal("12.50"), stock_quantity=10),
        Product(
            id=2,
            shop_id=1,
            name="Hoodie",
            price=Decimal("45"),
            variants=(
                Variant({"color": "black", "size": "M"}, price=Decimal("45"), stock_quantity=3, id="hoodie-black-m"),
                Variant({"color": "grey", "size": "L"}, price=Decimal("48"), discount=Decimal("10"), stock_quantity=1, id="hoodie-grey-l"),
            ),
        ),
    ])
    sessions, engine = await create_database(settings.database_url)
    carts = CartEngine(SQLAlchemyCartStore(sessions, retries=settings.cart_write_retries), catalog, settings)
    orders = OrderEngine(SQLAlchemyOrderStore(sessions), settings)
    checkout = Checkout(carts, orders, catalog, PrintGateway(), settings)

    banner("Variant picker")
    hoodie = await catalog.get_product(2)
    assert hoodie is not None
    print(f"  sizes with grey: {available_values(hoodie.variants, {'color': 'grey'}, 'size')}")
    variant = resolve(hoodie.variants, {"color": "grey", "size": "L"})
    assert variant is not None
    print(f"  resolved: {variant.id}")

    banner("Guest cart → login")
    guest, user = CartKey(shop_id=1, user_id=1001), CartKey(shop_id=1, user_id=7)
    await carts.add_line(guest, 1, 2)
    await carts.add_line(guest, 2, 1, variant.id)
    await carts.add_line(user, 1, 1)
    match await carts.merge_from(user, guest):
        case Ok(cart):
            print(f"  merged lines: {[(line.product_id, line.variant_id, line.quantity) for line in cart.lines]}")
        case Error(e):
            print(f"  ✗ {e}")

    banner("Place order")
    address = {
        "name": "Ada Lovelace",
        "phone": "+44 20 7946 0000",
        "address_line_1": "12 St James's Square",
        "city": "London",
        "state": "Greater London",
        "postal_code": "SW1Y 4JH",
        "country": "GB",
    }
    match await checkout.place_order(user, shipping_address=address, tax_rate=20, shipping_cost=4):
        case Ok(placed):
            order = placed.order
            print(f"  ✓ {order.tracking_id} total={order.total_amount} final={order.final_amount}")
        case Error(e):
            print(f"  ✗ {e}")
            return

    banner("Payment callback")
    event = PaymentEvent("evt_1", order.tracking_id, PaymentOutcome.SUCCEEDED, "card")
    for _ in range(2):
        match await checkout.handle_payment_event(event):
            case Ok(None):
                print("  duplicate event ignored")
            case Ok(paid):
                print(f"  ✓ status={paid.status.value} payment={paid.payment_status.value}")
            case Error(e):
                print(f"  ✗ {e}")

    banner("Cancel")
    match await checkout.cancel_order(order.id, "ordered the wrong size"):
        case Ok(cancelled):
            mug = await catalog.get_product(1)
            assert mug is not None
            print(f"  ✓ status={cancelled.status.value} mug stock back to {mug.stock_quantity}")
        case Error(e):
            print(f"  ✗ {e}")

    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
