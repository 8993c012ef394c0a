"""
Checkout — places orders from carts and applies payment callbacks.

    from storefront import checkout as X

    checkout = X.Checkout(carts, orders, catalog, gateway)
    await checkout.place_order(key, shipping_address=addr)
    await checkout.handle_payment_event(
        X.PaymentEvent("evt_1", tracking_id, X.PaymentOutcome.SUCCEEDED, "card"),
    )
"""

from storefront.checkout._saga import (
    Compensator,
    SagaStep,
    Rollback,
    step,
    from_result,
    from_async,
    Saga,
)
from storefront.checkout._gateway import (
    PaymentGateway,
    PaymentOutcome,
    PaymentEvent,
)
from storefront.checkout._checkout import (
    CheckoutResult,
    Checkout,
)

__all__ = (
    # Saga
    "Compensator",
    "SagaStep",
    "Rollback",
    "step",
    "from_result",
    "from_async",
    "Saga",
    # Gateway
    "PaymentGateway",
    "PaymentOutcome",
    "PaymentEvent",
    # Checkout
    "CheckoutResult",
    "Checkout",
)
