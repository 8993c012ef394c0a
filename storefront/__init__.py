"""
storefront — multi-tenant cart → order pipeline.

    from storefront import catalog as K    # Products and variants
    from storefront import variants as V   # Attribute picker resolution
    from storefront import cart as C       # Cart engine and stores
    from storefront import order as O      # Orders and their state machine
    from storefront import checkout as X   # Cart → order → payment
    from storefront import pricing as P    # Unit price / subtotal math
"""

from storefront import catalog
from storefront import variants
from storefront import pricing
from storefront import cart
from storefront import order
from storefront import checkout
from storefront._types import (
    Money,
    ShopId,
    UserId,
    ProductId,
    OrderId,
    VariantId,
    money,
    quantize,
)
from storefront.config import Settings
from storefront.errors import ErrorKind, FieldError, PipelineError, StoreError
from storefront.log import configure_logging

__version__ = "0.1.0"

__all__ = (
    "catalog",
    "variants",
    "pricing",
    "cart",
    "order",
    "checkout",
    "Money",
    "ShopId",
    "UserId",
    "ProductId",
    "OrderId",
    "VariantId",
    "money",
    "quantize",
    "Settings",
    "ErrorKind",
    "FieldError",
    "PipelineError",
    "StoreError",
    "configure_logging",
)
