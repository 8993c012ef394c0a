"""
Variants — attribute picker resolution.

    from storefront import variants as V

    V.available_attributes(product.variants, {"color": "red"})
    # {"color": ["red"], "size": ["S", "M"]}

    V.resolve(product.variants, {"color": "red", "size": "M"})
    # Variant(...) or None
"""

from storefront.variants._resolve import (
    Selection,
    attribute_keys,
    attribute_values,
    available_values,
    available_attributes,
    is_complete,
    resolve,
    toggle,
    default_variant,
)

__all__ = (
    "Selection",
    "attribute_keys",
    "attribute_values",
    "available_values",
    "available_attributes",
    "is_complete",
    "resolve",
    "toggle",
    "default_variant",
)
