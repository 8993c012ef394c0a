"""
Catalog — products, variants and the store the pipeline reads them from.

    from storefront import catalog as K

    shirt = K.Product(
        id=1, shop_id=1, name="Shirt", price=Decimal("20"),
        variants=(K.Variant({"color": "red"}, price=Decimal("22"), stock_quantity=3),),
    )
    store = K.MemoryCatalog([shirt])
"""

from storefront.catalog._types import (
    ProductStatus,
    Variant,
    Product,
    new_variant_id,
)
from storefront.catalog._store import (
    CatalogStore,
    MemoryCatalog,
)

__all__ = (
    "ProductStatus",
    "Variant",
    "Product",
    "new_variant_id",
    "CatalogStore",
    "MemoryCatalog",
)
