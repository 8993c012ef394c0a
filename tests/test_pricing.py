"""Tests for unit price and total calculation."""

from __future__ import annotations

from decimal import Decimal

import pytest

from storefront import pricing as P
from storefront.catalog import MemoryCatalog, Product, Variant


class TestUnitPrice:
    """Tests for variant-first price/discount resolution."""

    async def test_base_product(self, catalog: MemoryCatalog) -> None:
        """Mug: 20 with 10% off."""
        mug = await catalog.get_product(1)
        assert mug is not None
        unit = P.unit_price(mug)
        assert unit.price == Decimal("20")
        assert unit.discount == Decimal("10")
        assert unit.final == Decimal("18")

    async def test_variant_overrides_price_and_discount(self, catalog: MemoryCatalog) -> None:
        shirt = await catalog.get_product(2)
        assert shirt is not None
        assert P.effective_price(shirt, "shirt-red-m") == Decimal("15")
        assert P.effective_discount(shirt, "shirt-red-m") == Decimal("0")
        assert P.final_unit_price(shirt, "shirt-blue-l") == Decimal("16.15")

    async def test_unknown_variant_falls_back_to_product(self, catalog: MemoryCatalog) -> None:
        shirt = await catalog.get_product(2)
        assert shirt is not None
        assert P.effective_price(shirt, "gone") == Decimal("25")

    @pytest.mark.parametrize(
        ("price", "discount", "expected"),
        [
            ("100", "0", "100"),
            ("100", "100", "0"),
            ("19.99", "15", "16.9915"),
            ("0.10", "33.3", "0.0667"),
        ],
    )
    def test_apply_discount_is_exact(self, price: str, discount: str, expected: str) -> None:
        assert P.apply_discount(Decimal(price), Decimal(discount)) == Decimal(expected)


class TestTotals:
    """Tests for subtotals and rounding."""

    def test_subtotal(self) -> None:
        unit = P.UnitPrice(Decimal("20"), Decimal("10"), Decimal("18"))
        assert P.line_subtotal(unit, 2) == Decimal("36")

    def test_total_rounds_once(self) -> None:
        """Three exact thirds sum to 1.00, not 0.99."""
        third = Decimal("1") / Decimal("3")
        assert P.total([third, third, third]) == Decimal("1.00")

    def test_total_half_up(self) -> None:
        assert P.total([Decimal("0.005")]) == Decimal("0.01")

    def test_total_empty(self) -> None:
        assert P.total([]) == Decimal("0.00")


class TestDiscountBounds:
    """Catalog rejects discounts outside [0, 100]."""

    def test_product_discount_out_of_range(self) -> None:
        with pytest.raises(ValueError):
            Product(id=1, shop_id=1, name="x", price=Decimal("1"), discount=Decimal("101"))

    def test_variant_discount_negative(self) -> None:
        with pytest.raises(ValueError):
            Variant({"size": "S"}, price=Decimal("1"), discount=Decimal("-1"))
