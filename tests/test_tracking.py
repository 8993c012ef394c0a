"""Tests for tracking id generation."""

from __future__ import annotations

from datetime import datetime, UTC

import pytest

from storefront.order import base36, is_tracking_id, new_tracking_id


class TestTrackingId:
    """Tests for new_tracking_id / base36."""

    def test_format(self) -> None:
        tracking_id = new_tracking_id()
        prefix, stamp, suffix = tracking_id.split("-")
        assert prefix == "ORD"
        assert len(suffix) == 6
        assert tracking_id == tracking_id.upper()
        assert is_tracking_id(tracking_id)

    def test_time_component(self) -> None:
        at = datetime(2026, 1, 1, tzinfo=UTC)
        stamp = new_tracking_id(at=at).split("-")[1]
        assert int(stamp, 36) == int(at.timestamp() * 1000)

    def test_custom_prefix(self) -> None:
        tracking_id = new_tracking_id("SHOP")
        assert tracking_id.startswith("SHOP-")
        assert is_tracking_id(tracking_id, "SHOP")
        assert not is_tracking_id(tracking_id)

    def test_not_sequential(self) -> None:
        """Same millisecond, different ids."""
        at = datetime(2026, 1, 1, tzinfo=UTC)
        ids = {new_tracking_id(at=at) for _ in range(50)}
        assert len(ids) > 45

    @pytest.mark.parametrize(("value", "expected"), [(0, "0"), (35, "Z"), (36, "10"), (1295, "ZZ")])
    def test_base36(self, value: int, expected: str) -> None:
        assert base36(value) == expected

    def test_base36_negative(self) -> None:
        with pytest.raises(ValueError):
            base36(-1)
