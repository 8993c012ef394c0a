"""
Order store — CRUD, filtered queries and conditional status writes.
"""

from __future__ import annotations

import asyncio
import itertools
from dataclasses import replace
from typing import Protocol

from kungfu import Result, Ok

from storefront._types import OrderId
from storefront.errors import StoreError
from storefront.order._types import Order, OrderFilter

# ═══════════════════════════════════════════════════════════════════════════════
# Store Protocol
# ═══════════════════════════════════════════════════════════════════════════════


class OrderStore(Protocol):
    """
    Order persistence.

    Note: replace_if() is a compare-and-set on the order version.
    Query results are ordered newest first.
    """

    async def insert(self, order: Order) -> Result[Order | None, StoreError]:
        """Persist a new order and assign its id. Ok(None) if tracking_id is taken."""
        ...

    async def get(self, order_id: OrderId) -> Result[Order | None, StoreError]:
        ...

    async def get_by_tracking(self, tracking_id: str) -> Result[Order | None, StoreError]:
        ...

    async def find(
        self,
        where: OrderFilter,
        limit: int | None = None,
        offset: int = 0,
    ) -> Result[list[Order], StoreError]:
        """Matching orders, newest first. limit=None returns all."""
        ...

    async def count(self, where: OrderFilter) -> Result[int, StoreError]:
        ...

    async def replace_if(self, order: Order, expected_version: int) -> Result[bool, StoreError]:
        """Write order only if the stored version is still expected_version. Ok(False) if it moved."""
        ...

    async def delete(self, order_id: OrderId) -> Result[bool, StoreError]:
        ...


def matches(order: Order, where: OrderFilter) -> bool:
    return (
        (where.user_id is None or order.user_id == where.user_id)
        and (where.shop_id is None or order.shop_id == where.shop_id)
        and (where.status is None or order.status is where.status)
        and (where.payment_status is None or order.payment_status is where.payment_status)
        and (where.since is None or order.created_at >= where.since)
    )


# ═══════════════════════════════════════════════════════════════════════════════
# Memory Store
# ═══════════════════════════════════════════════════════════════════════════════


class MemoryOrderStore:
    """In-memory order store. Single lock; orders are small immutable values."""

    def __init__(self) -> None:
        self._orders: dict[OrderId, Order] = {}
        self._by_tracking: dict[str, OrderId] = {}
        self._ids = itertools.count(1)
        self._lock = asyncio.Lock()

    async def insert(self, order: Order) -> Result[Order | None, StoreError]:
        async with self._lock:
            if order.tracking_id in self._by_tracking:
                return Ok(None)
            stored = replace(order, id=next(self._ids))
            self._orders[stored.id] = stored
            self._by_tracking[stored.tracking_id] = stored.id
            return Ok(stored)

    async def get(self, order_id: OrderId) -> Result[Order | None, StoreError]:
        return Ok(self._orders.get(order_id))

    async def get_by_tracking(self, tracking_id: str) -> Result[Order | None, StoreError]:
        order_id = self._by_tracking.get(tracking_id)
        return Ok(self._orders.get(order_id) if order_id is not None else None)

    def _matching(self, where: OrderFilter) -> list[Order]:
        found = [o for o in self._orders.values() if matches(o, where)]
        return sorted(found, key=lambda o: (o.created_at, o.id), reverse=True)

    async def find(
        self,
        where: OrderFilter,
        limit: int | None = None,
        offset: int = 0,
    ) -> Result[list[Order], StoreError]:
        found = self._matching(where)
        end = None if limit is None else offset + limit
        return Ok(found[offset:end])

    async def count(self, where: OrderFilter) -> Result[int, StoreError]:
        return Ok(len(self._matching(where)))

    async def replace_if(self, order: Order, expected_version: int) -> Result[bool, StoreError]:
        async with self._lock:
            current = self._orders.get(order.id)
            if current is None or current.version != expected_version:
                return Ok(False)
            self._orders[order.id] = order
            return Ok(True)

    async def delete(self, order_id: OrderId) -> Result[bool, StoreError]:
        async with self._lock:
            order = self._orders.pop(order_id, None)
            if order is None:
                return Ok(False)
            self._by_tracking.pop(order.tracking_id, None)
            return Ok(True)


__all__ = (
    "OrderStore",
    "MemoryOrderStore",
    "matches",
)
