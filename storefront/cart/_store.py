"""
Cart store — keyed persistence with atomic read-modify-write.

Every mutation goes through update() / merge_from(): the store reads the
current value, applies a pure function and writes the result as one unit.
Two racing adds on the same key can therefore never lose an update.
"""

from __future__ import annotations

import asyncio
from contextlib import AsyncExitStack, asynccontextmanager
from collections.abc import AsyncIterator, Callable
from typing import Protocol

from kungfu import Result, Ok

from storefront.cart._types import Cart, CartKey
from storefront.errors import StoreError

type Mutation = Callable[[Cart | None], Cart | None]
"""Current cart (None if absent) → cart to write (None: write nothing)."""

type MergeMutation = Callable[[Cart | None, Cart | None], Cart | None]
"""(source, target) → new target (None: write nothing)."""


# ═══════════════════════════════════════════════════════════════════════════════
# Store Protocol
# ═══════════════════════════════════════════════════════════════════════════════


class CartStore(Protocol):
    """
    Keyed CRUD on (shop_id, user_id) → Cart.

    Note: update() and merge_from() must be atomic per key.
    """

    async def get(self, key: CartKey) -> Result[Cart | None, StoreError]:
        """Stored cart, Ok(None) if absent."""
        ...

    async def update(self, key: CartKey, fn: Mutation) -> Result[Cart | None, StoreError]:
        """Apply fn atomically. Returns the cart as stored afterwards."""
        ...

    async def merge_from(
        self,
        source: CartKey,
        target: CartKey,
        fn: MergeMutation,
    ) -> Result[Cart | None, StoreError]:
        """
        Atomically write target = fn(source, target) and delete source.

        Returns the target cart as stored afterwards.
        """
        ...

    async def delete(self, key: CartKey) -> Result[bool, StoreError]:
        """Delete cart. Returns Ok(True) if existed."""
        ...


# ═══════════════════════════════════════════════════════════════════════════════
# Memory Store
# ═══════════════════════════════════════════════════════════════════════════════


class MemoryCartStore:
    """
    In-memory cart store.

    Note: per-key asyncio.Lock, dropped once no caller holds or waits on it.
    Multi-key sections take locks in key order.
    """

    def __init__(self) -> None:
        self._carts: dict[CartKey, Cart] = {}
        self._locks: dict[CartKey, asyncio.Lock] = {}
        self._users: dict[CartKey, int] = {}

    @asynccontextmanager
    async def _locked(self, *keys: CartKey) -> AsyncIterator[None]:
        ordered = sorted(set(keys))
        for key in ordered:
            self._users[key] = self._users.get(key, 0) + 1
            self._locks.setdefault(key, asyncio.Lock())
        try:
            async with AsyncExitStack() as stack:
                for key in ordered:
                    await stack.enter_async_context(self._locks[key])
                yield
        finally:
            for key in ordered:
                self._users[key] -= 1
                if not self._users[key]:
                    del self._users[key]
                    del self._locks[key]

    async def get(self, key: CartKey) -> Result[Cart | None, StoreError]:
        return Ok(self._carts.get(key))

    async def update(self, key: CartKey, fn: Mutation) -> Result[Cart | None, StoreError]:
        async with self._locked(key):
            current = self._carts.get(key)
            updated = fn(current)
            if updated is None:
                return Ok(current)
            self._carts[key] = updated
            return Ok(updated)

    async def merge_from(
        self,
        source: CartKey,
        target: CartKey,
        fn: MergeMutation,
    ) -> Result[Cart | None, StoreError]:
        if source == target:
            return Ok(self._carts.get(target))

        async with self._locked(source, target):
            src = self._carts.get(source)
            tgt = self._carts.get(target)
            merged = fn(src, tgt)
            if merged is not None:
                self._carts[target] = merged
                tgt = merged
            self._carts.pop(source, None)
            return Ok(tgt)

    async def delete(self, key: CartKey) -> Result[bool, StoreError]:
        async with self._locked(key):
            return Ok(self._carts.pop(key, None) is not None)


__all__ = (
    "Mutation",
    "MergeMutation",
    "CartStore",
    "MemoryCartStore",
)
