"""
SQLAlchemy cart store — JSON line document guarded by a version column.

    sessions, _ = await create_database()
    store = SQLAlchemyCartStore(sessions, retries=settings.cart_write_retries)

Every write is `UPDATE carts ... WHERE id = :id AND version = :seen`.
A zero rowcount means someone else wrote first: re-read and re-apply.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Any, cast

from kungfu import Result, Ok, Error
from sqlalchemy import select, update as sql_update, delete as sql_delete
from sqlalchemy.engine import CursorResult
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from storefront.cart._store import Mutation, MergeMutation
from storefront.cart._types import Cart, CartKey, CartLine
from storefront.db import CartTable
from storefront.errors import StoreError


class _StaleWrite(Exception):
    """Version moved between read and write."""


def _lines_to_json(lines: tuple[CartLine, ...]) -> list[dict[str, Any]]:
    return [
        {"product_id": line.product_id, "quantity": line.quantity, "variant_id": line.variant_id}
        for line in lines
    ]


def _to_cart(row: CartTable) -> Cart:
    return Cart(
        key=CartKey(row.shop_id, row.user_id),
        lines=tuple(
            CartLine(
                product_id=int(item["product_id"]),
                quantity=int(item["quantity"]),
                variant_id=item.get("variant_id"),
            )
            for item in row.lines
        ),
        created_at=row.created_at,
        updated_at=row.updated_at,
        version=row.version,
    )


class SQLAlchemyCartStore:
    """
    Cart store over the `carts` table.

    Note: optimistic concurrency. Lost updates are impossible; a writer that
    keeps losing the race gets a StoreError after `retries` attempts.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        retries: int = 5,
    ) -> None:
        self._session_factory = session_factory
        self._retries = retries

    @staticmethod
    async def _load(session: AsyncSession, key: CartKey) -> CartTable | None:
        stmt = select(CartTable).where(
            CartTable.shop_id == key.shop_id,
            CartTable.user_id == key.user_id,
        )
        return (await session.execute(stmt)).scalar_one_or_none()

    @staticmethod
    async def _write(session: AsyncSession, row: CartTable | None, cart: Cart) -> Cart:
        """Insert or version-checked update. Raises _StaleWrite on a lost race."""
        if row is None:
            session.add(CartTable(
                shop_id=cart.key.shop_id,
                user_id=cart.key.user_id,
                lines=_lines_to_json(cart.lines),
                version=1,
                created_at=cart.created_at,
                updated_at=cart.updated_at,
            ))
            try:
                await session.flush()
            except IntegrityError as e:
                raise _StaleWrite() from e
            return replace(cart, version=1)

        stmt = (
            sql_update(CartTable)
            .where(CartTable.id == row.id, CartTable.version == row.version)
            .values(
                lines=_lines_to_json(cart.lines),
                version=row.version + 1,
                updated_at=cart.updated_at,
            )
            .execution_options(synchronize_session=False)
        )
        cursor = cast(CursorResult[Any], await session.execute(stmt))
        if cursor.rowcount == 0:
            raise _StaleWrite()
        return replace(cart, version=row.version + 1)

    async def get(self, key: CartKey) -> Result[Cart | None, StoreError]:
        try:
            async with self._session_factory() as session:
                row = await self._load(session, key)
                return Ok(_to_cart(row) if row is not None else None)

        except Exception as e:
            return Error(StoreError(f"Failed to get cart: {e}", e))

    async def update(self, key: CartKey, fn: Mutation) -> Result[Cart | None, StoreError]:
        try:
            for _ in range(self._retries):
                async with self._session_factory() as session:
                    row = await self._load(session, key)
                    current = _to_cart(row) if row is not None else None
                    updated = fn(current)
                    if updated is None:
                        return Ok(current)
                    try:
                        stored = await self._write(session, row, updated)
                    except _StaleWrite:
                        await session.rollback()
                        continue
                    await session.commit()
                    return Ok(stored)

            return Error(StoreError(f"Cart {key} kept changing, gave up after {self._retries} attempts"))

        except Exception as e:
            return Error(StoreError(f"Failed to update cart: {e}", e))

    async def merge_from(
        self,
        source: CartKey,
        target: CartKey,
        fn: MergeMutation,
    ) -> Result[Cart | None, StoreError]:
        try:
            for _ in range(self._retries):
                async with self._session_factory() as session:
                    src_row = await self._load(session, source)
                    tgt_row = await self._load(session, target)
                    src = _to_cart(src_row) if src_row is not None else None
                    tgt = _to_cart(tgt_row) if tgt_row is not None else None

                    if source == target:
                        return Ok(tgt)

                    try:
                        merged = fn(src, tgt)
                        if merged is not None:
                            tgt = await self._write(session, tgt_row, merged)
                        if src_row is not None:
                            stmt = sql_delete(CartTable).where(
                                CartTable.id == src_row.id,
                                CartTable.version == src_row.version,
                            )
                            cursor = cast(CursorResult[Any], await session.execute(stmt))
                            if cursor.rowcount == 0:
                                raise _StaleWrite()
                    except _StaleWrite:
                        await session.rollback()
                        continue

                    # Merge and source delete land in one commit
                    await session.commit()
                    return Ok(tgt)

            return Error(StoreError(f"Cart {source} → {target} kept changing, gave up after {self._retries} attempts"))

        except Exception as e:
            return Error(StoreError(f"Failed to merge carts: {e}", e))

    async def delete(self, key: CartKey) -> Result[bool, StoreError]:
        try:
            async with self._session_factory() as session:
                stmt = sql_delete(CartTable).where(
                    CartTable.shop_id == key.shop_id,
                    CartTable.user_id == key.user_id,
                )
                cursor = cast(CursorResult[Any], await session.execute(stmt))
                await session.commit()
                return Ok(cursor.rowcount > 0)

        except Exception as e:
            return Error(StoreError(f"Failed to delete cart: {e}", e))


__all__ = ("SQLAlchemyCartStore",)
