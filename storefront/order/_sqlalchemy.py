"""
SQLAlchemy order store over the `orders` table.

State writes are `UPDATE orders ... WHERE id = :id AND version = :seen`, so a
write computed on a stale snapshot can never overwrite a newer one.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, cast

from kungfu import Result, Ok, Error
from sqlalchemy import Select, func, select, update as sql_update, delete as sql_delete
from sqlalchemy.engine import CursorResult
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from storefront._types import OrderId
from storefront.db import OrderTable
from storefront.errors import StoreError
from storefront.order._types import (
    Address,
    Order,
    OrderFilter,
    OrderLine,
    OrderStatus,
    PaymentStatus,
)

# ═══════════════════════════════════════════════════════════════════════════════
# Mapping
# ═══════════════════════════════════════════════════════════════════════════════


def _line_to_json(line: OrderLine) -> dict[str, Any]:
    return {
        "product_id": line.product_id,
        "product_name": line.product_name,
        "quantity": line.quantity,
        "unit_price": str(line.unit_price),
        "discount": str(line.discount),
        "subtotal": str(line.subtotal),
        "variant_id": line.variant_id,
        "variant_position": line.variant_position,
        "variant_attributes": dict(line.variant_attributes),
    }


def _line_from_json(data: dict[str, Any]) -> OrderLine:
    return OrderLine(
        product_id=int(data["product_id"]),
        product_name=data["product_name"],
        quantity=int(data["quantity"]),
        unit_price=Decimal(data["unit_price"]),
        discount=Decimal(data["discount"]),
        subtotal=Decimal(data["subtotal"]),
        variant_id=data.get("variant_id"),
        variant_position=data.get("variant_position"),
        variant_attributes=data.get("variant_attributes") or {},
    )


def _state_values(order: Order) -> dict[str, Any]:
    """Columns a transition may change."""
    return {
        "status": order.status.value,
        "payment_status": order.payment_status.value,
        "payment_method": order.payment_method,
        "admin_notes": order.admin_notes,
        "updated_at": order.updated_at,
        "shipped_at": order.shipped_at,
        "delivered_at": order.delivered_at,
        "cancelled_at": order.cancelled_at,
        "version": order.version,
    }


def _to_row(order: Order) -> OrderTable:
    return OrderTable(
        tracking_id=order.tracking_id,
        user_id=order.user_id,
        shop_id=order.shop_id,
        lines=[_line_to_json(line) for line in order.lines],
        total_amount=order.total_amount,
        discount_amount=order.discount_amount,
        tax_amount=order.tax_amount,
        shipping_amount=order.shipping_amount,
        final_amount=order.final_amount,
        shipping_address=order.shipping_address.model_dump(),
        billing_address=order.billing_address.model_dump(),
        notes=order.notes,
        created_at=order.created_at,
        **_state_values(order),
    )


def _to_order(row: OrderTable) -> Order:
    return Order(
        id=row.id,
        user_id=row.user_id,
        shop_id=row.shop_id,
        tracking_id=row.tracking_id,
        lines=tuple(_line_from_json(item) for item in row.lines),
        total_amount=row.total_amount,
        discount_amount=row.discount_amount,
        tax_amount=row.tax_amount,
        shipping_amount=row.shipping_amount,
        final_amount=row.final_amount,
        shipping_address=Address.model_validate(row.shipping_address),
        billing_address=Address.model_validate(row.billing_address),
        created_at=row.created_at,
        updated_at=row.updated_at,
        status=OrderStatus(row.status),
        payment_status=PaymentStatus(row.payment_status),
        payment_method=row.payment_method,
        notes=row.notes,
        admin_notes=row.admin_notes,
        shipped_at=row.shipped_at,
        delivered_at=row.delivered_at,
        cancelled_at=row.cancelled_at,
        version=row.version,
    )


def _filtered[S: Select[Any]](stmt: S, where: OrderFilter) -> S:
    if where.user_id is not None:
        stmt = stmt.where(OrderTable.user_id == where.user_id)
    if where.shop_id is not None:
        stmt = stmt.where(OrderTable.shop_id == where.shop_id)
    if where.status is not None:
        stmt = stmt.where(OrderTable.status == where.status.value)
    if where.payment_status is not None:
        stmt = stmt.where(OrderTable.payment_status == where.payment_status.value)
    if where.since is not None:
        stmt = stmt.where(OrderTable.created_at >= where.since)
    return stmt


# ═══════════════════════════════════════════════════════════════════════════════
# Store
# ═══════════════════════════════════════════════════════════════════════════════


class SQLAlchemyOrderStore:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def insert(self, order: Order) -> Result[Order | None, StoreError]:
        try:
            async with self._session_factory() as session:
                row = _to_row(order)
                session.add(row)
                try:
                    await session.commit()
                except IntegrityError:
                    # tracking_id is the only unique column a caller controls
                    await session.rollback()
                    return Ok(None)
                return Ok(_to_order(row))

        except Exception as e:
            return Error(StoreError(f"Failed to insert order: {e}", e))

    async def get(self, order_id: OrderId) -> Result[Order | None, StoreError]:
        try:
            async with self._session_factory() as session:
                row = await session.get(OrderTable, order_id)
                return Ok(_to_order(row) if row is not None else None)

        except Exception as e:
            return Error(StoreError(f"Failed to get order: {e}", e))

    async def get_by_tracking(self, tracking_id: str) -> Result[Order | None, StoreError]:
        try:
            async with self._session_factory() as session:
                stmt = select(OrderTable).where(OrderTable.tracking_id == tracking_id)
                row = (await session.execute(stmt)).scalar_one_or_none()
                return Ok(_to_order(row) if row is not None else None)

        except Exception as e:
            return Error(StoreError(f"Failed to get order by tracking id: {e}", e))

    async def find(
        self,
        where: OrderFilter,
        limit: int | None = None,
        offset: int = 0,
    ) -> Result[list[Order], StoreError]:
        try:
            async with self._session_factory() as session:
                stmt = (
                    _filtered(select(OrderTable), where)
                    .order_by(OrderTable.created_at.desc(), OrderTable.id.desc())
                    .offset(offset)
                )
                if limit is not None:
                    stmt = stmt.limit(limit)
                rows = (await session.execute(stmt)).scalars().all()
                return Ok([_to_order(row) for row in rows])

        except Exception as e:
            return Error(StoreError(f"Failed to query orders: {e}", e))

    async def count(self, where: OrderFilter) -> Result[int, StoreError]:
        try:
            async with self._session_factory() as session:
                stmt = _filtered(select(func.count()).select_from(OrderTable), where)
                return Ok(int((await session.execute(stmt)).scalar_one()))

        except Exception as e:
            return Error(StoreError(f"Failed to count orders: {e}", e))

    async def replace_if(self, order: Order, expected_version: int) -> Result[bool, StoreError]:
        try:
            async with self._session_factory() as session:
                stmt = (
                    sql_update(OrderTable)
                    .where(
                        OrderTable.id == order.id,
                        OrderTable.version == expected_version,
                    )
                    .values(**_state_values(order))
                    .execution_options(synchronize_session=False)
                )
                cursor = cast(CursorResult[Any], await session.execute(stmt))
                await session.commit()
                return Ok(cursor.rowcount > 0)

        except Exception as e:
            return Error(StoreError(f"Failed to update order: {e}", e))

    async def delete(self, order_id: OrderId) -> Result[bool, StoreError]:
        try:
            async with self._session_factory() as session:
                stmt = sql_delete(OrderTable).where(OrderTable.id == order_id)
                cursor = cast(CursorResult[Any], await session.execute(stmt))
                await session.commit()
                return Ok(cursor.rowcount > 0)

        except Exception as e:
            return Error(StoreError(f"Failed to delete order: {e}", e))


__all__ = ("SQLAlchemyOrderStore",)
