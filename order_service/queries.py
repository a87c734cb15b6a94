"""
Order Service - クエリハンドラ (CQRS の Read 側)

読み取りはリードモデル(orders_read_model)から行う。
リードモデルはコマンドと同じトランザクションで更新される。
"""

import json
from uuid import UUID

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from .errors import Forbidden, NotFound


def _order_to_dict(row) -> dict:
    return {
        "id": str(row.id),
        "owner": row.owner_id,
        "items": json.loads(row.items),
        "totalAmount": float(row.total_amount),
        "status": row.status,
        "statusHistory": json.loads(row.status_history),
        "shippingAddress": json.loads(row.shipping_address) if row.shipping_address else None,
        "createdAt": row.created_at,
        "updatedAt": row.updated_at,
    }


async def get_order(session: AsyncSession, order_id: UUID) -> dict | None:
    """リードモデルから注文を取得する。"""
    result = await session.execute(
        text("SELECT * FROM orders_read_model WHERE id = :id"),
        {"id": str(order_id)},
    )
    row = result.fetchone()
    if not row:
        return None
    return _order_to_dict(row)


async def get_order_for(
    session: AsyncSession,
    order_id: UUID,
    requester_id: str,
    requester_role: str,
) -> dict:
    """管理者または所有者だけが参照できる。"""
    order = await get_order(session, order_id)
    if order is None:
        raise NotFound("Order not found")
    if requester_role != "admin" and order["owner"] != requester_id:
        raise Forbidden("Not authorized to access this order")
    return order


async def list_orders(
    session: AsyncSession,
    requester_id: str,
    requester_role: str,
) -> list[dict]:
    """管理者は全注文、それ以外は自分の注文のみ（ページングなし）。"""
    if requester_role == "admin":
        result = await session.execute(
            text("SELECT * FROM orders_read_model ORDER BY created_at DESC, id"),
        )
    else:
        result = await session.execute(
            text("""
                SELECT * FROM orders_read_model
                WHERE owner_id = :owner_id
                ORDER BY created_at DESC, id
            """),
            {"owner_id": requester_id},
        )
    return [_order_to_dict(row) for row in result.fetchall()]


async def list_products(session: AsyncSession) -> list[dict]:
    result = await session.execute(
        text("SELECT id, name, price, stock, updated_at FROM products ORDER BY name"),
    )
    return [
        {
            "id": str(row.id),
            "name": row.name,
            "price": float(row.price),
            "stock": row.stock,
            "updatedAt": row.updated_at,
        }
        for row in result.fetchall()
    ]
