"""
Order Service - 在庫台帳 (Stock Ledger)

products テーブルの stock 列だけを扱う。
在庫が変化するのは注文作成（減算）とキャンセル（戻し）のみ。

減算は「確認して更新」を1文の条件付き UPDATE で行うため、
同時リクエストがあっても在庫がマイナスになることはない。
コミット/ロールバックは呼び出し側（commands）が行う。
"""

from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from .errors import InsufficientStock, NotFound


async def get_product(session: AsyncSession, product_id: UUID) -> dict | None:
    result = await session.execute(
        text("SELECT id, name, price, stock FROM products WHERE id = :id"),
        {"id": str(product_id)},
    )
    row = result.fetchone()
    if not row:
        return None
    return {
        "id": str(row.id),
        "name": row.name,
        "price": float(row.price),
        "stock": row.stock,
    }


async def get_stock(session: AsyncSession, product_id: UUID) -> int:
    product = await get_product(session, product_id)
    if product is None:
        raise NotFound(f"Product not found: {product_id}")
    return product["stock"]


async def decrement_stock(
    session: AsyncSession,
    product_id: UUID,
    amount: int,
) -> None:
    """
    在庫を amount だけ減らす。

    WHERE stock >= :qty により、在庫が足りない場合は1行も更新されない。
    その場合は何も変更せずに InsufficientStock を送出する。
    """
    result = await session.execute(
        text("""
            UPDATE products
            SET stock = stock - :qty, updated_at = :now
            WHERE id = :id AND stock >= :qty
        """),
        {
            "qty": amount,
            "now": datetime.now(timezone.utc).isoformat(),
            "id": str(product_id),
        },
    )
    if result.rowcount == 0:
        product = await get_product(session, product_id)
        if product is None:
            raise NotFound(f"Product not found: {product_id}")
        raise InsufficientStock(f"Insufficient stock for product: {product['name']}")


async def increment_stock(
    session: AsyncSession,
    product_id: UUID,
    amount: int,
) -> bool:
    """在庫を戻す。商品が削除済みなら False を返す（何も更新しない）。"""
    result = await session.execute(
        text("""
            UPDATE products
            SET stock = stock + :qty, updated_at = :now
            WHERE id = :id
        """),
        {
            "qty": amount,
            "now": datetime.now(timezone.utc).isoformat(),
            "id": str(product_id),
        },
    )
    return result.rowcount > 0
