"""
Order Service - コマンドハンドラ (CQRS の Write 側)

コマンドは状態を変更する操作で、イベントを生成してストアに保存する。
同じトランザクション内でリードモデルと在庫台帳も更新する。

1つのコマンドは1トランザクション:
途中で失敗した場合はロールバックし、在庫の減算も含めて何も残さない。
コミット後に Redis Pub/Sub でイベントを発行する。
"""

import json
import logging
from datetime import datetime, timezone
from uuid import UUID, uuid4

import redis.asyncio as aioredis
from redis.exceptions import RedisError
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from . import event_store, stock
from .aggregate import OrderAggregate
from .errors import Forbidden, InsufficientStock, InvalidTransition, NotFound, ValidationError
from .events import (
    ORDER_STATUSES,
    LineItem,
    OrderCancelled,
    OrderCreated,
    OrderStatusUpdated,
)

logger = logging.getLogger(__name__)

CHANNEL = "order_events"


async def _publish(redis: aioredis.Redis, event_type: str, data: dict) -> None:
    # DB はコミット済みなので、発行失敗はリクエストを失敗させない
    try:
        await redis.publish(CHANNEL, json.dumps({
            "event_type": event_type,
            "data": data,
        }, default=str))
    except RedisError:
        logger.exception("Failed to publish %s for order %s", event_type, data.get("order_id"))


async def _load(session: AsyncSession, order_id: UUID) -> OrderAggregate:
    events = await event_store.load_events(session, order_id)
    if not events:
        raise NotFound("Order not found")
    return OrderAggregate.from_events(events)


async def _update_read_model(session: AsyncSession, agg: OrderAggregate, now: str) -> None:
    await session.execute(
        text("""
            UPDATE orders_read_model
            SET status = :status, status_history = :history, updated_at = :now
            WHERE id = :id
        """),
        {
            "id": str(agg.id),
            "status": agg.status,
            "history": json.dumps(agg.status_history),
            "now": now,
        },
    )


def _validate_items(items: list[dict]) -> None:
    if not items:
        raise ValidationError("Order must contain at least one item")
    for item in items:
        quantity = item.get("quantity")
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
            raise ValidationError("Quantity must be at least 1")


async def create_order(
    session: AsyncSession,
    redis: aioredis.Redis,
    owner_id: str,
    items: list[dict],
    shipping_address: dict | None = None,
) -> OrderAggregate:
    """
    注文作成コマンド

    1. 明細ごとに商品の存在と在庫を確認し、合計を積み上げて在庫を減算
    2. OrderCreated イベントをイベントストアに保存
    3. リードモデルを作成
    4. コミットして Redis Pub/Sub でイベントを発行

    items: [{"product": UUID, "quantity": int}, ...]（順序どおりに処理する）
    """
    _validate_items(items)
    order_id = uuid4()

    try:
        total_amount = 0
        line_items: list[LineItem] = []
        for item in items:
            product = await stock.get_product(session, item["product"])
            if product is None:
                raise NotFound(f"Product not found: {item['product']}")
            if item["quantity"] > product["stock"]:
                raise InsufficientStock(f"Insufficient stock for product: {product['name']}")

            total_amount += product["price"] * item["quantity"]
            await stock.decrement_stock(session, item["product"], item["quantity"])
            line_items.append(LineItem(
                product_id=item["product"],
                product_name=product["name"],
                quantity=item["quantity"],
                price=product["price"],
            ))

        event_data = OrderCreated(
            order_id=order_id,
            owner_id=owner_id,
            items=line_items,
            total_amount=total_amount,
            shipping_address=shipping_address,
            timestamp=datetime.now(timezone.utc),
        ).model_dump(mode="json")

        version = await event_store.append_event(
            session, order_id, "Order", "OrderCreated", event_data, 0
        )
        agg = OrderAggregate()
        agg.apply_order_created(event_data)
        agg.version = version

        await session.execute(
            text("""
                INSERT INTO orders_read_model
                    (id, owner_id, items, total_amount, status, status_history,
                     shipping_address, created_at, updated_at)
                VALUES
                    (:id, :owner_id, :items, :total_amount, 'pending', :history,
                     :shipping_address, :now, :now)
            """),
            {
                "id": str(order_id),
                "owner_id": owner_id,
                "items": json.dumps([
                    {
                        "product": i["product_id"],
                        "productName": i["product_name"],
                        "quantity": i["quantity"],
                        "price": i["price"],
                    }
                    for i in event_data["items"]
                ]),
                "total_amount": total_amount,
                "history": json.dumps(agg.status_history),
                "shipping_address": json.dumps(shipping_address) if shipping_address else None,
                "now": event_data["timestamp"],
            },
        )
        await session.commit()
    except Exception:
        await session.rollback()
        raise

    logger.info("Order %s created by %s (total=%s)", order_id, owner_id, total_amount)
    await _publish(redis, "OrderCreated", event_data)
    return agg


async def update_order_status(
    session: AsyncSession,
    redis: aioredis.Redis,
    order_id: UUID,
    status: str,
    note: str | None = None,
) -> OrderAggregate:
    """
    ステータス更新コマンド（管理者専用。認可は HTTP 層で行う）

    遷移元は制限しない。同じステータスへの更新でも必ず履歴に追記する。
    """
    if status not in ORDER_STATUSES:
        raise ValidationError(f"Invalid status: {status}")

    try:
        agg = await _load(session, order_id)
        event_data = OrderStatusUpdated(
            order_id=order_id,
            status=status,
            note=note,
            timestamp=datetime.now(timezone.utc),
        ).model_dump(mode="json")

        version = await event_store.append_event(
            session, order_id, "Order", "OrderStatusUpdated", event_data, agg.version
        )
        agg.apply_order_status_updated(event_data)
        agg.version = version

        await _update_read_model(session, agg, event_data["timestamp"])
        await session.commit()
    except Exception:
        await session.rollback()
        raise

    logger.info("Order %s status set to %s", order_id, status)
    await _publish(redis, "OrderStatusUpdated", event_data)
    return agg


async def cancel_order(
    session: AsyncSession,
    redis: aioredis.Redis,
    order_id: UUID,
    requester_id: str,
    requester_role: str,
) -> OrderAggregate:
    """
    注文キャンセルコマンド（所有者または管理者）

    pending の注文のみキャンセルできる。
    明細ごとに在庫を戻す（注文作成時の減算に対する補償）。
    """
    try:
        agg = await _load(session, order_id)
        if not agg.is_visible_to(requester_id, requester_role):
            raise Forbidden("Not authorized to cancel this order")
        if agg.status != "pending":
            raise InvalidTransition("Can only cancel pending orders")

        skipped: list[str] = []
        for item in agg.items:
            restored = await stock.increment_stock(
                session, UUID(item["product_id"]), item["quantity"]
            )
            if not restored:
                # 削除済みの商品は戻し先がないのでスキップする
                logger.warning(
                    "Product %s no longer exists; stock not restored for order %s",
                    item["product_id"], order_id,
                )
                skipped.append(item["product_id"])

        event_data = OrderCancelled(
            order_id=order_id,
            skipped_products=skipped,
            timestamp=datetime.now(timezone.utc),
        ).model_dump(mode="json")

        version = await event_store.append_event(
            session, order_id, "Order", "OrderCancelled", event_data, agg.version
        )
        agg.apply_order_cancelled(event_data)
        agg.version = version

        await _update_read_model(session, agg, event_data["timestamp"])
        await session.commit()
    except Exception:
        await session.rollback()
        raise

    logger.info("Order %s cancelled by %s", order_id, requester_id)
    await _publish(redis, "OrderCancelled", event_data)
    return agg
