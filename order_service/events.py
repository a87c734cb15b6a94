"""
Order Service - イベント定義

注文で発生した事実(イベント)を定義する。
イベントは過去形で命名し、不変(immutable)として扱う。
event_store には model_dump(mode="json") した dict を保存する。
"""

from datetime import datetime
from typing import Literal, get_args
from uuid import UUID

from pydantic import BaseModel

OrderStatus = Literal["pending", "processing", "shipped", "delivered", "cancelled"]
ORDER_STATUSES: tuple[str, ...] = get_args(OrderStatus)

CANCEL_NOTE = "Order cancelled by user"


class LineItem(BaseModel):
    """注文明細。価格と商品名は注文時点のスナップショット。"""
    product_id: UUID
    product_name: str
    quantity: int
    price: float


class OrderCreated(BaseModel):
    """注文が作成された"""
    order_id: UUID
    owner_id: str
    items: list[LineItem]
    total_amount: float
    shipping_address: dict | None = None
    timestamp: datetime


class OrderStatusUpdated(BaseModel):
    """管理者がステータスを更新した"""
    order_id: UUID
    status: OrderStatus
    note: str | None = None
    timestamp: datetime


class OrderCancelled(BaseModel):
    """注文がキャンセルされ、在庫が戻された"""
    order_id: UUID
    note: str = CANCEL_NOTE
    skipped_products: list[UUID] = []
    timestamp: datetime
