"""
Order Service - 注文集約 (Order Aggregate)

集約の状態はイベントをリプレイして復元する。
ステータス履歴はイベント列そのものの投影なので、
履歴の最後のエントリは常に現在のステータスと一致する。

apply_xxx メソッド: 各イベントを適用して状態を変更する
"""

from uuid import UUID


class OrderAggregate:
    """
    注文集約 - イベントから現在の状態を再構築する。

    状態遷移:
        任意 → 任意のステータス    (管理者によるステータス更新、遷移元は制限しない)
        pending → cancelled        (キャンセル、在庫を戻す)
    """

    def __init__(self) -> None:
        self.id: UUID | None = None
        self.owner_id: str = ""
        self.items: list[dict] = []
        self.total_amount: float = 0
        self.status: str = "unknown"
        self.status_history: list[dict] = []
        self.shipping_address: dict | None = None
        self.created_at: str | None = None
        self.version: int = 0

    def is_visible_to(self, requester_id: str, requester_role: str) -> bool:
        return requester_role == "admin" or self.owner_id == requester_id

    # ── イベント適用メソッド ──────────────────────────

    def apply_order_created(self, data: dict) -> None:
        self.id = UUID(data["order_id"])
        self.owner_id = data["owner_id"]
        self.items = data["items"]
        self.total_amount = data["total_amount"]
        self.shipping_address = data.get("shipping_address")
        self.created_at = data["timestamp"]
        self.status = "pending"
        self.status_history = [
            {"status": "pending", "timestamp": data["timestamp"], "note": None}
        ]

    def apply_order_status_updated(self, data: dict) -> None:
        self.status = data["status"]
        self.status_history.append(
            {"status": data["status"], "timestamp": data["timestamp"], "note": data.get("note")}
        )

    def apply_order_cancelled(self, data: dict) -> None:
        self.status = "cancelled"
        self.status_history.append(
            {"status": "cancelled", "timestamp": data["timestamp"], "note": data["note"]}
        )

    # ── イベントリプレイ ─────────────────────────────

    def apply_event(self, event_type: str, event_data: dict) -> None:
        """イベントタイプに応じた apply メソッドを呼び出す。"""
        handler = {
            "OrderCreated": self.apply_order_created,
            "OrderStatusUpdated": self.apply_order_status_updated,
            "OrderCancelled": self.apply_order_cancelled,
        }.get(event_type)
        if handler:
            handler(event_data)

    @classmethod
    def from_events(cls, events: list[dict]) -> "OrderAggregate":
        """イベント列から集約を再構築する。"""
        agg = cls()
        for e in events:
            agg.apply_event(e["event_type"], e["event_data"])
            agg.version = e["version"]
        return agg
