from uuid import UUID, uuid4

from order_service.aggregate import OrderAggregate

ORDER_ID = str(uuid4())


def created_event(version=1):
    return {
        "event_type": "OrderCreated",
        "event_data": {
            "order_id": ORDER_ID,
            "owner_id": "user-1",
            "items": [{"product_id": str(uuid4()), "product_name": "Widget", "quantity": 2, "price": 5.0}],
            "total_amount": 10.0,
            "shipping_address": {"city": "Osaka"},
            "timestamp": "2026-01-01T00:00:00Z",
        },
        "version": version,
    }


def test_created_starts_pending_with_single_history_entry():
    agg = OrderAggregate.from_events([created_event()])
    assert agg.id == UUID(ORDER_ID)
    assert agg.owner_id == "user-1"
    assert agg.status == "pending"
    assert agg.total_amount == 10.0
    assert agg.shipping_address == {"city": "Osaka"}
    assert agg.status_history == [
        {"status": "pending", "timestamp": "2026-01-01T00:00:00Z", "note": None}
    ]
    assert agg.version == 1


def test_replay_appends_history_in_order():
    events = [
        created_event(),
        {
            "event_type": "OrderStatusUpdated",
            "event_data": {"order_id": ORDER_ID, "status": "processing", "note": "packing", "timestamp": "t2"},
            "version": 2,
        },
        {
            "event_type": "OrderStatusUpdated",
            "event_data": {"order_id": ORDER_ID, "status": "processing", "note": None, "timestamp": "t3"},
            "version": 3,
        },
    ]
    agg = OrderAggregate.from_events(events)
    assert agg.status == "processing"
    assert [h["status"] for h in agg.status_history] == ["pending", "processing", "processing"]
    assert agg.status_history[1]["note"] == "packing"
    assert agg.version == 3


def test_cancelled_event():
    events = [
        created_event(),
        {
            "event_type": "OrderCancelled",
            "event_data": {"order_id": ORDER_ID, "note": "Order cancelled by user", "timestamp": "t2"},
            "version": 2,
        },
    ]
    agg = OrderAggregate.from_events(events)
    assert agg.status == "cancelled"
    assert agg.status_history[-1] == {"status": "cancelled", "timestamp": "t2", "note": "Order cancelled by user"}


def test_unknown_event_is_ignored():
    agg = OrderAggregate.from_events([created_event(), {"event_type": "Other", "event_data": {}, "version": 2}])
    assert agg.status == "pending"
    assert agg.version == 2


def test_visibility():
    agg = OrderAggregate.from_events([created_event()])
    assert agg.is_visible_to("user-1", "user")
    assert agg.is_visible_to("someone-else", "admin")
    assert not agg.is_visible_to("someone-else", "user")
