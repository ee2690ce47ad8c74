from decimal import Decimal

from app.services.change_feed import ChangeEvent, ChangeNotifier, get_notifier
from app.services.order_service import OrderUpdate, update_order
from app.version import API_PREFIX
from models import db
from models.order import Order


def new_order(user_id, status="confirmed"):
    return Order(user_id=user_id, status=status, subtotal=Decimal("5"), tax=Decimal("0.40"),
                 shipping=Decimal("5.99"), total=Decimal("11.39"))


def _text(chunk):
    return chunk.decode() if isinstance(chunk, bytes) else chunk


def test_notifier_filters_and_unsubscribes():
    notifier = ChangeNotifier()
    seen = []
    token = notifier.subscribe("orders", seen.append, user_id="u1")
    notifier.publish(ChangeEvent("orders", "update", {"id": "o1", "user_id": "u1"}))
    notifier.publish(ChangeEvent("orders", "update", {"id": "o2", "user_id": "u2"}))
    notifier.publish(ChangeEvent("product_reviews", "insert", {"id": "r1", "user_id": "u1"}))
    assert [e.row["id"] for e in seen] == ["o1"]
    assert notifier.unsubscribe(token) is True
    notifier.publish(ChangeEvent("orders", "update", {"id": "o3", "user_id": "u1"}))
    assert len(seen) == 1
    assert notifier.subscriber_count() == 0


def test_relay_carries_changes_to_another_worker():
    # two notifiers stand in for two worker processes sharing a bus
    bus = []
    worker_a = ChangeNotifier(relay=lambda change: bus.append(change.to_dict()))
    worker_b = ChangeNotifier()
    seen_on_b = []
    worker_b.subscribe("orders", seen_on_b.append, user_id="u1")

    worker_a.publish(ChangeEvent("orders", "update", {"id": "o1", "user_id": "u1", "status": "shipped"}))
    for message in bus:
        worker_b.deliver(ChangeEvent.from_dict(message))

    assert [e.row for e in seen_on_b] == [{"id": "o1", "user_id": "u1", "status": "shipped"}]


def test_relay_failure_is_logged_and_local_delivery_still_happens(caplog):
    def broken_bus(change):
        raise ConnectionError("bus down")

    notifier = ChangeNotifier(relay=broken_bus)
    seen = []
    notifier.subscribe("orders", seen.append)
    assert notifier.publish(ChangeEvent("orders", "insert", {"id": "o1"})) == 1
    assert len(seen) == 1
    assert any("Failed to relay" in r.getMessage() for r in caplog.records)


def test_failing_handler_does_not_break_others(caplog):
    notifier = ChangeNotifier()
    seen = []

    def explode(change):
        raise RuntimeError("subscriber bug")

    notifier.subscribe("orders", explode)
    notifier.subscribe("orders", seen.append)
    assert notifier.publish(ChangeEvent("orders", "insert", {"id": "o1"})) == 2
    assert len(seen) == 1


def test_committed_changes_are_published(app, login):
    user_id, _ = login()
    seen = []
    token = get_notifier().subscribe("orders", seen.append)
    try:
        order = new_order(user_id)
        db.session.add(order)
        db.session.commit()
        update_order(order.id, OrderUpdate(status="shipped"))
        db.session.commit()
    finally:
        get_notifier().unsubscribe(token)
    assert [(e.op, e.row["status"]) for e in seen] == [("insert", "confirmed"), ("update", "shipped")]
    assert seen[0].row["id"] == order.id


def test_rolled_back_changes_are_not_published(app, login):
    user_id, _ = login()
    seen = []
    token = get_notifier().subscribe("orders", seen.append)
    try:
        db.session.add(new_order(user_id))
        db.session.flush()
        db.session.rollback()
    finally:
        get_notifier().unsubscribe(token)
    assert seen == []


def test_admin_order_stream(client, login):
    user_id, _ = login()
    _, admin_hdr = login("admin@example.com", role="admin")
    notifier = get_notifier()
    before = notifier.subscriber_count()

    resp = client.get(f"{API_PREFIX}/admin/orders/stream", headers=admin_hdr)
    assert resp.status_code == 200
    assert resp.mimetype == "text/event-stream"
    stream = iter(resp.response)
    assert _text(next(stream)).startswith("event: ready")

    db.session.add(new_order(user_id))
    db.session.commit()
    chunk = _text(next(stream))
    assert chunk.startswith("event: change")
    assert '"table": "orders"' in chunk

    resp.close()
    assert notifier.subscriber_count() == before


def test_customer_stream_only_sees_own_orders(client, login):
    me, hdr = login("me@example.com")
    other, _ = login("other@example.com")

    resp = client.get(f"{API_PREFIX}/customer/orders/stream", headers=hdr)
    stream = iter(resp.response)
    next(stream)

    db.session.add(new_order(other))
    db.session.commit()
    # nothing for this viewer, so the next chunk is a keepalive
    assert _text(next(stream)).startswith(": keepalive")

    db.session.add(new_order(me))
    db.session.commit()
    assert _text(next(stream)).startswith("event: change")
    resp.close()
