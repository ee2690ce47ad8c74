from decimal import Decimal

from app.services.notifications import EmailSender
from app.tasks.notifications import send_order_notification_task
from models import db
from models.order import Order


class RecordingSender(EmailSender):
    def __init__(self):
        self.sent = []

    def send(self, to, subject, html):
        self.sent.append((to, subject, html))
        return "id-1"


def _order(email):
    order = Order(user_id="u1", status="shipped", subtotal=Decimal("1"), tax=Decimal("0.08"),
                  shipping=Decimal("5.99"), total=Decimal("7.07"),
                  shipping_address={"email": email} if email else {})
    db.session.add(order)
    db.session.commit()
    return order


def test_task_sends_with_parsed_delivery_date(app, monkeypatch):
    sender = RecordingSender()
    monkeypatch.setitem(app.extensions, "email_sender", sender)
    order = _order("t@example.com")
    result = send_order_notification_task.apply(
        args=(order.id, "shipped", "TRK", "UPS", "2026-11-02")
    ).get()
    assert result["success"] is True
    assert "November 02, 2026" in sender.sent[0][2]


def test_task_reports_missing_recipient_without_raising(app, monkeypatch):
    sender = RecordingSender()
    monkeypatch.setitem(app.extensions, "email_sender", sender)
    order = _order(None)
    result = send_order_notification_task.apply(args=(order.id, "shipped")).get()
    assert result["success"] is False
    assert result["retryable"] is False
    assert sender.sent == []
