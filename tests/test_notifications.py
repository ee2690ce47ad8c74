from datetime import date
from decimal import Decimal

import pytest
import requests

from app.errors import NotFoundError, RecipientNotFoundError
from app.services.notifications import (
    DeliveryError,
    EmailSender,
    ResendEmailSender,
    build_sender,
    notify_status_change,
    render_status_email,
)
from app.version import API_PREFIX
from models import db
from models.order import Order
from models.user import UserProfile


class FakeSender(EmailSender):
    def __init__(self, error=None):
        self.sent = []
        self.error = error

    def send(self, to, subject, html):
        if self.error:
            raise self.error
        self.sent.append((to, subject, html))
        return "msg_1"


class FakeResponse:
    def __init__(self, status_code, payload=None):
        self.status_code = status_code
        self._payload = payload or {}

    def json(self):
        return self._payload


class FakeSession:
    def __init__(self, response=None, exc=None):
        self.response = response
        self.exc = exc
        self.calls = []

    def post(self, url, **kwargs):
        self.calls.append((url, kwargs))
        if self.exc:
            raise self.exc
        return self.response


def seed_order(email="buyer@example.com", account_email="account@example.com"):
    user = UserProfile(email=account_email, name="Buyer")
    db.session.add(user)
    db.session.flush()
    address = {"first_name": "B", "last_name": "Uyer"}
    if email:
        address["email"] = email
    order = Order(
        user_id=user.id,
        status="confirmed",
        subtotal=Decimal("10.00"),
        tax=Decimal("0.80"),
        shipping=Decimal("5.99"),
        total=Decimal("16.79"),
        shipping_address=address,
    )
    db.session.add(order)
    db.session.commit()
    return order


def test_sends_to_shipping_email(app):
    order = seed_order()
    sender = FakeSender()
    result = notify_status_change(order.id, "shipped", tracking_number="1Z9", carrier="UPS",
                                  estimated_delivery=date(2026, 11, 2), sender=sender)
    assert result.success is True
    assert result.recipient == "buyer@example.com"
    assert result.message_id == "msg_1"
    to, subject, html = sender.sent[0]
    assert subject == f"Order Shipped - #{order.id[:8].upper()}"
    assert "1Z9" in html
    assert "UPS" in html
    assert "November 02, 2026" in html


def test_falls_back_to_account_email(app):
    order = seed_order(email=None)
    sender = FakeSender()
    result = notify_status_change(order.id, "delivered", sender=sender)
    assert result.recipient == "account@example.com"
    assert sender.sent[0][1].startswith("Order Delivered - #")


def test_no_recipient_is_terminal(app):
    order = seed_order(email=None, account_email=None)
    sender = FakeSender()
    with pytest.raises(RecipientNotFoundError):
        notify_status_change(order.id, "shipped", sender=sender)
    assert sender.sent == []


def test_missing_order(app):
    with pytest.raises(NotFoundError):
        notify_status_change("missing", "shipped", sender=FakeSender())


def test_send_failure_is_returned(app):
    order = seed_order()
    result = notify_status_change(order.id, "shipped", sender=FakeSender(DeliveryError("busy", retryable=True)))
    assert result.success is False
    assert result.retryable is True
    assert result.error == "busy"


def test_unexpected_sender_error_is_returned(app):
    order = seed_order()
    result = notify_status_change(order.id, "shipped", sender=FakeSender(RuntimeError("boom")))
    assert result.success is False
    assert result.retryable is False


def test_render_uses_generic_subject_for_unknown_status(app):
    with app.test_request_context():
        subject, html = render_status_email("abcdef123456", "returned")
    assert subject == "Order Update - #ABCDEF12"


# -------------------- Resend transport --------------------

def test_resend_timeout_is_retryable():
    sender = ResendEmailSender("key", "from@example.com", session=FakeSession(exc=requests.Timeout()))
    with pytest.raises(DeliveryError) as exc:
        sender.send("to@example.com", "s", "<p>h</p>")
    assert exc.value.retryable is True


def test_resend_server_error_is_retryable():
    sender = ResendEmailSender("key", "from@example.com", session=FakeSession(FakeResponse(502)))
    with pytest.raises(DeliveryError) as exc:
        sender.send("to@example.com", "s", "h")
    assert exc.value.retryable is True


def test_resend_rejection_is_not_retryable():
    session = FakeSession(FakeResponse(422, {"message": "Invalid `to` field"}))
    sender = ResendEmailSender("key", "from@example.com", session=session)
    with pytest.raises(DeliveryError) as exc:
        sender.send("bad", "s", "h")
    assert exc.value.retryable is False
    assert "Invalid" in str(exc.value)


def test_resend_success_passes_timeout_and_auth():
    session = FakeSession(FakeResponse(200, {"id": "re_123"}))
    sender = ResendEmailSender("key", "from@example.com", timeout=3, session=session)
    assert sender.send("to@example.com", "s", "h") == "re_123"
    url, kwargs = session.calls[0]
    assert kwargs["timeout"] == 3
    assert kwargs["headers"]["Authorization"] == "Bearer key"
    assert kwargs["json"]["to"] == ["to@example.com"]


def test_build_sender_picks_backend():
    assert isinstance(build_sender({"EMAIL_BACKEND": "resend", "RESEND_API_KEY": "k"}), ResendEmailSender)
    assert not isinstance(build_sender({"EMAIL_BACKEND": "log"}), ResendEmailSender)


# -------------------- Admin routes --------------------

@pytest.fixture
def admin_headers(login):
    return login("admin@example.com", role="admin")[1]


@pytest.fixture
def fake_sender(app, monkeypatch):
    sender = FakeSender()
    monkeypatch.setitem(app.extensions, "email_sender", sender)
    return sender


def test_update_silently_sends_nothing(client, admin_headers, fake_sender):
    order = seed_order()
    resp = client.patch(f"{API_PREFIX}/admin/orders/{order.id}", json={"status": "processing"}, headers=admin_headers)
    assert resp.status_code == 200
    assert fake_sender.sent == []


def test_update_and_notify(client, admin_headers, fake_sender):
    order = seed_order()
    resp = client.patch(
        f"{API_PREFIX}/admin/orders/{order.id}",
        json={"status": "shipped", "tracking_number": "TRK1", "carrier": "USPS", "notify": True},
        headers=admin_headers,
    )
    assert resp.status_code == 200
    assert resp.get_json()["data"]["notification"]["success"] is True
    assert "TRK1" in fake_sender.sent[0][2]


def test_update_and_notify_queued(client, admin_headers, fake_sender):
    order = seed_order()
    resp = client.patch(
        f"{API_PREFIX}/admin/orders/{order.id}",
        json={"status": "delivered", "notify": True, "notify_async": True},
        headers=admin_headers,
    )
    assert resp.status_code == 200
    assert resp.get_json()["data"]["notification"] == {"queued": True}
    # tasks run eagerly under test
    assert fake_sender.sent[0][1].startswith("Order Delivered")


def test_update_commits_even_without_recipient(client, admin_headers, fake_sender):
    order = seed_order(email=None, account_email=None)
    resp = client.patch(
        f"{API_PREFIX}/admin/orders/{order.id}", json={"status": "shipped", "notify": True}, headers=admin_headers
    )
    assert resp.status_code == 200
    assert resp.get_json()["data"]["notification"]["success"] is False
    assert db.session.get(Order, order.id).status == "shipped"


def test_notify_route_without_recipient_is_422(client, admin_headers, fake_sender):
    order = seed_order(email=None, account_email=None)
    resp = client.post(f"{API_PREFIX}/admin/orders/{order.id}/notify", json={}, headers=admin_headers)
    assert resp.status_code == 422
    assert resp.get_json()["code"] == "no_recipient"


def test_notify_route_resends_current_status(client, admin_headers, fake_sender):
    order = seed_order()
    resp = client.post(f"{API_PREFIX}/admin/orders/{order.id}/notify", json={}, headers=admin_headers)
    assert resp.status_code == 200
    assert fake_sender.sent[0][1].startswith("Order Confirmed")
