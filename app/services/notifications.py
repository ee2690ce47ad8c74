"""Order status e-mails.

``notify_status_change`` resolves the recipient, renders a status specific
message and hands it to the configured :class:`EmailSender`. Transport
failures come back as a :class:`NotificationResult`; only a missing order or a
missing recipient address raise.
"""

import logging
from dataclasses import dataclass, asdict
from typing import Optional

import requests
from flask import current_app, render_template

from models import db
from models.order import Order
from models.user import UserProfile
from app.errors import NotFoundError, RecipientNotFoundError
from app.metrics import NOTIFICATIONS_SENT

logger = logging.getLogger(__name__)

SUBJECTS = {
    "pending": "Order Received",
    "confirmed": "Order Confirmed",
    "processing": "Order Processing",
    "shipped": "Order Shipped",
    "delivered": "Order Delivered",
    "cancelled": "Order Cancelled",
}


@dataclass
class NotificationResult:
    success: bool
    error: Optional[str] = None
    retryable: bool = False
    recipient: Optional[str] = None
    message_id: Optional[str] = None

    def to_dict(self):
        return asdict(self)


class DeliveryError(Exception):
    def __init__(self, message, retryable=False):
        super().__init__(message)
        self.retryable = retryable


class EmailSender:
    """Transactional e-mail port: send(to, subject, html) -> provider message id."""

    def send(self, to: str, subject: str, html: str) -> Optional[str]:
        raise NotImplementedError


class LoggingEmailSender(EmailSender):
    def send(self, to, subject, html):
        logger.info("[email disabled] %s -> %s", subject, to)
        return None


class ResendEmailSender(EmailSender):
    def __init__(self, api_key, sender, url="https://api.resend.com/emails", timeout=10.0, session=None):
        self.api_key = api_key
        self.sender = sender
        self.url = url
        self.timeout = timeout
        self.session = session or requests.Session()

    def send(self, to, subject, html):
        try:
            resp = self.session.post(
                self.url,
                json={"from": self.sender, "to": [to], "subject": subject, "html": html},
                headers={"Authorization": f"Bearer {self.api_key}"},
                timeout=self.timeout,
            )
        except requests.Timeout:
            raise DeliveryError("E-mail provider timed out", retryable=True)
        except requests.ConnectionError as e:
            raise DeliveryError(f"E-mail provider unreachable: {e}", retryable=True)
        if resp.status_code == 429 or resp.status_code >= 500:
            raise DeliveryError(f"E-mail provider unavailable ({resp.status_code})", retryable=True)
        if resp.status_code >= 400:
            try:
                detail = resp.json().get("message")
            except ValueError:
                detail = None
            raise DeliveryError(detail or f"E-mail rejected ({resp.status_code})", retryable=False)
        try:
            return resp.json().get("id")
        except ValueError:
            return None


def build_sender(config) -> EmailSender:
    backend = (config.get("EMAIL_BACKEND") or "log").lower()
    if backend == "resend":
        return ResendEmailSender(
            api_key=config.get("RESEND_API_KEY"),
            sender=config.get("EMAIL_FROM"),
            url=config.get("RESEND_API_URL", "https://api.resend.com/emails"),
            timeout=config.get("EMAIL_TIMEOUT_SECONDS", 10.0),
        )
    return LoggingEmailSender()


def init_app(app):
    app.extensions["email_sender"] = build_sender(app.config)


def get_sender() -> EmailSender:
    return current_app.extensions["email_sender"]


def resolve_recipient(order: Order) -> str:
    address = order.shipping_address or {}
    email = (address.get("email") or "").strip() if isinstance(address, dict) else ""
    if email:
        return email
    user = db.session.get(UserProfile, order.user_id) if order.user_id else None
    if user and user.email:
        return user.email
    raise RecipientNotFoundError("No email address found for this order")


def render_status_email(order_id, status, tracking_number=None, carrier=None, estimated_delivery=None):
    short_id = str(order_id)[:8].upper()
    subject = f"{SUBJECTS.get(status, 'Order Update')} - #{short_id}"
    if hasattr(estimated_delivery, "strftime"):
        estimated_delivery = estimated_delivery.strftime("%B %d, %Y")
    html = render_template(
        "emails/order_status.html",
        status=status,
        short_id=short_id,
        tracking_number=tracking_number,
        carrier=carrier,
        estimated_delivery=estimated_delivery,
    )
    return subject, html


def notify_status_change(order_id, status, tracking_number=None, carrier=None,
                         estimated_delivery=None, sender: Optional[EmailSender] = None) -> NotificationResult:
    order = db.session.get(Order, order_id)
    if order is None:
        raise NotFoundError("Order not found")
    recipient = resolve_recipient(order)
    subject, html = render_status_email(order.id, status, tracking_number, carrier, estimated_delivery)
    sender = sender or get_sender()
    try:
        message_id = sender.send(recipient, subject, html)
    except DeliveryError as e:
        logger.warning("Order %s %s e-mail failed (retryable=%s): %s", order.short_id, status, e.retryable, e)
        NOTIFICATIONS_SENT.labels(status, "retryable" if e.retryable else "rejected").inc()
        return NotificationResult(success=False, error=str(e), retryable=e.retryable, recipient=recipient)
    except Exception as e:
        logger.exception("Order %s %s e-mail failed", order.short_id, status)
        NOTIFICATIONS_SENT.labels(status, "error").inc()
        return NotificationResult(success=False, error=str(e), retryable=False, recipient=recipient)
    logger.info("Order %s %s notification sent", order.short_id, status)
    NOTIFICATIONS_SENT.labels(status, "sent").inc()
    return NotificationResult(success=True, recipient=recipient, message_id=message_id)
