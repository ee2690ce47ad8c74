import logging
from contextlib import nullcontext
from datetime import date

from celery import shared_task
from flask import has_app_context

from app.errors import AppError

logger = logging.getLogger(__name__)


@shared_task(bind=True)
def send_order_notification_task(self, order_id: str, status: str, tracking_number=None,
                                 carrier=None, estimated_delivery=None) -> dict:
    """Send an order status e-mail from a worker. Failures are reported, not retried."""
    from app import create_app
    from app.services.notifications import notify_status_change

    if isinstance(estimated_delivery, str):
        estimated_delivery = date.fromisoformat(estimated_delivery)

    # Eager runs reuse the caller's context; a worker builds its own app
    ctx = nullcontext() if has_app_context() else create_app().app_context()
    with ctx:
        try:
            result = notify_status_change(
                order_id,
                status,
                tracking_number=tracking_number,
                carrier=carrier,
                estimated_delivery=estimated_delivery,
            )
        except AppError as e:
            logger.warning("Order %s %s notification not sent: %s", order_id, status, e.message)
            return {"success": False, "error": e.message, "retryable": False, "recipient": None, "message_id": None}
        if not result.success:
            logger.warning("Order %s %s notification failed (retryable=%s)", order_id, status, result.retryable)
        return result.to_dict()
