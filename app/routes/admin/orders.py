import logging

from flask import current_app, request

from app.errors import RecipientNotFoundError, ValidationError
from app.routes.streaming import change_stream
from app.schemas.order import NotifyRequest, OrderUpdateRequest
from app.services.notifications import notify_status_change
from app.services.order_service import OrderUpdate, get_order, list_all_orders, update_order
from app.utils import ok, transactional, validate_schema
from models.order import OrderStatus
from . import admin_bp

logger = logging.getLogger(__name__)


def _send_notification(order, status, tracking_number, carrier, estimated_delivery, queued):
    if queued:
        from app.tasks.notifications import send_order_notification_task
        send_order_notification_task.delay(
            order.id,
            status,
            tracking_number,
            carrier,
            estimated_delivery.isoformat() if estimated_delivery else None,
        )
        return {"queued": True}
    return notify_status_change(
        order.id,
        status,
        tracking_number=tracking_number,
        carrier=carrier,
        estimated_delivery=estimated_delivery,
    ).to_dict()


@admin_bp.route("/orders", methods=["GET"])
def list_orders():
    status = request.args.get("status")
    if status and status not in OrderStatus.values():
        raise ValidationError(f"status must be one of {', '.join(OrderStatus.values())}")
    return ok({"orders": [o.to_dict() for o in list_all_orders(status)]})


@admin_bp.route("/orders/stream", methods=["GET"])
def order_stream():
    """Live updates for the order dashboard."""
    return change_stream("orders")


@admin_bp.route("/orders/<order_id>", methods=["GET"])
def order_detail(order_id):
    return ok({"order": get_order(order_id).to_dict()})


@admin_bp.route("/orders/<order_id>", methods=["PATCH"])
@validate_schema(OrderUpdateRequest)
def update_order_route(order_id):
    """Update status and tracking; optionally e-mail the customer afterwards."""
    data = request.validated_data
    changes = OrderUpdate.from_request(data)
    if changes.is_empty():
        raise ValidationError("Nothing to update")

    with transactional("Order update failed"):
        order = update_order(
            order_id,
            changes,
            forward_only=current_app.config.get("ORDER_STATUS_FORWARD_ONLY", False),
        )

    payload = {"order": order.to_dict()}
    if data.notify:
        try:
            payload["notification"] = _send_notification(
                order,
                order.status,
                order.tracking_number,
                order.carrier,
                order.estimated_delivery,
                queued=data.notify_async,
            )
        except RecipientNotFoundError as e:
            # The update is already committed; report the missing address alongside it
            payload["notification"] = {"success": False, "error": e.message, "retryable": False}
    return ok(payload, message="Order updated")


@admin_bp.route("/orders/<order_id>/notify", methods=["POST"])
@validate_schema(NotifyRequest)
def notify_order(order_id):
    """Send (or resend) the status e-mail without touching the order."""
    data = request.validated_data
    order = get_order(order_id)
    result = _send_notification(
        order,
        data.status or order.status,
        data.tracking_number if "tracking_number" in data.model_fields_set else order.tracking_number,
        data.carrier if "carrier" in data.model_fields_set else order.carrier,
        data.estimated_delivery if "estimated_delivery" in data.model_fields_set else order.estimated_delivery,
        queued=data.notify_async,
    )
    return ok({"notification": result})
