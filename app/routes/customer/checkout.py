import logging

from flask import current_app, g, request
from flask_limiter.util import get_remote_address

from extensions import limiter
from app.routes.cart import session_cart
from app.schemas.checkout import CheckoutRequest
from app.services.order_service import create_order
from app.utils import ok, role_required, transactional, validate_schema
from . import customer_bp

logger = logging.getLogger(__name__)


@customer_bp.route("/checkout", methods=["POST"])
@limiter.limit(
    lambda: current_app.config["CHECKOUT_LIMIT_PER_IP"],
    key_func=get_remote_address,
    error_message="Too many checkouts from this IP",
)
@role_required(["customer:place_order", "admin:place_order"])
@validate_schema(CheckoutRequest)
def checkout():
    """Turn the visitor's cart into a confirmed order."""
    data = request.validated_data
    engine = session_cart()
    cart = engine.cart

    with transactional("Checkout failed"):
        order = create_order(g.user_id, cart, data.shipping_address, data.payment)

    engine.clear()

    if current_app.config.get("NOTIFY_ON_CHECKOUT"):
        from app.tasks.notifications import send_order_notification_task
        try:
            send_order_notification_task.delay(order.id, order.status)
        except Exception as e:
            # The order is committed; a lost confirmation e-mail must not fail checkout
            logger.error("Could not queue confirmation for order %s: %s", order.short_id, e)

    return ok({"order": order.to_dict()}, message="Order placed successfully", status=201)
