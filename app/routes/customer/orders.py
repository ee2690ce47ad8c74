from flask import g

from app.routes.streaming import change_stream
from app.services.order_service import get_order_for_user, list_orders_for_user
from app.utils import ok
from . import customer_bp


@customer_bp.route("/orders", methods=["GET"])
def order_history():
    orders = list_orders_for_user(g.user_id)
    return ok({"orders": [o.to_dict() for o in orders]})


@customer_bp.route("/orders/stream", methods=["GET"])
def order_stream():
    """Live updates for the caller's own orders."""
    return change_stream("orders", user_id=g.user_id)


@customer_bp.route("/orders/<order_id>", methods=["GET"])
def order_detail(order_id):
    return ok({"order": get_order_for_user(order_id, g.user_id).to_dict()})
