from flask import Blueprint, current_app, request, session

from app.version import API_PREFIX
from app.schemas.catalog import CartAddRequest, CartQuantityRequest
from app.services import catalog
from app.services.cart import CartEngine, PricingPolicy, SessionCartStore
from app.utils import ok, validate_schema

cart_bp = Blueprint("cart", __name__, url_prefix=f"{API_PREFIX}/cart")


def session_cart(notices=None) -> CartEngine:
    """Cart engine bound to the caller's signed session cookie."""
    return CartEngine(
        SessionCartStore(session),
        policy=PricingPolicy.from_config(current_app.config),
        notify=notices.append if notices is not None else None,
    )


def _cart_response(cart, notices=None):
    data = {"cart": cart.to_dict()}
    if notices:
        data["notices"] = notices
    return ok(data)


@cart_bp.route("", methods=["GET"])
def view_cart():
    return _cart_response(session_cart().cart)


@cart_bp.route("/items", methods=["POST"])
@validate_schema(CartAddRequest)
def add_item():
    """Add a product to the visitor's cart, merging with an existing line."""
    data = request.validated_data
    product = catalog.get_product(data.product_id)
    notices = []
    cart = session_cart(notices).add_item(product, data.quantity)
    return _cart_response(cart, notices)


@cart_bp.route("/items/<line_id>", methods=["PATCH"])
@validate_schema(CartQuantityRequest)
def update_item(line_id):
    notices = []
    cart = session_cart(notices).update_quantity(line_id, request.validated_data.quantity)
    return _cart_response(cart, notices)


@cart_bp.route("/items/<line_id>", methods=["DELETE"])
def remove_item(line_id):
    notices = []
    cart = session_cart(notices).remove_item(line_id)
    return _cart_response(cart, notices)


@cart_bp.route("", methods=["DELETE"])
def clear_cart():
    notices = []
    cart = session_cart(notices).clear()
    return _cart_response(cart, notices)
