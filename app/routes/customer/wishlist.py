from flask import g

from app.services import wishlist
from app.utils import ok, role_required, transactional
from . import customer_bp

MANAGE = ["customer:manage_wishlist", "admin:manage_wishlist"]


@customer_bp.route("/wishlist", methods=["GET"])
def list_wishlist():
    return ok({"items": wishlist.list_wishlist(g.user_id)})


@customer_bp.route("/wishlist/<product_id>", methods=["PUT"])
@role_required(MANAGE)
def add_to_wishlist(product_id):
    with transactional("Failed to add to wishlist"):
        entry = wishlist.add_to_wishlist(g.user_id, product_id)
    return ok({"item": entry.to_dict()}, message="Added to wishlist", status=201)


@customer_bp.route("/wishlist/<product_id>", methods=["DELETE"])
@role_required(MANAGE)
def remove_from_wishlist(product_id):
    with transactional("Failed to remove from wishlist"):
        wishlist.remove_from_wishlist(g.user_id, product_id)
    return ok(message="Removed from wishlist")


@customer_bp.route("/wishlist/<product_id>/toggle", methods=["POST"])
@role_required(MANAGE)
def toggle_wishlist(product_id):
    with transactional("Failed to update wishlist"):
        present = wishlist.toggle_wishlist(g.user_id, product_id)
    return ok({"product_id": product_id, "in_wishlist": present})
