from flask import Blueprint, request

from app.version import API_PREFIX
from app.errors import ValidationError
from app.services import catalog, review_service
from app.utils import ok

catalog_bp = Blueprint("catalog", __name__, url_prefix=f"{API_PREFIX}/products")


def _int_arg(name, default):
    raw = request.args.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValidationError(f"{name} must be an integer")


@catalog_bp.route("", methods=["GET"])
def list_products():
    """Browse the catalog with optional category, search and sort."""
    page = catalog.list_products(
        category=request.args.get("category"),
        search=request.args.get("search"),
        sort=request.args.get("sort", "newest"),
        page=_int_arg("page", 1),
        per_page=_int_arg("per_page", 20),
    )
    return ok({
        "products": [p.to_dict() for p in page.items],
        "page": page.page,
        "per_page": page.per_page,
        "total": page.total,
        "pages": page.pages,
    })


@catalog_bp.route("/categories", methods=["GET"])
def list_categories():
    return ok({"categories": catalog.list_categories()})


@catalog_bp.route("/<product_id>", methods=["GET"])
def product_detail(product_id):
    return ok({"product": catalog.get_product(product_id).to_dict()})


@catalog_bp.route("/<product_id>/reviews", methods=["GET"])
def product_reviews(product_id):
    catalog.get_product(product_id)
    return ok({"reviews": [r.to_dict() for r in review_service.list_reviews(product_id)]})


@catalog_bp.route("/<product_id>/reviews/stats", methods=["GET"])
def product_review_stats(product_id):
    catalog.get_product(product_id)
    return ok({"stats": review_service.compute_stats(product_id).to_dict()})
