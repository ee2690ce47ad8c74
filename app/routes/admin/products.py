from flask import request

from app.schemas.catalog import BulkStockRequest, ProductCreateRequest, ProductUpdateRequest
from app.services import catalog
from app.utils import ok, transactional, validate_schema
from . import admin_bp


@admin_bp.route("/products", methods=["POST"])
@validate_schema(ProductCreateRequest)
def create_product():
    with transactional("Failed to create product"):
        product = catalog.create_product(request.validated_data)
    return ok({"product": product.to_dict()}, message="Product created", status=201)


@admin_bp.route("/products/<product_id>", methods=["PATCH"])
@validate_schema(ProductUpdateRequest)
def update_product(product_id):
    with transactional("Failed to update product"):
        product = catalog.update_product(product_id, request.validated_data)
    return ok({"product": product.to_dict()}, message="Product updated")


@admin_bp.route("/products/<product_id>", methods=["DELETE"])
def delete_product(product_id):
    with transactional("Failed to delete product"):
        catalog.delete_product(product_id)
    return ok(message="Product deleted")


@admin_bp.route("/products/bulk-stock", methods=["POST"])
@validate_schema(BulkStockRequest)
def bulk_stock():
    data = request.validated_data
    with transactional("Failed to update stock"):
        updated = catalog.bulk_update_stock(data.product_ids, data.stock)
    return ok({"updated": updated})
